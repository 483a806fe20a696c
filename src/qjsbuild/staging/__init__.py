"""Source staging and ordered patch application."""

from qjsbuild.staging.patch import apply_patch, apply_patches
from qjsbuild.staging.tree import (
    BINDING_HEADER,
    HEADER_FILES,
    SOURCE_FILES,
    stage_sources,
)

__all__ = [
    "BINDING_HEADER",
    "HEADER_FILES",
    "SOURCE_FILES",
    "apply_patch",
    "apply_patches",
    "stage_sources",
]
