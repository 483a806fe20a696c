"""Binding generation: live header introspection or precomputed lookup."""

from __future__ import annotations

from pathlib import Path

from qjsbuild.bindings.base import (
    ARTIFACT_NAME,
    BindingSource,
    MissingBindingsWarning,
    read_artifact,
    render_module,
)
from qjsbuild.bindings.live import LiveBindings, validate_cdef
from qjsbuild.bindings.precomputed import PrecomputedBindings, bundled_path
from qjsbuild.models import ResolvedConfig
from qjsbuild.observability import StructuredLogger
from qjsbuild.process import CommandRunner, subprocess_runner


def select_binding_source(
    config: ResolvedConfig,
    *,
    bindings_dir: Path,
    clang: str = "clang",
    runner: CommandRunner = subprocess_runner,
    logger: StructuredLogger | None = None,
) -> BindingSource:
    """Pick live introspection when ``bindgen`` is enabled, else the bundled set."""
    if config.has_feature("bindgen"):
        return LiveBindings(
            bindings_dir=bindings_dir,
            clang=clang,
            update_bundled=config.has_feature("update-bindings"),
            runner=runner,
            logger=logger,
        )
    if config.has_feature("update-bindings") and logger is not None:
        logger.log(
            operation="bindings",
            stage="bindings",
            target=config.platform.triple,
            message="update-bindings has no effect without the bindgen feature",
        )
    return PrecomputedBindings(bindings_dir=bindings_dir, logger=logger)


__all__ = [
    "ARTIFACT_NAME",
    "BindingSource",
    "LiveBindings",
    "MissingBindingsWarning",
    "PrecomputedBindings",
    "bundled_path",
    "read_artifact",
    "render_module",
    "select_binding_source",
    "validate_cdef",
]
