"""Public package entrypoint for the QuickJS build pipeline."""

from .config import BuildEnvironment
from .errors import (
    BindingGenerationError,
    EnvironmentIntegrityError,
    PolicyError,
    QjsBuildError,
    ResourceError,
    ToolExecutionError,
    UnsupportedPlatformError,
    ValidationError,
)
from .models import (
    BindingArtifact,
    BuildResult,
    CompiledArtifact,
    DefineSet,
    PlatformDescriptor,
    ResolvedConfig,
    StagedSourceTree,
    ToolchainHandle,
)
from .pipeline import build
from .resolve import resolve

__all__ = [
    "BindingArtifact",
    "BindingGenerationError",
    "BuildEnvironment",
    "BuildResult",
    "CompiledArtifact",
    "DefineSet",
    "EnvironmentIntegrityError",
    "PlatformDescriptor",
    "PolicyError",
    "QjsBuildError",
    "ResolvedConfig",
    "ResourceError",
    "StagedSourceTree",
    "ToolExecutionError",
    "ToolchainHandle",
    "UnsupportedPlatformError",
    "ValidationError",
    "build",
    "resolve",
]
