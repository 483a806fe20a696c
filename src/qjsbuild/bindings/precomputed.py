"""Fallback mode: select bundled bindings for the target or emit a placeholder."""

from __future__ import annotations

import shutil
import warnings
from dataclasses import dataclass
from pathlib import Path

from qjsbuild.bindings.base import (
    ARTIFACT_NAME,
    MissingBindingsWarning,
    read_artifact,
    write_artifact,
)
from qjsbuild.models import (
    BindingArtifact,
    BindingMode,
    ResolvedConfig,
    StagedSourceTree,
    ToolchainHandle,
)
from qjsbuild.observability import StructuredLogger


def bundled_path(bindings_dir: Path, target: str) -> Path:
    return bindings_dir / f"{target}.py"


@dataclass(slots=True)
class PrecomputedBindings:
    bindings_dir: Path
    logger: StructuredLogger | None = None
    mode: BindingMode = "precomputed"

    def produce(
        self,
        *,
        config: ResolvedConfig,
        staged: StagedSourceTree,
        out_dir: Path,
        toolchain: ToolchainHandle | None,
    ) -> BindingArtifact:
        target = config.platform.triple
        destination = out_dir / ARTIFACT_NAME
        source = bundled_path(self.bindings_dir, target)

        if source.is_file():
            out_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
            artifact = read_artifact(destination)
            self._log(target, f"Using bundled bindings {source}")
            return artifact

        message = (
            f"qjsbuild probably doesn't ship bindings for platform `{target}`. "
            "try the `bindgen` feature instead."
        )
        warnings.warn(message, MissingBindingsWarning, stacklevel=2)
        self._log(target, message, level="warning")
        return write_artifact(destination, target=target, cdef=None, mode="placeholder")

    def _log(self, target: str, message: str, *, level: str = "info") -> None:
        if self.logger is not None:
            self.logger.log(
                operation="bindings",
                stage="bindings",
                target=target,
                message=message,
                level=level,
            )
