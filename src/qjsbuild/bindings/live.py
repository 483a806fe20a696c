"""Live mode: preprocess the binding header with clang and introspect it."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

import cffi

from qjsbuild.bindings.base import ARTIFACT_NAME, write_artifact
from qjsbuild.bindings.introspect import EXTENSION_SHIMS, extract_declarations, write_stub_includes
from qjsbuild.bindings.precomputed import bundled_path
from qjsbuild.errors import BindingGenerationError
from qjsbuild.models import (
    BindingArtifact,
    BindingMode,
    ResolvedConfig,
    StagedSourceTree,
    ToolchainHandle,
)
from qjsbuild.observability import StructuredLogger
from qjsbuild.process import CommandRunner, run_tool, subprocess_runner

STUB_INCLUDE_DIRNAME = "bindgen-include"


@dataclass(slots=True)
class LiveBindings:
    bindings_dir: Path
    clang: str = "clang"
    update_bundled: bool = False
    runner: CommandRunner = subprocess_runner
    logger: StructuredLogger | None = None
    mode: BindingMode = "live"

    def preprocess_command(
        self,
        *,
        config: ResolvedConfig,
        staged: StagedSourceTree,
        stub_dir: Path,
        toolchain: ToolchainHandle | None,
    ) -> tuple[str, ...]:
        platform = config.platform
        clang = str(toolchain.compiler) if toolchain is not None else self.clang
        flags = ["-E", "-dD", "-xc", "-nostdinc", f"--target={platform.triple}"]
        if toolchain is not None:
            flags.append(toolchain.sysroot_flag)
        if platform.is_wasi:
            flags.append("-fvisibility=default")
        flags.extend((f"-I{stub_dir}", f"-I{staged.root}"))
        flags.extend(EXTENSION_SHIMS)
        flags.extend(config.defines.as_flags())
        return (clang, *flags, str(staged.binding_header))

    def produce(
        self,
        *,
        config: ResolvedConfig,
        staged: StagedSourceTree,
        out_dir: Path,
        toolchain: ToolchainHandle | None,
    ) -> BindingArtifact:
        target = config.platform.triple
        self._log(target, f"Bindings for target: {target}")

        stub_dir = write_stub_includes(out_dir / STUB_INCLUDE_DIRNAME)
        command = self.preprocess_command(
            config=config,
            staged=staged,
            stub_dir=stub_dir,
            toolchain=toolchain,
        )
        result = run_tool(
            self.runner,
            command,
            cwd=staged.root,
            operation="bindgen",
            message="Preprocessing the binding header failed.",
            hint="Install clang (or set CLANG) or build without the bindgen feature.",
            context={"target": target},
        )
        cdef = extract_declarations(result.stdout, filename=str(staged.binding_header))
        validate_cdef(cdef, target=target)

        artifact = write_artifact(out_dir / ARTIFACT_NAME, target=target, cdef=cdef, mode="live")
        if self.update_bundled:
            self.persist(artifact)
        return artifact

    def persist(self, artifact: BindingArtifact) -> Path:
        """Copy a generated artifact into the bundled store for later fallback runs."""
        destination = bundled_path(self.bindings_dir, artifact.target)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(artifact.path, destination)
        self._log(artifact.target, f"Updated bundled bindings {destination}")
        return destination

    def _log(self, target: str, message: str) -> None:
        if self.logger is not None:
            self.logger.log(operation="bindings", stage="bindings", target=target, message=message)


def validate_cdef(cdef: str, *, target: str) -> None:
    """Reject declarations cffi would not accept at load time."""
    try:
        cffi.FFI().cdef(cdef)
    except (cffi.CDefError, cffi.FFIError) as exc:
        raise BindingGenerationError(
            "Generated declarations are not valid cffi cdef input.",
            hint="Adjust the allowlist or blocklist for the offending declaration.",
            context={"operation": "bindgen", "target": target, "error": str(exc)},
        ) from exc
