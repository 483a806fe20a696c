"""Build report: resolved inputs plus artifact digests, exported as JSON and CBOR."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import cbor2

from qjsbuild.models import BindingArtifact, CompiledArtifact, ResolvedConfig, ToolchainHandle


def file_digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


@dataclass(frozen=True, slots=True)
class BuildReport:
    config: dict[str, Any]
    bindings_mode: str
    toolchain: dict[str, str] | None = None
    artifact_digests: dict[str, str] = field(default_factory=dict)
    schema_version: int = 1

    @classmethod
    def from_artifacts(
        cls,
        *,
        config: ResolvedConfig,
        library: CompiledArtifact,
        bindings: BindingArtifact,
        toolchain: ToolchainHandle | None,
    ) -> BuildReport:
        return cls(
            config=config.to_payload(),
            bindings_mode=bindings.mode,
            toolchain=(
                {"root": str(toolchain.root), "version": toolchain.version}
                if toolchain is not None
                else None
            ),
            artifact_digests={
                library.path.name: file_digest(library.path),
                bindings.path.name: file_digest(bindings.path),
            },
        )

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def _payload(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "config": self.config,
            "bindings_mode": self.bindings_mode,
            "toolchain": self.toolchain,
            "artifact_digests": dict(sorted(self.artifact_digests.items())),
        }
