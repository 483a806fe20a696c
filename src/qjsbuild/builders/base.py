"""Typed interfaces for native library builders."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from qjsbuild.models import CompiledArtifact, DefineSet


@dataclass(frozen=True, slots=True)
class StaticLibSpec:
    name: str
    sources: tuple[Path, ...]
    include_dirs: tuple[Path, ...]
    output_dir: Path
    defines: DefineSet = DefineSet()
    flags: tuple[str, ...] = ()
    pic: bool = True
    reproducible: bool = True

    @property
    def archive_name(self) -> str:
        return f"lib{self.name}.a"


class Builder(Protocol):
    def build(self, spec: StaticLibSpec) -> CompiledArtifact:
        """Compile every source and archive the objects into one static library."""
