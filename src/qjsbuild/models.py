"""Core typed dataclasses for resolved configuration and build artifacts."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    import cffi

BindingMode = Literal["live", "precomputed", "placeholder"]

FEATURES = (
    "exports",
    "bindgen",
    "update-bindings",
    "dump-bytecode",
    "dump-gc",
    "dump-gc-free",
    "dump-free",
    "dump-leaks",
    "dump-mem",
    "dump-objects",
    "dump-atoms",
    "dump-shapes",
    "dump-module-resolve",
    "dump-promise",
    "dump-read-object",
)


def feature_to_define(name: str) -> str:
    """Map ``dump-gc-free`` to ``DUMP_GC_FREE``."""
    return name.upper().replace("-", "_")


@dataclass(frozen=True, slots=True)
class PlatformDescriptor:
    triple: str
    os: str
    arch: str
    env: str = ""

    @property
    def is_wasi(self) -> bool:
        return self.os == "wasi"

    @property
    def is_msvc(self) -> bool:
        return self.os == "windows" and self.env == "msvc"


@dataclass(frozen=True, slots=True)
class DefineSet:
    """Preprocessor symbols in insertion order; names are unique."""

    entries: tuple[tuple[str, str | None], ...] = ()

    def __post_init__(self) -> None:
        names = [name for name, _ in self.entries]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate define names: {names}")

    def __contains__(self, name: object) -> bool:
        return any(entry_name == name for entry_name, _ in self.entries)

    def __iter__(self) -> Iterator[tuple[str, str | None]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.entries)

    def as_dict(self) -> dict[str, str | None]:
        return dict(self.entries)

    def as_flags(self) -> tuple[str, ...]:
        return tuple(f"-D{name}" if value is None else f"-D{name}={value}" for name, value in self)


@dataclass(frozen=True, slots=True)
class ResolvedConfig:
    platform: PlatformDescriptor
    features: frozenset[str]
    defines: DefineSet
    patches: tuple[str, ...]
    needs_toolchain: bool = False

    def has_feature(self, name: str) -> bool:
        return name in self.features

    def to_payload(self) -> dict[str, object]:
        return {
            "target": self.platform.triple,
            "os": self.platform.os,
            "arch": self.platform.arch,
            "env": self.platform.env,
            "features": sorted(self.features),
            "defines": self.defines.as_dict(),
            "patches": list(self.patches),
            "needs_toolchain": self.needs_toolchain,
        }


@dataclass(frozen=True, slots=True)
class ToolchainHandle:
    root: Path
    compiler: Path
    archiver: Path
    sysroot: Path
    version: str = ""
    external: bool = False

    @property
    def sysroot_flag(self) -> str:
        return f"--sysroot={self.sysroot}"


@dataclass(frozen=True, slots=True)
class StagedSourceTree:
    root: Path
    headers: tuple[Path, ...]
    sources: tuple[Path, ...]
    binding_header: Path
    applied_patches: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BindingArtifact:
    path: Path
    target: str
    mode: BindingMode
    cdef: str | None = None

    def to_ffi(self) -> cffi.FFI:
        """Return a ``cffi.FFI`` with this artifact's declarations loaded."""
        import cffi

        ffi = cffi.FFI()
        if self.cdef:
            ffi.cdef(self.cdef)
        return ffi


@dataclass(frozen=True, slots=True)
class CompiledArtifact:
    path: Path
    objects: tuple[Path, ...] = ()
    commands: tuple[tuple[str, ...], ...] = ()


@dataclass(slots=True)
class BuildResult:
    config: ResolvedConfig
    staged: StagedSourceTree
    bindings: BindingArtifact
    library: CompiledArtifact
    toolchain: ToolchainHandle | None = None
    report_path: Path | None = None
    digests: Mapping[str, str] = field(default_factory=dict)
