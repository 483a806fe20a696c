"""Build environment: everything the pipeline reads from the invocation environment.

The environment is read exactly once by :meth:`BuildEnvironment.from_environ`;
later stages receive the frozen result and never consult ``os.environ``.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from qjsbuild.errors import EnvironmentIntegrityError
from qjsbuild.models import FEATURES, PlatformDescriptor, feature_to_define
from qjsbuild.policy import Policy

FALSY_VALUES = frozenset({"", "0", "false", "no", "off"})

_OS_ALIASES = {
    "linux": "linux",
    "windows": "windows",
    "darwin": "macos",
    "macos": "macos",
    "ios": "ios",
    "android": "android",
    "freebsd": "freebsd",
    "netbsd": "netbsd",
    "openbsd": "openbsd",
    "emscripten": "emscripten",
    "none": "none",
}


def feature_env_var(name: str) -> str:
    return f"QJS_FEATURE_{feature_to_define(name)}"


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() not in FALSY_VALUES


def parse_triple(triple: str) -> PlatformDescriptor:
    """Split a target triple such as ``x86_64-unknown-linux-gnu`` into its parts."""
    parts = [part for part in triple.strip().split("-") if part]
    if not parts:
        raise EnvironmentIntegrityError(
            "Target triple is empty.",
            hint="Set QJS_TARGET to a triple such as x86_64-unknown-linux-gnu.",
            context={"triple": triple},
        )
    arch = parts[0]
    target_os = ""
    for part in parts[1:]:
        if part.startswith("wasi"):
            target_os = "wasi"
            break
        if part in _OS_ALIASES:
            target_os = _OS_ALIASES[part]
            break
    else:
        # bare-metal triples such as wasm32-unknown-unknown
        if len(parts) > 2 and parts[2] == "unknown":
            target_os = "unknown"
    target_env = ""
    if len(parts) > 2:
        last = parts[-1]
        if last.startswith("gnu"):
            target_env = "gnu"
        elif last.startswith("musl"):
            target_env = "musl"
        elif last in ("msvc", "sgx", "uclibc"):
            target_env = last
    return PlatformDescriptor(triple=triple, os=target_os, arch=arch, env=target_env)


def default_cache_root(environ: Mapping[str, str]) -> Path:
    xdg = environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "qjsbuild"
    return Path.home() / ".cache" / "qjsbuild"


@dataclass(frozen=True, slots=True)
class BuildEnvironment:
    platform: PlatformDescriptor
    out_dir: Path
    source_dir: Path
    patches_dir: Path
    bindings_dir: Path
    cache_dir: Path
    features: frozenset[str] = frozenset()
    wasi_sdk: Path | None = None
    cc: str = "cc"
    ar: str = "ar"
    cflags: tuple[str, ...] = ()
    clang: str = "clang"
    policy: Policy = field(default_factory=Policy)

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        project_root: str | Path | None = None,
    ) -> BuildEnvironment:
        env = dict(os.environ if environ is None else environ)
        root = Path(project_root) if project_root is not None else Path.cwd()

        triple = env.get("QJS_TARGET")
        if not triple:
            raise EnvironmentIntegrityError(
                "QJS_TARGET is not set.",
                hint="The calling build must export the target triple, e.g. QJS_TARGET=wasm32-wasi.",
                context={"variable": "QJS_TARGET"},
            )
        parsed = parse_triple(triple)
        platform = PlatformDescriptor(
            triple=parsed.triple,
            os=env.get("QJS_TARGET_OS") or parsed.os,
            arch=env.get("QJS_TARGET_ARCH") or parsed.arch,
            env=env.get("QJS_TARGET_ENV", parsed.env),
        )
        if not platform.os:
            raise EnvironmentIntegrityError(
                "Unable to determine the target operating system.",
                hint="Set QJS_TARGET_OS explicitly for this triple.",
                context={"triple": triple},
            )

        features = frozenset(name for name in FEATURES if is_truthy(env.get(feature_env_var(name))))
        wasi_sdk = env.get("WASI_SDK")

        return cls(
            platform=platform,
            out_dir=Path(env.get("QJS_OUT_DIR") or root / "build"),
            source_dir=Path(env.get("QJS_SOURCE_DIR") or root / "quickjs"),
            patches_dir=Path(env.get("QJS_PATCHES_DIR") or root / "patches"),
            bindings_dir=Path(env.get("QJS_BINDINGS_DIR") or root / "bindings"),
            cache_dir=Path(env.get("QJS_CACHE_DIR") or default_cache_root(env)),
            features=features,
            wasi_sdk=Path(wasi_sdk) if wasi_sdk else None,
            cc=env.get("CC") or "cc",
            ar=env.get("AR") or "ar",
            cflags=tuple(shlex.split(env.get("CFLAGS", ""))),
            clang=env.get("CLANG") or "clang",
            policy=Policy(network_mode="offline" if is_truthy(env.get("QJS_OFFLINE")) else "online"),
        )
