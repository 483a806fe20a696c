"""WASI SDK provisioning: use an override, reuse the cache, or download and unpack."""

from __future__ import annotations

import platform as host_platform
from dataclasses import dataclass, field
from pathlib import Path

from qjsbuild.errors import ResourceError, UnsupportedPlatformError
from qjsbuild.fetch import extract, fetch
from qjsbuild.models import ToolchainHandle
from qjsbuild.observability import StructuredLogger
from qjsbuild.policy import Policy
from qjsbuild.process import CommandRunner, subprocess_runner

WASI_SDK_VERSION_MAJOR = 20
WASI_SDK_VERSION_MINOR = 0

RELEASE_URL = (
    "https://github.com/WebAssembly/wasi-sdk/releases/download/"
    "wasi-sdk-{major}/wasi-sdk-{major}.{minor}-{suffix}.tar.gz"
)

ARCHIVE_SUFFIXES: dict[tuple[str, str], str] = {
    ("linux", "x86"): "linux",
    ("linux", "x86_64"): "linux",
    ("macos", "x86"): "macos",
    ("macos", "x86_64"): "macos",
    ("macos", "aarch64"): "macos",
    ("windows", "x86"): "mingw-x86",
    ("windows", "x86_64"): "mingw",
}

_HOST_OS = {"Linux": "linux", "Darwin": "macos", "Windows": "windows"}
_HOST_ARCH = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "arm64": "aarch64",
    "aarch64": "aarch64",
}

LINKER = Path("bin") / "wasm-ld"
COMPILER = Path("bin") / "clang"
ARCHIVER = Path("bin") / "ar"
SYSROOT = Path("share") / "wasi-sysroot"


def version_string() -> str:
    return f"{WASI_SDK_VERSION_MAJOR}.{WASI_SDK_VERSION_MINOR}"


def host_tuple() -> tuple[str, str]:
    """Return the build machine's (os, arch) in the lookup table's vocabulary."""
    system = host_platform.system()
    machine = host_platform.machine()
    return _HOST_OS.get(system, system.lower()), _HOST_ARCH.get(machine.lower(), machine.lower())


def archive_suffix(host: tuple[str, str]) -> str:
    try:
        return ARCHIVE_SUFFIXES[host]
    except KeyError:
        raise UnsupportedPlatformError(
            f"Unsupported platform tuple {host!r} for the WASI SDK.",
            hint="Install the WASI SDK manually and set WASI_SDK to its root.",
            context={"os": host[0], "arch": host[1]},
        ) from None


def release_url(suffix: str) -> str:
    return RELEASE_URL.format(
        major=WASI_SDK_VERSION_MAJOR,
        minor=WASI_SDK_VERSION_MINOR,
        suffix=suffix,
    )


def handle_for(root: Path, *, external: bool = False) -> ToolchainHandle:
    return ToolchainHandle(
        root=root,
        compiler=root / COMPILER,
        archiver=root / ARCHIVER,
        sysroot=root / SYSROOT,
        version=version_string(),
        external=external,
    )


@dataclass(slots=True)
class WasiSdkProvisioner:
    cache_root: Path
    override: Path | None = None
    policy: Policy = field(default_factory=Policy)
    runner: CommandRunner = subprocess_runner
    host: tuple[str, str] | None = None
    logger: StructuredLogger | None = None

    @property
    def cache_dir(self) -> Path:
        return self.cache_root / f"wasi-sdk-{version_string()}"

    @property
    def archive_path(self) -> Path:
        return self.cache_dir / f"wasi-sdk-{WASI_SDK_VERSION_MAJOR}-{WASI_SDK_VERSION_MINOR}.tar.gz"

    def provision(self) -> ToolchainHandle:
        if self.override is not None:
            if not self.override.exists():
                raise ResourceError(
                    f"wasi-sdk not installed in specified path of {self.override}",
                    hint="Point WASI_SDK at an unpacked WASI SDK or unset it to download one.",
                    context={"operation": "provision", "path": str(self.override)},
                )
            self._log(f"Using pre-installed WASI SDK at {self.override}")
            return self._verified(handle_for(self.override, external=True))

        root = self.cache_dir
        if (root / LINKER).exists():
            self._log(f"WASI SDK {version_string()} found in cache at {root}")
            return self._verified(handle_for(root))

        root.mkdir(parents=True, exist_ok=True)
        if not self.archive_path.exists():
            suffix = archive_suffix(self.host or host_tuple())
            url = release_url(suffix)
            self._log(f"Downloading WASI SDK archive from {url} to {self.archive_path}")
            fetch(url, self.archive_path, policy=self.policy, runner=self.runner)

        self._log(f"Extracting WASI SDK archive {self.archive_path}")
        extract(self.archive_path, root, strip_components=1, runner=self.runner)
        return self._verified(handle_for(root))

    def _verified(self, handle: ToolchainHandle) -> ToolchainHandle:
        for label, path in (
            ("linker", handle.root / LINKER),
            ("compiler", handle.compiler),
            ("archiver", handle.archiver),
            ("sysroot", handle.sysroot),
        ):
            if not path.exists():
                raise ResourceError(
                    f"WASI SDK {label} is missing after provisioning.",
                    hint=(
                        "Point WASI_SDK at a complete WASI SDK install."
                        if handle.external
                        else "The archive has an unexpected layout; delete the cache directory and rerun."
                    ),
                    context={"operation": "provision", "path": str(path), "root": str(handle.root)},
                )
        return handle

    def _log(self, message: str) -> None:
        if self.logger is not None:
            self.logger.log(operation="provision", stage="toolchain", target=None, message=message)
