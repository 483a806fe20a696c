"""Cross-compilation toolchain provisioning."""

from qjsbuild.toolchain.wasi_sdk import (
    ARCHIVE_SUFFIXES,
    WASI_SDK_VERSION_MAJOR,
    WASI_SDK_VERSION_MINOR,
    WasiSdkProvisioner,
    archive_suffix,
    host_tuple,
    release_url,
)

__all__ = [
    "ARCHIVE_SUFFIXES",
    "WASI_SDK_VERSION_MAJOR",
    "WASI_SDK_VERSION_MINOR",
    "WasiSdkProvisioner",
    "archive_suffix",
    "host_tuple",
    "release_url",
]
