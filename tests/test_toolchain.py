from pathlib import Path

import pytest

from qjsbuild.errors import PolicyError, ResourceError, ToolExecutionError, UnsupportedPlatformError
from qjsbuild.observability import StructuredLogger
from qjsbuild.policy import Policy
from qjsbuild.toolchain import WasiSdkProvisioner, archive_suffix, release_url


@pytest.mark.parametrize(
    ("host", "suffix"),
    [
        (("linux", "x86"), "linux"),
        (("linux", "x86_64"), "linux"),
        (("macos", "x86"), "macos"),
        (("macos", "x86_64"), "macos"),
        (("macos", "aarch64"), "macos"),
        (("windows", "x86"), "mingw-x86"),
        (("windows", "x86_64"), "mingw"),
    ],
)
def test_archive_suffix_table(host: tuple[str, str], suffix: str) -> None:
    assert archive_suffix(host) == suffix


def test_release_url_embeds_version_and_suffix() -> None:
    assert release_url("linux") == (
        "https://github.com/WebAssembly/wasi-sdk/releases/download/wasi-sdk-20/wasi-sdk-20.0-linux.tar.gz"
    )


def test_unsupported_host_fails_before_any_download(tmp_path: Path, fake_runner) -> None:
    provisioner = WasiSdkProvisioner(cache_root=tmp_path, runner=fake_runner, host=("linux", "aarch64"))

    with pytest.raises(UnsupportedPlatformError) as excinfo:
        provisioner.provision()

    assert excinfo.value.context == {"os": "linux", "arch": "aarch64"}
    assert fake_runner.calls == []


def test_cold_cache_downloads_and_extracts_once(tmp_path: Path, fake_runner) -> None:
    logger = StructuredLogger()
    provisioner = WasiSdkProvisioner(
        cache_root=tmp_path, runner=fake_runner, host=("linux", "x86_64"), logger=logger
    )

    handle = provisioner.provision()

    assert len(fake_runner.calls_for("curl")) == 1
    assert len(fake_runner.calls_for("tar")) == 1
    assert fake_runner.calls_for("curl")[0][-1].endswith("wasi-sdk-20.0-linux.tar.gz")
    assert handle.root == tmp_path / "wasi-sdk-20.0"
    assert handle.compiler.exists()
    assert handle.sysroot.is_dir()
    assert handle.sysroot_flag == f"--sysroot={handle.sysroot}"
    assert handle.external is False
    assert provisioner.archive_path.exists()
    assert logger.records_for_stage("toolchain")


def test_warm_cache_runs_no_tools(tmp_path: Path, fake_runner) -> None:
    provisioner = WasiSdkProvisioner(cache_root=tmp_path, runner=fake_runner, host=("linux", "x86_64"))
    first = provisioner.provision()
    fake_runner.calls.clear()

    second = provisioner.provision()

    assert fake_runner.calls == []
    assert second == first


def test_cached_archive_is_extracted_without_download(tmp_path: Path, fake_runner) -> None:
    provisioner = WasiSdkProvisioner(cache_root=tmp_path, runner=fake_runner, host=("linux", "x86_64"))
    provisioner.archive_path.parent.mkdir(parents=True)
    provisioner.archive_path.write_bytes(b"archive")

    provisioner.provision()

    assert fake_runner.calls_for("curl") == []
    assert len(fake_runner.calls_for("tar")) == 1


def test_offline_policy_blocks_download(tmp_path: Path, fake_runner) -> None:
    provisioner = WasiSdkProvisioner(
        cache_root=tmp_path,
        runner=fake_runner,
        host=("linux", "x86_64"),
        policy=Policy(network_mode="offline"),
    )

    with pytest.raises(PolicyError):
        provisioner.provision()

    assert fake_runner.calls == []


def test_override_is_used_as_is(tmp_path: Path, fake_runner, wasi_sdk: Path) -> None:
    sdk = wasi_sdk
    provisioner = WasiSdkProvisioner(
        cache_root=tmp_path / "cache",
        override=sdk,
        runner=fake_runner,
        policy=Policy(network_mode="offline"),
    )

    handle = provisioner.provision()

    assert handle.root == sdk
    assert handle.external is True
    assert fake_runner.calls == []
    assert not (tmp_path / "cache").exists()


@pytest.mark.parametrize("removed", ["bin/clang", "bin/ar", "share/wasi-sysroot"])
def test_incomplete_override_is_a_resource_error(tmp_path: Path, fake_runner, wasi_sdk: Path, removed: str) -> None:
    target = wasi_sdk / removed
    if target.is_dir():
        target.rmdir()
    else:
        target.unlink()
    provisioner = WasiSdkProvisioner(cache_root=tmp_path / "cache", override=wasi_sdk, runner=fake_runner)

    with pytest.raises(ResourceError) as excinfo:
        provisioner.provision()

    assert excinfo.value.context["path"] == str(target)
    assert "WASI_SDK" in excinfo.value.hint
    assert fake_runner.calls == []


def test_empty_override_is_a_resource_error(tmp_path: Path, fake_runner) -> None:
    sdk = tmp_path / "sdk"
    sdk.mkdir()
    provisioner = WasiSdkProvisioner(cache_root=tmp_path / "cache", override=sdk, runner=fake_runner)

    with pytest.raises(ResourceError):
        provisioner.provision()


def test_missing_override_is_a_resource_error(tmp_path: Path, fake_runner) -> None:
    provisioner = WasiSdkProvisioner(cache_root=tmp_path, override=tmp_path / "absent", runner=fake_runner)

    with pytest.raises(ResourceError) as excinfo:
        provisioner.provision()

    assert "not installed in specified path" in str(excinfo.value)
    assert fake_runner.calls == []


def test_unexpected_archive_layout_is_reported(tmp_path: Path, fake_runner) -> None:
    def shallow_tar(argv, cwd):
        (cwd / "bin").mkdir(parents=True, exist_ok=True)
        (cwd / "bin" / "wasm-ld").write_text("", encoding="utf-8")

    fake_runner.on("tar", shallow_tar)
    provisioner = WasiSdkProvisioner(cache_root=tmp_path, runner=fake_runner, host=("linux", "x86_64"))

    with pytest.raises(ResourceError) as excinfo:
        provisioner.provision()

    assert excinfo.value.context["operation"] == "provision"


def test_download_failure_carries_stderr(tmp_path: Path, fake_runner) -> None:
    fake_runner.fail("curl", "curl: (22) 404 Not Found", returncode=22)
    provisioner = WasiSdkProvisioner(cache_root=tmp_path, runner=fake_runner, host=("macos", "aarch64"))

    with pytest.raises(ToolExecutionError) as excinfo:
        provisioner.provision()

    assert "404" in excinfo.value.context["stderr"]
    assert excinfo.value.context["returncode"] == "22"
    assert fake_runner.calls_for("tar") == []
