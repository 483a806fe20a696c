"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from qjsbuild.config import BuildEnvironment
from qjsbuild.process import ToolResult
from qjsbuild.resolve import BASE_PATCHES
from qjsbuild.staging import HEADER_FILES, SOURCE_FILES

Handler = Callable[[tuple[str, ...], Path | None, bytes | None], ToolResult]


def ok(argv: tuple[str, ...], stdout: str = "") -> ToolResult:
    return ToolResult(argv=argv, returncode=0, stdout=stdout, stderr="")


def failed(argv: tuple[str, ...], stderr: str, returncode: int = 1) -> ToolResult:
    return ToolResult(argv=argv, returncode=returncode, stdout="", stderr=stderr)


def _output_path(argv: tuple[str, ...], cwd: Path | None) -> Path:
    path = Path(argv[argv.index("-o") + 1])
    if not path.is_absolute() and cwd is not None:
        path = cwd / path
    return path


def fake_curl(argv: tuple[str, ...], cwd: Path | None, _input: bytes | None) -> ToolResult:
    _output_path(argv, cwd).write_bytes(b"fake wasi-sdk archive")
    return ok(argv)


def fake_tar(argv: tuple[str, ...], cwd: Path | None, _input: bytes | None) -> ToolResult:
    assert cwd is not None
    for rel in ("bin/wasm-ld", "bin/clang", "bin/ar"):
        (cwd / rel).parent.mkdir(parents=True, exist_ok=True)
        (cwd / rel).write_text("#!/bin/sh\n", encoding="utf-8")
    (cwd / "share" / "wasi-sysroot").mkdir(parents=True, exist_ok=True)
    return ok(argv)


def fake_compiler(argv: tuple[str, ...], cwd: Path | None, _input: bytes | None) -> ToolResult:
    if "-E" in argv:
        return ok(argv, stdout="")
    source = Path(argv[argv.index("-o") - 1])
    if not source.is_absolute() and cwd is not None:
        source = cwd / source
    _output_path(argv, cwd).write_bytes(b"obj:" + source.read_bytes())
    return ok(argv)


def fake_ar(argv: tuple[str, ...], cwd: Path | None, _input: bytes | None) -> ToolResult:
    archive = Path(argv[2])
    payload = b"!<arch>\n" + b"".join(Path(obj).read_bytes() for obj in argv[3:])
    archive.write_bytes(payload)
    return ok(argv)


def fake_patch(argv: tuple[str, ...], cwd: Path | None, _input: bytes | None) -> ToolResult:
    return ok(argv)


DEFAULT_HANDLERS: dict[str, Handler] = {
    "curl": fake_curl,
    "tar": fake_tar,
    "cc": fake_compiler,
    "clang": fake_compiler,
    "ar": fake_ar,
    "patch": fake_patch,
}


@dataclass
class FakeRunner:
    """Records every tool invocation and dispatches on the tool's basename."""

    handlers: dict[str, Handler] = field(default_factory=lambda: dict(DEFAULT_HANDLERS))
    calls: list[tuple[str, ...]] = field(default_factory=list)
    inputs: list[bytes | None] = field(default_factory=list)

    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        input: bytes | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ToolResult:
        command = tuple(str(part) for part in argv)
        self.calls.append(command)
        self.inputs.append(input)
        handler = self.handlers.get(Path(command[0]).name)
        if handler is None:
            return ok(command)
        return handler(command, cwd, input)

    def calls_for(self, tool: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if Path(call[0]).name == tool]

    def respond(self, tool: str, stdout: str) -> None:
        self.handlers[tool] = lambda argv, cwd, _input: ok(argv, stdout=stdout)

    def fail(
        self,
        tool: str,
        stderr: str,
        *,
        returncode: int = 1,
        when: Callable[[tuple[str, ...]], bool] | None = None,
    ) -> None:
        """Make *tool* exit non-zero, for every call or only the calls matching *when*."""
        fallback = self.handlers.get(tool)

        def handler(argv: tuple[str, ...], cwd: Path | None, input: bytes | None) -> ToolResult:
            if when is None or when(argv):
                return failed(argv, stderr, returncode)
            if fallback is None:
                return ok(argv)
            return fallback(argv, cwd, input)

        self.handlers[tool] = handler

    def on(self, tool: str, action: Callable[[tuple[str, ...], Path | None], None]) -> None:
        """Replace *tool* with *action*, which succeeds unless it raises."""

        def handler(argv: tuple[str, ...], cwd: Path | None, _input: bytes | None) -> ToolResult:
            action(argv, cwd)
            return ok(argv)

        self.handlers[tool] = handler


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """A project tree with a fake vendored QuickJS checkout and empty patches."""
    root = tmp_path / "project"
    quickjs = root / "quickjs"
    quickjs.mkdir(parents=True)
    for name in (*HEADER_FILES, *SOURCE_FILES):
        quickjs.joinpath(name).write_text(f"/* {name} */\n", encoding="utf-8")
    patches = root / "patches"
    patches.mkdir()
    for name in (*BASE_PATCHES, "read_module_exports.patch", "basic_msvc_compat.patch"):
        patches.joinpath(name).write_text(f"# {name}\n", encoding="utf-8")
    return root


@pytest.fixture
def make_env(project_root: Path, tmp_path: Path) -> Callable[..., BuildEnvironment]:
    def _make(target: str = "x86_64-unknown-linux-gnu", **environ: str) -> BuildEnvironment:
        values = {
            "QJS_TARGET": target,
            "QJS_CACHE_DIR": str(tmp_path / "cache"),
            **environ,
        }
        return BuildEnvironment.from_environ(values, project_root=project_root)

    return _make


@pytest.fixture
def wasi_sdk(tmp_path: Path) -> Path:
    """A pre-installed WASI SDK tree laid out the way the release archive is."""
    root = tmp_path / "wasi-sdk"
    root.mkdir(parents=True)
    fake_tar(("tar",), root, None)
    return root
