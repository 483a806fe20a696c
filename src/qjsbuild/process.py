"""Blocking execution of external tools (curl, tar, patch, cc, ar, clang)."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from qjsbuild.errors import ToolExecutionError


@dataclass(frozen=True, slots=True)
class ToolResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        input: bytes | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ToolResult:
        """Run *argv* to completion and return its exit status and output."""


def subprocess_runner(
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    input: bytes | None = None,
    env: Mapping[str, str] | None = None,
) -> ToolResult:
    command = tuple(str(part) for part in argv)
    try:
        completed = subprocess.run(
            command,
            cwd=cwd,
            input=input,
            env=dict(env) if env is not None else None,
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ToolExecutionError(
            f"Required tool `{command[0]}` was not found.",
            hint=f"Install `{command[0]}` and ensure it is on PATH.",
            context={"command": " ".join(command)},
        ) from exc
    return ToolResult(
        argv=command,
        returncode=completed.returncode,
        stdout=completed.stdout.decode("utf-8", errors="replace"),
        stderr=completed.stderr.decode("utf-8", errors="replace"),
    )


def run_tool(
    runner: CommandRunner,
    argv: Sequence[str],
    *,
    operation: str,
    message: str,
    hint: str,
    cwd: Path | None = None,
    input: bytes | None = None,
    env: Mapping[str, str] | None = None,
    context: Mapping[str, str] | None = None,
) -> ToolResult:
    """Run a tool and raise ``ToolExecutionError`` on a non-zero exit."""
    result = runner(argv, cwd=cwd, input=input, env=env)
    if not result.ok:
        raise ToolExecutionError(
            message,
            hint=hint,
            context={
                "operation": operation,
                **dict(context or {}),
                "command": " ".join(result.argv),
                "returncode": str(result.returncode),
                "stderr": result.stderr.strip(),
            },
        )
    return result
