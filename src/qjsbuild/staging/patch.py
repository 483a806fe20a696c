"""Apply unified-diff patches to the staged tree, strictly in list order."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from qjsbuild.errors import ResourceError
from qjsbuild.models import StagedSourceTree
from qjsbuild.observability import StructuredLogger
from qjsbuild.process import CommandRunner, run_tool, subprocess_runner


def apply_patch(
    root: Path,
    patch_file: Path,
    *,
    runner: CommandRunner = subprocess_runner,
) -> None:
    try:
        payload = patch_file.read_bytes()
    except FileNotFoundError as exc:
        raise ResourceError(
            f"Patch `{patch_file.name}` not found.",
            hint="Restore the patches directory from the repository.",
            context={"operation": "patch", "path": str(patch_file)},
        ) from exc
    run_tool(
        runner,
        ["patch", "-p1", "-f"],
        cwd=root,
        input=payload,
        operation="patch",
        message=f"Applying patch `{patch_file.name}` failed.",
        hint="The vendored tree may not match the patch base; re-initialize it and rerun.",
        context={"patch": str(patch_file)},
    )


def apply_patches(
    staged: StagedSourceTree,
    patches_dir: Path,
    patches: Iterable[str],
    *,
    runner: CommandRunner = subprocess_runner,
    logger: StructuredLogger | None = None,
    target: str | None = None,
) -> StagedSourceTree:
    applied: list[str] = []
    for name in patches:
        if logger is not None:
            logger.log(operation="patch", stage="staging", target=target, message=f"Applying patch {name}")
        apply_patch(staged.root, patches_dir / name, runner=runner)
        applied.append(name)
    return replace(staged, applied_patches=staged.applied_patches + tuple(applied))
