"""Binding artifact format and the source protocol both modes implement.

A binding artifact is a small Python module::

    TARGET = "x86_64-unknown-linux-gnu"
    CDEF = \"\"\"\\
    typedef struct JSRuntime JSRuntime;
    ...
    \"\"\"

A placeholder artifact carries ``TARGET`` only.
"""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Protocol

from qjsbuild.errors import ResourceError
from qjsbuild.models import (
    BindingArtifact,
    BindingMode,
    ResolvedConfig,
    StagedSourceTree,
    ToolchainHandle,
)

ARTIFACT_NAME = "bindings.py"

_HEADER = "# Generated by qjsbuild. Do not edit.\n"


class MissingBindingsWarning(UserWarning):
    """Warning raised when no precomputed bindings ship for a target."""


class BindingSource(Protocol):
    mode: BindingMode

    def produce(
        self,
        *,
        config: ResolvedConfig,
        staged: StagedSourceTree,
        out_dir: Path,
        toolchain: ToolchainHandle | None,
    ) -> BindingArtifact:
        """Write ``<out_dir>/bindings.py`` and describe it."""


def render_module(target: str, cdef: str | None) -> str:
    lines = [_HEADER, f"TARGET = {target!r}\n"]
    if cdef is not None:
        body = cdef if cdef.endswith("\n") else cdef + "\n"
        if '"""' in body or "\\" in body:
            lines.append(f"CDEF = {body!r}\n")
        else:
            lines.append(f'CDEF = """\\\n{body}"""\n')
    return "".join(lines)


def write_artifact(path: Path, *, target: str, cdef: str | None, mode: BindingMode) -> BindingArtifact:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_module(target, cdef), encoding="utf-8")
    return BindingArtifact(path=path, target=target, mode=mode, cdef=cdef)


def read_artifact(path: str | Path) -> BindingArtifact:
    """Load an artifact without executing it."""
    artifact_path = Path(path)
    try:
        tree = ast.parse(artifact_path.read_text(encoding="utf-8"), filename=str(artifact_path))
    except FileNotFoundError as exc:
        raise ResourceError(
            "Binding artifact not found.",
            context={"operation": "read_bindings", "path": str(artifact_path)},
        ) from exc
    except (SyntaxError, UnicodeDecodeError) as exc:
        raise _unreadable(artifact_path, exc) from exc
    values: dict[str, object] = {}
    for node in tree.body:
        if isinstance(node, ast.Assign) and len(node.targets) == 1:
            name = node.targets[0]
            if isinstance(name, ast.Name) and name.id in ("TARGET", "CDEF"):
                try:
                    values[name.id] = ast.literal_eval(node.value)
                except ValueError as exc:
                    raise _unreadable(artifact_path, exc) from exc
    target = values.get("TARGET")
    if not isinstance(target, str):
        raise ResourceError(
            "Binding artifact does not declare TARGET.",
            hint="Regenerate it with the bindgen feature enabled.",
            context={"operation": "read_bindings", "path": str(artifact_path)},
        )
    cdef = values.get("CDEF")
    return BindingArtifact(
        path=artifact_path,
        target=target,
        mode="placeholder" if cdef is None else "precomputed",
        cdef=cdef if isinstance(cdef, str) else None,
    )


def _unreadable(path: Path, exc: Exception) -> ResourceError:
    return ResourceError(
        "Binding artifact is not a readable bindings module.",
        hint="Delete it and regenerate with the bindgen and update-bindings features.",
        context={"operation": "read_bindings", "path": str(path), "error": str(exc)},
    )
