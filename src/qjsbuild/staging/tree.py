"""Copy the vendored QuickJS tree into the build-output directory."""

from __future__ import annotations

import shutil
from pathlib import Path

from qjsbuild.errors import ResourceError
from qjsbuild.models import StagedSourceTree

HEADER_FILES = (
    "libbf.h",
    "libregexp-opcode.h",
    "libregexp.h",
    "libunicode-table.h",
    "libunicode.h",
    "list.h",
    "quickjs-atom.h",
    "quickjs-opcode.h",
    "quickjs.h",
    "cutils.h",
)

SOURCE_FILES = (
    "libregexp.c",
    "libunicode.c",
    "cutils.c",
    "quickjs.c",
    "libbf.c",
)

BINDING_HEADER = "quickjs.bind.h"

BINDING_HEADER_TEXT = """\
#ifndef QUICKJS_BIND_H
#define QUICKJS_BIND_H

#include "quickjs.h"

#endif
"""

STAGED_DIRNAME = "quickjs"


def stage_sources(
    source_dir: Path,
    out_dir: Path,
    *,
    headers: tuple[str, ...] = HEADER_FILES,
    sources: tuple[str, ...] = SOURCE_FILES,
) -> StagedSourceTree:
    """Recreate ``<out_dir>/quickjs`` from the pristine vendored files.

    The staged root is deleted first so every run patches an unmodified copy.
    """
    root = out_dir / STAGED_DIRNAME
    if root.exists():
        shutil.rmtree(root)
    root.mkdir(parents=True)

    staged_headers = tuple(_copy(source_dir, root, name) for name in headers)
    staged_sources = tuple(_copy(source_dir, root, name) for name in sources)

    binding_header = root / BINDING_HEADER
    binding_header.write_text(BINDING_HEADER_TEXT, encoding="utf-8")

    return StagedSourceTree(
        root=root,
        headers=staged_headers,
        sources=staged_sources,
        binding_header=binding_header,
    )


def _copy(source_dir: Path, root: Path, name: str) -> Path:
    src = source_dir / name
    dest = root / name
    try:
        shutil.copyfile(src, dest)
    except FileNotFoundError as exc:
        raise ResourceError(
            f"Unable to copy vendored source `{name}`.",
            hint="Initialize the vendored QuickJS tree; try 'git submodule update --init'.",
            context={"operation": "stage", "path": str(src)},
        ) from exc
    except OSError as exc:
        raise ResourceError(
            f"Unable to copy vendored source `{name}`.",
            hint="Check that the vendored QuickJS file is a readable regular file.",
            context={"operation": "stage", "path": str(src), "error": str(exc)},
        ) from exc
    return dest
