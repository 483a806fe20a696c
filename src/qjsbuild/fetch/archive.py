"""Archive extraction through an external ``tar`` process."""

from __future__ import annotations

from pathlib import Path

from qjsbuild.errors import ResourceError
from qjsbuild.process import CommandRunner, run_tool, subprocess_runner


def extract(
    archive: str | Path,
    destination: str | Path,
    *,
    strip_components: int = 1,
    runner: CommandRunner = subprocess_runner,
) -> Path:
    """Unpack a gzipped tarball into *destination*, dropping leading path parts."""
    archive_path = Path(archive)
    target = Path(destination)
    if not archive_path.exists():
        raise ResourceError(
            "Archive to extract does not exist.",
            hint="Delete the cache directory and rerun to download it again.",
            context={"operation": "extract", "archive": str(archive_path)},
        )
    target.mkdir(parents=True, exist_ok=True)
    run_tool(
        runner,
        [
            "tar",
            "-zxf",
            str(archive_path.resolve()),
            "--strip-components",
            str(strip_components),
        ],
        cwd=target,
        operation="extract",
        message="Unpacking archive failed.",
        hint="The archive may be truncated; delete it and rerun the build.",
        context={"archive": str(archive_path)},
    )
    return target
