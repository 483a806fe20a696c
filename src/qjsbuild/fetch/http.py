"""HTTP download through an external ``curl`` process."""

from __future__ import annotations

from pathlib import Path

from qjsbuild.errors import ResourceError
from qjsbuild.policy import Policy, ensure_network_allowed
from qjsbuild.process import CommandRunner, run_tool, subprocess_runner


def fetch(
    url: str,
    destination: str | Path,
    *,
    policy: Policy | None = None,
    runner: CommandRunner = subprocess_runner,
) -> Path:
    """Download *url* to *destination*, reusing an existing file."""
    target = Path(destination)
    if target.exists():
        return target

    if policy is not None:
        ensure_network_allowed(policy=policy, operation="fetch")
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + ".part")

    run_tool(
        runner,
        ["curl", "--location", "--fail", "--silent", "--show-error", "-o", str(partial), url],
        operation="fetch",
        message="Download failed.",
        hint="Check network access to the release URL and rerun the build.",
        context={"url": url},
    )
    if not partial.exists():
        raise ResourceError(
            "Download reported success but produced no file.",
            hint="Delete the partial download and rerun the build.",
            context={"operation": "fetch", "url": url, "path": str(partial)},
        )
    partial.replace(target)
    return target
