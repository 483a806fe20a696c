"""Download and unpack helpers backed by external processes."""

from qjsbuild.fetch.archive import extract
from qjsbuild.fetch.http import fetch

__all__ = ["extract", "fetch"]
