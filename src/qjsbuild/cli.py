"""Command-line front end: ``qjsbuild build`` and ``qjsbuild resolve``."""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence

from qjsbuild.config import BuildEnvironment, feature_env_var
from qjsbuild.errors import QjsBuildError
from qjsbuild.models import FEATURES
from qjsbuild.pipeline import build, resolve_config


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project-root", default=None, help="Directory holding quickjs/, patches/, bindings/")
    common.add_argument("--target", default=None, help="Target triple (overrides QJS_TARGET)")
    common.add_argument("--out-dir", default=None, help="Build-output directory (overrides QJS_OUT_DIR)")
    common.add_argument(
        "--feature",
        action="append",
        default=[],
        choices=FEATURES,
        help="Enable a feature toggle (repeatable)",
    )
    return common


def _parser() -> argparse.ArgumentParser:
    common = _common_options()
    parser = argparse.ArgumentParser(prog="qjsbuild", description="Build QuickJS and its cffi bindings.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("build", parents=[common], help="Run the full pipeline")
    sub.add_parser("resolve", parents=[common], help="Print the resolved configuration as JSON")
    return parser


def _environ(args: argparse.Namespace) -> dict[str, str]:
    environ = dict(os.environ)
    if args.target:
        environ["QJS_TARGET"] = args.target
    if args.out_dir:
        environ["QJS_OUT_DIR"] = args.out_dir
    for feature in args.feature:
        environ[feature_env_var(feature)] = "1"
    return environ


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    try:
        env = BuildEnvironment.from_environ(_environ(args), project_root=args.project_root)
        if args.command == "resolve":
            print(json.dumps(resolve_config(env).to_payload(), indent=2, sort_keys=True))
            return 0
        result = build(env)
    except QjsBuildError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return 1
    print(f"library: {result.library.path}")
    print(f"bindings: {result.bindings.path} ({result.bindings.mode})")
    return 0
