"""`ggmlsys plan`: resolved configuration as JSON."""

from __future__ import annotations

import argparse
import sys

from ggmlsys_tooling import pipeline
from ggmlsys_tooling.cli.parse_common import (
    add_common_args,
    configure_logging,
    load_context,
    report_failure,
)
from ggmlsys_tooling.errors import BuildError


def run_plan(args: argparse.Namespace) -> int:
    try:
        ctx = load_context(args)
        _, _, config = pipeline.resolve_for(ctx.inputs, ctx.request, ctx.project_root, ctx.layout)
    except BuildError as e:
        return report_failure(e)
    print(config.to_json())
    return 0


def run_plan_argv(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    ap = argparse.ArgumentParser(prog="ggmlsys plan", description="Print the resolved build configuration")
    add_common_args(ap)
    args = ap.parse_args(argv)
    configure_logging(args.verbose)
    sys.exit(run_plan(args))
