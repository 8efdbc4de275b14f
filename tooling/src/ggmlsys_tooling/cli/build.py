"""`ggmlsys build`: full pipeline; prints rerun trigger and link directives."""

from __future__ import annotations

import argparse
import sys

from ggmlsys_tooling import pipeline
from ggmlsys_tooling.cli.parse_common import (
    add_clang_args,
    add_common_args,
    configure_logging,
    load_context,
    report_failure,
)
from ggmlsys_tooling.config import resolve_layout
from ggmlsys_tooling.errors import BuildError
from ggmlsys_tooling.native import planned_commands


def run_build(args: argparse.Namespace) -> int:
    try:
        ctx = load_context(args)
        if ctx.inputs.docs_build:
            return 0
        if args.dry_run:
            _, _, config = pipeline.resolve_for(ctx.inputs, ctx.request, ctx.project_root, ctx.layout)
            layout = resolve_layout(ctx.layout)
            for spec in planned_commands(
                config,
                ctx.project_root / layout["source_dir"],
                ctx.project_root / layout["out_dir"],
            ):
                print(f"[dry-run] would: {spec.display()}")
            return 0
        outcome = pipeline.run(
            ctx.inputs, ctx.request, ctx.project_root, ctx.layout, clang_args=args.clang_args
        )
    except BuildError as e:
        return report_failure(e)
    if outcome is not None:
        for line in outcome.directives():
            print(line)
    return 0


def run_build_argv(argv: list[str] | None = None) -> None:
    """Parse argv and run the build pipeline."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []  # skip 'ggmlsys build'
    ap = argparse.ArgumentParser(prog="ggmlsys build", description="Build ggml and its bindings")
    add_common_args(ap)
    add_clang_args(ap)
    ap.add_argument("--dry-run", action="store_true", help="Resolve and print commands only")
    args = ap.parse_args(argv)
    configure_logging(args.verbose)
    sys.exit(run_build(args))
