"""`ggmlsys bindgen`: regenerate the binding module only."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ggmlsys_tooling import pipeline
from ggmlsys_tooling.bindgen import emit
from ggmlsys_tooling.cli.parse_common import (
    add_clang_args,
    add_common_args,
    configure_logging,
    load_context,
    report_failure,
)
from ggmlsys_tooling.config import resolve_layout
from ggmlsys_tooling.errors import BuildError


def run_bindgen(args: argparse.Namespace) -> int:
    try:
        ctx = load_context(args)
        if ctx.inputs.docs_build:
            return 0
        _, _, config = pipeline.resolve_for(ctx.inputs, ctx.request, ctx.project_root, ctx.layout)
        layout = resolve_layout(ctx.layout)
        emit(
            config.header_set,
            args.output or ctx.project_root / layout["bindings_output"],
            include_dirs=[ctx.project_root / layout["include_dir"]],
            clang_args=args.clang_args,
        )
    except BuildError as e:
        return report_failure(e)
    return 0


def run_bindgen_argv(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    ap = argparse.ArgumentParser(prog="ggmlsys bindgen", description="Generate ctypes bindings for ggml")
    add_common_args(ap)
    add_clang_args(ap)
    ap.add_argument("--output", type=Path, default=None, help="Output file (default: layout bindings_output)")
    args = ap.parse_args(argv)
    configure_logging(args.verbose)
    sys.exit(run_bindgen(args))
