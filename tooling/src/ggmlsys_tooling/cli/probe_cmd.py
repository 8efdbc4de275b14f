"""`ggmlsys probe`: platform descriptor, CPU features and toolchain root."""

from __future__ import annotations

import argparse
import sys

from ggmlsys_tooling.cli.parse_common import (
    add_common_args,
    configure_logging,
    load_context,
    report_failure,
)
from ggmlsys_tooling.detect import probe, supports_live_detection
from ggmlsys_tooling.errors import BuildError


def run_probe(args: argparse.Namespace) -> int:
    try:
        ctx = load_context(args)
        desc, features = probe(ctx.inputs)
    except BuildError as e:
        return report_failure(e)
    print(f"host:           {desc.host_triple}")
    print(f"target:         {desc.target_triple}")
    print(f"target os:      {desc.target_os.value}")
    print(f"cross compile:  {'yes' if desc.is_cross_compile else 'no'}")
    print(f"detection:      {'live' if supports_live_detection(desc) else 'declared'}")
    print(f"cpu features:   {', '.join(sorted(features)) or '(none)'}")
    print(f"toolchain root: {ctx.inputs.toolchain_root}")
    return 0


def run_probe_argv(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    ap = argparse.ArgumentParser(prog="ggmlsys probe", description="Show platform and CPU features")
    add_common_args(ap)
    args = ap.parse_args(argv)
    configure_logging(args.verbose)
    sys.exit(run_probe(args))
