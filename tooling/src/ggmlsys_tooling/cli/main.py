"""Main CLI entry point for ggmlsys tooling."""

import sys

from ggmlsys_tooling.cli import bindgen_cmd, plan_cmd, probe_cmd
from ggmlsys_tooling.cli import build as build_cli

COMMANDS = {
    "build": build_cli.run_build_argv,
    "probe": probe_cmd.run_probe_argv,
    "plan": plan_cmd.run_plan_argv,
    "bindgen": bindgen_cmd.run_bindgen_argv,
}


def main() -> None:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print("Usage: ggmlsys <command> [args...]", file=sys.stderr)
        print("Commands:", file=sys.stderr)
        print("  build    - Full pipeline: probe, bindgen, native build, link directives", file=sys.stderr)
        print("  probe    - Show platform descriptor and CPU features", file=sys.stderr)
        print("  plan     - Print the resolved build configuration as JSON", file=sys.stderr)
        print("  bindgen  - Generate ctypes bindings only", file=sys.stderr)
        sys.exit(1)

    command = sys.argv[1]
    handler = COMMANDS.get(command)
    if handler is None:
        print(f"Error: Unknown command: {command}", file=sys.stderr)
        sys.exit(1)
    handler(sys.argv[2:])


if __name__ == "__main__":
    main()
