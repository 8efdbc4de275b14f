"""Shared CLI flags (--project-root, --config, --features, target overrides) and context loading."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ggmlsys_tooling.backends import BackendRequest
from ggmlsys_tooling.config import DEFAULT_ENV_VARS, PROJECT_CONFIG_NAME, BuildInputs, load_project_config
from ggmlsys_tooling.errors import BuildError


@dataclass(frozen=True)
class CliContext:
    project_root: Path
    inputs: BuildInputs
    request: BackendRequest
    layout: dict[str, Any]


def path_resolver(s: str) -> Path:
    """Resolve a path argument to absolute Path (e.g. --project-root, --config)."""
    return Path(s).resolve()


def split_features(values: list[str] | None) -> list[str]:
    """--features a,b --features c -> [a, b, c]."""
    out: list[str] = []
    for v in values or []:
        out.extend(t.strip() for t in v.split(",") if t.strip())
    return out


def add_common_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument(
        "--project-root",
        type=path_resolver,
        default=Path.cwd(),
        help="Project root containing ggml/ (default: cwd)",
    )
    ap.add_argument(
        "--config",
        type=path_resolver,
        default=None,
        help=f"Project config (default: <project-root>/{PROJECT_CONFIG_NAME})",
    )
    ap.add_argument(
        "--features",
        action="append",
        default=[],
        help="Comma-separated features: vulkan, cuda, blas, metal, kompute, no_accelerate, static",
    )
    ap.add_argument("--target", default=None, help="Target triple (overrides environment)")
    ap.add_argument("--host", default=None, help="Host triple (overrides environment)")
    ap.add_argument("--target-os", default=None, help="Target OS (overrides environment)")
    ap.add_argument(
        "--native",
        action="store_true",
        help="Fill missing target/host/target OS from the running machine",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def add_clang_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument(
        "--clang-arg",
        dest="clang_args",
        action="append",
        default=[],
        help="Extra libclang argument, repeatable; use the = form for dashed values (--clang-arg=-DFOO)",
    )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def load_context(args: argparse.Namespace, environ: Mapping[str, str] | None = None) -> CliContext:
    """Read config file and environment once. Raises BuildError on bad features/config."""
    project_root: Path = args.project_root
    environ = os.environ if environ is None else environ
    if DEFAULT_ENV_VARS["docs_marker"] in environ:
        # Docs builds do nothing, so config and features are never parsed.
        return CliContext(
            project_root=project_root,
            inputs=BuildInputs.from_environ(environ),
            request=BackendRequest(),
            layout={},
        )
    config_path = args.config or project_root / PROJECT_CONFIG_NAME
    try:
        project = load_project_config(config_path)
    except (OSError, ValueError) as e:
        raise BuildError(str(e), stage="config") from e
    inputs = BuildInputs.from_environ(
        environ,
        env_vars=project["env"],
        overrides={"target": args.target, "host": args.host, "target_os": args.target_os},
    )
    if args.native:
        inputs = inputs.with_native_defaults()
    request = BackendRequest.from_features([*project["features"], *split_features(args.features)])
    return CliContext(
        project_root=project_root,
        inputs=inputs,
        request=request,
        layout=project["layout"],
    )


def report_failure(e: BuildError) -> int:
    print(f"❌ {e}", file=sys.stderr)
    return 1
