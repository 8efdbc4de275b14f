"""End-to-end orchestration: probe -> resolve -> bindgen + native build -> link plan.

Strictly sequential. A docs build (read-only environment) is detected before
anything else and skips the whole pipeline with no output.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ggmlsys_tooling.backends import BackendRequest, ResolvedConfig, resolve
from ggmlsys_tooling.bindgen import Translator, emit
from ggmlsys_tooling.config import BuildInputs, resolve_layout
from ggmlsys_tooling.detect import FeatureSet, PlatformDescriptor, detect_host_features, probe
from ggmlsys_tooling.link import LinkPlan, plan, render_directives
from ggmlsys_tooling.native import CommandRunner, build, locate_library, run_command

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOutcome:
    platform: PlatformDescriptor
    features: FeatureSet
    config: ResolvedConfig
    build_dir: Path
    bindings_path: Path
    link_plan: LinkPlan

    def directives(self) -> list[str]:
        return render_directives(self.link_plan)


def resolve_for(
    inputs: BuildInputs,
    request: BackendRequest,
    project_root: Path,
    layout: Mapping[str, Any] | None = None,
    *,
    detect: Callable[[], FeatureSet] = detect_host_features,
) -> tuple[PlatformDescriptor, FeatureSet, ResolvedConfig]:
    """Probe and resolve only; no side effects beyond CPU probing."""
    cfg = resolve_layout(layout)
    desc, features = probe(inputs, detect=detect)
    config = resolve(
        desc,
        request,
        features,
        include_dir=project_root / cfg["include_dir"],
        codegen_dir=project_root / cfg["codegen_dir"],
    )
    return desc, features, config


def run(
    inputs: BuildInputs,
    request: BackendRequest,
    project_root: Path,
    layout: Mapping[str, Any] | None = None,
    *,
    runner: CommandRunner = run_command,
    translator: Translator | None = None,
    detect: Callable[[], FeatureSet] = detect_host_features,
    clang_args: Sequence[str] = (),
) -> BuildOutcome | None:
    """Run the whole pipeline. Returns None for a docs build. Raises BuildError on any failure."""
    if inputs.docs_build:
        log.info("docs build environment detected; nothing to do")
        return None

    cfg = resolve_layout(layout)
    desc, features, config = resolve_for(inputs, request, project_root, layout, detect=detect)

    bindings_path = emit(
        config.header_set,
        project_root / cfg["bindings_output"],
        translator=translator,
        include_dirs=[project_root / cfg["include_dir"]],
        clang_args=clang_args,
    )
    build_dir = build(
        config,
        source_dir=project_root / cfg["source_dir"],
        out_dir=project_root / cfg["out_dir"],
        runner=runner,
    )
    library = locate_library(build_dir, desc.target_os)
    if library is None:
        log.warning("no %s library under %s; linking against the build dir", desc.target_os.value, build_dir)
    link_plan = plan(desc, config, library.parent if library else build_dir)
    return BuildOutcome(
        platform=desc,
        features=features,
        config=config,
        build_dir=build_dir,
        bindings_path=bindings_path,
        link_plan=link_plan,
    )
