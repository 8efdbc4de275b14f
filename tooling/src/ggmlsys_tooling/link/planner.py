"""Linker directives for the built ggml library.

Order: macOS frameworks (Accelerate, then the Metal bundle), the native search
path, then the core library. Directives render as ``ggmlsys:`` lines for the
surrounding build to consume, or as plain linker arguments.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ggmlsys_tooling.backends import Backend, ResolvedConfig
from ggmlsys_tooling.detect import PlatformDescriptor, TargetOS

DIRECTIVE_PREFIX = "ggmlsys:"
CORE_LIBRARY = "ggml"
ACCELERATE_FRAMEWORK = "Accelerate"
# All-or-nothing: enabled together with the metal backend.
METAL_FRAMEWORKS: tuple[str, ...] = ("Foundation", "Metal", "MetalKit", "MetalPerformanceShaders")
RERUN_IF_CHANGED: tuple[str, ...] = ("ggml",)


@dataclass(frozen=True)
class LinkDirective:
    kind: str  # search | lib | framework
    value: str

    def render(self) -> str:
        if self.kind == "search":
            return f"link-search=native={self.value}"
        if self.kind == "framework":
            return f"link-lib=framework={self.value}"
        return f"link-lib={self.value}"

    def linker_args(self) -> list[str]:
        if self.kind == "search":
            return [f"-L{self.value}"]
        if self.kind == "framework":
            return ["-framework", self.value]
        return [f"-l{self.value}"]


LinkPlan = tuple[LinkDirective, ...]


def plan(desc: PlatformDescriptor, config: ResolvedConfig, build_output_path: Path) -> LinkPlan:
    directives: list[LinkDirective] = []
    if desc.target_os is TargetOS.MACOS:
        if Backend.ACCELERATE in config.enabled_backends:
            directives.append(LinkDirective("framework", ACCELERATE_FRAMEWORK))
        if Backend.METAL in config.enabled_backends:
            directives.extend(LinkDirective("framework", f) for f in METAL_FRAMEWORKS)
    directives.append(LinkDirective("search", str(build_output_path)))
    directives.append(LinkDirective("lib", CORE_LIBRARY))
    return tuple(directives)


def render_directives(link_plan: LinkPlan, rerun_if_changed: Iterable[str] = RERUN_IF_CHANGED) -> list[str]:
    """Rerun triggers then link directives, each as a prefixed line."""
    lines = [f"{DIRECTIVE_PREFIX}rerun-if-changed={p}" for p in rerun_if_changed]
    lines.extend(DIRECTIVE_PREFIX + d.render() for d in link_plan)
    return lines


def linker_args(link_plan: LinkPlan) -> list[str]:
    return [arg for d in link_plan for arg in d.linker_args()]
