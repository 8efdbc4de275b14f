"""Link planning: search paths, libraries and macOS frameworks for the built ggml."""

from .planner import (
    ACCELERATE_FRAMEWORK,
    CORE_LIBRARY,
    DIRECTIVE_PREFIX,
    METAL_FRAMEWORKS,
    RERUN_IF_CHANGED,
    LinkDirective,
    LinkPlan,
    linker_args,
    plan,
    render_directives,
)

__all__ = [
    "ACCELERATE_FRAMEWORK",
    "CORE_LIBRARY",
    "DIRECTIVE_PREFIX",
    "METAL_FRAMEWORKS",
    "RERUN_IF_CHANGED",
    "LinkDirective",
    "LinkPlan",
    "linker_args",
    "plan",
    "render_directives",
]
