"""Backend resolution: requested features + platform -> defines, headers, pre-build step."""

from .resolver import (
    BACKEND_DEFINES,
    BACKEND_HEADERS,
    CORE_HEADER,
    EVALUATION_ORDER,
    KNOWN_FEATURES,
    Backend,
    BackendRequest,
    ResolvedConfig,
    platform_options,
    resolve,
    shader_codegen_step,
)

__all__ = [
    "BACKEND_DEFINES",
    "BACKEND_HEADERS",
    "CORE_HEADER",
    "EVALUATION_ORDER",
    "KNOWN_FEATURES",
    "Backend",
    "BackendRequest",
    "ResolvedConfig",
    "platform_options",
    "resolve",
    "shader_codegen_step",
]
