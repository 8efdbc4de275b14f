"""Resolve requested optional backends against the target platform.

Opt-in backends are evaluated in EVALUATION_ORDER; each contributes one
``GGML_*=ON`` define and, where ggml ships one, one header after the core
``ggml.h``. Vulkan also needs its shaders generated before the native build.
On macOS the Accelerate framework is on unless ``no_accelerate`` is given.

``static`` is accepted as a feature name and always rejected: ggml is only
packaged here as a dynamic library.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

from ggmlsys_tooling.detect import RELEVANT_FEATURES, FeatureSet, PlatformDescriptor, TargetOS
from ggmlsys_tooling.errors import UnsupportedConfiguration
from ggmlsys_tooling.native.runner import CommandSpec

log = logging.getLogger(__name__)


class Backend(str, Enum):
    VULKAN = "vulkan"
    CUDA = "cuda"
    BLAS = "blas"
    METAL = "metal"
    KOMPUTE = "kompute"
    ACCELERATE = "accelerate"


EVALUATION_ORDER: tuple[Backend, ...] = (
    Backend.VULKAN,
    Backend.CUDA,
    Backend.BLAS,
    Backend.METAL,
    Backend.KOMPUTE,
)

CORE_HEADER = "ggml.h"

BACKEND_HEADERS: dict[Backend, str] = {
    Backend.VULKAN: "ggml-vulkan.h",
    Backend.CUDA: "ggml-cuda.h",
    Backend.BLAS: "ggml-blas.h",
    Backend.METAL: "ggml-metal.h",
}

BACKEND_DEFINES: dict[Backend, str] = {
    Backend.VULKAN: "GGML_VULKAN",
    Backend.CUDA: "GGML_CUDA",
    Backend.BLAS: "GGML_BLAS",
    Backend.METAL: "GGML_METAL",
    Backend.KOMPUTE: "GGML_KOMPUTE",
    Backend.ACCELERATE: "GGML_ACCELERATE",
}

NO_ACCELERATE = "no_accelerate"
STATIC = "static"
KNOWN_FEATURES: frozenset[str] = frozenset(
    {b.value for b in EVALUATION_ORDER} | {NO_ACCELERATE, STATIC}
)

SHADER_GENERATOR_MODULE = "ggml_vk_generate_shaders"

# Declared CPU features -> ggml CMake options. sse3 has no switch of its own.
CPU_FEATURE_OPTIONS: dict[str, str] = {
    "fma": "GGML_FMA",
    "avx": "GGML_AVX",
    "avx2": "GGML_AVX2",
    "f16c": "GGML_F16C",
}

CMAKE_SYSTEM_NAMES: dict[TargetOS, str] = {
    TargetOS.LINUX: "Linux",
    TargetOS.MACOS: "Darwin",
    TargetOS.WINDOWS: "Windows",
}


@dataclass(frozen=True)
class BackendRequest:
    backends: frozenset[Backend] = frozenset()
    no_accelerate: bool = False
    static: bool = False

    @classmethod
    def from_features(cls, features: Iterable[str]) -> BackendRequest:
        """Build a request from feature names (vulkan, cuda, blas, metal, kompute, no_accelerate, static)."""
        names = {f.strip().lower().replace("-", "_") for f in features if f and f.strip()}
        unknown = sorted(names - KNOWN_FEATURES)
        if unknown:
            msg = f"unknown feature(s) {', '.join(unknown)}; known: {', '.join(sorted(KNOWN_FEATURES))}"
            raise UnsupportedConfiguration(msg, stage="config")
        return cls(
            backends=frozenset(Backend(n) for n in names if n not in (NO_ACCELERATE, STATIC)),
            no_accelerate=NO_ACCELERATE in names,
            static=STATIC in names,
        )


@dataclass(frozen=True)
class ResolvedConfig:
    """Fully decided build configuration. native_defines has one entry per enabled backend
    (plus GGML_ACCELERATE=OFF when it is negated on macOS); platform_options carries CPU
    dispatch and cross-compilation settings."""

    target_triple: str
    enabled_backends: frozenset[Backend]
    header_set: tuple[Path, ...]
    pre_build_step: CommandSpec | None = None
    native_defines: Mapping[str, str] = field(default_factory=dict)
    platform_options: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_triple": self.target_triple,
            "enabled_backends": [b.value for b in Backend if b in self.enabled_backends],
            "header_set": [str(h) for h in self.header_set],
            "pre_build_step": (
                {
                    "argv": list(self.pre_build_step.argv),
                    "cwd": str(self.pre_build_step.cwd) if self.pre_build_step.cwd else None,
                }
                if self.pre_build_step
                else None
            ),
            "native_defines": dict(self.native_defines),
            "platform_options": dict(self.platform_options),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def shader_codegen_step(codegen_dir: Path, python: str | None = None) -> CommandSpec:
    """`python -m ggml_vk_generate_shaders`, run from the ggml source directory."""
    return CommandSpec(
        argv=(python or sys.executable, "-m", SHADER_GENERATOR_MODULE),
        cwd=codegen_dir,
    )


def platform_options(desc: PlatformDescriptor, features: FeatureSet) -> dict[str, str]:
    """CMake options for CPU dispatch and cross compilation. Empty for native builds."""
    if not desc.is_cross_compile:
        return {}
    opts = {"GGML_NATIVE": "OFF"}
    for feat in RELEVANT_FEATURES:
        if feat in features and feat in CPU_FEATURE_OPTIONS:
            opts[CPU_FEATURE_OPTIONS[feat]] = "ON"
    system = CMAKE_SYSTEM_NAMES.get(desc.target_os)
    if system:
        opts["CMAKE_SYSTEM_NAME"] = system
        opts["CMAKE_SYSTEM_PROCESSOR"] = desc.target_arch
    return opts


def resolve(
    desc: PlatformDescriptor,
    request: BackendRequest,
    features: FeatureSet = frozenset(),
    *,
    include_dir: Path = Path("ggml/include"),
    codegen_dir: Path = Path("ggml/src"),
    python: str | None = None,
) -> ResolvedConfig:
    """Decide enabled backends, header set, defines and pre-build step. Pure; raises
    UnsupportedConfiguration for the static toggle regardless of anything else."""
    if request.static:
        msg = (
            "static linking is not available: ggml is only packaged as a dynamic library. "
            "Remove the 'static' feature."
        )
        raise UnsupportedConfiguration(msg)

    enabled: list[Backend] = []
    headers: list[Path] = [include_dir / CORE_HEADER]
    defines: dict[str, str] = {}
    pre_build_step: CommandSpec | None = None

    for backend in EVALUATION_ORDER:
        if backend not in request.backends:
            continue
        enabled.append(backend)
        defines[BACKEND_DEFINES[backend]] = "ON"
        header = BACKEND_HEADERS.get(backend)
        if header:
            headers.append(include_dir / header)
        if backend is Backend.VULKAN:
            pre_build_step = shader_codegen_step(codegen_dir, python)

    if Backend.METAL in request.backends and desc.target_os is not TargetOS.MACOS:
        log.warning("metal requested for %s target; the native build may reject it", desc.target_os.value)

    if desc.target_os is TargetOS.MACOS:
        if request.no_accelerate:
            defines[BACKEND_DEFINES[Backend.ACCELERATE]] = "OFF"
        else:
            enabled.append(Backend.ACCELERATE)
            defines[BACKEND_DEFINES[Backend.ACCELERATE]] = "ON"

    config = ResolvedConfig(
        target_triple=desc.target_triple,
        enabled_backends=frozenset(enabled),
        header_set=tuple(headers),
        pre_build_step=pre_build_step,
        native_defines=MappingProxyType(defines),
        platform_options=MappingProxyType(platform_options(desc, features)),
    )
    log.info(
        "resolved backends for %s: %s",
        desc.target_triple,
        ", ".join(b.value for b in enabled) or "cpu only",
    )
    return config
