"""Describe the host/target platform and work out which CPU features the native build may use.

When host and target are the same x86 machine the running processor is asked
directly (py-cpuinfo). Every other case, including native builds on non-x86
hosts, takes the declared comma-separated feature list instead. Either way
the result is intersected with RELEVANT_FEATURES; unknown tokens are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from ggmlsys_tooling.config import BuildInputs
from ggmlsys_tooling.errors import PreconditionViolation

log = logging.getLogger(__name__)

RELEVANT_FEATURES: tuple[str, ...] = ("fma", "avx", "avx2", "f16c", "sse3")
LIVE_DETECTION_ARCHES = frozenset({"x86", "x86_64", "i386", "i586", "i686"})

# /proc/cpuinfo spells SSE3 as "pni".
_CPUINFO_ALIASES = {"pni": "sse3"}

FeatureSet = frozenset[str]


class TargetOS(str, Enum):
    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> TargetOS:
        v = value.strip().lower()
        if v in ("macos", "darwin", "osx"):
            return cls.MACOS
        if v == "linux":
            return cls.LINUX
        if v == "windows":
            return cls.WINDOWS
        return cls.OTHER


@dataclass(frozen=True)
class PlatformDescriptor:
    host_triple: str
    target_triple: str
    target_os: TargetOS
    is_cross_compile: bool

    @property
    def target_arch(self) -> str:
        return self.target_triple.split("-", 1)[0]


def describe_platform(inputs: BuildInputs) -> PlatformDescriptor:
    """Build the descriptor. Raises PreconditionViolation if target OS, target or host is absent."""
    missing = [
        name
        for name, value in (
            ("target OS", inputs.target_os),
            ("target triple", inputs.target_triple),
            ("host triple", inputs.host_triple),
        )
        if not value
    ]
    if missing:
        msg = f"build environment is missing {', '.join(missing)}"
        raise PreconditionViolation(msg)
    return PlatformDescriptor(
        host_triple=inputs.host_triple,
        target_triple=inputs.target_triple,
        target_os=TargetOS.parse(inputs.target_os),
        is_cross_compile=inputs.host_triple != inputs.target_triple,
    )


def supports_live_detection(desc: PlatformDescriptor) -> bool:
    return not desc.is_cross_compile and desc.target_arch in LIVE_DETECTION_ARCHES


def _relevant(tokens: Iterable[str]) -> FeatureSet:
    normalized = {_CPUINFO_ALIASES.get(t, t) for t in (s.strip().lower() for s in tokens) if t}
    return frozenset(f for f in RELEVANT_FEATURES if f in normalized)


def declared_features(raw: str | None) -> FeatureSet:
    """Intersect a comma-separated feature list with RELEVANT_FEATURES."""
    if not raw:
        return frozenset()
    tokens = raw.split(",")
    features = _relevant(tokens)
    dropped = sorted({t.strip() for t in tokens if t.strip()} - set(features))
    if dropped:
        log.warning("ignoring unrecognized target features: %s", ", ".join(dropped))
    return features


def detect_host_features() -> FeatureSet:
    """Ask the running processor which RELEVANT_FEATURES it supports."""
    import cpuinfo

    flags = cpuinfo.get_cpu_info().get("flags", [])
    return _relevant(flags)


def probe(
    inputs: BuildInputs,
    *,
    detect: Callable[[], FeatureSet] = detect_host_features,
) -> tuple[PlatformDescriptor, FeatureSet]:
    """Return (PlatformDescriptor, FeatureSet). Consults live detection or the declared list, never both."""
    desc = describe_platform(inputs)
    if supports_live_detection(desc):
        features = frozenset(detect()) & frozenset(RELEVANT_FEATURES)
        log.info("host CPU features (live): %s", ", ".join(sorted(features)) or "none")
    else:
        features = declared_features(inputs.declared_features)
        log.info("target CPU features (declared): %s", ", ".join(sorted(features)) or "none")
    return desc, features
