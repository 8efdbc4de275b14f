"""Platform probe: target/host descriptor and CPU feature set (live or declared)."""

from .probe import (
    LIVE_DETECTION_ARCHES,
    RELEVANT_FEATURES,
    FeatureSet,
    PlatformDescriptor,
    TargetOS,
    declared_features,
    describe_platform,
    detect_host_features,
    probe,
    supports_live_detection,
)

__all__ = [
    "LIVE_DETECTION_ARCHES",
    "RELEVANT_FEATURES",
    "FeatureSet",
    "PlatformDescriptor",
    "TargetOS",
    "declared_features",
    "describe_platform",
    "detect_host_features",
    "probe",
    "supports_live_detection",
]
