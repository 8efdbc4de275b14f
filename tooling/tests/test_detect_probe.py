"""Tests for ggmlsys_tooling.detect.probe."""

from __future__ import annotations

import pytest

from ggmlsys_tooling.config import BuildInputs
from ggmlsys_tooling.detect import (
    RELEVANT_FEATURES,
    TargetOS,
    declared_features,
    describe_platform,
    probe,
    supports_live_detection,
)
from ggmlsys_tooling.errors import PreconditionViolation

X86_LINUX = "x86_64-unknown-linux-gnu"
ARM_LINUX = "aarch64-unknown-linux-gnu"
ARM_MAC = "aarch64-apple-darwin"


def _inputs(target: str, host: str, target_os: str = "linux", features: str | None = None) -> BuildInputs:
    return BuildInputs(
        target_os=target_os,
        target_triple=target,
        host_triple=host,
        declared_features=features,
    )


def _no_live() -> frozenset[str]:
    raise AssertionError("live detection must not run")


class TestDeclaredFeatures:
    def test_intersects_with_vocabulary(self) -> None:
        assert declared_features("avx,avx2,neon,sse4.1,fma") == frozenset({"avx", "avx2", "fma"})

    def test_unrecognized_tokens_dropped_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("WARNING", logger="ggmlsys_tooling.detect.probe"):
            assert declared_features("crt-static,neon,avx") == frozenset({"avx"})
        assert "crt-static, neon" in caplog.text
        assert caplog.records[-1].levelname == "WARNING"

    def test_empty_and_none(self) -> None:
        assert declared_features("") == frozenset()
        assert declared_features(None) == frozenset()

    def test_whitespace_and_case(self) -> None:
        assert declared_features(" AVX , f16c ,") == frozenset({"avx", "f16c"})

    @pytest.mark.parametrize(
        "raw",
        ["fma", "avx,avx2", "sse3,f16c,foo", "a,b,c", "fma,avx,avx2,f16c,sse3,x87"],
    )
    def test_result_is_subset_of_vocabulary_and_of_declared(self, raw: str) -> None:
        got = declared_features(raw)
        assert got <= frozenset(RELEVANT_FEATURES)
        assert got == frozenset(raw.split(",")) & frozenset(RELEVANT_FEATURES)


class TestDescribePlatform:
    def test_native_build(self) -> None:
        desc = describe_platform(_inputs(X86_LINUX, X86_LINUX))
        assert desc.target_os is TargetOS.LINUX
        assert desc.is_cross_compile is False
        assert desc.target_arch == "x86_64"

    def test_cross_build(self) -> None:
        desc = describe_platform(_inputs(ARM_MAC, X86_LINUX, target_os="macos"))
        assert desc.target_os is TargetOS.MACOS
        assert desc.is_cross_compile is True

    @pytest.mark.parametrize("missing", ["target_os", "target_triple", "host_triple"])
    def test_missing_required_value_is_fatal(self, missing: str) -> None:
        values = {"target_os": "linux", "target_triple": X86_LINUX, "host_triple": X86_LINUX}
        values[missing] = None
        with pytest.raises(PreconditionViolation) as exc_info:
            describe_platform(BuildInputs(**values))
        assert exc_info.value.stage == "probe"

    def test_unknown_os_maps_to_other(self) -> None:
        desc = describe_platform(_inputs("wasm32-unknown-unknown", "wasm32-unknown-unknown", "unknown"))
        assert desc.target_os is TargetOS.OTHER


class TestProbe:
    def test_host_equals_target_on_x86_uses_live_detection(self) -> None:
        calls = []

        def detect() -> frozenset[str]:
            calls.append(1)
            return frozenset({"avx", "avx2", "sse3"})

        desc, features = probe(_inputs(X86_LINUX, X86_LINUX, features="fma"), detect=detect)
        assert calls == [1]
        assert features == frozenset({"avx", "avx2", "sse3"})
        assert supports_live_detection(desc)

    def test_live_detection_result_is_clipped_to_vocabulary(self) -> None:
        _, features = probe(
            _inputs(X86_LINUX, X86_LINUX),
            detect=lambda: frozenset({"avx", "avx512f", "sse4_2"}),
        )
        assert features == frozenset({"avx"})

    def test_cross_compile_uses_declared_list(self) -> None:
        _, features = probe(
            _inputs(X86_LINUX, ARM_MAC, features="avx,avx2,neon"),
            detect=_no_live,
        )
        assert features == frozenset({"avx", "avx2"})

    def test_non_x86_native_uses_declared_list(self) -> None:
        desc, features = probe(_inputs(ARM_LINUX, ARM_LINUX, features="neon,fma"), detect=_no_live)
        assert not supports_live_detection(desc)
        assert features == frozenset({"fma"})

    def test_processor_without_features_gives_empty_set(self) -> None:
        _, features = probe(_inputs(X86_LINUX, X86_LINUX), detect=lambda: frozenset())
        assert features == frozenset()


class TestDetectHostFeatures:
    def test_reads_cpuinfo_flags_and_normalizes_pni(self) -> None:
        from unittest.mock import patch

        from ggmlsys_tooling.detect import detect_host_features

        with patch("cpuinfo.get_cpu_info", return_value={"flags": ["pni", "avx", "avx2", "sse4_2"]}):
            assert detect_host_features() == frozenset({"sse3", "avx", "avx2"})

    def test_missing_flags_key(self) -> None:
        from unittest.mock import patch

        from ggmlsys_tooling.detect import detect_host_features

        with patch("cpuinfo.get_cpu_info", return_value={}):
            assert detect_host_features() == frozenset()
