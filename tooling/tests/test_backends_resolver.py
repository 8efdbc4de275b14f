"""Tests for ggmlsys_tooling.backends.resolver."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from ggmlsys_tooling.backends import Backend, BackendRequest, resolve
from ggmlsys_tooling.backends.resolver import platform_options
from ggmlsys_tooling.detect import PlatformDescriptor, TargetOS
from ggmlsys_tooling.errors import UnsupportedConfiguration

INC = Path("inc")
SRC = Path("src")


def _desc(target_os: TargetOS = TargetOS.LINUX, cross: bool = False) -> PlatformDescriptor:
    triples = {
        TargetOS.LINUX: "x86_64-unknown-linux-gnu",
        TargetOS.MACOS: "aarch64-apple-darwin",
        TargetOS.WINDOWS: "x86_64-pc-windows-msvc",
        TargetOS.OTHER: "wasm32-unknown-unknown",
    }
    target = triples[target_os]
    host = "x86_64-unknown-linux-gnu" if cross else target
    if cross and host == target:
        host = "aarch64-unknown-linux-gnu"
    return PlatformDescriptor(host_triple=host, target_triple=target, target_os=target_os, is_cross_compile=cross)


def _req(*names: str) -> BackendRequest:
    return BackendRequest.from_features(names)


class TestBackendRequest:
    def test_from_features(self) -> None:
        req = _req("vulkan", "BLAS", "no-accelerate")
        assert req.backends == frozenset({Backend.VULKAN, Backend.BLAS})
        assert req.no_accelerate is True
        assert req.static is False

    def test_static_flag(self) -> None:
        assert _req("static").static is True

    def test_unknown_feature_rejected(self) -> None:
        with pytest.raises(UnsupportedConfiguration) as exc_info:
            _req("vulkan", "opencl")
        assert "opencl" in str(exc_info.value)
        assert exc_info.value.stage == "config"


class TestResolve:
    def test_no_features_linux(self) -> None:
        config = resolve(_desc(), _req(), include_dir=INC, codegen_dir=SRC)
        assert config.header_set == (INC / "ggml.h",)
        assert config.enabled_backends == frozenset()
        assert dict(config.native_defines) == {}
        assert config.pre_build_step is None

    def test_core_header_always_first(self) -> None:
        config = resolve(_desc(), _req("metal", "blas", "vulkan"), include_dir=INC, codegen_dir=SRC)
        assert config.header_set[0] == INC / "ggml.h"

    def test_header_order_is_stable_regardless_of_request_order(self) -> None:
        a = resolve(_desc(), _req("metal", "blas", "vulkan", "cuda"), include_dir=INC, codegen_dir=SRC)
        b = resolve(_desc(), _req("cuda", "vulkan", "metal", "blas"), include_dir=INC, codegen_dir=SRC)
        assert a.header_set == b.header_set
        assert [h.name for h in a.header_set] == [
            "ggml.h",
            "ggml-vulkan.h",
            "ggml-cuda.h",
            "ggml-blas.h",
            "ggml-metal.h",
        ]

    def test_one_header_per_backend_with_header(self) -> None:
        config = resolve(_desc(), _req("blas", "kompute"), include_dir=INC, codegen_dir=SRC)
        assert [h.name for h in config.header_set] == ["ggml.h", "ggml-blas.h"]
        assert dict(config.native_defines) == {"GGML_BLAS": "ON", "GGML_KOMPUTE": "ON"}

    def test_vulkan_pre_build_step(self) -> None:
        config = resolve(_desc(), _req("vulkan"), include_dir=INC, codegen_dir=SRC, python="py")
        assert config.pre_build_step is not None
        assert config.pre_build_step.argv == ("py", "-m", "ggml_vk_generate_shaders")
        assert config.pre_build_step.cwd == SRC
        assert config.native_defines["GGML_VULKAN"] == "ON"

    def test_pre_build_step_defaults_to_current_interpreter(self) -> None:
        config = resolve(_desc(), _req("vulkan"), include_dir=INC, codegen_dir=SRC)
        assert config.pre_build_step.argv[0] == sys.executable

    def test_no_pre_build_step_without_vulkan(self) -> None:
        config = resolve(_desc(), _req("blas", "metal", "cuda"), include_dir=INC, codegen_dir=SRC)
        assert config.pre_build_step is None

    def test_macos_accelerate_on_by_default(self) -> None:
        config = resolve(_desc(TargetOS.MACOS), _req(), include_dir=INC, codegen_dir=SRC)
        assert Backend.ACCELERATE in config.enabled_backends
        assert config.native_defines["GGML_ACCELERATE"] == "ON"

    def test_macos_accelerate_negated(self) -> None:
        config = resolve(_desc(TargetOS.MACOS), _req("no_accelerate"), include_dir=INC, codegen_dir=SRC)
        assert Backend.ACCELERATE not in config.enabled_backends
        assert config.native_defines["GGML_ACCELERATE"] == "OFF"

    def test_no_accelerate_outside_macos(self) -> None:
        config = resolve(_desc(TargetOS.LINUX), _req(), include_dir=INC, codegen_dir=SRC)
        assert Backend.ACCELERATE not in config.enabled_backends
        assert "GGML_ACCELERATE" not in config.native_defines

    @pytest.mark.parametrize("target_os", list(TargetOS))
    @pytest.mark.parametrize("extra", [(), ("vulkan",), ("metal", "blas"), ("no_accelerate",)])
    def test_static_always_rejected(self, target_os: TargetOS, extra: tuple[str, ...]) -> None:
        with pytest.raises(UnsupportedConfiguration) as exc_info:
            resolve(_desc(target_os), _req("static", *extra), include_dir=INC, codegen_dir=SRC)
        assert "dynamic" in str(exc_info.value)
        assert exc_info.value.stage == "resolve"

    def test_metal_on_linux_warns_but_passes_through(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("WARNING"):
            config = resolve(_desc(TargetOS.LINUX), _req("metal"), include_dir=INC, codegen_dir=SRC)
        assert config.native_defines["GGML_METAL"] == "ON"
        assert "metal requested" in caplog.text

    def test_config_is_read_only(self) -> None:
        config = resolve(_desc(), _req("blas"), include_dir=INC, codegen_dir=SRC)
        with pytest.raises(TypeError):
            config.native_defines["GGML_CUDA"] = "ON"  # type: ignore[index]

    def test_to_dict(self) -> None:
        config = resolve(_desc(TargetOS.MACOS), _req("metal", "vulkan"), include_dir=INC, codegen_dir=SRC, python="py")
        d = config.to_dict()
        assert d["enabled_backends"] == ["vulkan", "metal", "accelerate"]
        assert d["pre_build_step"] == {"argv": ["py", "-m", "ggml_vk_generate_shaders"], "cwd": "src"}
        assert d["header_set"][0] == str(INC / "ggml.h")


class TestPlatformOptions:
    def test_native_build_has_none(self) -> None:
        assert platform_options(_desc(), frozenset({"avx", "fma"})) == {}

    def test_cross_build_disables_native_and_maps_features(self) -> None:
        opts = platform_options(_desc(TargetOS.LINUX, cross=True), frozenset({"avx", "avx2", "sse3"}))
        assert opts == {
            "GGML_NATIVE": "OFF",
            "GGML_AVX": "ON",
            "GGML_AVX2": "ON",
            "CMAKE_SYSTEM_NAME": "Linux",
            "CMAKE_SYSTEM_PROCESSOR": "x86_64",
        }

    def test_cross_to_macos(self) -> None:
        opts = platform_options(_desc(TargetOS.MACOS, cross=True), frozenset())
        assert opts["CMAKE_SYSTEM_NAME"] == "Darwin"
        assert opts["CMAKE_SYSTEM_PROCESSOR"] == "aarch64"

    def test_cross_to_other_os_sets_no_system_name(self) -> None:
        opts = platform_options(_desc(TargetOS.OTHER, cross=True), frozenset({"f16c"}))
        assert opts == {"GGML_NATIVE": "OFF", "GGML_F16C": "ON"}
