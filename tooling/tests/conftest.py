"""Pytest fixtures for ggmlsys tooling tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from ggmlsys_tooling.bindgen import TranslationRequest
from ggmlsys_tooling.native import CommandSpec

HEADERS = ("ggml.h", "ggml-vulkan.h", "ggml-cuda.h", "ggml-blas.h", "ggml-metal.h")


class RecordingRunner:
    """Fake CommandRunner: records specs, returns queued exit codes (default 0), runs optional hooks."""

    def __init__(self, returncodes: list[int] | None = None) -> None:
        self.calls: list[CommandSpec] = []
        self.returncodes = list(returncodes or [])
        self.hooks: list[Callable[[CommandSpec], None]] = []

    def __call__(self, spec: CommandSpec) -> int:
        self.calls.append(spec)
        for hook in self.hooks:
            hook(spec)
        return self.returncodes.pop(0) if self.returncodes else 0


class FakeTranslator:
    """Records TranslationRequests and returns a fixed source string."""

    def __init__(self, source: str = "# generated\n") -> None:
        self.requests: list[TranslationRequest] = []
        self.source = source

    def translate(self, request: TranslationRequest) -> str:
        self.requests.append(request)
        return self.source


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def ggml_tree(tmp_path: Path) -> Path:
    """Project root with ggml/include/*.h and ggml/src. Returns project root."""
    include = tmp_path / "ggml" / "include"
    include.mkdir(parents=True)
    (tmp_path / "ggml" / "src").mkdir()
    (tmp_path / "ggml" / "CMakeLists.txt").write_text("project(ggml C CXX)\n")
    for name in HEADERS:
        (include / name).write_text(f"/* {name} */\n")
    return tmp_path


def fake_library_hook(name: str = "libggml.so") -> Callable[[CommandSpec], None]:
    """Runner hook: on `cmake --build <dir>`, drop a library file under <dir>/src."""

    def hook(spec: CommandSpec) -> None:
        argv = list(spec.argv)
        if argv[:2] == ["cmake", "--build"]:
            out = Path(argv[2]) / "src"
            out.mkdir(parents=True, exist_ok=True)
            (out / name).write_text("")

    return hook


@pytest.fixture
def make_runner() -> type[RecordingRunner]:
    return RecordingRunner


@pytest.fixture
def library_hook() -> Callable[..., Callable[[CommandSpec], None]]:
    return fake_library_hook
