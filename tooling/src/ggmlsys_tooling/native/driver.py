"""Drive the CMake build of ggml for a ResolvedConfig.

The build directory is keyed by a fingerprint of the configuration
(``<out_dir>/build-<fingerprint>``), so changing backends or target never
reuses artifacts configured for something else. Incremental rebuilds within
one configuration are left to CMake.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ggmlsys_tooling.detect import TargetOS
from ggmlsys_tooling.errors import ExternalToolFailure
from ggmlsys_tooling.native.runner import CommandRunner, CommandSpec, run_command

if TYPE_CHECKING:
    from ggmlsys_tooling.backends import ResolvedConfig

log = logging.getLogger(__name__)

NATIVE_TARGET = "ggml"
BUILD_TYPE = "Release"

LIBRARY_FILENAMES: dict[TargetOS, tuple[str, ...]] = {
    TargetOS.LINUX: ("libggml.so",),
    TargetOS.MACOS: ("libggml.dylib",),
    TargetOS.WINDOWS: ("ggml.lib", "ggml.dll"),
    TargetOS.OTHER: ("libggml.so",),
}


def fingerprint(config: ResolvedConfig) -> str:
    """12 hex chars identifying everything that changes the configured build."""
    payload = json.dumps(
        {
            "target": config.target_triple,
            "defines": dict(sorted(config.native_defines.items())),
            "platform": dict(sorted(config.platform_options.items())),
        },
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode()).hexdigest()[:12]


def build_dir_for(out_dir: Path, config: ResolvedConfig) -> Path:
    return out_dir / f"build-{fingerprint(config)}"


def configure_command(source_dir: Path, build_dir: Path, config: ResolvedConfig) -> CommandSpec:
    options = {**config.platform_options, **config.native_defines}
    argv = [
        "cmake",
        "-S",
        str(source_dir),
        "-B",
        str(build_dir),
        f"-DCMAKE_BUILD_TYPE={BUILD_TYPE}",
        "-DBUILD_SHARED_LIBS=ON",
        *(f"-D{k}={v}" for k, v in sorted(options.items())),
    ]
    return CommandSpec(argv=tuple(argv))


def build_command(build_dir: Path) -> CommandSpec:
    return CommandSpec(
        argv=("cmake", "--build", str(build_dir), "--target", NATIVE_TARGET, "--config", BUILD_TYPE)
    )


def planned_commands(config: ResolvedConfig, source_dir: Path, out_dir: Path) -> list[CommandSpec]:
    """Commands build() would run, in order."""
    build_dir = build_dir_for(out_dir, config)
    cmds = [configure_command(source_dir, build_dir, config), build_command(build_dir)]
    if config.pre_build_step is not None:
        cmds.insert(0, config.pre_build_step)
    return cmds


def _run_step(spec: CommandSpec, runner: CommandRunner, stage: str) -> None:
    try:
        rc = runner(spec)
    except OSError as e:
        msg = f"could not launch {spec.argv[0]}: {e}"
        raise ExternalToolFailure(msg, command=list(spec.argv), stage=stage) from e
    if rc != 0:
        msg = f"{spec.display()} exited with status {rc}"
        raise ExternalToolFailure(msg, command=list(spec.argv), returncode=rc, stage=stage)


def build(
    config: ResolvedConfig,
    *,
    source_dir: Path,
    out_dir: Path,
    runner: CommandRunner = run_command,
) -> Path:
    """Run the pre-build step (if any), configure and build the ggml target. Returns the build directory."""
    if config.pre_build_step is not None:
        print("🔨 Generating shaders...")
        _run_step(config.pre_build_step, runner, stage="codegen")

    build_dir = build_dir_for(out_dir, config)
    build_dir.mkdir(parents=True, exist_ok=True)
    print(f"🔨 Building {NATIVE_TARGET} in {build_dir}...")
    _run_step(configure_command(source_dir, build_dir, config), runner, stage="native-build")
    _run_step(build_command(build_dir), runner, stage="native-build")
    log.info("native build finished: %s", build_dir)
    return build_dir


def locate_library(build_dir: Path, target_os: TargetOS) -> Path | None:
    """First conventional library artifact under build_dir, or None."""
    for name in LIBRARY_FILENAMES[target_os]:
        matches = sorted(build_dir.rglob(name))
        if matches:
            return matches[0]
    return None
