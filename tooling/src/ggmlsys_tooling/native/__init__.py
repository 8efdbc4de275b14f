"""Out-of-tree native build of ggml (CMake) with an optional pre-build codegen step."""

from .driver import (
    BUILD_TYPE,
    LIBRARY_FILENAMES,
    NATIVE_TARGET,
    build,
    build_command,
    build_dir_for,
    configure_command,
    fingerprint,
    locate_library,
    planned_commands,
)
from .runner import CommandRunner, CommandSpec, run_command

__all__ = [
    "BUILD_TYPE",
    "LIBRARY_FILENAMES",
    "NATIVE_TARGET",
    "CommandRunner",
    "CommandSpec",
    "build",
    "build_command",
    "build_dir_for",
    "configure_command",
    "fingerprint",
    "locate_library",
    "planned_commands",
    "run_command",
]
