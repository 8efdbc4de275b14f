"""Child process seam: a command spec and a runner that returns the exit status."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandSpec:
    argv: tuple[str, ...]
    cwd: Path | None = None

    def display(self) -> str:
        where = f" (in {self.cwd})" if self.cwd else ""
        return shlex.join(self.argv) + where


# Blocking; returns the exit status. May raise OSError if the program cannot be launched.
CommandRunner = Callable[[CommandSpec], int]


def run_command(spec: CommandSpec) -> int:
    """Run spec to completion with inherited stdio. No timeout."""
    log.debug("running %s", spec.display())
    r = subprocess.run(
        list(spec.argv),
        cwd=str(spec.cwd) if spec.cwd else None,
        check=False,  # Caller decides what a non-zero exit means
    )
    return r.returncode
