"""Build failures. Every one is fatal; the CLI reports the stage and exits 1."""

from __future__ import annotations


class BuildError(Exception):
    """Base for all orchestration failures."""

    stage = "build"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {self.args[0]}"


class PreconditionViolation(BuildError):
    """A required environment value is missing."""

    stage = "probe"


class UnsupportedConfiguration(BuildError):
    """A requested option is permanently unimplemented (e.g. static linking)."""

    stage = "resolve"


class ExternalToolFailure(BuildError):
    """Codegen script or native build tool could not be launched or exited non-zero."""

    stage = "native-build"

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.command = list(command or [])
        self.returncode = returncode


class TranslationFailure(BuildError):
    """Header-to-binding translation could not parse its input."""

    stage = "bindgen"
