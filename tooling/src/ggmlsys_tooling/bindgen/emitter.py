"""Emit the generated binding module for a resolved header set."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from ggmlsys_tooling import package_version
from ggmlsys_tooling.bindgen.translator import (
    DERIVABLE_TRAITS,
    ClangTranslator,
    TranslationRequest,
    Translator,
)

log = logging.getLogger(__name__)

VERSION_CONSTANT = "GGMLSYS_VERSION"

RAW_LINES: tuple[str, ...] = (
    "# ruff: noqa",
    "# fmt: off",
)


def version_line(version: str | None) -> str:
    """Synthetic constant exposing this binding layer's version (None when not installed)."""
    return f"{VERSION_CONSTANT} = {version!r}"


def translation_request(
    header_set: Sequence[Path],
    include_dirs: Sequence[Path] = (),
    version: str | None = None,
) -> TranslationRequest:
    """Request restricted to header_set, deriving every value trait, merged and deterministically ordered."""
    headers = tuple(Path(h) for h in header_set)
    return TranslationRequest(
        headers=headers,
        allowlist=headers,
        include_dirs=tuple(Path(d) for d in include_dirs),
        derive=DERIVABLE_TRAITS,
        impl_debug=True,
        merge_declarations=True,
        sort_semantically=True,
        raw_lines=(*RAW_LINES, version_line(version)),
    )


def emit(
    header_set: Sequence[Path],
    output_path: Path,
    *,
    translator: Translator | None = None,
    include_dirs: Sequence[Path] = (),
    version: str | None = None,
    clang_args: Sequence[str] = (),
) -> Path:
    """Translate header_set and write the result to output_path. Raises TranslationFailure.

    clang_args reach the default ClangTranslator only; an explicit translator is used as given.
    """
    if version is None:
        version = package_version()
    if not include_dirs:
        include_dirs = sorted({Path(h).parent for h in header_set})
    request = translation_request(header_set, include_dirs, version)
    source = (translator or ClangTranslator(clang_args)).translate(request)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(source)
    print(f"✅ Wrote bindings: {output_path}")
    log.info("bindings for %d header(s) written to %s", len(request.headers), output_path)
    return output_path
