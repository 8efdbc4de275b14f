"""Header-to-binding translation (libclang -> ctypes) for the resolved header set."""

from .emitter import RAW_LINES, VERSION_CONSTANT, emit, translation_request, version_line
from .translator import (
    DERIVABLE_TRAITS,
    ClangTranslator,
    TranslationRequest,
    Translator,
    builtin_include_dirs,
    render,
)

__all__ = [
    "DERIVABLE_TRAITS",
    "RAW_LINES",
    "VERSION_CONSTANT",
    "ClangTranslator",
    "TranslationRequest",
    "Translator",
    "builtin_include_dirs",
    "emit",
    "render",
    "translation_request",
    "version_line",
]
