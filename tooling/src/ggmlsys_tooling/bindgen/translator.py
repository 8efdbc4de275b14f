"""Header-to-binding translation: a request value, the Translator interface, and a libclang implementation.

ClangTranslator parses each header with libclang and renders a ctypes module:
integer/float/string macro constants, enum constants, Structure/Union classes,
typedef aliases and a function table with ``bind(lib)`` to apply argtypes and
restype to a loaded CDLL. Only declarations located in ``request.allowlist``
are emitted; anything else a header pulls in (libc, other ggml headers) is
referenced as an opaque ``c_void_p`` or by its canonical primitive type.
"""

from __future__ import annotations

import logging
import math
import os
import re
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from ggmlsys_tooling.errors import TranslationFailure

log = logging.getLogger(__name__)

DERIVABLE_TRAITS: tuple[str, ...] = ("copy", "debug", "eq", "ord", "hash")

_PRIMITIVES: dict[str, str] = {
    "VOID": "None",
    "BOOL": "c_bool",
    "CHAR_S": "c_char",
    "SCHAR": "c_byte",
    "CHAR_U": "c_ubyte",
    "UCHAR": "c_ubyte",
    "SHORT": "c_short",
    "USHORT": "c_ushort",
    "INT": "c_int",
    "UINT": "c_uint",
    "LONG": "c_long",
    "ULONG": "c_ulong",
    "LONGLONG": "c_longlong",
    "ULONGLONG": "c_ulonglong",
    "FLOAT": "c_float",
    "DOUBLE": "c_double",
    "LONGDOUBLE": "c_longdouble",
    "HALF": "c_uint16",
    "FLOAT16": "c_uint16",
    "WCHAR": "c_wchar",
}

_KNOWN_TYPEDEFS: dict[str, str] = {
    "size_t": "c_size_t",
    "ssize_t": "c_ssize_t",
    "ptrdiff_t": "c_ssize_t",
    "intptr_t": "c_ssize_t",
    "uintptr_t": "c_size_t",
    "int8_t": "c_int8",
    "int16_t": "c_int16",
    "int32_t": "c_int32",
    "int64_t": "c_int64",
    "uint8_t": "c_uint8",
    "uint16_t": "c_uint16",
    "uint32_t": "c_uint32",
    "uint64_t": "c_uint64",
}

_OCTAL = re.compile(r"^0[0-7]+$")

# (compiler, flag); clang reports its resource dir, gcc-style drivers the include dir itself.
_BUILTIN_INCLUDE_QUERIES: tuple[tuple[str, str], ...] = (
    ("clang", "-print-resource-dir"),
    ("cc", "-print-file-name=include"),
    ("gcc", "-print-file-name=include"),
)


@dataclass(frozen=True)
class TranslationRequest:
    headers: tuple[Path, ...]
    allowlist: tuple[Path, ...]
    include_dirs: tuple[Path, ...] = ()
    derive: tuple[str, ...] = DERIVABLE_TRAITS
    impl_debug: bool = True
    merge_declarations: bool = True
    sort_semantically: bool = True
    raw_lines: tuple[str, ...] = ()


class Translator(Protocol):
    def translate(self, request: TranslationRequest) -> str: ...


@dataclass
class _RecordDecl:
    name: str
    base: str  # Structure | Union
    fields: list[tuple[Any, ...]] | None = None  # None = opaque
    deps: set[str] = field(default_factory=set)


@dataclass
class _Declarations:
    constants: dict[str, str] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)
    records: dict[str, _RecordDecl] = field(default_factory=dict)
    functions: dict[str, tuple[str, list[str], bool]] = field(default_factory=dict)


def _unnamed(cursor: Any) -> bool:
    s = cursor.spelling or ""
    return not s or "(unnamed" in s or "(anonymous" in s


def _location_key(cursor: Any) -> tuple[str, int, int]:
    loc = cursor.location
    return (loc.file.name if loc.file else "", loc.line, loc.column)


def _macro_literal(spelling: str) -> str | None:
    """Python expression for a C literal token, or None if it has no direct equivalent."""
    if spelling.startswith('"') and spelling.endswith('"'):
        return spelling
    if not spelling or not (spelling[0].isdigit() or spelling[0] == "."):
        return None
    digits = spelling.rstrip("uUlL")
    try:
        if _OCTAL.match(digits):
            return str(int(digits, 8))
        return str(int(digits, 0))
    except ValueError:
        pass
    try:
        value = float(spelling.rstrip("fFlL"))
    except ValueError:
        return None
    return repr(value) if math.isfinite(value) else None


def builtin_include_dirs() -> list[Path]:
    """Directory holding the compiler's own headers (stddef.h, stdbool.h), or [] if no compiler reports one.

    The libclang wheel ships without them, so they are borrowed from the first
    installed compiler that answers.
    """
    for compiler, flag in _BUILTIN_INCLUDE_QUERIES:
        try:
            r = subprocess.run([compiler, flag], capture_output=True, text=True, check=False)
        except OSError:
            continue
        out = r.stdout.strip()
        if r.returncode != 0 or not out:
            continue
        path = Path(out) / "include" if flag == "-print-resource-dir" else Path(out)
        if path.is_absolute() and (path / "stddef.h").is_file():
            log.debug("builtin headers from %s: %s", compiler, path)
            return [path]
    log.warning("no compiler reported builtin headers; <stddef.h> and friends may not resolve")
    return []


class ClangTranslator:
    """Translator backed by libclang (``clang.cindex``).

    system_include_dirs of None means "ask the installed compiler" on first use.
    """

    def __init__(
        self,
        clang_args: Sequence[str] = (),
        system_include_dirs: Sequence[Path] | None = None,
    ) -> None:
        self.clang_args = list(clang_args)
        self.system_include_dirs = None if system_include_dirs is None else list(system_include_dirs)
        self._decls = _Declarations()
        self._anon_names: dict[tuple[str, int, int], str] = {}

    def translate(self, request: TranslationRequest) -> str:
        from clang import cindex

        try:
            index = cindex.Index.create()
        except cindex.LibclangError as e:
            msg = f"libclang is not available: {e}"
            raise TranslationFailure(msg) from e

        allow = {os.path.realpath(p) for p in request.allowlist}
        decls = self._decls = _Declarations()
        self._anon_names = {}
        for header in request.headers:
            tu = self._parse(cindex, index, header, request)
            self._collect(tu, allow, request.merge_declarations)
        log.info(
            "translated %d header(s): %d constants, %d records, %d functions",
            len(request.headers),
            len(decls.constants),
            len(decls.records),
            len(decls.functions),
        )
        return render(decls, request)

    def compile_args(self, request: TranslationRequest) -> list[str]:
        if self.system_include_dirs is None:
            self.system_include_dirs = builtin_include_dirs()
        args = ["-x", "c", "-std=c11", *(f"-I{d}" for d in request.include_dirs)]
        for d in self.system_include_dirs:
            args.extend(["-isystem", str(d)])
        return [*args, *self.clang_args]

    def _parse(self, cindex: Any, index: Any, header: Path, request: TranslationRequest) -> Any:
        args = self.compile_args(request)
        try:
            tu = index.parse(
                str(header),
                args=args,
                options=cindex.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD
                | cindex.TranslationUnit.PARSE_SKIP_FUNCTION_BODIES,
            )
        except cindex.TranslationUnitLoadError as e:
            msg = f"could not parse {header}: {e}"
            raise TranslationFailure(msg) from e
        errors = [d for d in tu.diagnostics if d.severity >= cindex.Diagnostic.Error]
        if errors:
            detail = "; ".join(f"{d.location.file}:{d.location.line}: {d.spelling}" for d in errors[:5])
            msg = f"{header}: {len(errors)} parse error(s): {detail}"
            raise TranslationFailure(msg)
        return tu

    def _collect(self, tu: Any, allow: set[str], merge: bool) -> None:
        cursors = [
            c
            for c in tu.cursor.get_children()
            if c.location.file is not None and os.path.realpath(c.location.file.name) in allow
        ]
        # Named records first, so pointers to structs declared later still resolve.
        for cursor in cursors:
            if cursor.kind.name in ("STRUCT_DECL", "UNION_DECL") and not _unnamed(cursor):
                base = "Union" if cursor.kind.name == "UNION_DECL" else "Structure"
                self._decls.records.setdefault(cursor.spelling, _RecordDecl(cursor.spelling, base))
        for cursor in cursors:
            kind = cursor.kind.name
            if kind == "MACRO_DEFINITION":
                self._macro(cursor, merge)
            elif kind == "ENUM_DECL":
                self._enum(cursor, merge)
            elif kind in ("STRUCT_DECL", "UNION_DECL") and not _unnamed(cursor):
                self._record(cursor, cursor.spelling, merge)
            elif kind == "TYPEDEF_DECL":
                self._typedef(cursor, merge)
            elif kind == "FUNCTION_DECL":
                self._function(cursor, merge)

    def _keep(self, table: dict[str, Any], name: str, merge: bool) -> bool:
        return not (merge and name in table)

    def _macro(self, cursor: Any, merge: bool) -> None:
        tokens = [t.spelling for t in cursor.get_tokens()]
        if len(tokens) == 2:
            value = _macro_literal(tokens[1])
        elif len(tokens) == 3 and tokens[1] == "-":
            lit = _macro_literal(tokens[2])
            value = f"-{lit}" if lit and not lit.startswith('"') else None
        else:
            value = None
        if value is not None and self._keep(self._decls.constants, tokens[0], merge):
            self._decls.constants[tokens[0]] = value

    def _enum(self, cursor: Any, merge: bool) -> None:
        for child in cursor.get_children():
            if child.kind.name == "ENUM_CONSTANT_DECL" and self._keep(
                self._decls.constants, child.spelling, merge
            ):
                self._decls.constants[child.spelling] = str(child.enum_value)
        if not _unnamed(cursor) and self._keep(self._decls.aliases, cursor.spelling, merge):
            self._decls.aliases[cursor.spelling] = self._ctype(cursor.enum_type) or "c_int"

    def _record(self, cursor: Any, name: str, merge: bool) -> None:
        base = "Union" if cursor.kind.name == "UNION_DECL" else "Structure"
        existing = self._decls.records.get(name)
        if not cursor.is_definition():
            if existing is None:
                self._decls.records[name] = _RecordDecl(name=name, base=base)
            return
        if existing is not None and existing.fields is not None and merge:
            return
        record = _RecordDecl(name=name, base=base, fields=[])
        # Register before converting fields so self-references resolve.
        self._decls.records[name] = record
        for child in cursor.get_children():
            if child.kind.name != "FIELD_DECL":
                continue
            ctype = self._ctype(child.type, record.deps) or f"(c_ubyte * {max(child.type.get_size(), 0)})"
            if child.is_bitfield():
                record.fields.append((child.spelling, ctype, child.get_bitfield_width()))
            else:
                record.fields.append((child.spelling, ctype))

    def _typedef(self, cursor: Any, merge: bool) -> None:
        name = cursor.spelling
        underlying = cursor.underlying_typedef_type
        canonical = underlying.get_canonical()
        if canonical.kind.name == "RECORD":
            decl = canonical.get_declaration()
            if _unnamed(decl) and decl.is_definition():
                self._anon_names[_location_key(decl)] = name
                self._record(decl, name, merge)
                return
            if decl.spelling == name:
                return
        if not self._keep(self._decls.aliases, name, merge):
            return
        ctype = self._ctype(underlying)
        if ctype and ctype != name:
            self._decls.aliases[name] = ctype

    def _function(self, cursor: Any, merge: bool) -> None:
        name = cursor.spelling
        if not self._keep(self._decls.functions, name, merge):
            return
        restype = self._ctype(cursor.result_type) or "c_void_p"
        argtypes = [self._ctype(a.type) or "c_void_p" for a in cursor.get_arguments()]
        variadic = cursor.type.kind.name == "FUNCTIONPROTO" and cursor.type.is_function_variadic()
        self._decls.functions[name] = (restype, argtypes, variadic)

    def _record_name(self, decl: Any) -> str | None:
        key = _location_key(decl)
        if key in self._anon_names:
            return self._anon_names[key]
        if _unnamed(decl):
            return None
        return decl.spelling if decl.spelling in self._decls.records else None

    def _ctype(self, t: Any, deps: set[str] | None = None) -> str | None:
        """ctypes expression for a clang type; None when it has no usable by-value form."""
        kind = t.kind.name
        if kind == "ELABORATED":
            return self._ctype(t.get_named_type(), deps)
        if kind == "TYPEDEF":
            name = t.get_declaration().spelling
            if name in _KNOWN_TYPEDEFS:
                return _KNOWN_TYPEDEFS[name]
            return self._ctype(t.get_canonical(), deps)
        if kind == "POINTER":
            pointee = t.get_pointee().get_canonical()
            pk = pointee.kind.name
            if pk == "VOID" or pk in ("FUNCTIONPROTO", "FUNCTIONNOPROTO"):
                return "c_void_p"
            if pk in ("CHAR_S", "CHAR_U"):
                return "c_char_p"
            inner = self._ctype(pointee)
            if inner is None or inner == "None" or inner.startswith("(c_ubyte *"):
                return "c_void_p"
            return f"POINTER({inner})"
        if kind == "CONSTANTARRAY":
            elem = self._ctype(t.element_type, deps)
            return f"({elem} * {t.element_count})" if elem else None
        if kind in ("INCOMPLETEARRAY", "VARIABLEARRAY"):
            elem = self._ctype(t.element_type)
            return f"POINTER({elem})" if elem and elem != "None" else "c_void_p"
        if kind == "ENUM":
            return self._ctype(t.get_declaration().enum_type, deps) or "c_int"
        if kind == "RECORD":
            name = self._record_name(t.get_declaration())
            if name is None:
                return None
            if deps is not None:
                deps.add(name)
            return name
        if kind in ("FUNCTIONPROTO", "FUNCTIONNOPROTO"):
            return "c_void_p"
        return _PRIMITIVES.get(kind)


# --- Rendering ---

_PRELUDE = '''"""Generated ctypes bindings for ggml. Do not edit."""

from ctypes import (
    POINTER,
    Array,
    Structure,
    Union,
    _Pointer,
    c_bool,
    c_byte,
    c_char,
    c_char_p,
    c_double,
    c_float,
    c_int,
    c_int8,
    c_int16,
    c_int32,
    c_int64,
    c_long,
    c_longdouble,
    c_longlong,
    c_short,
    c_size_t,
    c_ssize_t,
    c_ubyte,
    c_uint,
    c_uint8,
    c_uint16,
    c_uint32,
    c_uint64,
    c_ulong,
    c_ulonglong,
    c_ushort,
    c_void_p,
    c_wchar,
    cast,
)
'''

_RECORD_BASE = '''

def _value(v):
    if isinstance(v, _Record):
        return v._astuple()
    if isinstance(v, Array):
        return tuple(_value(x) for x in v)
    if isinstance(v, _Pointer):
        return cast(v, c_void_p).value
    return v


class _Record:
    def _astuple(self):
        if isinstance(self, Union):
            return (bytes(self),)
        return tuple(_value(getattr(self, f[0])) for f in getattr(self, "_fields_", ()))
'''

_TRAIT_METHODS: dict[str, str] = {
    "copy": '''
    def __copy__(self):
        return type(self).from_buffer_copy(self)
''',
    "debug": '''
    def __repr__(self):
        items = ", ".join(f"{f[0]}={getattr(self, f[0])!r}" for f in getattr(self, "_fields_", ()))
        return f"{type(self).__name__}({items})"
''',
    "eq": '''
    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._astuple() == other._astuple()
''',
    "ord": '''
    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._astuple() < other._astuple()

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._astuple() <= other._astuple()

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._astuple() > other._astuple()

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._astuple() >= other._astuple()
''',
    "hash": '''
    def __hash__(self):
        return hash((type(self).__name__, self._astuple()))
''',
}

_BIND = '''

def bind(lib):
    """Apply argtypes/restype from _FUNCTIONS to a loaded ctypes.CDLL; returns lib."""
    for name, (restype, argtypes) in _FUNCTIONS.items():
        fn = getattr(lib, name, None)
        if fn is None:
            continue
        fn.restype = restype
        if name not in _VARIADIC:
            fn.argtypes = argtypes
    return lib
'''


def _ordered(names: Sequence[str], sort: bool) -> list[str]:
    return sorted(names) if sort else list(names)


def _field_order(records: dict[str, _RecordDecl], sort: bool) -> list[_RecordDecl]:
    """Defined records with by-value dependencies first (ctypes needs complete types)."""
    out: list[_RecordDecl] = []
    seen: set[str] = set()

    def visit(name: str) -> None:
        if name in seen or name not in records:
            return
        seen.add(name)
        rec = records[name]
        for dep in _ordered(list(rec.deps), True):
            if dep != name:
                visit(dep)
        if rec.fields is not None:
            out.append(rec)

    for name in _ordered(list(records), sort):
        visit(name)
    return out


def _derived_base(request: TranslationRequest) -> str:
    traits = [t for t in request.derive if t in _TRAIT_METHODS and t != "debug"]
    if request.impl_debug or "debug" in request.derive:
        traits.append("debug")
    ordered = [t for t in DERIVABLE_TRAITS if t in traits]
    return _RECORD_BASE + "".join(_TRAIT_METHODS[t] for t in ordered)


def render(decls: _Declarations, request: TranslationRequest) -> str:
    """Render collected declarations as Python source."""
    sort = request.sort_semantically
    parts: list[str] = [_PRELUDE]
    if request.raw_lines:
        parts.append("\n".join(request.raw_lines) + "\n")
    parts.append(_derived_base(request))

    if decls.constants:
        parts.append("\n")
        parts.extend(f"{n} = {decls.constants[n]}\n" for n in _ordered(list(decls.constants), sort))

    record_names = _ordered(list(decls.records), sort)
    for name in record_names:
        rec = decls.records[name]
        parts.append(f"\n\nclass {name}(_Record, {rec.base}):\n    pass\n")

    if decls.aliases:
        parts.append("\n\n")
        parts.extend(f"{n} = {decls.aliases[n]}\n" for n in _ordered(list(decls.aliases), sort))

    laid_out = _field_order(decls.records, sort)
    if laid_out:
        parts.append("\n")
    for rec in laid_out:
        entries = "".join(
            f"    ({f[0]!r}, {f[1]}, {f[2]}),\n" if len(f) == 3 else f"    ({f[0]!r}, {f[1]}),\n"
            for f in rec.fields or []
        )
        parts.append(f"{rec.name}._fields_ = [\n{entries}]\n")

    parts.append("\n_FUNCTIONS = {\n")
    for name in _ordered(list(decls.functions), sort):
        restype, argtypes, _ = decls.functions[name]
        parts.append(f"    {name!r}: ({restype}, [{', '.join(argtypes)}]),\n")
    parts.append("}\n")
    variadic = sorted(n for n, (_, _, v) in decls.functions.items() if v)
    parts.append(f"_VARIADIC = frozenset({variadic!r})\n")
    parts.append(_BIND)
    return "".join(parts)
