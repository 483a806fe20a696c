"""Extract cffi declarations from preprocessed QuickJS headers.

The input is ``clang -E -dD`` output. ``#define`` lines are split off and
folded to integer constants where possible; the remaining C text is parsed
with pycparser. Declarations are selected by name allowlist, their type
dependencies are pulled in transitively, and the result is rendered back to
C in source order.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pycparser import c_ast, c_generator, c_parser

from qjsbuild.errors import BindingGenerationError

ALLOW_TYPES = (re.compile(r"JS.*"),)
ALLOW_FUNCTIONS = (re.compile(r"js.*"), re.compile(r"JS.*"), re.compile(r"__JS.*"))
ALLOW_VARS = (re.compile(r"JS.*"),)

BLOCKED_TYPES = frozenset({"FILE"})
BLOCKED_FUNCTIONS = frozenset({"JS_DumpMemoryUsage"})

# Kept by name in the output so integer widths are never rewritten to a
# platform type; cffi knows each of these natively.
PRESERVED_TYPES = frozenset(
    {
        "size_t",
        "ssize_t",
        "ptrdiff_t",
        "wchar_t",
        "intptr_t",
        "uintptr_t",
        "intmax_t",
        "uintmax_t",
        "int8_t",
        "int16_t",
        "int32_t",
        "int64_t",
        "uint8_t",
        "uint16_t",
        "uint32_t",
        "uint64_t",
        "va_list",
        "time_t",
        "FILE",
    }
)

STUB_TYPES_HEADER = "_qjs_stub_types.h"

STUB_TYPES = """\
#ifndef QJS_STUB_TYPES_H
#define QJS_STUB_TYPES_H
typedef __SIZE_TYPE__ size_t;
typedef __PTRDIFF_TYPE__ ssize_t;
typedef __PTRDIFF_TYPE__ ptrdiff_t;
typedef __WCHAR_TYPE__ wchar_t;
typedef __INTPTR_TYPE__ intptr_t;
typedef __UINTPTR_TYPE__ uintptr_t;
typedef __INTMAX_TYPE__ intmax_t;
typedef __UINTMAX_TYPE__ uintmax_t;
typedef __INT8_TYPE__ int8_t;
typedef __INT16_TYPE__ int16_t;
typedef __INT32_TYPE__ int32_t;
typedef __INT64_TYPE__ int64_t;
typedef __UINT8_TYPE__ uint8_t;
typedef __UINT16_TYPE__ uint16_t;
typedef __UINT32_TYPE__ uint32_t;
typedef __UINT64_TYPE__ uint64_t;
typedef char *va_list;
typedef long time_t;
typedef struct _IO_FILE FILE;
#define NULL ((void *)0)
#define INT8_MAX __INT8_MAX__
#define INT16_MAX __INT16_MAX__
#define INT32_MAX __INT32_MAX__
#define INT64_MAX __INT64_MAX__
#define INT32_MIN (-INT32_MAX - 1)
#define INT64_MIN (-INT64_MAX - 1)
#define UINT8_MAX __UINT8_MAX__
#define UINT16_MAX __UINT16_MAX__
#define UINT32_MAX __UINT32_MAX__
#define UINT64_MAX __UINT64_MAX__
#define INTPTR_MAX __INTPTR_MAX__
#define UINTPTR_MAX __UINTPTR_MAX__
#define SIZE_MAX __SIZE_MAX__
#define INT_MAX __INT_MAX__
#define INT_MIN (-INT_MAX - 1)
#define bool _Bool
#define true 1
#define false 0
#define NAN __builtin_nanf("")
#define INFINITY __builtin_inff()
#endif
"""

STUB_HEADERS = (
    "assert.h",
    "ctype.h",
    "errno.h",
    "fenv.h",
    "float.h",
    "inttypes.h",
    "limits.h",
    "math.h",
    "stdarg.h",
    "stdbool.h",
    "stddef.h",
    "stdint.h",
    "stdio.h",
    "stdlib.h",
    "string.h",
    "time.h",
)

# Compiler extensions pycparser cannot parse; stripped during preprocessing.
EXTENSION_SHIMS = (
    "-D__attribute__(x)=",
    "-D__declspec(x)=",
    "-D__extension__=",
    "-D__restrict=",
    "-D__restrict__=",
    "-D__inline=inline",
    "-D__inline__=inline",
    "-D__asm__(x)=",
    "-D__asm(x)=",
)

_DEFINE = re.compile(r"^\s*#\s*define\s+([A-Za-z_]\w*)(\()?\s*(.*)$")
_UNDEF = re.compile(r"^\s*#\s*undef\s+([A-Za-z_]\w*)")
_LINEMARKER = re.compile(r"^\s*#\s*(\d+|line\b|pragma\b)")
_INT_LITERAL = re.compile(r"^(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)[uUlL]*$")


def write_stub_includes(directory: Path) -> Path:
    """Write a minimal libc include tree that only names the types QuickJS uses."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / STUB_TYPES_HEADER).write_text(STUB_TYPES, encoding="utf-8")
    for name in STUB_HEADERS:
        (directory / name).write_text(f'#include "{STUB_TYPES_HEADER}"\n', encoding="utf-8")
    return directory


def split_preprocessed(text: str) -> tuple[str, dict[str, str]]:
    """Separate ``-dD`` macro definitions from the C text pycparser will see.

    Function-like macros are dropped. Removed lines become blank so parser
    coordinates still match the preprocessor output.
    """
    macros: dict[str, str] = {}
    lines: list[str] = []
    for line in text.splitlines():
        define = _DEFINE.match(line)
        if define:
            name, paren, body = define.groups()
            if paren is None:
                macros[name] = body.strip()
            else:
                macros.pop(name, None)
            lines.append("")
            continue
        undef = _UNDEF.match(line)
        if undef:
            macros.pop(undef.group(1), None)
            lines.append("")
            continue
        if line.lstrip().startswith("#") and not _LINEMARKER.match(line):
            lines.append("")
            continue
        lines.append(line)
    return "\n".join(lines) + "\n", macros


class _NotConstant(Exception):
    pass


@dataclass(slots=True)
class MacroFolder:
    """Evaluate object-like macros to integers, following references to other macros."""

    macros: Mapping[str, str]
    _cache: dict[str, int | None] = field(default_factory=dict, init=False)
    _active: set[str] = field(default_factory=set, init=False)
    _parser: c_parser.CParser = field(default_factory=c_parser.CParser, init=False, repr=False)

    def fold(self, name: str) -> int | None:
        if name in self._cache:
            return self._cache[name]
        if name in self._active or name not in self.macros:
            return None
        self._active.add(name)
        try:
            value = self._fold_body(self.macros[name])
        finally:
            self._active.discard(name)
        self._cache[name] = value
        return value

    def _fold_body(self, body: str) -> int | None:
        if not body:
            return None
        try:
            ast = self._parser.parse(f"int __qjs_fold = {body};", filename="<macro>")
        except c_parser.ParseError:
            return None
        decl = ast.ext[0]
        if not isinstance(decl, c_ast.Decl) or decl.init is None:
            return None
        try:
            return _evaluate(decl.init, self._lookup)
        except _NotConstant:
            return None

    def _lookup(self, name: str) -> int:
        value = self.fold(name)
        if value is None:
            raise _NotConstant(name)
        return value


def _parse_int_literal(raw: str) -> int:
    match = _INT_LITERAL.match(raw)
    if not match:
        raise _NotConstant(raw)
    digits = match.group(1)
    if digits.lower().startswith("0x"):
        return int(digits, 16)
    if digits.startswith("0") and len(digits) > 1:
        return int(digits, 8)
    return int(digits)


def _c_div(a: int, b: int) -> int:
    if b == 0:
        raise _NotConstant("division by zero")
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


def _c_mod(a: int, b: int) -> int:
    return a - _c_div(a, b) * b


_BINARY: dict[str, Callable[[int, int], int]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _c_div,
    "%": _c_mod,
    "<<": lambda a, b: a << b,
    ">>": lambda a, b: a >> b,
    "&": lambda a, b: a & b,
    "|": lambda a, b: a | b,
    "^": lambda a, b: a ^ b,
    "&&": lambda a, b: int(bool(a) and bool(b)),
    "||": lambda a, b: int(bool(a) or bool(b)),
    "==": lambda a, b: int(a == b),
    "!=": lambda a, b: int(a != b),
    "<": lambda a, b: int(a < b),
    ">": lambda a, b: int(a > b),
    "<=": lambda a, b: int(a <= b),
    ">=": lambda a, b: int(a >= b),
}

_UNARY: dict[str, Callable[[int], int]] = {
    "-": lambda a: -a,
    "+": lambda a: a,
    "~": lambda a: ~a,
    "!": lambda a: int(not a),
}


def _evaluate(node: c_ast.Node, lookup: Callable[[str], int]) -> int:
    if isinstance(node, c_ast.Constant):
        if node.type == "char":
            inner = node.value[1:-1]
            if len(inner) != 1:
                raise _NotConstant(node.value)
            return ord(inner)
        if "int" in node.type or node.type in ("long", "unsigned"):
            return _parse_int_literal(node.value)
        raise _NotConstant(node.value)
    if isinstance(node, c_ast.ID):
        return lookup(node.name)
    if isinstance(node, c_ast.UnaryOp) and node.op in _UNARY:
        return _UNARY[node.op](_evaluate(node.expr, lookup))
    if isinstance(node, c_ast.BinaryOp) and node.op in _BINARY:
        return _BINARY[node.op](_evaluate(node.left, lookup), _evaluate(node.right, lookup))
    if isinstance(node, c_ast.TernaryOp):
        branch = node.iftrue if _evaluate(node.cond, lookup) else node.iffalse
        return _evaluate(branch, lookup)
    if isinstance(node, c_ast.Cast):
        return _evaluate(node.expr, lookup)
    raise _NotConstant(type(node).__name__)


class _References(c_ast.NodeVisitor):
    """Collect type names, tags and identifiers a declaration refers to."""

    def __init__(self) -> None:
        self.keys: set[tuple[str, str]] = set()

    def visit_IdentifierType(self, node: c_ast.IdentifierType) -> None:
        for name in node.names:
            self.keys.add(("typedef", name))

    def visit_Struct(self, node: c_ast.Struct) -> None:
        if node.name:
            self.keys.add(("struct", node.name))
        self.generic_visit(node)

    def visit_Union(self, node: c_ast.Union) -> None:
        if node.name:
            self.keys.add(("union", node.name))
        self.generic_visit(node)

    def visit_Enum(self, node: c_ast.Enum) -> None:
        if node.name:
            self.keys.add(("enum", node.name))
        self.generic_visit(node)

    def visit_ID(self, node: c_ast.ID) -> None:
        self.keys.add(("const", node.name))


def _matches(name: str, patterns: tuple[re.Pattern[str], ...]) -> bool:
    return any(pattern.fullmatch(name) for pattern in patterns)


def _tag_key(node: c_ast.Node) -> tuple[str, str] | None:
    if isinstance(node, c_ast.Struct) and node.name:
        return ("struct", node.name)
    if isinstance(node, c_ast.Union) and node.name:
        return ("union", node.name)
    if isinstance(node, c_ast.Enum) and node.name:
        return ("enum", node.name)
    return None


def _inner_tag(node: c_ast.Node) -> c_ast.Node:
    """Unwrap ``TypeDecl`` layers down to a struct/union/enum node, if any."""
    while isinstance(node, (c_ast.TypeDecl, c_ast.Typedef, c_ast.Decl)):
        node = node.type
    return node


def _is_static(node: c_ast.Decl | c_ast.Typedef) -> bool:
    return "static" in (getattr(node, "storage", None) or [])


@dataclass(slots=True)
class _Entry:
    node: c_ast.Node
    kind: str
    name: str | None
    provides: set[tuple[str, str]]
    allowed: bool
    blocked: bool


def _classify(node: c_ast.Node) -> _Entry | None:
    if isinstance(node, c_ast.FuncDef):
        decl = node.decl
        if _is_static(decl) or "inline" in (decl.funcspec or []):
            return None
        return _classify(decl)

    if isinstance(node, c_ast.Typedef):
        provides = {("typedef", node.name)}
        tag = _tag_key(_inner_tag(node.type))
        if tag is not None:
            provides.add(tag)
        provides |= _enumerators(_inner_tag(node.type))
        return _Entry(
            node=node,
            kind="type",
            name=node.name,
            provides=provides,
            allowed=_matches(node.name, ALLOW_TYPES),
            blocked=node.name in BLOCKED_TYPES or node.name in PRESERVED_TYPES,
        )

    if not isinstance(node, c_ast.Decl) or _is_static(node):
        return None

    if isinstance(node.type, c_ast.FuncDecl):
        return _Entry(
            node=node,
            kind="function",
            name=node.name,
            provides={("function", node.name)},
            allowed=_matches(node.name, ALLOW_FUNCTIONS),
            blocked=node.name in BLOCKED_FUNCTIONS,
        )

    if node.name is None:
        inner = node.type
        tag = _tag_key(inner)
        constants = _enumerators(inner)
        provides = set(constants)
        if tag is not None:
            provides.add(tag)
        allowed = (tag is not None and _matches(tag[1], ALLOW_TYPES)) or any(
            _matches(name, ALLOW_VARS) for _, name in constants
        )
        return _Entry(
            node=node,
            kind="type",
            name=tag[1] if tag else None,
            provides=provides,
            allowed=allowed,
            blocked=tag is not None and tag[1] in BLOCKED_TYPES,
        )

    return _Entry(
        node=node,
        kind="var",
        name=node.name,
        provides={("var", node.name)},
        allowed=_matches(node.name, ALLOW_VARS),
        blocked=False,
    )


def _enumerators(node: c_ast.Node) -> set[tuple[str, str]]:
    if isinstance(node, c_ast.Enum) and node.values is not None:
        return {("const", item.name) for item in node.values.enumerators}
    return set()


def _render(node: c_ast.Node, generator: c_generator.CGenerator) -> str:
    if isinstance(node, c_ast.FuncDef):
        node = node.decl
    if isinstance(node, c_ast.Decl):
        node = copy.copy(node)
        node.storage = []
        node.funcspec = []
    return generator.visit(node) + ";"


def select_declarations(tree: c_ast.FileAST) -> list[c_ast.Node]:
    """Return allowlisted declarations plus their dependencies, in source order."""
    entries = [entry for entry in map(_classify, tree.ext) if entry is not None]

    providers: dict[tuple[str, str], list[int]] = {}
    for index, entry in enumerate(entries):
        for key in entry.provides:
            providers.setdefault(key, []).append(index)

    selected: set[int] = set()
    pending = [index for index, entry in enumerate(entries) if entry.allowed and not entry.blocked]
    while pending:
        index = pending.pop()
        if index in selected:
            continue
        selected.add(index)
        refs = _References()
        refs.visit(entries[index].node)
        for key in refs.keys:
            if key[0] == "typedef" and key[1] in PRESERVED_TYPES:
                continue
            for provider in providers.get(key, ()):
                if provider not in selected and not entries[provider].blocked:
                    pending.append(provider)

    return [entries[index].node for index in sorted(selected)]


def extract_declarations(preprocessed: str, *, filename: str = "<bindings>") -> str:
    """Turn ``clang -E -dD`` output into a cffi ``cdef`` block."""
    text, macros = split_preprocessed(preprocessed)
    try:
        tree = c_parser.CParser().parse(text, filename=filename)
    except c_parser.ParseError as exc:
        raise BindingGenerationError(
            "Unable to parse the preprocessed binding header.",
            hint="Check that the header preprocesses cleanly with the configured clang.",
            context={"operation": "bindgen", "header": filename, "error": str(exc)},
        ) from exc

    generator = c_generator.CGenerator()
    lines: list[str] = []
    seen: set[str] = set()
    for node in select_declarations(tree):
        rendered = _render(node, generator)
        if rendered not in seen:
            seen.add(rendered)
            lines.append(rendered)

    folder = MacroFolder(macros)
    for name in macros:
        if not _matches(name, ALLOW_VARS):
            continue
        value = folder.fold(name)
        if value is not None:
            lines.append(f"#define {name} {value}")

    return "\n".join(lines) + "\n"
