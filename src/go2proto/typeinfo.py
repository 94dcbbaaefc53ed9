"""Underlying-type resolution and Go-style type strings.

Named types are followed through their declarations in the loaded
packages until a type literal or a predeclared basic type is reached.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Dict, Mapping, Optional, Set

from go2proto.parser.go_ast import (
    GoArrayType,
    GoMapType,
    GoNamedType,
    GoOpaqueType,
    GoPointerType,
    GoSliceType,
    GoStructType,
    GoTypeExpr,
)

if TYPE_CHECKING:
    from go2proto.loader import Package

BASIC_TYPES = frozenset({
    "bool", "string",
    "int", "int8", "int16", "int32", "int64",
    "uint", "uint8", "uint16", "uint32", "uint64", "uintptr",
    "byte", "rune",
    "float32", "float64",
    "complex64", "complex128",
})

# Predeclared identifiers that are not basic types.
PREDECLARED_TYPES: Dict[str, GoTypeExpr] = {
    "any": GoOpaqueType(text="any", kind="interface"),
    "error": GoOpaqueType(text="error", kind="interface"),
    "comparable": GoOpaqueType(text="comparable", kind="interface"),
}

# Standard library types the loader knows without loading their package.
WELL_KNOWN_TYPES: Dict[str, GoTypeExpr] = {
    "time.Time": GoStructType(),
    "time.Duration": GoNamedType(name="int64"),
    "time.Month": GoNamedType(name="int"),
    "time.Weekday": GoNamedType(name="int"),
}

_LEADING_MARKERS_RE = re.compile(r"^(?:\*|\[[^\]]*\])+")


def is_exported(name: str) -> bool:
    return name[:1].isupper()


def is_predeclared(name: str) -> bool:
    return name in BASIC_TYPES or name in PREDECLARED_TYPES


def underlying(
    expr: GoTypeExpr,
    packages: Mapping[str, "Package"],
) -> Optional[GoTypeExpr]:
    """Return the underlying type of ``expr``.

    Basic types come back as an unqualified GoNamedType. Returns None for
    named types that cannot be resolved (unloaded packages, undefined
    names, or definition cycles).
    """
    seen: Set[str] = set()
    while isinstance(expr, GoNamedType):
        if expr.package_path is None:
            if expr.name in BASIC_TYPES:
                return expr
            return PREDECLARED_TYPES.get(expr.name)

        key = f"{expr.package_path}.{expr.name}"
        if key in seen:
            return None
        seen.add(key)

        if key in WELL_KNOWN_TYPES:
            expr = WELL_KNOWN_TYPES[key]
            continue

        package = packages.get(expr.package_path)
        spec = package.types.get(expr.name) if package is not None else None
        if spec is None:
            return None
        expr = spec.type_expr
    return expr


def type_string(expr: GoTypeExpr) -> str:
    """Render a type the way go/types prints it: ``*example/in.User``."""
    if isinstance(expr, GoNamedType):
        if expr.package_path is None:
            return expr.name
        return f"{expr.package_path}.{expr.name}"
    if isinstance(expr, GoPointerType):
        return "*" + type_string(expr.elem)
    if isinstance(expr, GoSliceType):
        return "[]" + type_string(expr.elem)
    if isinstance(expr, GoArrayType):
        return f"[{expr.length}]" + type_string(expr.elem)
    if isinstance(expr, GoMapType):
        return f"map[{type_string(expr.key)}]{type_string(expr.value)}"
    if isinstance(expr, GoStructType):
        parts = []
        for f in expr.fields:
            if f.embedded:
                parts.append(type_string(f.type_expr))
            else:
                parts.extend(f"{name} {type_string(f.type_expr)}" for name in f.names)
        return "struct{" + "; ".join(parts) + "}"
    return expr.text


def bare_name(text: str) -> str:
    """Last path component of a type string, leading ``*`` and ``[]`` removed.

    ``*github.com/acme/pkg.User`` -> ``User``, ``[]int`` -> ``int``.
    """
    name = text.split(".")[-1]
    return _LEADING_MARKERS_RE.sub("", name)
