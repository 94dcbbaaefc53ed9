"""AST node definitions for Go source files.

Only the declarations the schema generator cares about are modelled:
imports, type declarations and constant declarations. Function and
variable declarations are skipped by the parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


@dataclass
class GoNamedType:
    """A type name, optionally qualified: ``User`` or ``time.Time``.

    ``package_path`` is filled in by the loader: the import path of the
    declaring package, or None for predeclared types such as ``int``.
    """

    name: str
    qualifier: Optional[str] = None
    package_path: Optional[str] = None


@dataclass
class GoPointerType:
    """*T"""

    elem: GoTypeExpr


@dataclass
class GoSliceType:
    """[]T"""

    elem: GoTypeExpr


@dataclass
class GoArrayType:
    """[N]T"""

    length: str
    elem: GoTypeExpr


@dataclass
class GoMapType:
    """map[K]V"""

    key: GoTypeExpr
    value: GoTypeExpr


@dataclass
class GoFieldDecl:
    """A field line inside a struct: ``A, B int `json:"a"` `` or an embedded type."""

    names: List[str]
    type_expr: GoTypeExpr
    embedded: bool = False
    tag: Optional[str] = None
    line: int = 0


@dataclass
class GoStructType:
    """struct { ... }"""

    fields: List[GoFieldDecl] = field(default_factory=list)


@dataclass
class GoOpaqueType:
    """Types the generator never looks inside: func, interface, chan and
    generic instantiations. Only their source text is kept."""

    text: str
    kind: str = "other"


GoTypeExpr = Union[
    GoNamedType,
    GoPointerType,
    GoSliceType,
    GoArrayType,
    GoMapType,
    GoStructType,
    GoOpaqueType,
]


@dataclass
class GoTypeSpec:
    """``type Name T`` or ``type Name = T``, grouped or not."""

    name: str
    type_expr: GoTypeExpr
    doc: Optional[str] = None
    line: int = 0
    is_alias: bool = False
    has_type_params: bool = False


@dataclass
class GoConstValue:
    """One initializer expression of a const spec."""

    text: str
    string_value: Optional[str] = None


@dataclass
class GoConstSpec:
    """One line of a const declaration: ``A, B T = x, y``."""

    names: List[str]
    type_expr: Optional[GoTypeExpr] = None
    values: List[GoConstValue] = field(default_factory=list)
    line: int = 0


@dataclass
class GoImport:
    path: str
    alias: Optional[str] = None

    @property
    def local_name(self) -> str:
        """Name the import is referred to by inside the file."""
        if self.alias:
            return self.alias
        parts = self.path.split("/")
        last = parts[-1]
        # Major version suffixes: github.com/x/y/v2 is package y.
        if re.fullmatch(r"v\d+", last) and len(parts) > 1:
            last = parts[-2]
        # gopkg.in style: gopkg.in/yaml.v3 is package yaml.
        return re.sub(r"\.v\d+$", "", last)


@dataclass
class GoFile:
    """Top-level parsed representation of a Go source file."""

    package_name: str
    path: str = ""
    imports: List[GoImport] = field(default_factory=list)
    type_specs: List[GoTypeSpec] = field(default_factory=list)
    const_specs: List[GoConstSpec] = field(default_factory=list)

    def import_map(self) -> Dict[str, str]:
        """Local import name -> import path."""
        return {imp.local_name: imp.path for imp in self.imports}
