"""Map Go struct fields to proto field types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Mapping, Optional

from go2proto.loader import Package
from go2proto.models import EnumRegistry, Field, to_proto_field_name
from go2proto.parser.go_ast import (
    GoArrayType,
    GoNamedType,
    GoPointerType,
    GoSliceType,
    GoStructType,
    GoTypeExpr,
)
from go2proto.typeinfo import bare_name, type_string, underlying

TIMESTAMP_TYPE = "google.protobuf.Timestamp"
TIMESTAMP_IMPORT = "google/protobuf/timestamp.proto"

# Go basic type -> proto scalar type. Anything else keeps its Go name.
SCALAR_TYPE_MAP: Dict[str, str] = {
    "int": "int64",
    "uint": "uint32",
    "float32": "float",
    "float64": "double",
    "string": "string",
}

ENUM_FIELD_TYPE = "string"


class TypeClass(Enum):
    SCALAR = auto()     # underlying type is a basic type
    SEQUENCE = auto()   # slice or array
    REFERENCE = auto()  # pointer, or a named type that cannot be resolved
    RECORD = auto()     # named struct type
    OPAQUE = auto()     # map, func, interface, chan, anonymous struct, ...


@dataclass(frozen=True)
class FieldType:
    kind: TypeClass
    text: str
    scalar: Optional[str] = None
    element: Optional[FieldType] = None


def normalize_scalar(name: str) -> str:
    return SCALAR_TYPE_MAP.get(name, name)


def classify(expr: GoTypeExpr, packages: Mapping[str, Package]) -> FieldType:
    """Classify a field type once, by its underlying type."""
    text = type_string(expr)
    under = underlying(expr, packages)

    if under is None:
        return FieldType(TypeClass.REFERENCE, text)
    if isinstance(under, GoNamedType):
        return FieldType(TypeClass.SCALAR, text, scalar=under.name)
    if isinstance(under, (GoSliceType, GoArrayType)):
        return FieldType(TypeClass.SEQUENCE, text, element=classify(under.elem, packages))
    if isinstance(under, GoPointerType):
        return FieldType(TypeClass.REFERENCE, text)
    if isinstance(under, GoStructType) and not isinstance(expr, GoStructType):
        return FieldType(TypeClass.RECORD, text)
    return FieldType(TypeClass.OPAQUE, text)


def reference_type_name(text: str) -> str:
    name = bare_name(text)
    if name == "Time":
        return TIMESTAMP_TYPE
    return normalize_scalar(name)


def proto_type_name(field_type: FieldType) -> str:
    if field_type.kind == TypeClass.SCALAR:
        return normalize_scalar(field_type.scalar)
    if field_type.kind == TypeClass.SEQUENCE:
        return proto_type_name(field_type.element)
    if field_type.kind in (TypeClass.REFERENCE, TypeClass.RECORD):
        return reference_type_name(field_type.text)
    return field_type.text


def enum_key(expr: GoTypeExpr) -> Optional[str]:
    """Bare name used to look a field type up in the enum registry."""
    while isinstance(expr, (GoPointerType, GoSliceType, GoArrayType)):
        expr = expr.elem
    if isinstance(expr, GoNamedType):
        return expr.name
    return None


class FieldMapper:
    """Builds proto fields against a fully populated enum registry."""

    def __init__(self, registry: EnumRegistry, packages: Mapping[str, Package]):
        self._registry = registry
        self._packages = packages

    def map_field(self, name: str, expr: GoTypeExpr, order: int) -> Field:
        field_type = classify(expr, self._packages)
        is_repeated = field_type.kind == TypeClass.SEQUENCE

        enum_def = self._registry.get(enum_key(expr))
        if enum_def is not None:
            return Field(
                name=to_proto_field_name(name),
                type_name=ENUM_FIELD_TYPE,
                order=order,
                is_repeated=is_repeated,
                enum_values=list(enum_def.values),
            )

        return Field(
            name=to_proto_field_name(name),
            type_name=proto_type_name(field_type),
            order=order,
            is_repeated=is_repeated,
        )
