"""Build the proto schema model from loaded Go packages.

Two passes over the annotated type declarations:

1. Scalar types (``type Status string``) with typed constants in the same
   package become enums in the registry.
2. Struct types become messages; their fields are mapped against the
   now complete registry.

Declarations that fit neither shape are left out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Set

from go2proto.constants import gather_const_values
from go2proto.field_mapper import FieldMapper
from go2proto.loader import Package
from go2proto.models import EnumDef, EnumRegistry, Message, SchemaModel
from go2proto.parser.go_ast import GoFile, GoNamedType, GoStructType, GoTypeSpec
from go2proto.scanner import AnnotationScanner
from go2proto.typeinfo import is_exported, underlying


@dataclass
class Declaration:
    """An annotated type spec together with where it was declared."""

    package: Package
    file: GoFile
    spec: GoTypeSpec


def build_model(packages: List[Package], name_filter: str = "") -> SchemaModel:
    """Collect messages and enums from the annotated declarations in ``packages``.

    ``name_filter`` keeps only declarations whose name contains it,
    ignoring case.
    """
    universe = _universe(packages)
    scanner = AnnotationScanner(packages)
    selected = list(_select_declarations(packages, scanner, name_filter.lower()))

    registry = discover_enums(selected, universe)
    messages = discover_messages(selected, registry, universe)

    messages.sort(key=lambda m: m.name)
    return SchemaModel(messages=messages, enums=registry.sorted())


def discover_enums(
    selected: List[Declaration],
    universe: Dict[str, Package],
) -> EnumRegistry:
    registry = EnumRegistry()
    const_values: Dict[str, Dict[str, List[str]]] = {}

    for decl in selected:
        package, spec = decl.package, decl.spec
        if not isinstance(underlying(spec.type_expr, universe), GoNamedType):
            continue
        if package.path not in const_values:
            const_values[package.path] = gather_const_values(package.files)
        values = const_values[package.path].get(spec.name)
        if not values:
            continue
        registry.register(EnumDef(name=spec.name, values=list(values)))

    return registry


def discover_messages(
    selected: List[Declaration],
    registry: EnumRegistry,
    universe: Dict[str, Package],
) -> List[Message]:
    mapper = FieldMapper(registry, universe)
    messages: List[Message] = []
    seen: Set[str] = set()

    for decl in selected:
        spec = decl.spec
        struct = underlying(spec.type_expr, universe)
        if not isinstance(struct, GoStructType):
            continue
        if spec.name in seen:
            continue
        seen.add(spec.name)
        messages.append(build_message(spec.name, struct, mapper, decl.file.path))

    return messages


def build_message(
    name: str,
    struct: GoStructType,
    mapper: FieldMapper,
    source_file: str = "",
) -> Message:
    """Map the exported fields of ``struct``, numbered 1.. in declaration order."""
    msg = Message(name=name, source_file=source_file)
    order = 0
    for field_decl in struct.fields:
        for field_name in field_decl.names:
            if not is_exported(field_name):
                continue
            order += 1
            msg.fields.append(mapper.map_field(field_name, field_decl.type_expr, order))
    return msg


def _select_declarations(
    packages: List[Package],
    scanner: AnnotationScanner,
    name_filter: str,
) -> Iterator[Declaration]:
    for package in packages:
        for go_file in package.files:
            for spec in go_file.type_specs:
                if spec.has_type_params:
                    continue
                if not scanner.is_annotated(package.path, spec.name):
                    continue
                if name_filter and name_filter not in spec.name.lower():
                    continue
                yield Declaration(package, go_file, spec)


def _universe(packages: List[Package]) -> Dict[str, Package]:
    universe: Dict[str, Package] = {}
    for package in packages:
        universe.update(package.universe)
        universe.setdefault(package.path, package)
    return universe

