from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


def to_proto_field_name(name: str) -> str:
    """Lower-case a Go field name for proto: ``ID`` -> ``id``, ``ItemType`` -> ``itemType``."""
    if len(name) == 2:
        return name.lower()
    return name[:1].lower() + name[1:]


@dataclass
class Field:
    name: str
    type_name: str
    order: int
    is_repeated: bool = False
    enum_values: Optional[List[str]] = None


@dataclass
class Message:
    name: str
    fields: List[Field] = field(default_factory=list)
    source_file: str = ""


@dataclass
class EnumDef:
    """A Go scalar type together with the values of its typed constants."""

    name: str
    values: List[str] = field(default_factory=list)


class EnumRegistry:
    """Bare type name -> EnumDef for one generation run.

    Filled while scanning scalar declarations, then only read while
    messages are built. The first registration of a name wins.
    """

    def __init__(self) -> None:
        self._enums: Dict[str, EnumDef] = {}

    def register(self, enum_def: EnumDef) -> None:
        self._enums.setdefault(enum_def.name, enum_def)

    def get(self, name: Optional[str]) -> Optional[EnumDef]:
        if name is None:
            return None
        return self._enums.get(name)

    def sorted(self) -> List[EnumDef]:
        return sorted(self._enums.values(), key=lambda e: e.name)


@dataclass
class SchemaModel:
    """Everything the proto generator needs, sorted by name."""

    messages: List[Message] = field(default_factory=list)
    enums: List[EnumDef] = field(default_factory=list)
