import pytest

from go2proto.field_mapper import (
    TIMESTAMP_TYPE,
    FieldMapper,
    TypeClass,
    classify,
    normalize_scalar,
)
from go2proto.loader import Package
from go2proto.models import EnumDef, EnumRegistry, to_proto_field_name
from go2proto.parser.go_ast import (
    GoArrayType,
    GoMapType,
    GoNamedType,
    GoPointerType,
    GoSliceType,
    GoStructType,
    GoTypeSpec,
)

PKG = "example/in"


def _local(name: str) -> GoNamedType:
    return GoNamedType(name=name, package_path=PKG)


def _basic(name: str) -> GoNamedType:
    return GoNamedType(name=name)


def _universe():
    specs = [
        GoTypeSpec(name="Status", type_expr=_basic("string")),
        GoTypeSpec(name="Level", type_expr=_basic("int")),
        GoTypeSpec(name="Tags", type_expr=GoSliceType(elem=_basic("string"))),
        GoTypeSpec(name="EventField", type_expr=GoStructType()),
        GoTypeSpec(name="Labels", type_expr=GoMapType(key=_basic("string"), value=_basic("string"))),
    ]
    package = Package(
        path=PKG,
        name="in",
        directory="",
        types={s.name: s for s in specs},
    )
    return {PKG: package}


def _mapper(*enums: EnumDef) -> FieldMapper:
    registry = EnumRegistry()
    for enum_def in enums:
        registry.register(enum_def)
    return FieldMapper(registry, _universe())


class TestScalarNormalization:
    @pytest.mark.parametrize(
        "go_type, proto_type",
        [
            ("int", "int64"),
            ("uint", "uint32"),
            ("float32", "float"),
            ("float64", "double"),
            ("string", "string"),
            ("bool", "bool"),
            ("int32", "int32"),
            ("uint64", "uint64"),
            ("byte", "byte"),
        ],
    )
    def test_basic_types(self, go_type, proto_type):
        assert normalize_scalar(go_type) == proto_type
        field = _mapper().map_field("Value", _basic(go_type), 1)
        assert field.type_name == proto_type
        assert field.is_repeated is False
        assert field.enum_values is None

    def test_named_scalar_uses_underlying_kind(self):
        field = _mapper().map_field("Level", _local("Level"), 1)
        assert field.type_name == "int64"


class TestSequences:
    def test_slice_of_scalar(self):
        field = _mapper().map_field("Items", GoSliceType(elem=_basic("string")), 2)
        assert field.type_name == "string"
        assert field.is_repeated is True
        assert field.order == 2

    def test_slice_of_pointer_to_struct(self):
        expr = GoSliceType(elem=GoPointerType(elem=_local("EventField")))
        field = _mapper().map_field("EventField", expr, 1)
        assert field.type_name == "EventField"
        assert field.is_repeated is True

    def test_array_is_repeated(self):
        field = _mapper().map_field("Scores", GoArrayType(length="3", elem=_basic("int")), 1)
        assert field.type_name == "int64"
        assert field.is_repeated is True

    def test_named_slice_maps_to_element_type(self):
        field = _mapper().map_field("Tags", _local("Tags"), 1)
        assert field.type_name == "string"
        assert field.is_repeated is True


class TestReferences:
    def test_pointer_to_scalar(self):
        field = _mapper().map_field("PrimitivePointer", GoPointerType(elem=_basic("int")), 1)
        assert field.type_name == "int64"
        assert field.is_repeated is False

    def test_named_struct(self):
        assert classify(_local("EventField"), _universe()).kind == TypeClass.RECORD
        field = _mapper().map_field("Field", _local("EventField"), 1)
        assert field.type_name == "EventField"

    def test_pointer_to_struct(self):
        expr = GoPointerType(elem=_local("EventField"))
        assert classify(expr, _universe()).kind == TypeClass.REFERENCE
        assert _mapper().map_field("Field", expr, 1).type_name == "EventField"

    def test_unresolved_type_uses_bare_name(self):
        expr = GoNamedType(name="UUID", qualifier="uuid", package_path="github.com/google/uuid")
        assert classify(expr, _universe()).kind == TypeClass.REFERENCE
        assert _mapper().map_field("ID", expr, 1).type_name == "UUID"

    def test_time_becomes_timestamp(self):
        time_type = GoNamedType(name="Time", qualifier="time", package_path="time")
        assert _mapper().map_field("CreatedAt", time_type, 1).type_name == TIMESTAMP_TYPE
        pointer = GoPointerType(elem=time_type)
        assert _mapper().map_field("UpdatedAt", pointer, 2).type_name == TIMESTAMP_TYPE

    def test_duration_is_scalar(self):
        duration = GoNamedType(name="Duration", qualifier="time", package_path="time")
        assert _mapper().map_field("Timeout", duration, 1).type_name == "int64"


class TestFallback:
    def test_map_is_kept_verbatim(self):
        expr = GoMapType(key=_basic("string"), value=_basic("int"))
        field = _mapper().map_field("Counts", expr, 1)
        assert classify(expr, _universe()).kind == TypeClass.OPAQUE
        assert field.type_name == "map[string]int"
        assert field.is_repeated is False

    def test_named_map_uses_full_type_string(self):
        field = _mapper().map_field("Labels", _local("Labels"), 1)
        assert field.type_name == "example/in.Labels"

    def test_anonymous_struct_is_kept_verbatim(self):
        expr = GoStructType()
        assert _mapper().map_field("Meta", expr, 1).type_name == "struct{}"

    def test_any(self):
        assert _mapper().map_field("Payload", _basic("any"), 1).type_name == "any"


class TestEnums:
    STATUS = EnumDef(name="Status", values=["active", "inactive"])

    def test_enum_field_is_string_with_values(self):
        field = _mapper(self.STATUS).map_field("Status", _local("Status"), 3)
        assert field.type_name == "string"
        assert field.enum_values == ["active", "inactive"]
        assert field.is_repeated is False

    def test_enum_takes_priority_over_scalar(self):
        level = EnumDef(name="Level", values=["LevelLow", "LevelHigh"])
        field = _mapper(level).map_field("Level", _local("Level"), 1)
        assert field.type_name == "string"
        assert field.enum_values == ["LevelLow", "LevelHigh"]

    def test_slice_and_pointer_of_enum(self):
        mapper = _mapper(self.STATUS)
        repeated = mapper.map_field("History", GoSliceType(elem=_local("Status")), 1)
        assert repeated.type_name == "string"
        assert repeated.is_repeated is True
        assert repeated.enum_values == ["active", "inactive"]

        pointer = mapper.map_field("Previous", GoPointerType(elem=_local("Status")), 2)
        assert pointer.enum_values == ["active", "inactive"]

    def test_matched_by_bare_name_across_packages(self):
        other = GoNamedType(name="Status", qualifier="other", package_path="example/other")
        field = _mapper(self.STATUS).map_field("Status", other, 1)
        assert field.type_name == "string"

    def test_enum_values_are_copied(self):
        field = _mapper(self.STATUS).map_field("Status", _local("Status"), 1)
        field.enum_values.append("deleted")
        assert self.STATUS.values == ["active", "inactive"]

    def test_unregistered_scalar_is_not_enum(self):
        field = _mapper().map_field("Status", _local("Status"), 1)
        assert field.type_name == "string"
        assert field.enum_values is None


class TestFieldNames:
    @pytest.mark.parametrize(
        "go_name, proto_name",
        [
            ("ID", "id"),
            ("Rank", "rank"),
            ("ItemType", "itemType"),
            ("EventFieldItemID", "eventFieldItemID"),
            ("URL", "uRL"),
        ],
    )
    def test_to_proto_field_name(self, go_name, proto_name):
        assert to_proto_field_name(go_name) == proto_name


class TestEnumRegistry:
    def test_first_registration_wins(self):
        registry = EnumRegistry()
        registry.register(EnumDef(name="Status", values=["active"]))
        registry.register(EnumDef(name="Status", values=["open", "closed"]))
        registry.register(EnumDef(name="Kind", values=["digital"]))
        assert registry.get("Status").values == ["active"]
        assert registry.get("Missing") is None
        assert registry.get(None) is None
        assert [e.name for e in registry.sorted()] == ["Kind", "Status"]
