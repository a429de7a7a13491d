"""Tests for declaring fields and building structs."""

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, List, Optional

import pytest

from dynstruct import (
    AnonymousFieldError,
    DuplicateFieldError,
    FieldIndexError,
    FieldNotFoundError,
    FieldSpec,
    InvalidFieldNameError,
    NotBuiltError,
    Record,
    StructBuilder,
    Tag,
    UnhashableKeyError,
    UnsupportedTypeError,
    from_,
    new,
)


def person_builder() -> StructBuilder:
    s = new("json")
    s.string_field("Name", "name", required=True)
    s.int_field("Age", "age", required=True)
    s.bool_field("Is_cool", "is_cool")
    return s


class TestBuilding:
    """Test field declaration and the build lifecycle."""

    def test_field_counts(self):
        """Test pending and built field counts."""
        s = person_builder()
        assert s.pending_field_count() == 3
        assert s.field_count() == 0

        s.build()
        assert s.pending_field_count() == 3
        assert s.field_count() == 3

    def test_duplicate_field(self):
        """Test that a name can only be added once, whatever its type."""
        s = person_builder()
        with pytest.raises(DuplicateFieldError, match="Field Name already exists"):
            s.add_field("Name", "other_name", int)
        with pytest.raises(DuplicateFieldError):
            s.float_field("Age")
        assert s.pending_field_count() == 3

    def test_empty_name(self):
        with pytest.raises(InvalidFieldNameError, match="cannot be empty"):
            new().string_field("", "name")

    @pytest.mark.parametrize("name", ["_private", "class", "has space", "1st", "to_dict"])
    def test_unusable_names(self, name):
        """Test names that cannot become record attributes."""
        with pytest.raises(InvalidFieldNameError):
            new().int_field(name)

    def test_external_name_defaults_to_name(self):
        s = new()
        s.int_field("Age")
        s.build()
        spec = s.field(0)
        assert spec.enc_name("json") == "Age"
        assert str(spec.tag) == 'json:"Age"'
        assert spec.required is False

    def test_required_marker(self):
        """Test that required fields carry the flag and the tag marker."""
        s = person_builder().build()
        spec = s.field(0)
        assert spec.required is True
        assert str(spec.tag) == 'json:"name" structs:"required"'
        assert s.field(2).required is False

    def test_builder_tag_key(self):
        s = new("yaml")
        s.string_field("Name", "nm")
        s.build()
        assert s.field(0).enc_name("yaml") == "nm"
        assert s.field(0).enc_name("json") == "Name"

    def test_adding_field_resets_build(self):
        """Test that adding a field after building requires another build."""
        s = person_builder().build()
        assert s.built
        assert s.is_valid()

        s.float_field("Height", "height")
        assert not s.built
        assert not s.is_valid()
        assert s.field_count() == 0
        with pytest.raises(NotBuiltError):
            s.get_field("Name")

        s.build()
        assert s.field_count() == 4
        assert s.get_field("Height") == 0.0

    def test_build_resets_instance(self):
        """Test that every build starts from a zero-valued instance."""
        s = person_builder().build()
        s.set_field("Name", "Nigel")
        record_type = s.record_type

        s.build()
        assert s.record_type is record_type
        assert s.get_field("Name") == ""

    def test_rebuild(self, caplog):
        s = person_builder().build()
        s.set_field("Age", 23)
        with caplog.at_level(logging.DEBUG, logger="dynstruct"):
            s.rebuild()
        assert s.get_field("Age") == 0
        assert "Rebuilding struct" in caplog.text

    def test_equal_fields_share_record_type(self):
        first = person_builder().build()
        second = person_builder().build()
        assert first.record_type is second.record_type

    def test_field_order_is_index_order(self):
        s = person_builder().build()
        assert [s.field(i).name for i in range(s.field_count())] == ["Name", "Age", "Is_cool"]
        with pytest.raises(IndexError, match="Field 3 does not exist"):
            s.field(3)
        with pytest.raises(FieldIndexError):
            s.field(-1)

    def test_add_struct_field(self):
        s = new()
        s.add_struct_field(FieldSpec("Score", float, Tag(json="score"), required=True))
        s.build()
        spec = s.field_spec("Score")
        assert spec.enc_name() == "score"
        assert spec.required is True

    def test_add_struct_field_rejects_anonymous(self):
        s = new()
        with pytest.raises(AnonymousFieldError):
            s.add_struct_field(FieldSpec("Base", int, anonymous=True))
        with pytest.raises(InvalidFieldNameError):
            s.add_struct_field(FieldSpec("", int))

    def test_map_key_must_be_comparable(self):
        s = new()
        with pytest.raises(UnhashableKeyError, match="not comparable"):
            s.map_field("Lookup", "lookup", list, int)
        with pytest.raises(UnhashableKeyError):
            s.add_field("Nested", "nested", dict[dict, int])
        s.map_field("Counts", "counts", str, int)
        s.map_field("ById", "by_id", int, Optional[str])
        assert s.pending_field_count() == 2

    def test_unsupported_types(self):
        s = new()
        with pytest.raises(UnsupportedTypeError):
            s.add_field("Number", "number", complex)
        with pytest.raises(UnsupportedTypeError):
            s.slice_field("Numbers", "numbers", complex)
        assert s.pending_field_count() == 0

    def test_struct_field_needs_built_struct(self):
        address = new()
        address.string_field("City", "city")
        s = new()
        with pytest.raises(NotBuiltError):
            s.struct_field("Address", "address", address)

        address.build()
        s.struct_field("Address", "address", address)
        s.build()
        assert s.get_field("Address") == address.record_type()

    def test_any_and_optional_fields(self):
        s = new()
        s.add_field("Extra", "extra", Any)
        s.optional_field("Nick", "nick", str)
        s.slice_field("Tags", "tags", str)
        s.build()
        assert s.get_field("Extra") is None
        assert s.get_field("Nick") is None
        assert s.get_field("Tags") == []

    @pytest.mark.parametrize(
        "operation",
        [
            lambda s: s.get_field("Name"),
            lambda s: s.set_field("Name", "x"),
            lambda s: s.set_field_by_index(0, "x"),
            lambda s: s.field(0),
            lambda s: s.as_record(),
            lambda s: s.as_ref(),
            lambda s: s.deep_copy(),
            lambda s: s.marshal(),
            lambda s: s.unmarshal("{}"),
            lambda s: s.record_type,
        ],
    )
    def test_operations_need_build(self, operation):
        """Test that instance operations fail before the struct is built."""
        with pytest.raises(NotBuiltError):
            operation(person_builder())


@dataclass
class Person:
    name: str = field(default="", metadata={"json": "full_name"})
    age: int = 0
    secret: str = field(default="", metadata={"json": "-"})


class Point(Record):
    x: int
    y: Annotated[int, Tag(json="Y")]


class TestFrom:
    """Test creating builders from existing shapes."""

    def test_from_dataclass(self):
        s = from_(Person, "json")
        assert s.pending_field_count() == 2
        s.build()
        assert s.field(0).name == "name"
        assert s.field(0).enc_name("json") == "full_name"
        assert s.field(1).enc_name("json") == "age"
        assert s.field_count() == 2

    def test_from_instance_with_subset(self):
        s = from_(Person(name="Alice"), "json", "age")
        s.build()
        assert s.field_count() == 1
        assert s.field(0).name == "age"
        # values are not carried over
        assert s.get_field("age") == 0

    def test_subset_skips_excluded_field(self):
        s = from_(Person, "json", "secret", "name")
        assert s.pending_field_count() == 1

    def test_unknown_field(self):
        with pytest.raises(FieldNotFoundError, match="Field missing does not exist"):
            from_(Person, "json", "missing")

    def test_from_record_class(self):
        s = from_(Point)
        s.build()
        assert [s.field(i).enc_name() for i in range(2)] == ["x", "Y"]

    def test_from_builder(self):
        """Test that a builder copied from another one gets the same record type."""
        base = person_builder()
        copied = from_(base, "json")
        assert not copied.built
        copied.build()
        assert copied.record_type is base.build().record_type
        assert copied.field(0).required is True

    def test_from_unsupported_value(self):
        with pytest.raises(UnsupportedTypeError, match="Cannot create struct from value of type int"):
            from_(42)

    def test_from_list_field(self):
        @dataclass
        class Bag:
            items: List[int] = field(default_factory=list)

        s = from_(Bag).build()
        assert s.get_field("items") == []
