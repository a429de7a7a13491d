"""Tests for scanning fields between differently shaped records."""

import logging
from dataclasses import dataclass, field
from typing import List

import pytest

from dynstruct import NotBuiltError, Record, Ref, ScanError, immutable, new, scan_into
from dynstruct.scan import scan_plan


@dataclass
class Target:
    Name: str = ""
    Age: str = "unknown"
    Score: float = 0.0
    Other: int = 7
    Tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FrozenTarget:
    Name: str = ""


class FrozenName(Record, immutable):
    Name: str


def make_source():
    s = new()
    s.string_field("Name", "name")
    s.int_field("Age", "age")
    s.float_field("Score", "score")
    s.bool_field("Missing", "missing")
    s.slice_field("Tags", "tags", str)
    s.build()
    s.set_field("Name", "Nigel")
    s.set_field("Age", 23)
    s.set_field("Score", 9.5)
    s.set_field("Missing", True)
    s.set_field("Tags", ["a"])
    return s


class TestScanInto:
    """Test partial, tolerant field copies."""

    def test_copies_matching_fields(self):
        """Test that only same-named, same-typed fields are copied."""
        target = Target()
        scan_into(make_source(), target)

        assert target.Name == "Nigel"
        assert target.Score == 9.5
        assert target.Tags == ["a"]
        # type differs, left alone
        assert target.Age == "unknown"
        # not in the source
        assert target.Other == 7

    def test_allowlist(self):
        target = Target()
        scan_into(make_source(), target, "Score", "Age", "Nope")
        assert target.Score == 9.5
        assert target.Name == ""
        assert target.Age == "unknown"

    def test_builder_method_and_ref_destination(self):
        target = Target()
        make_source().scan_into(Ref(target), "Name")
        assert target.Name == "Nigel"

    def test_builder_destination(self):
        dest = new()
        dest.string_field("Name", "name")
        dest.int_field("Age", "age")
        dest.string_field("Extra", "extra")
        dest.build()
        dest.set_field("Extra", "kept")

        scan_into(make_source(), dest)
        assert dest.get_field("Name") == "Nigel"
        assert dest.get_field("Age") == 23
        assert dest.get_field("Extra") == "kept"

    def test_record_source(self):
        source = make_source()
        dest = new()
        dest.int_field("Age", "age")
        dest.build()
        scan_into(source.as_record(), dest.as_ref())
        assert dest.get_field("Age") == 23

    def test_scanned_values_are_copies(self):
        source = make_source()
        target = Target()
        scan_into(source, target)
        target.Tags.append("b")
        assert source.get_field("Tags") == ["a"]

    def test_frozen_destinations_are_skipped(self):
        frozen_dc = FrozenTarget()
        scan_into(make_source(), frozen_dc)
        assert frozen_dc.Name == ""

        frozen_record = FrozenName("x")
        scan_into(make_source(), frozen_record)
        assert frozen_record.Name == "x"

    def test_private_fields_are_skipped(self):
        @dataclass
        class Src:
            _secret: str = "s"
            public: str = "p"

        @dataclass
        class Dst:
            _secret: str = ""
            public: str = ""

        dst = Dst()
        scan_into(Src(), dst)
        assert dst._secret == ""
        assert dst.public == "p"

    def test_mismatched_values_are_skipped(self, caplog):
        """Test that a dataclass holding a value of the wrong kind does not stop the scan."""

        @dataclass
        class Loose:
            Name: int = 0
            Age: int = 0

        class Strict(Record):
            Name: int
            Age: int

        dest = Strict(1, 2)
        with caplog.at_level(logging.DEBUG, logger="dynstruct"):
            scan_into(Loose(Name="oops", Age=30), dest)
        assert dest.Name == 1
        assert dest.Age == 30
        assert "field Name holds a mismatched value" in caplog.text

    def test_skipped_fields_are_logged(self, caplog):
        scan_plan.cache_clear()
        with caplog.at_level(logging.DEBUG, logger="dynstruct"):
            scan_into(make_source(), Target())
        assert "field Age differs in type" in caplog.text
        assert "has no field Missing" in caplog.text

    @pytest.mark.parametrize("source", [42, {"Name": "x"}, Target, Ref(Ref(Target()))])
    def test_source_must_be_a_record(self, source):
        with pytest.raises(ScanError, match="Source is not a struct"):
            scan_into(source, Target())

    @pytest.mark.parametrize("dest", [Target, {"Name": ""}, None, "Target"])
    def test_destination_must_be_a_record(self, dest):
        with pytest.raises(ScanError, match="Destination"):
            scan_into(make_source(), dest)

    def test_scan_error_is_type_error(self):
        with pytest.raises(TypeError):
            scan_into(make_source(), 1)

    def test_unbuilt_source(self):
        s = new()
        s.string_field("Name")
        with pytest.raises(NotBuiltError):
            scan_into(s, Target())
