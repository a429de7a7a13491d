#!/usr/bin/env python3
"""
Walkthrough of dynstruct: build a struct at runtime, copy it, scan it into
a dataclass and round-trip it through JSON.
"""

import logging
from dataclasses import dataclass

import dynstruct
from dynstruct import ValidatorMap


@dataclass
class Summary:
    Name: str = ""
    Age: int = 0


def build_person() -> dynstruct.StructBuilder:
    address = dynstruct.new("json")
    address.string_field("City", "city")
    address.build()

    person = dynstruct.new("json")
    person.string_field("Name", "name", required=True)
    person.int_field("Age", "age", required=True)
    person.bool_field("Is_cool", "is_cool")
    person.slice_field("Tags", "tags", str)
    person.struct_field("Address", "address", address)
    person.build()

    person.set_field("Name", "Nigel")
    person.set_field("Age", 23)
    person.set_field("Is_cool", True)
    person.set_field("Tags", ["go", "python"])
    person.set_field("Address", address.record_type(City="Amsterdam"))
    return person


def main():
    print("=== dynstruct walkthrough ===\n")
    person = build_person()
    print(f"1. Built: {person.as_record()}")

    copy = person.deep_copy()
    copy.set_field("Name", "Nigel2")
    copy.set_field("Age", 24)
    print(f"2. Copy:     {copy.as_record()}")
    print(f"   Original: {person.as_record()}")

    summary = Summary()
    dynstruct.scan_into(person, summary)
    print(f"3. Scanned into dataclass: {summary}")

    data = person.marshal()
    print(f"4. JSON: {data}")
    restored = build_person().rebuild()
    restored.unmarshal(data)
    print(f"   Restored equal: {restored.as_record() == person.as_record()}")

    validators = ValidatorMap()
    validators.add("Age", lambda v: ValueError("too young") if v < 18 else None)
    print(f"5. Validate Age=12: {validators.validate('Age', 12)}")

    print("\n✓ Done")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    main()
