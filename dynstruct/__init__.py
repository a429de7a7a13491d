"""
dynstruct - Build record types at runtime

Add named, typed fields to a builder, build it, then read and write the
fields by name or position, deep-copy the record, scan matching fields into
other records and encode it to JSON.

Example:
    import dynstruct

    s = dynstruct.new("json")
    s.string_field("Name", "name", required=True)
    s.int_field("Age", "age")
    s.build()

    s.set_field("Name", "Nigel")
    s.set_field("Age", 23)
    copy = s.deep_copy()
    copy.set_field("Age", 24)  # s still holds 23
    s.marshal()  # '{"name": "Nigel", "age": 23}'
"""

import logging

__version__ = "1.0.0"
__license__ = "MIT"

from .core import StructBuilder, from_, new, scan_into
from .encoding import marshal, unmarshal
from .exceptions import (
    AnonymousFieldError,
    DecodeError,
    DuplicateFieldError,
    EncodeError,
    FieldIndexError,
    FieldNotFoundError,
    FrozenRecordError,
    InvalidFieldNameError,
    KindMismatchError,
    NotBuiltError,
    ScanError,
    StructError,
    UnhashableKeyError,
    UnsupportedTypeError,
)
from .fields import DEFAULT_TAG, FieldSpec, Kind, Ref, Tag
from .record import Record, RecordMeta, immutable
from .validators import ValidatorMap

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "StructBuilder",
    "new",
    "from_",
    "scan_into",
    "marshal",
    "unmarshal",
    "Record",
    "RecordMeta",
    "immutable",
    "FieldSpec",
    "Tag",
    "Kind",
    "Ref",
    "DEFAULT_TAG",
    "ValidatorMap",
    "StructError",
    "NotBuiltError",
    "InvalidFieldNameError",
    "DuplicateFieldError",
    "AnonymousFieldError",
    "UnsupportedTypeError",
    "UnhashableKeyError",
    "FieldIndexError",
    "FieldNotFoundError",
    "KindMismatchError",
    "FrozenRecordError",
    "ScanError",
    "EncodeError",
    "DecodeError",
]
