import copy
import keyword
import logging
from typing import Any, List, Optional, Union

from . import encoding
from .exceptions import (
    AnonymousFieldError,
    DuplicateFieldError,
    FieldIndexError,
    FieldNotFoundError,
    FrozenRecordError,
    InvalidFieldNameError,
    KindMismatchError,
    NotBuiltError,
    ScanError,
    UnhashableKeyError,
    UnsupportedTypeError,
)
from .fields import (
    DEFAULT_TAG,
    REQUIRED_MARKER,
    REQUIRED_TAG,
    SKIP_NAME,
    FieldSpec,
    Ref,
    Tag,
    check_supported,
    deref_type,
    is_comparable,
    is_record_class,
    is_record_instance,
    kind_of_type,
    type_name,
)
from .record import RESERVED_NAMES, Record, make_record_type, schema_of
from .scan import scan_records

logger = logging.getLogger(__name__)


def _detached(value: Any) -> Any:
    if isinstance(value, Ref):
        return Ref(_detached(value.value))
    if isinstance(value, (list, dict)) or is_record_instance(value):
        return copy.deepcopy(value)
    return value


# --- Struct Builder Class ---
class StructBuilder:
    """Builds a record class at runtime from an ordered list of fields.

    Fields are added first, then :meth:`build` materializes the record class
    together with one zero-valued instance, which the accessors read and
    write. Adding a field after a build resets the builder, and every
    accessor raises :class:`NotBuiltError` until it is built again.

    Example:
        s = StructBuilder("json")
        s.string_field("Name", "name", required=True)
        s.int_field("Age", "age")
        s.build()
        s.set_field("Name", "Nigel")
        s.marshal()  # '{"name": "Nigel", "age": 0}'
    """

    def __init__(self, tag: str = DEFAULT_TAG) -> None:
        self.tag = tag
        self._pending: List[FieldSpec] = []
        self._record_type: Optional[type] = None
        self._instance: Optional[Record] = None
        self._built = False

    # --- Field Declaration ---
    def _check_new_name(self, name: str) -> None:
        if not name:
            raise InvalidFieldNameError("Field name cannot be empty")
        if (
            not name.isidentifier()
            or keyword.iskeyword(name)
            or name.startswith("_")
            or name in RESERVED_NAMES
        ):
            raise InvalidFieldNameError(f"Field name {name!r} cannot be used as a field")
        if any(spec.name == name for spec in self._pending):
            raise DuplicateFieldError(f"Field {name} already exists")

    def _append(self, spec: FieldSpec) -> None:
        # An already built struct has to be built again
        self._built = False
        self._pending.append(spec)

    def add_field(
        self, name: str, enc_name: str, type_: Any, required: bool = False
    ) -> None:
        """Add a field of type ``type_``, encoded as ``enc_name`` (or ``name``)."""
        self._check_new_name(name)
        check_supported(type_)
        pairs = [(self.tag, enc_name or name)]
        if required:
            pairs.append((REQUIRED_TAG, REQUIRED_MARKER))
        self._append(FieldSpec(name, type_, Tag(*pairs), required))

    def add_struct_field(self, spec: FieldSpec) -> None:
        """Add a ready-made field spec. Anonymous (embedded) fields are rejected."""
        self._check_new_name(spec.name)
        if spec.anonymous:
            raise AnonymousFieldError(f"Cannot add anonymous field {spec.name}")
        check_supported(spec.type)
        self._append(spec)

    def string_field(self, name: str, enc_name: str = "", required: bool = False) -> None:
        self.add_field(name, enc_name, str, required)

    def int_field(self, name: str, enc_name: str = "", required: bool = False) -> None:
        self.add_field(name, enc_name, int, required)

    def float_field(self, name: str, enc_name: str = "", required: bool = False) -> None:
        self.add_field(name, enc_name, float, required)

    def bool_field(self, name: str, enc_name: str = "", required: bool = False) -> None:
        self.add_field(name, enc_name, bool, required)

    def slice_field(
        self, name: str, enc_name: str, elem_type: Any, required: bool = False
    ) -> None:
        self.add_field(name, enc_name, list[elem_type], required)

    def map_field(
        self,
        name: str,
        enc_name: str,
        key_type: Any,
        value_type: Any,
        required: bool = False,
    ) -> None:
        if not is_comparable(key_type):
            raise UnhashableKeyError(f"Map key type {type_name(key_type)} is not comparable")
        self.add_field(name, enc_name, dict[key_type, value_type], required)

    def struct_field(
        self, name: str, enc_name: str, other: "StructBuilder", required: bool = False
    ) -> None:
        """Add a nested record field shaped like the built builder ``other``."""
        self.add_field(name, enc_name, other.record_type, required)

    def optional_field(
        self, name: str, enc_name: str, type_: Any, required: bool = False
    ) -> None:
        self.add_field(name, enc_name, Optional[type_], required)

    # --- Building ---
    def build(self) -> "StructBuilder":
        """Materialize the record class if needed and reset the instance.

        The instance is always replaced with a fresh zero-valued one.
        """
        if not self._built:
            self._record_type = make_record_type(tuple(self._pending))
            self._built = True
        self._instance = self._record_type()  # type: ignore[misc]
        return self

    def rebuild(self) -> "StructBuilder":
        logger.debug("Rebuilding struct with %d fields", len(self._pending))
        self._built = False
        return self.build()

    def _require_built(self, msg: str) -> Record:
        if not self._built or self._instance is None:
            raise NotBuiltError(msg)
        return self._instance

    @property
    def built(self) -> bool:
        return self._built

    def is_valid(self) -> bool:
        """Whether the struct is built and holds an instance.

        Adding a field after building makes it invalid again.
        """
        return self._built and self._instance is not None

    @property
    def record_type(self) -> type:
        self._require_built("Cannot get record type if struct has not been built")
        return self._record_type  # type: ignore[return-value]

    def field_count(self) -> int:
        """Number of fields of the built record, 0 if not built."""
        if not self._built:
            return 0
        return len(self._record_type._fields)  # type: ignore[union-attr]

    def pending_field_count(self) -> int:
        """Number of fields added so far, built or not."""
        return len(self._pending)

    # --- Accessors ---
    def field(self, index: int) -> FieldSpec:
        """Field spec at position ``index``."""
        instance = self._require_built("Cannot get field by index if struct has not been built")
        specs = instance.field_specs()
        if not 0 <= index < len(specs):
            raise FieldIndexError(f"Field {index} does not exist")
        return specs[index]

    def field_spec(self, name: str) -> FieldSpec:
        instance = self._require_built("Cannot get field by name if struct has not been built")
        try:
            return instance._specs[name]
        except KeyError:
            raise FieldNotFoundError(f"Field {name} does not exist") from None

    def get_field(self, name: str) -> Any:
        """Current value of field ``name``.

        List, dict and record values are returned as deep copies.
        """
        instance = self._require_built("Cannot get field if struct has not been built")
        if name not in instance._specs:
            raise FieldNotFoundError(f"Field {name} does not exist")
        value = instance._values[name]
        if isinstance(value, (list, dict)) or is_record_instance(value):
            return copy.deepcopy(value)
        return value

    def set_field(self, name: str, value: Any) -> None:
        """Set field ``name``. A :class:`Ref` value is unwrapped one level.

        List, dict and record values are copied into the instance.
        """
        instance = self._require_built("Cannot set field if struct has not been built")
        if name not in instance._specs:
            raise FieldNotFoundError(f"Field {name} does not exist")
        instance._set_field(name, _detached(value))

    def set_field_by_index(self, index: int, value: Any) -> None:
        instance = self._require_built("Cannot set field if struct has not been built")
        if not 0 <= index < len(instance._fields):
            raise FieldIndexError(f"Field {index} does not exist")
        instance._set_field(instance._fields[index], _detached(value))

    def as_record(self) -> Record:
        """The live instance. Treat it as read-only, it is not copied."""
        return self._require_built("Cannot get record if struct has not been built")

    def as_ref(self) -> Ref:
        """A :class:`Ref` to the live instance, for decoding or scanning into."""
        return Ref(self._require_built("Cannot get reference if struct has not been built"))

    # --- Copying ---
    def deep_copy(self) -> "StructBuilder":
        """Return a new, built builder holding an independent copy of the values.

        Useful to modify a struct without touching the original.
        """
        source = self._require_built("Cannot deep copy if struct has not been built")
        clone = StructBuilder(self.tag)
        for spec in self._pending:
            clone.add_struct_field(spec)
        clone.build()
        dest = clone.as_record()

        memo: dict = {}
        for spec in self._pending:
            dest_spec = dest._specs[spec.name]
            # holds while the clone is built from the same specs
            if kind_of_type(deref_type(spec.type)) is not kind_of_type(deref_type(dest_spec.type)):
                raise KindMismatchError(
                    f"Cannot deep copy field {spec.name}, because the types are different"
                )
            if not dest.is_writable():
                raise FrozenRecordError(
                    f"Cannot deep copy field {spec.name}, because it cannot be set"
                )
            dest._set_field(spec.name, copy.deepcopy(source._values[spec.name], memo))
        logger.debug("Deep copied struct with %d fields", len(self._pending))
        return clone

    def scan_into(self, dest: Any, *fields: str) -> None:
        """Copy matching fields of this struct into ``dest``, see :func:`scan_into`."""
        scan_into(self, dest, *fields)

    # --- Encoding ---
    def marshal(self, **dumps_kwargs: Any) -> str:
        """Encode the instance as JSON keyed by the external field names."""
        instance = self._require_built("Cannot marshal if struct has not been built")
        return encoding.marshal(instance, self.tag, **dumps_kwargs)

    def unmarshal(self, data: Union[str, bytes, bytearray]) -> None:
        """Decode JSON ``data`` into the instance in place."""
        instance = self._require_built("Cannot unmarshal if struct has not been built")
        encoding.unmarshal(data, instance, self.tag)

    def __repr__(self) -> str:
        names = ", ".join(spec.name for spec in self._pending)
        return f"StructBuilder(tag={self.tag!r}, fields=[{names}], built={self._built})"


def new(tag: str = DEFAULT_TAG) -> StructBuilder:
    """Create an empty struct builder."""
    return StructBuilder(tag)


def _source_specs(source: Any) -> tuple:
    if isinstance(source, StructBuilder):
        return tuple(source._pending)
    if is_record_class(source):
        return schema_of(source)
    if is_record_instance(source):
        return schema_of(type(source))
    raise UnsupportedTypeError(f"Cannot create struct from value of type {type(source).__name__}")


def from_(source: Any, tag: str = DEFAULT_TAG, *fields: str) -> StructBuilder:
    """Create an unbuilt builder with the fields of ``source``.

    ``source`` may be a builder, a record or dataclass class, or an instance of
    one. When ``fields`` are given only those are taken, in that order.
    Fields whose external name under ``tag`` is ``-`` are skipped.
    """
    specs = _source_specs(source)
    builder = StructBuilder(tag)
    if fields:
        by_name = {spec.name: spec for spec in specs}
        selected = []
        for name in fields:
            if name not in by_name:
                source_name = getattr(source, "__name__", type(source).__name__)
                raise FieldNotFoundError(f"Field {name} does not exist in struct {source_name}")
            selected.append(by_name[name])
        specs = tuple(selected)

    for spec in specs:
        enc_name = spec.tag.get(tag)
        if enc_name == SKIP_NAME:
            continue
        builder.add_field(spec.name, enc_name, spec.type, spec.required)
    return builder


def _resolve(obj: Any) -> Any:
    if isinstance(obj, StructBuilder):
        return obj._require_built("Cannot scan a struct that has not been built")
    if isinstance(obj, Ref):
        return obj.value
    return obj


def scan_into(source: Any, dest: Any, *fields: str) -> None:
    """Copy same-named, same-typed fields from ``source`` into ``dest``.

    ``source`` may be a built builder, a record or dataclass instance, or a
    :class:`Ref` to one; ``dest`` likewise. When ``fields`` are given only
    those names are considered. Fields that are missing in ``dest``, not
    settable there, or typed differently are skipped.
    """
    src = _resolve(source)
    if not is_record_instance(src):
        raise ScanError("Source is not a struct")
    dst = _resolve(dest)
    if not is_record_instance(dst):
        raise ScanError("Destination is not a reference to a struct")
    scan_records(src, dst, fields)


__all__ = [
    "StructBuilder",
    "from_",
    "new",
    "scan_into",
]
