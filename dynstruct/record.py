import copy
import dataclasses
import functools
import inspect
import logging
from typing import Any, ClassVar, Dict, List, Tuple, cast, get_origin, get_type_hints

from .exceptions import FieldNotFoundError, FrozenRecordError
from .fields import FieldSpec, assign_value, zero_value

logger = logging.getLogger(__name__)


# --- Base Marker Class ---
class immutable:
    """Marker base class to make records immutable by default."""

    __slots__ = ()


# --- Metaclass ---
class RecordMeta(type):
    """Metaclass for Record that collects field specs from annotations or from
    a ``_field_specs`` sequence supplied at class creation time."""

    def __new__(mcls, name: str, bases: tuple, namespace: dict) -> Any:
        declared: Tuple[FieldSpec, ...] = tuple(namespace.pop("_field_specs", ()))
        namespace.setdefault("__slots__", ())

        if any(base is immutable for base in bases):
            namespace.setdefault("frozen", True)

        cls = super().__new__(mcls, name, bases, namespace)
        cls_any = cast(Any, cls)

        specs: Dict[str, FieldSpec] = {}
        defaults: Dict[str, Any] = {}
        for base in reversed(cls.__mro__[1:]):
            specs.update(getattr(base, "_specs", {}))
            defaults.update(getattr(base, "_defaults", {}))

        for field_name, hint in inspect.get_annotations(cls, eval_str=True).items():
            if field_name.startswith("_") or get_origin(hint) is ClassVar:
                continue
            specs[field_name] = FieldSpec.from_annotation(field_name, hint)
            if field_name in namespace:
                defaults[field_name] = namespace[field_name]
                delattr(cls, field_name)

        for spec in declared:
            specs[spec.name] = spec

        cls_any._specs = specs
        cls_any._fields = tuple(specs)
        cls_any._types = {n: s.type for n, s in specs.items()}
        cls_any._defaults = defaults
        return cls


# --- Main Record Class ---
class Record(metaclass=RecordMeta):
    """A record instance. Every field starts at its zero value."""

    __slots__ = ("_values", "_frozen")
    _is_record: ClassVar[bool] = True
    _specs: ClassVar[Dict[str, FieldSpec]] = {}
    _fields: ClassVar[Tuple[str, ...]] = ()
    _types: ClassVar[Dict[str, Any]] = {}
    _defaults: ClassVar[Dict[str, Any]] = {}
    frozen: ClassVar[bool] = False

    def __init__(self, *args: Any, frozen: Any = None, **kwargs: Any) -> None:
        object.__setattr__(
            self, "_values", {n: zero_value(s.type) for n, s in self._specs.items()}
        )
        object.__setattr__(self, "_frozen", False)

        if len(args) > len(self._fields):
            raise TypeError(
                f"Too many arguments for {self.__class__.__name__}. "
                f"Expected at most {len(self._fields)}, got {len(args)}."
            )
        invalid_fields = [k for k in kwargs if k not in self._specs]
        if invalid_fields:
            raise FieldNotFoundError(
                f"Invalid field(s) for {self.__class__.__name__}: {', '.join(invalid_fields)}. "  # noqa: E501
                f"Valid fields are: {', '.join(self._fields)}."
            )

        assigned: set[str] = set()
        for name, value in zip(self._fields, args):
            self._set_field(name, value)
            assigned.add(name)

        for name, value in kwargs.items():
            if name in assigned:
                raise TypeError(
                    f"Duplicate value for field '{name}' in {self.__class__.__name__}."
                )
            self._set_field(name, value)
            assigned.add(name)

        for name, default in self._defaults.items():
            if name not in assigned:
                value = default() if callable(default) else copy.deepcopy(default)
                self._set_field(name, value)

        if frozen is None:
            frozen = self.frozen
        object.__setattr__(self, "_frozen", bool(frozen))

    def _set_field(self, name: str, value: Any) -> None:
        """Kind-check ``value`` and store it."""
        if self._frozen:
            raise FrozenRecordError(
                f"Cannot modify frozen '{self.__class__.__name__}' instance"
            )
        self._values[name] = assign_value(name, self._specs[name].type, value)

    def __getattr__(self, name: str) -> Any:
        values = object.__getattribute__(self, "_values")
        try:
            return values[name]
        except KeyError:
            raise FieldNotFoundError(
                f"'{self.__class__.__name__}' has no field '{name}'"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in self._specs:
            raise FieldNotFoundError(
                f"'{self.__class__.__name__}' has no field '{name}'. "
                f"Valid fields are: {', '.join(self._fields)}."
            )
        self._set_field(name, value)

    def is_writable(self) -> bool:
        return not self._frozen

    # --- Equality ---
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return NotImplemented
        return self._values == cast(Record, other)._values

    def __hash__(self) -> int:
        """Return hash of record. Only available for frozen instances."""
        if not self._frozen:
            raise TypeError(f"Mutable '{self.__class__.__name__}' is unhashable")
        return hash(tuple(self._values[f] for f in self._fields))

    # --- Copying ---
    def __deepcopy__(self, memo: Dict[int, Any]) -> "Record":
        new_obj = self.__class__.__new__(self.__class__)
        memo[id(self)] = new_obj
        object.__setattr__(new_obj, "_values", copy.deepcopy(self._values, memo))
        object.__setattr__(new_obj, "_frozen", self._frozen)
        return new_obj

    # --- Serialization ---
    def to_dict(self, recursive: bool = True) -> Dict[str, Any]:
        """Convert the record to a dictionary keyed by internal field names."""
        d = {}
        for name in self._fields:
            value = self._values[name]
            if recursive:
                if isinstance(value, Record):
                    value = value.to_dict(recursive=True)
                elif isinstance(value, list):
                    value = [v.to_dict(recursive=True) if isinstance(v, Record) else v for v in value]
                elif isinstance(value, dict):
                    value = {
                        k: v.to_dict(recursive=True) if isinstance(v, Record) else v
                        for k, v in value.items()
                    }
            d[name] = value
        return d

    def __repr__(self) -> str:
        fields_str = ", ".join(f"{f}={self._values[f]!r}" for f in self._fields)
        return f"{self.__class__.__name__}({fields_str})"

    # --- Metadata Access ---
    @classmethod
    def field_specs(cls) -> Tuple[FieldSpec, ...]:
        return tuple(cls._specs.values())

    def get_field_names(self) -> List[str]:
        return list(self._fields)

    def get_field_values(self) -> List[Any]:
        return [self._values[f] for f in self._fields]


RESERVED_NAMES = frozenset(name for name in dir(Record) if not name.startswith("_"))


@functools.lru_cache(maxsize=None)
def make_record_type(specs: Tuple[FieldSpec, ...]) -> type:
    """Synthesize a record class for ``specs``.

    Equal spec sequences return the same class, so records built from equal
    field lists share a type.
    """
    logger.debug("Synthesizing record type with fields %s", [s.name for s in specs])
    return RecordMeta(
        "DynamicRecord",
        (Record,),
        {"_field_specs": specs, "__module__": __name__, "__qualname__": "DynamicRecord"},
    )


@functools.lru_cache(maxsize=None)
def schema_of(cls: type) -> Tuple[FieldSpec, ...]:
    """Ordered field specs of a record class or dataclass."""
    if isinstance(cls, RecordMeta):
        return cast(Any, cls).field_specs()
    hints = get_type_hints(cls, include_extras=True)
    return tuple(
        FieldSpec.from_annotation(f.name, hints.get(f.name, f.type), dict(f.metadata))
        for f in dataclasses.fields(cls)
    )


def is_writable(obj: Any, name: str) -> bool:
    if name.startswith("_"):
        return False
    if isinstance(obj, Record):
        return obj.is_writable()
    return not cast(Any, type(obj)).__dataclass_params__.frozen


def write_field(obj: Any, name: str, value: Any) -> None:
    if isinstance(obj, Record):
        obj._set_field(name, value)
    else:
        setattr(obj, name, value)


__all__ = [
    "Record",
    "RecordMeta",
    "immutable",
    "make_record_type",
    "schema_of",
]
