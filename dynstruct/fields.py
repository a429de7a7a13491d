import dataclasses
import re
import types
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    Iterator,
    Optional,
    Tuple,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .exceptions import KindMismatchError, UnhashableKeyError, UnsupportedTypeError

# --- Tag keys and markers ---
DEFAULT_TAG = "json"
REQUIRED_TAG = "structs"
REQUIRED_MARKER = "required"
SKIP_NAME = "-"

_TAG_PAIR = re.compile(r'(\w+):"((?:[^"\\]|\\.)*)"')


class Tag:
    """Immutable, ordered key/value metadata attached to a field.

    Renders as a struct tag string, e.g. ``json:"name" structs:"required"``.
    """

    __slots__ = ("_items",)

    def __init__(self, *pairs: Tuple[str, str], **items: str) -> None:
        merged: Dict[str, str] = {}
        for key, value in pairs:
            merged[key] = value
        merged.update(items)
        object.__setattr__(self, "_items", tuple(merged.items()))

    @classmethod
    def parse(cls, text: str) -> "Tag":
        """Parse a ``key:"value"`` tag string."""
        return cls(*((k, v.replace('\\"', '"')) for k, v in _TAG_PAIR.findall(text)))

    def get(self, key: str, default: str = "") -> str:
        for k, v in self._items:
            if k == key:
                return v
        return default

    def with_items(self, *pairs: Tuple[str, str], **items: str) -> "Tag":
        return Tag(*self._items, *pairs, **items)

    def items(self) -> Tuple[Tuple[str, str], ...]:
        return self._items

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        return (k for k, _ in self._items)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Tag is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tag):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __str__(self) -> str:
        return " ".join(f'{k}:"{v}"' for k, v in self._items)

    def __repr__(self) -> str:
        return f"Tag({str(self)!r})"


class Kind(Enum):
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    SLICE = "slice"
    MAP = "map"
    STRUCT = "struct"
    PTR = "ptr"
    INTERFACE = "interface"
    INVALID = "invalid"


_PRIMITIVE_KINDS = {str: Kind.STRING, int: Kind.INT, float: Kind.FLOAT, bool: Kind.BOOL}


class Ref:
    """A single mutable cell, the pointer-like indirection of dynstruct.

    Accessors unwrap exactly one level of ``Ref`` before checking kinds.
    """

    __slots__ = ("value",)

    def __init__(self, value: Any = None) -> None:
        self.value = value

    def get(self) -> Any:
        return self.value

    def set(self, value: Any) -> None:
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ref):
            return NotImplemented
        return self.value == other.value

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Ref({self.value!r})"


# --- Type inspection helpers ---
def strip_annotated(tp: Any) -> Any:
    while get_origin(tp) is Annotated:
        tp = get_args(tp)[0]
    return tp


def is_record_class(tp: Any) -> bool:
    """True for record classes and dataclass classes."""
    if not isinstance(tp, type):
        return False
    return getattr(tp, "_is_record", False) or dataclasses.is_dataclass(tp)


def is_record_instance(obj: Any) -> bool:
    return not isinstance(obj, type) and is_record_class(type(obj))


def _optional_arg(tp: Any) -> Optional[Any]:
    """Return T for Optional[T], else None."""
    if get_origin(tp) not in (Union, types.UnionType):
        return None
    args = [a for a in get_args(tp) if a is not type(None)]
    if len(args) == 1 and len(get_args(tp)) == 2:
        return args[0]
    return None


def deref_type(tp: Any) -> Any:
    """Strip a single level of Optional[...] indirection."""
    tp = strip_annotated(tp)
    inner = _optional_arg(tp)
    return tp if inner is None else strip_annotated(inner)


def kind_of_type(tp: Any) -> Kind:
    tp = strip_annotated(tp)
    if tp is Any or tp is object:
        return Kind.INTERFACE
    if _optional_arg(tp) is not None:
        return Kind.PTR
    origin = get_origin(tp) or tp
    if origin is list:
        return Kind.SLICE
    if origin is dict:
        return Kind.MAP
    if tp in _PRIMITIVE_KINDS:
        return _PRIMITIVE_KINDS[tp]
    if is_record_class(tp):
        return Kind.STRUCT
    return Kind.INVALID


def kind_of_value(value: Any) -> Kind:
    if value is None:
        return Kind.INVALID
    if isinstance(value, Ref):
        return Kind.PTR
    # bool before int, bool is an int subclass
    if isinstance(value, bool):
        return Kind.BOOL
    for tp in (int, float, str):
        if isinstance(value, tp):
            return _PRIMITIVE_KINDS[tp]
    if isinstance(value, list):
        return Kind.SLICE
    if isinstance(value, dict):
        return Kind.MAP
    if is_record_instance(value):
        return Kind.STRUCT
    return Kind.INTERFACE


def _norm_origin(tp: Any) -> Any:
    origin = get_origin(tp)
    return Union if origin is types.UnionType else origin


def same_type(a: Any, b: Any) -> bool:
    """Structural type identity: `list[int]` and `List[int]` are the same type."""
    a, b = strip_annotated(a), strip_annotated(b)
    if a == b:
        return True
    origin = _norm_origin(a)
    if origin is None or origin != _norm_origin(b):
        return False
    args_a, args_b = get_args(a), get_args(b)
    return len(args_a) == len(args_b) and all(map(same_type, args_a, args_b))


def type_name(tp: Any) -> str:
    tp = strip_annotated(tp)
    if isinstance(tp, type) and not get_args(tp):
        return tp.__name__
    return repr(tp).replace("typing.", "")


def is_comparable(tp: Any) -> bool:
    """Whether values of ``tp`` can be used as mapping keys."""
    kind = kind_of_type(tp)
    if kind in (Kind.SLICE, Kind.MAP, Kind.INVALID):
        return False
    if kind is Kind.PTR:
        return is_comparable(deref_type(tp))
    if kind is Kind.STRUCT:
        tp = strip_annotated(tp)
        if getattr(tp, "_is_record", False):
            return bool(getattr(tp, "frozen", False))
        return tp.__hash__ is not None
    return True


def check_supported(tp: Any) -> None:
    """Raise if ``tp`` cannot be used as a field type."""
    kind = kind_of_type(tp)
    if kind is Kind.INVALID:
        raise UnsupportedTypeError(f"Unsupported field type {type_name(tp)}")
    args = get_args(strip_annotated(tp))
    if kind is Kind.PTR:
        check_supported(deref_type(tp))
    elif kind is Kind.SLICE and args:
        check_supported(args[0])
    elif kind is Kind.MAP and args:
        key_type, value_type = args
        check_supported(key_type)
        if not is_comparable(key_type):
            raise UnhashableKeyError(f"Map key type {type_name(key_type)} is not comparable")
        check_supported(value_type)


def zero_value(tp: Any) -> Any:
    kind = kind_of_type(tp)
    if kind is Kind.STRING:
        return ""
    if kind is Kind.INT:
        return 0
    if kind is Kind.FLOAT:
        return 0.0
    if kind is Kind.BOOL:
        return False
    if kind is Kind.SLICE:
        return []
    if kind is Kind.MAP:
        return {}
    if kind is Kind.STRUCT:
        tp = strip_annotated(tp)
        if getattr(tp, "_is_record", False):
            return tp()
        hints = get_type_hints(tp)
        return tp(
            **{f.name: zero_value(hints[f.name]) for f in dataclasses.fields(tp) if f.init}
        )
    return None


def assign_value(label: Any, tp: Any, value: Any) -> Any:
    """Check ``value`` against field type ``tp`` and return what should be stored.

    One level of :class:`Ref` is unwrapped first; deeper indirection fails
    the kind check.
    """
    if isinstance(value, Ref):
        value = value.value
    tp = strip_annotated(tp)
    field_kind = kind_of_type(tp)
    if field_kind is Kind.PTR:
        if value is None:
            return None
        tp = deref_type(tp)
        field_kind = kind_of_type(tp)
    if field_kind is Kind.INTERFACE:
        return value

    value_kind = kind_of_value(value)
    if value_kind is not field_kind:
        raise KindMismatchError(
            f"Cannot set field {label} with value of kind {value_kind.value}, "
            f"expected {field_kind.value}"
        )
    if field_kind is Kind.STRUCT and not isinstance(value, tp):
        raise KindMismatchError(
            f"Cannot set field {label} with value of type {type(value).__name__}, "
            f"expected {type_name(tp)}"
        )
    args = get_args(tp)
    if field_kind is Kind.SLICE and args:
        for i, item in enumerate(value):
            assign_value(f"{label}[{i}]", args[0], item)
    elif field_kind is Kind.MAP and len(args) == 2:
        for key, item in value.items():
            assign_value(f"{label} key {key!r}", args[0], key)
            assign_value(f"{label}[{key!r}]", args[1], item)
    return value


# --- Field descriptor ---
@dataclass(frozen=True)
class FieldSpec:
    """One field of a record: internal name, type, tag and required flag."""

    name: str
    type: Any
    tag: Tag = field(default_factory=Tag)
    required: bool = False
    anonymous: bool = False

    @property
    def kind(self) -> Kind:
        return kind_of_type(self.type)

    def enc_name(self, tag_key: str = DEFAULT_TAG) -> str:
        """External name under ``tag_key``, defaulting to the internal name."""
        return self.tag.get(tag_key) or self.name

    @classmethod
    def from_annotation(
        cls, name: str, hint: Any, extra: Optional[Dict[str, Any]] = None
    ) -> "FieldSpec":
        """Build a spec from a type hint.

        ``Annotated`` metadata may carry :class:`Tag` objects or tag strings;
        ``extra`` holds additional string tag items (dataclass field metadata).
        """
        tag = Tag()
        tp = hint
        if get_origin(hint) is Annotated:
            tp, *metadata = get_args(hint)
            for meta in metadata:
                if isinstance(meta, Tag):
                    tag = tag.with_items(*meta.items())
                elif isinstance(meta, str):
                    tag = tag.with_items(*Tag.parse(meta).items())
        if extra:
            tag = tag.with_items(*((k, v) for k, v in extra.items() if isinstance(v, str)))
        required = tag.get(REQUIRED_TAG) == REQUIRED_MARKER or bool(
            extra and extra.get(REQUIRED_MARKER) is True
        )
        return cls(name=name, type=tp, tag=tag, required=required)
