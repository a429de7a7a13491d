"""JSON encoding of records.

Keys are the external names recorded under a tag key (``json`` by default);
fields whose external name is ``-`` are left out. Decoding fills an existing
record in place: unknown keys are ignored, absent keys keep the current value
and keys without an exact match are matched case-insensitively.
"""

import json
import logging
from typing import Any, Dict, Union, get_args

from .exceptions import DecodeError, EncodeError
from .fields import (
    DEFAULT_TAG,
    SKIP_NAME,
    FieldSpec,
    Kind,
    Ref,
    deref_type,
    is_record_instance,
    kind_of_type,
    strip_annotated,
    type_name,
    zero_value,
)
from .record import schema_of, write_field

logger = logging.getLogger(__name__)

_UNCHANGED = object()

_JSON_TYPES = {
    str: "string",
    bool: "bool",
    int: "number",
    float: "number",
    list: "array",
    dict: "object",
}


def _json_type(raw: Any) -> str:
    return _JSON_TYPES.get(type(raw), type(raw).__name__)


# --- Encoding ---
def encode(record: Any, tag: str = DEFAULT_TAG) -> Dict[str, Any]:
    """Convert a record into a JSON-ready dict keyed by external names."""
    out = {}
    for spec in schema_of(type(record)):
        key = spec.enc_name(tag)
        if key == SKIP_NAME:
            continue
        out[key] = _encode_value(getattr(record, spec.name), tag)
    return out


def _encode_value(value: Any, tag: str) -> Any:
    if is_record_instance(value):
        return encode(value, tag)
    if isinstance(value, Ref):
        return _encode_value(value.value, tag)
    if isinstance(value, list):
        return [_encode_value(v, tag) for v in value]
    if isinstance(value, dict):
        return {_encode_key(k): _encode_value(v, tag) for k, v in value.items()}
    return value


def _encode_key(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, int) and not isinstance(key, bool):
        return str(key)
    raise EncodeError(f"Unsupported map key type {type(key).__name__}")


def marshal(record: Any, tag: str = DEFAULT_TAG, **dumps_kwargs: Any) -> str:
    """Serialize ``record`` to a JSON string.

    Extra keyword arguments go to :func:`json.dumps`. NaN and infinities are
    rejected unless ``allow_nan=True`` is passed.
    """
    if isinstance(record, Ref):
        record = record.value
    payload = encode(record, tag)
    dumps_kwargs.setdefault("allow_nan", False)
    try:
        return json.dumps(payload, **dumps_kwargs)
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"Cannot encode {type(record).__name__}: {exc}") from exc


# --- Decoding ---
def unmarshal(data: Union[str, bytes, bytearray], target: Any, tag: str = DEFAULT_TAG) -> None:
    """Decode JSON ``data`` into ``target`` (a record or a Ref to one) in place."""
    record = target.value if isinstance(target, Ref) else target
    if not is_record_instance(record):
        raise DecodeError(f"Cannot unmarshal into non-record {type(record).__name__}")
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Invalid UTF-8 input: {exc}") from exc
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Invalid JSON: {exc}") from exc
    if payload is None:
        return
    if not isinstance(payload, dict):
        raise DecodeError(
            f"Cannot unmarshal {_json_type(payload)} into {type(record).__name__}"
        )
    decode_into(record, payload, tag)


def decode_into(record: Any, payload: Dict[str, Any], tag: str = DEFAULT_TAG) -> None:
    exact: Dict[str, FieldSpec] = {}
    folded: Dict[str, FieldSpec] = {}
    for spec in schema_of(type(record)):
        key = spec.enc_name(tag)
        if key == SKIP_NAME:
            continue
        exact[key] = spec
        folded.setdefault(key.lower(), spec)

    for key, raw in payload.items():
        spec = exact.get(key) or folded.get(key.lower())
        if spec is None:
            logger.debug("Ignoring unknown key %r for %s", key, type(record).__name__)
            continue
        value = _decode_value(spec.type, raw, getattr(record, spec.name), tag, spec.name)
        if value is not _UNCHANGED:
            write_field(record, spec.name, value)


def _decode_value(tp: Any, raw: Any, current: Any, tag: str, label: str) -> Any:
    tp = strip_annotated(tp)
    kind = kind_of_type(tp)
    if raw is None:
        if kind in (Kind.PTR, Kind.INTERFACE):
            return None
        if kind in (Kind.SLICE, Kind.MAP):
            return zero_value(tp)
        return _UNCHANGED

    if kind is Kind.PTR:
        return _decode_value(deref_type(tp), raw, current, tag, label)
    if kind is Kind.INTERFACE:
        return raw
    if kind is Kind.STRING and isinstance(raw, str):
        return raw
    if kind is Kind.BOOL and isinstance(raw, bool):
        return raw
    # bool is an int subclass, it never decodes into a number
    is_number = isinstance(raw, (int, float)) and not isinstance(raw, bool)
    if kind is Kind.INT and is_number and isinstance(raw, int):
        return raw
    if kind is Kind.FLOAT and is_number:
        return float(raw)

    args = get_args(tp)
    if kind is Kind.SLICE and isinstance(raw, list):
        elem_type = args[0] if args else Any
        items = []
        for i, item in enumerate(raw):
            value = _decode_value(elem_type, item, None, tag, f"{label}[{i}]")
            items.append(zero_value(elem_type) if value is _UNCHANGED else value)
        return items
    if kind is Kind.MAP and isinstance(raw, dict):
        key_type, value_type = args if args else (Any, Any)
        out = {}
        for k, item in raw.items():
            value = _decode_value(value_type, item, None, tag, f"{label}[{k!r}]")
            out[_decode_key(key_type, k, label)] = (
                zero_value(value_type) if value is _UNCHANGED else value
            )
        return out
    if kind is Kind.STRUCT and isinstance(raw, dict):
        target = current if isinstance(current, tp) else zero_value(tp)
        decode_into(target, raw, tag)
        return target

    raise DecodeError(
        f"Cannot unmarshal {_json_type(raw)} into field {label} of type {type_name(tp)}"
    )


def _decode_key(key_type: Any, key: str, label: str) -> Any:
    kind = kind_of_type(key_type)
    if kind in (Kind.STRING, Kind.INTERFACE):
        return key
    if kind is Kind.INT:
        try:
            return int(key)
        except ValueError:
            raise DecodeError(f"Invalid int map key {key!r} in field {label}") from None
    raise DecodeError(f"Unsupported map key type {type_name(key_type)} in field {label}")
