import copy
import functools
import logging
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .exceptions import KindMismatchError
from .fields import same_type
from .record import is_writable, schema_of, write_field

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=256)
def scan_plan(
    source_cls: type, dest_cls: type, allowed: Optional[FrozenSet[str]] = None
) -> Tuple[str, ...]:
    """Names of the fields that can be copied from ``source_cls`` to ``dest_cls``.

    A field is planned when it passes the allowlist, the destination has a
    public field of the same name, and both declare the identical type.
    """
    dest_types: Dict[str, Any] = {s.name: s.type for s in schema_of(dest_cls)}
    plan = []
    for spec in schema_of(source_cls):
        if allowed is not None and spec.name not in allowed:
            continue
        if spec.name not in dest_types:
            logger.debug("scan: %s has no field %s, skipping", dest_cls.__name__, spec.name)
            continue
        if spec.name.startswith("_"):
            logger.debug("scan: field %s is not settable, skipping", spec.name)
            continue
        if not same_type(dest_types[spec.name], spec.type):
            logger.debug(
                "scan: field %s differs in type (%r != %r), skipping",
                spec.name,
                spec.type,
                dest_types[spec.name],
            )
            continue
        plan.append(spec.name)
    return tuple(plan)


def scan_records(source: Any, dest: Any, fields: Tuple[str, ...] = ()) -> None:
    """Copy planned fields from record ``source`` into record ``dest``."""
    plan = scan_plan(type(source), type(dest), frozenset(fields) if fields else None)
    if plan and not is_writable(dest, plan[0]):
        logger.debug("scan: %s instance is frozen, nothing copied", type(dest).__name__)
        return
    memo: Dict[int, Any] = {}
    for name in plan:
        try:
            write_field(dest, name, copy.deepcopy(getattr(source, name), memo))
        except KindMismatchError as exc:
            logger.debug("scan: field %s holds a mismatched value, skipping (%s)", name, exc)
