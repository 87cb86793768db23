"""Translation between a validator's generic field names and an entity's attributes.

A mapping is closed: a generic name without a mapping entry is left out of
the read snapshot and any update to it is dropped. Neither case is an error.
"""

from collections.abc import Iterable, Mapping, MutableMapping
from types import MappingProxyType
from typing import Any


def read_field(entity: Any, name: str) -> Any:
    """Read a concrete field by name from a mapping or an attribute-based entity."""
    if isinstance(entity, Mapping):
        return entity[name]
    return getattr(entity, name)


def write_field(entity: Any, name: str, value: Any) -> None:
    """Write a concrete field by name on a mapping or an attribute-based entity."""
    if isinstance(entity, MutableMapping):
        entity[name] = value
    else:
        setattr(entity, name, value)


def build_read_snapshot(
    entity: Any,
    readable_fields: Iterable[str],
    mapped_readable_fields: Mapping[str, str],
) -> Mapping[str, Any]:
    """Expose the entity's mapped readable fields under their generic names.

    The result keeps the order of ``readable_fields`` and is read-only.
    """
    snapshot: dict[str, Any] = {}
    for generic_name in readable_fields:
        concrete_name = mapped_readable_fields.get(generic_name)
        if concrete_name is None:
            continue
        snapshot[generic_name] = read_field(entity, concrete_name)
    return MappingProxyType(snapshot)


def apply_writeback(
    entity: Any,
    updatable_fields: Iterable[str],
    mapped_updatable_fields: Mapping[str, str],
    updates: Mapping[str, Any],
) -> dict[str, Any]:
    """Write rule updates back onto the entity.

    Only generic names that are both updatable and mapped are written.

    Returns:
        The previous value of each concrete attribute whose value changed,
        keyed by the concrete name. Callers use the keys for auditing and
        the values to undo the writeback.
    """
    allowed = set(updatable_fields)
    changed: dict[str, Any] = {}
    for generic_name, value in updates.items():
        if generic_name not in allowed:
            continue
        concrete_name = mapped_updatable_fields.get(generic_name)
        if concrete_name is None:
            continue
        previous = read_field(entity, concrete_name)
        if previous == value:
            continue
        write_field(entity, concrete_name, value)
        changed.setdefault(concrete_name, previous)
    return changed


def revert_writeback(entity: Any, previous_values: Mapping[str, Any]) -> None:
    """Restore attributes captured by :func:`apply_writeback`."""
    for concrete_name, value in previous_values.items():
        write_field(entity, concrete_name, value)
