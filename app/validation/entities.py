"""Registry of entity types validators can be attached to.

Each type is known by a stable tag (stored in ``validatorables.validatorable_type``)
and maps to a model class. A type may declare scopes: other entities whose
attachments also govern it. An ``Account`` is validated by the validators
attached to itself and to its ``AccountType``. An ``AccountType`` attachment
only ever runs against accounts, so it maps ``Account`` fields and none of
its own.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.errors import UnknownEntityTypeError

# Returns (entity_type, entity_id) pairs; ids may be None for unset references
ScopeFn = Callable[[Any], list[tuple[str, int | None]]]


@dataclass(frozen=True)
class EntityType:
    tag: str
    model: type
    fields: frozenset[str]
    scopes: ScopeFn | None = None
    # Tags of entity types validated through attachments to this type. Such
    # attachments run against the governed entities only.
    governs: tuple[str, ...] = ()

    def scope_refs(self, entity: Any) -> list[tuple[str, int]]:
        if self.scopes is None:
            return []
        return [(tag, entity_id) for tag, entity_id in self.scopes(entity) if entity_id is not None]


_ENTITY_TYPES: dict[str, EntityType] = {}


def register_entity_type(
    tag: str,
    model: type,
    scopes: ScopeFn | None = None,
    governs: Iterable[str] = (),
    fields: Iterable[str] | None = None,
) -> EntityType:
    """Register an entity type. ``fields`` defaults to the model's mapped columns."""
    if fields is None:
        fields = inspect(model).columns.keys()
    entity_type = EntityType(
        tag=tag,
        model=model,
        fields=frozenset(fields),
        scopes=scopes,
        governs=tuple(governs),
    )
    _ENTITY_TYPES[tag] = entity_type
    return entity_type


def unregister_entity_type(tag: str) -> None:
    _ENTITY_TYPES.pop(tag, None)


def get_entity_type(tag: str) -> EntityType:
    """Raises UnknownEntityTypeError for unregistered tags."""
    entity_type = _ENTITY_TYPES.get(tag)
    if entity_type is None:
        raise UnknownEntityTypeError(f"Unknown entity type '{tag}'")
    return entity_type


def mappable_fields(tag: str) -> frozenset[str]:
    """Concrete fields an attachment to ``tag`` may map.

    A type that governs others is validated through them, so its attachments
    may only map fields every governed type has.
    """
    entity_type = get_entity_type(tag)
    if not entity_type.governs:
        return entity_type.fields
    governed = [get_entity_type(governed_tag).fields for governed_tag in entity_type.governs]
    return frozenset.intersection(*governed)


def load_entity(db: Session, tag: str, entity_id: int) -> Any | None:
    """Load an entity instance by type tag and id."""
    model = get_entity_type(tag).model
    return db.get(model, entity_id)


def register_builtin_entity_types() -> None:
    from app.db.models.account import Account, AccountType

    register_entity_type(
        "Account",
        Account,
        scopes=lambda account: [("AccountType", account.account_type_id)],
    )
    register_entity_type("AccountType", AccountType, governs=["Account"])


register_builtin_entity_types()
