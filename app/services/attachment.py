from collections.abc import Iterable, Mapping

from sqlalchemy.orm import Session

import app.repositories.validator as validator_repo
import app.repositories.validatorable as validatorable_repo
from app.db.models.validator import Validator as ValidatorModel
from app.db.models.validator import Validatorable as ValidatorableModel
from app.errors import (
    AlreadyAttachedError,
    MappingKeyNotInValidatorError,
    NotFoundError,
    UnknownEntityFieldError,
)
from app.validation.entities import get_entity_type, load_entity, mappable_fields


def _check_mapping(
    mapping: Mapping[str, str],
    declared: Iterable[str],
    entity_type: str,
    direction: str,
) -> None:
    """Mapping keys must be declared by the validator; values must be mappable entity fields."""
    outside = sorted(set(mapping) - set(declared))
    if outside:
        raise MappingKeyNotInValidatorError(
            f"Mapped {direction} fields not declared by the validator: {', '.join(outside)}"
        )
    known = mappable_fields(entity_type)
    unknown = sorted(concrete for concrete in mapping.values() if concrete not in known)
    if unknown:
        raise UnknownEntityFieldError(
            f"{entity_type} has no fields named: {', '.join(unknown)}"
        )


def _check_mappings(
    validator: ValidatorModel,
    entity_type: str,
    mapped_readable_fields: Mapping[str, str],
    mapped_updatable_fields: Mapping[str, str],
) -> None:
    _check_mapping(mapped_readable_fields, validator.readable_fields, entity_type, "readable")
    _check_mapping(mapped_updatable_fields, validator.updatable_fields, entity_type, "updatable")


def _get_validator(db: Session, validator_id: int) -> ValidatorModel:
    validator = validator_repo.get_validator_by_id(db, validator_id)
    if not validator:
        raise NotFoundError("Validator not found")
    return validator


def attach_validator(
    db: Session,
    validator_id: int,
    entity_type: str,
    entity_id: int,
    mapped_readable_fields: Mapping[str, str] | None = None,
    mapped_updatable_fields: Mapping[str, str] | None = None,
) -> ValidatorableModel:
    """
    Attach a validator to an entity with its own field mapping.

    Raises:
        NotFoundError: If the validator or the entity doesn't exist
        UnknownEntityTypeError: If the entity type is not registered
        AlreadyAttachedError: If the validator is already attached to the entity
        MappingKeyNotInValidatorError: If a mapping key is not declared by the validator
        UnknownEntityFieldError: If a mapped field is not a column of the entity
    """
    mapped_readable_fields = dict(mapped_readable_fields or {})
    mapped_updatable_fields = dict(mapped_updatable_fields or {})

    validator = _get_validator(db, validator_id)
    get_entity_type(entity_type)
    if load_entity(db, entity_type, entity_id) is None:
        raise NotFoundError(f"{entity_type} with id {entity_id} not found")

    if validatorable_repo.get_attachment(db, validator_id, entity_type, entity_id):
        raise AlreadyAttachedError(
            f"Validator '{validator.slug}' is already attached to {entity_type} {entity_id}"
        )

    _check_mappings(validator, entity_type, mapped_readable_fields, mapped_updatable_fields)

    return validatorable_repo.create_attachment(
        db,
        validator_id=validator_id,
        entity_type=entity_type,
        entity_id=entity_id,
        mapped_readable_fields=mapped_readable_fields,
        mapped_updatable_fields=mapped_updatable_fields,
    )


def update_attachment(
    db: Session,
    validator_id: int,
    entity_type: str,
    entity_id: int,
    mapped_readable_fields: Mapping[str, str] | None = None,
    mapped_updatable_fields: Mapping[str, str] | None = None,
) -> ValidatorableModel:
    """
    Replace the field mappings of an existing attachment.

    A mapping left as None keeps its current value.

    Raises:
        NotFoundError: If the attachment doesn't exist
        MappingKeyNotInValidatorError: If a mapping key is not declared by the validator
        UnknownEntityFieldError: If a mapped field is not a column of the entity
    """
    validator = _get_validator(db, validator_id)
    attachment = validatorable_repo.get_attachment(db, validator_id, entity_type, entity_id)
    if not attachment:
        raise NotFoundError("Attachment not found")

    readable = (
        dict(mapped_readable_fields)
        if mapped_readable_fields is not None
        else attachment.mapped_readable_fields
    )
    updatable = (
        dict(mapped_updatable_fields)
        if mapped_updatable_fields is not None
        else attachment.mapped_updatable_fields
    )
    _check_mappings(validator, entity_type, readable, updatable)

    return validatorable_repo.update_attachment_mapping(
        db,
        validator_id=validator_id,
        entity_type=entity_type,
        entity_id=entity_id,
        mapped_readable_fields=readable,
        mapped_updatable_fields=updatable,
    )


def detach_validator(db: Session, validator_id: int, entity_type: str, entity_id: int) -> bool:
    """
    Detach a validator from an entity.

    Idempotent: detaching something that is not attached is not an error.
    Returns whether an attachment was removed.
    """
    return validatorable_repo.delete_attachment(db, validator_id, entity_type, entity_id)


def detach_all_for(db: Session, entity_type: str, entity_id: int) -> int:
    """Remove every attachment of an entity that is being deleted. Does not commit."""
    return validatorable_repo.delete_attachments_for(db, entity_type, entity_id)


def find_attachments_for(db: Session, entity_type: str, entity_id: int) -> list[ValidatorableModel]:
    return validatorable_repo.find_attachments_for(db, entity_type, entity_id)


def list_attachments_for_validator(db: Session, validator_id: int) -> list[ValidatorableModel]:
    _get_validator(db, validator_id)
    return validatorable_repo.get_attachments_by_validator_id(db, validator_id)
