import re
from collections.abc import Iterable
from typing import Any

from sqlalchemy.orm import Session

import app.repositories.validator as validator_repo
import app.repositories.validatorable as validatorable_repo
from app.db.models.validator import Validator as ValidatorModel
from app.errors import (
    DomainValidationError,
    DuplicateSlugError,
    InvalidFieldListError,
    MappingKeyNotInValidatorError,
    NotFoundError,
)
from app.validation.rules import resolve_callback

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_UPDATABLE_COLUMNS = (
    "name",
    "slug",
    "description",
    "approver_description",
    "readable_fields",
    "updatable_fields",
    "callback",
)


def validate_field_list(fields: Iterable[str], label: str) -> list[str]:
    """Reject empty or duplicate field names, keeping the declared order."""
    seen: set[str] = set()
    result: list[str] = []
    for name in fields:
        if not isinstance(name, str) or not name.strip():
            raise InvalidFieldListError(f"{label} must not contain empty names")
        if name in seen:
            raise InvalidFieldListError(f"{label} contains duplicate field '{name}'")
        seen.add(name)
        result.append(name)
    return result


def _validate_slug(slug: str) -> None:
    if not SLUG_PATTERN.match(slug):
        raise DomainValidationError(
            f"Slug '{slug}' must contain only lowercase letters, digits and single hyphens"
        )


def _validate_callback(callback: dict[str, Any] | None) -> None:
    # Resolving up front surfaces unknown rule keys and bad params to the administrator
    if callback is not None:
        resolve_callback(callback)


def create_validator(
    db: Session,
    name: str,
    slug: str,
    description: str = "",
    approver_description: str = "",
    readable_fields: Iterable[str] = (),
    updatable_fields: Iterable[str] = (),
    callback: dict[str, Any] | None = None,
    creator_id: int | None = None,
) -> ValidatorModel:
    """
    Create a validator definition.

    Raises:
        DuplicateSlugError: If the slug is taken
        InvalidFieldListError: If a field list has empty or duplicate names
        UnresolvableCallbackError: If the callback key has no registered rule
        InvalidRuleParamsError: If the callback params do not fit the rule
    """
    _validate_slug(slug)
    readable = validate_field_list(readable_fields, "readable_fields")
    updatable = validate_field_list(updatable_fields, "updatable_fields")
    _validate_callback(callback)

    if validator_repo.get_validator_by_slug(db, slug):
        raise DuplicateSlugError(f"A validator with slug '{slug}' already exists")

    return validator_repo.create_validator(
        db,
        name=name,
        slug=slug,
        description=description,
        approver_description=approver_description,
        readable_fields=readable,
        updatable_fields=updatable,
        callback=callback,
        creator_id=creator_id,
    )


def update_validator(
    db: Session,
    validator_id: int,
    updater_id: int | None = None,
    **update_fields: Any,
) -> ValidatorModel:
    """
    Update a validator definition.

    Only fields explicitly provided in update_fields are updated. Shrinking a
    field list is refused while an attachment still maps one of the removed
    names.

    Raises:
        NotFoundError: If the validator doesn't exist
        DuplicateSlugError: If the new slug is taken
        InvalidFieldListError: If a field list has empty or duplicate names
        MappingKeyNotInValidatorError: If an attachment maps a removed field
        UnresolvableCallbackError: If the callback key has no registered rule
        InvalidRuleParamsError: If the callback params do not fit the rule
    """
    validator = validator_repo.get_validator_by_id(db, validator_id)
    if not validator:
        raise NotFoundError("Validator not found")

    # callback is the only nullable column; None clears it
    fields = {
        k: v
        for k, v in update_fields.items()
        if k in _UPDATABLE_COLUMNS and (v is not None or k == "callback")
    }

    if "slug" in fields and fields["slug"] != validator.slug:
        _validate_slug(fields["slug"])
        if validator_repo.get_validator_by_slug(db, fields["slug"], exclude_id=validator_id):
            raise DuplicateSlugError(f"A validator with slug '{fields['slug']}' already exists")

    if "readable_fields" in fields:
        fields["readable_fields"] = validate_field_list(fields["readable_fields"], "readable_fields")
    if "updatable_fields" in fields:
        fields["updatable_fields"] = validate_field_list(fields["updatable_fields"], "updatable_fields")
    if "callback" in fields:
        _validate_callback(fields["callback"])

    readable = set(fields.get("readable_fields", validator.readable_fields))
    updatable = set(fields.get("updatable_fields", validator.updatable_fields))
    for attachment in validatorable_repo.get_attachments_by_validator_id(db, validator_id):
        orphaned = (set(attachment.mapped_readable_fields) - readable) | (
            set(attachment.mapped_updatable_fields) - updatable
        )
        if orphaned:
            raise MappingKeyNotInValidatorError(
                f"{attachment.validatorable_type} {attachment.validatorable_id} still maps "
                f"fields no longer declared by the validator: {', '.join(sorted(orphaned))}"
            )

    if updater_id is not None:
        fields["updater_id"] = updater_id

    return validator_repo.update_validator(db, validator_id, **fields)


def delete_validator(db: Session, validator_id: int) -> None:
    """
    Delete a validator. Its attachments are removed with it.

    Raises:
        NotFoundError: If the validator doesn't exist
    """
    validator_repo.delete_validator(db, validator_id)


def get_validator(db: Session, validator_id: int) -> ValidatorModel:
    validator = validator_repo.get_validator_by_id(db, validator_id)
    if not validator:
        raise NotFoundError("Validator not found")
    return validator


def get_validator_by_slug(db: Session, slug: str) -> ValidatorModel:
    validator = validator_repo.get_validator_by_slug(db, slug)
    if not validator:
        raise NotFoundError(f"Validator '{slug}' not found")
    return validator
