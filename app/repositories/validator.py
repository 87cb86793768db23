from typing import Any

from sqlalchemy.orm import Session

from app.db.models.validator import Validator as ValidatorModel
from app.errors import NotFoundError


def get_validator_by_id(db: Session, validator_id: int) -> ValidatorModel | None:
    """Get a validator by ID."""
    return db.query(ValidatorModel).filter(ValidatorModel.id == validator_id).first()


def get_validator_by_slug(
    db: Session, slug: str, exclude_id: int | None = None
) -> ValidatorModel | None:
    """Get a validator by slug."""
    query = db.query(ValidatorModel).filter(ValidatorModel.slug == slug)
    if exclude_id is not None:
        query = query.filter(ValidatorModel.id != exclude_id)
    return query.first()


def get_validators_by_ids(db: Session, validator_ids: list[int]) -> dict[int, ValidatorModel]:
    """Get validators keyed by ID."""
    if not validator_ids:
        return {}
    rows = db.query(ValidatorModel).filter(ValidatorModel.id.in_(validator_ids)).all()
    return {row.id: row for row in rows}


def get_validators_paginated(
    db: Session, page: int = 1, page_size: int = 100
) -> tuple[list[ValidatorModel], int]:
    """Get validators ordered by ID with pagination. Returns (items, total)."""
    query = db.query(ValidatorModel)
    total = query.count()
    items = (
        query.order_by(ValidatorModel.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def create_validator(
    db: Session,
    name: str,
    slug: str,
    description: str,
    approver_description: str,
    readable_fields: list[str],
    updatable_fields: list[str],
    callback: dict[str, Any] | None = None,
    creator_id: int | None = None,
) -> ValidatorModel:
    """Create a new validator in the database. Pure data access - no business logic."""
    db_validator = ValidatorModel(
        name=name,
        slug=slug,
        description=description,
        approver_description=approver_description,
        readable_fields=list(readable_fields),
        updatable_fields=list(updatable_fields),
        callback=callback,
        creator_id=creator_id,
        updater_id=creator_id,
    )
    db.add(db_validator)
    db.commit()
    db.refresh(db_validator)
    return db_validator


def update_validator(db: Session, validator_id: int, **fields: Any) -> ValidatorModel:
    """Update a validator. Only keys present in ``fields`` are written."""
    validator = get_validator_by_id(db, validator_id)
    if not validator:
        raise NotFoundError("Validator not found")

    for name, value in fields.items():
        if name in ("readable_fields", "updatable_fields"):
            value = list(value)
        setattr(validator, name, value)

    db.commit()
    db.refresh(validator)
    return validator


def delete_validator(db: Session, validator_id: int) -> None:
    """Delete a validator together with its attachments."""
    validator = get_validator_by_id(db, validator_id)
    if not validator:
        raise NotFoundError("Validator not found")

    db.delete(validator)
    db.commit()
