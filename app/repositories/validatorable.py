from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models.validator import Validatorable as ValidatorableModel
from app.errors import AlreadyAttachedError, NotFoundError


def get_attachment(
    db: Session, validator_id: int, entity_type: str, entity_id: int
) -> ValidatorableModel | None:
    """Get the attachment of a validator to one entity."""
    return (
        db.query(ValidatorableModel)
        .filter(
            ValidatorableModel.validator_id == validator_id,
            ValidatorableModel.validatorable_type == entity_type,
            ValidatorableModel.validatorable_id == entity_id,
        )
        .first()
    )


def find_attachments_for(
    db: Session, entity_type: str, entity_id: int
) -> list[ValidatorableModel]:
    """Get all attachments of an entity, oldest first."""
    return (
        db.query(ValidatorableModel)
        .filter(
            ValidatorableModel.validatorable_type == entity_type,
            ValidatorableModel.validatorable_id == entity_id,
        )
        .order_by(ValidatorableModel.created_at, ValidatorableModel.validator_id)
        .all()
    )


def get_attachments_by_validator_id(
    db: Session, validator_id: int
) -> list[ValidatorableModel]:
    """Get all attachments of a validator."""
    return (
        db.query(ValidatorableModel)
        .filter(ValidatorableModel.validator_id == validator_id)
        .order_by(ValidatorableModel.created_at)
        .all()
    )


def create_attachment(
    db: Session,
    validator_id: int,
    entity_type: str,
    entity_id: int,
    mapped_readable_fields: dict[str, str],
    mapped_updatable_fields: dict[str, str],
) -> ValidatorableModel:
    """Create a new attachment. Pure data access - no business logic.

    The composite primary key rejects a concurrent duplicate that slipped
    past the service-level check.
    """
    db_attachment = ValidatorableModel(
        validator_id=validator_id,
        validatorable_type=entity_type,
        validatorable_id=entity_id,
        mapped_readable_fields=dict(mapped_readable_fields),
        mapped_updatable_fields=dict(mapped_updatable_fields),
    )
    db.add(db_attachment)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise AlreadyAttachedError(
            f"Validator {validator_id} is already attached to {entity_type} {entity_id}"
        ) from e
    db.refresh(db_attachment)
    return db_attachment


def update_attachment_mapping(
    db: Session,
    validator_id: int,
    entity_type: str,
    entity_id: int,
    mapped_readable_fields: dict[str, str] | None = None,
    mapped_updatable_fields: dict[str, str] | None = None,
) -> ValidatorableModel:
    """Replace the field mappings of an attachment."""
    attachment = get_attachment(db, validator_id, entity_type, entity_id)
    if not attachment:
        raise NotFoundError("Attachment not found")

    if mapped_readable_fields is not None:
        attachment.mapped_readable_fields = dict(mapped_readable_fields)
    if mapped_updatable_fields is not None:
        attachment.mapped_updatable_fields = dict(mapped_updatable_fields)

    db.commit()
    db.refresh(attachment)
    return attachment


def delete_attachment(
    db: Session, validator_id: int, entity_type: str, entity_id: int
) -> bool:
    """Delete an attachment. Returns False if there was nothing to delete."""
    attachment = get_attachment(db, validator_id, entity_type, entity_id)
    if not attachment:
        return False

    db.delete(attachment)
    db.commit()
    return True


def delete_attachments_for(db: Session, entity_type: str, entity_id: int) -> int:
    """Delete every attachment of an entity. Does not commit.

    Used when the entity itself is deleted, inside the caller's transaction.
    """
    return (
        db.query(ValidatorableModel)
        .filter(
            ValidatorableModel.validatorable_type == entity_type,
            ValidatorableModel.validatorable_id == entity_id,
        )
        .delete(synchronize_session="fetch")
    )
