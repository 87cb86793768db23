from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.db.models.user import User
from app.schemas.attachment import Attachment, AttachmentCreate, AttachmentUpdate
from app.services.attachment import (
    attach_validator,
    detach_validator,
    list_attachments_for_validator,
    update_attachment,
)

router = APIRouter(prefix="/validators/{validator_id}/attachments", tags=["attachments"])


@router.get("", response_model=list[Attachment])
def get_validator_attachments(
    validator_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    attachments = list_attachments_for_validator(db, validator_id)
    return [Attachment.model_validate(a) for a in attachments]


@router.post("", response_model=Attachment, status_code=status.HTTP_201_CREATED)
def attach_validator_to_entity(
    validator_id: int,
    attachment_data: AttachmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Attach a validator to an entity. Only admin users can attach validators.
    """
    attachment = attach_validator(
        db,
        validator_id=validator_id,
        entity_type=attachment_data.entity_type,
        entity_id=attachment_data.entity_id,
        mapped_readable_fields=attachment_data.mapped_readable_fields,
        mapped_updatable_fields=attachment_data.mapped_updatable_fields,
    )
    return Attachment.model_validate(attachment)


@router.put("/{entity_type}/{entity_id}", response_model=Attachment)
def update_attachment_mapping(
    validator_id: int,
    entity_type: str,
    entity_id: int,
    attachment_data: AttachmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    attachment = update_attachment(
        db,
        validator_id=validator_id,
        entity_type=entity_type,
        entity_id=entity_id,
        mapped_readable_fields=attachment_data.mapped_readable_fields,
        mapped_updatable_fields=attachment_data.mapped_updatable_fields,
    )
    return Attachment.model_validate(attachment)


@router.delete("/{entity_type}/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
def detach_validator_from_entity(
    validator_id: int,
    entity_type: str,
    entity_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Detach a validator from an entity. Detaching twice is not an error.
    """
    detach_validator(db, validator_id, entity_type, entity_id)
