from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Attachment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    validator_id: int
    entity_type: str = Field(validation_alias="validatorable_type")
    entity_id: int = Field(validation_alias="validatorable_id")
    mapped_readable_fields: dict[str, str]
    mapped_updatable_fields: dict[str, str]
    created_at: datetime
    updated_at: datetime


class AttachmentCreate(BaseModel):
    entity_type: str = Field(..., min_length=1, max_length=64)
    entity_id: int
    mapped_readable_fields: dict[str, str] = Field(default_factory=dict)
    mapped_updatable_fields: dict[str, str] = Field(default_factory=dict)


class AttachmentUpdate(BaseModel):
    mapped_readable_fields: dict[str, str] | None = None
    mapped_updatable_fields: dict[str, str] | None = None
