from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SLUG_REGEX = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class Callback(BaseModel):
    key: str = Field(..., min_length=1, description="Registered rule key")
    params: dict[str, Any] = Field(default_factory=dict)


class Validator(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: str
    approver_description: str
    readable_fields: list[str]
    updatable_fields: list[str]
    callback: Callback | None = None
    creator_id: int | None = None
    updater_id: int | None = None
    created_at: datetime
    updated_at: datetime


class ValidatorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=SLUG_REGEX)
    description: str = ""
    approver_description: str = ""
    readable_fields: list[str] = Field(default_factory=list)
    updatable_fields: list[str] = Field(default_factory=list)
    callback: Callback | None = None


class ValidatorUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=255, pattern=SLUG_REGEX)
    description: str | None = None
    approver_description: str | None = None
    readable_fields: list[str] | None = None
    updatable_fields: list[str] | None = None
    # Send null explicitly to make the validator descriptive-only
    callback: Callback | None = None


class Rule(BaseModel):
    key: str
    triggers: list[str] | None = None
    description: str = ""
    # JSON schema of the accepted callback params, if the rule declares one
    params_schema: dict[str, Any] | None = None
