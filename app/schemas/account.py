from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AccountType(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    creator_id: int | None = None


class AccountTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""


class Account(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_type_id: int
    description: str
    cost: int
    price: int
    tax: int
    creator_id: int | None = None
    buyer_id: int | None = None
    bought_at: datetime | None = None
    bought_at_price: int | None = None
    confirmed_at: datetime | None = None
    refunded_at: datetime | None = None


class AccountCreate(BaseModel):
    account_type_id: int
    description: str = ""
    cost: int = Field(..., ge=0)
    price: int = Field(..., ge=0)


class AccountUpdate(BaseModel):
    description: str | None = None
    cost: int | None = Field(None, ge=0)
    price: int | None = Field(None, ge=0)


class AccountConfirm(BaseModel):
    ok: bool


class AccountApprove(BaseModel):
    is_refunded: bool
