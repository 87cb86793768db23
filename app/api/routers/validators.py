from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.db.models.user import User
import app.repositories.validator as validator_repo
from app.schemas.pagination import PaginatedResponse
from app.schemas.validator import Validator, ValidatorCreate, ValidatorUpdate
from app.services.validator import (
    create_validator,
    delete_validator,
    get_validator,
    get_validator_by_slug,
    update_validator,
)

router = APIRouter(prefix="/validators", tags=["validators"])


@router.post("", response_model=Validator, status_code=status.HTTP_201_CREATED)
def create_new_validator(
    validator_data: ValidatorCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Create a validator definition. Only admin users can create validators.
    """
    validator = create_validator(
        db,
        name=validator_data.name,
        slug=validator_data.slug,
        description=validator_data.description,
        approver_description=validator_data.approver_description,
        readable_fields=validator_data.readable_fields,
        updatable_fields=validator_data.updatable_fields,
        callback=validator_data.callback.model_dump() if validator_data.callback else None,
        creator_id=current_user.id,
    )
    return Validator.model_validate(validator)


@router.get("", response_model=PaginatedResponse[Validator])
def get_all_validators(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(100, ge=1, le=1000, description="Number of items per page"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get all validators with pagination.
    """
    items, total = validator_repo.get_validators_paginated(db, page=page, page_size=page_size)
    return PaginatedResponse[Validator](
        items=[Validator.model_validate(v) for v in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/by-slug/{slug}", response_model=Validator)
def get_validator_by_slug_route(
    slug: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return Validator.model_validate(get_validator_by_slug(db, slug))


@router.get("/{validator_id}", response_model=Validator)
def get_validator_by_id(
    validator_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return Validator.model_validate(get_validator(db, validator_id))


@router.put("/{validator_id}", response_model=Validator)
def update_validator_by_id(
    validator_id: int,
    validator_data: ValidatorUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Update a validator. Only admin users can update validators.

    Only fields present in the request body are changed.
    """
    update_fields = validator_data.model_dump(exclude_unset=True)
    validator = update_validator(
        db, validator_id=validator_id, updater_id=current_user.id, **update_fields
    )
    return Validator.model_validate(validator)


@router.delete("/{validator_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_validator_by_id(
    validator_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Delete a validator and all of its attachments. Only admin users can delete validators.
    """
    delete_validator(db, validator_id)
