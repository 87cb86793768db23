from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.db.models.user import User
import app.repositories.account as account_repo
from app.schemas.account import (
    Account,
    AccountApprove,
    AccountConfirm,
    AccountCreate,
    AccountUpdate,
)
from app.schemas.pagination import PaginatedResponse
from app.services.account import (
    approve_account,
    buy_account,
    confirm_account,
    create_account,
    delete_account,
    update_account,
)
from app.errors import NotFoundError

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.post("", response_model=Account, status_code=status.HTTP_201_CREATED)
def create_new_account(
    account_data: AccountCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    List an account for sale. Validators attached to the account type run on creation.
    """
    account = create_account(
        db,
        account_type_id=account_data.account_type_id,
        description=account_data.description,
        cost=account_data.cost,
        price=account_data.price,
        creator=current_user,
    )
    return Account.model_validate(account)


@router.get("", response_model=PaginatedResponse[Account])
def get_all_accounts(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(100, ge=1, le=1000, description="Number of items per page"),
    creator: int | None = Query(None, description="Filter accounts by creator ID"),
    mine: bool = Query(False, description="Only accounts bought by the current user"),
    awaiting_my_approval: bool = Query(
        False, description="Only disputed accounts of account types the current user created"
    ),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get accounts, newest first, with pagination and optional filters.
    """
    items, total = account_repo.get_accounts_paginated(
        db,
        page=page,
        page_size=page_size,
        creator_id=creator,
        buyer_id=current_user.id if mine else None,
        awaiting_approval_by=current_user.id if awaiting_my_approval else None,
    )
    return PaginatedResponse[Account](
        items=[Account.model_validate(a) for a in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{account_id}", response_model=Account)
def get_account_by_id(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    account = account_repo.get_account_by_id(db, account_id)
    if not account:
        raise NotFoundError("Account not found")
    return Account.model_validate(account)


@router.put("/{account_id}", response_model=Account)
def update_account_by_id(
    account_id: int,
    account_data: AccountUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Update an account listing. Validators run on update.
    """
    account = update_account(
        db,
        account_id=account_id,
        editor=current_user,
        **account_data.model_dump(exclude_unset=True),
    )
    return Account.model_validate(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account_by_id(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Delete an unsold account.
    """
    delete_account(db, account_id, actor=current_user)


@router.post("/{account_id}/buy", response_model=Account)
def buy_account_by_id(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Buy an account. Validators run on purchase.
    """
    account = buy_account(db, account_id=account_id, buyer=current_user)
    return Account.model_validate(account)


@router.post("/{account_id}/confirm", response_model=Account)
def confirm_account_by_id(
    account_id: int,
    confirm_data: AccountConfirm,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Buyer confirms the account is as described (ok=true) or disputes it (ok=false).
    """
    account = confirm_account(db, account_id=account_id, buyer=current_user, ok=confirm_data.ok)
    return Account.model_validate(account)


@router.post("/{account_id}/approve", response_model=Account)
def approve_account_by_id(
    account_id: int,
    approve_data: AccountApprove,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Settle a disputed account. Only the account type owner or an admin can approve.
    """
    account = approve_account(
        db, account_id=account_id, approver=current_user, is_refunded=approve_data.is_refunded
    )
    return Account.model_validate(account)
