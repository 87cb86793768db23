from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.db.models.account import Account as AccountModel
from app.db.models.account import AccountType as AccountTypeModel
from app.domain.confirmation import ConfirmationWindowPolicy


def get_account_type_by_id(db: Session, account_type_id: int) -> AccountTypeModel | None:
    """Get an account type by ID."""
    return db.query(AccountTypeModel).filter(AccountTypeModel.id == account_type_id).first()


def get_account_type_by_name(db: Session, name: str) -> AccountTypeModel | None:
    """Get an account type by name."""
    return db.query(AccountTypeModel).filter(AccountTypeModel.name == name).first()


def get_all_account_types(db: Session) -> list[AccountTypeModel]:
    """Get all account types."""
    return db.query(AccountTypeModel).order_by(AccountTypeModel.id).all()


def create_account_type(
    db: Session, name: str, description: str, creator_id: int | None = None
) -> AccountTypeModel:
    """Create a new account type in the database. Pure data access - no business logic."""
    db_account_type = AccountTypeModel(name=name, description=description, creator_id=creator_id)
    db.add(db_account_type)
    db.commit()
    db.refresh(db_account_type)
    return db_account_type


def get_account_by_id(db: Session, account_id: int) -> AccountModel | None:
    """Get an account by ID."""
    return db.query(AccountModel).filter(AccountModel.id == account_id).first()


def get_accounts_paginated(
    db: Session,
    page: int = 1,
    page_size: int = 100,
    creator_id: int | None = None,
    buyer_id: int | None = None,
    awaiting_approval_by: int | None = None,
) -> tuple[list[AccountModel], int]:
    """
    Get accounts, newest first, with optional filters and pagination.

    ``awaiting_approval_by`` keeps disputed accounts whose account type was
    created by that user. Returns (items, total).
    """
    query = db.query(AccountModel)

    if creator_id is not None:
        query = query.filter(AccountModel.creator_id == creator_id)
    if buyer_id is not None:
        query = query.filter(AccountModel.buyer_id == buyer_id)
    if awaiting_approval_by is not None:
        policy = ConfirmationWindowPolicy(now=datetime.now(timezone.utc))
        query = query.join(
            AccountTypeModel, AccountModel.account_type_id == AccountTypeModel.id
        ).filter(
            AccountTypeModel.creator_id == awaiting_approval_by,
            policy.sqlalchemy_awaiting_approval_predicate(
                bought_col=AccountModel.bought_at,
                confirmed_col=AccountModel.confirmed_at,
                refunded_col=AccountModel.refunded_at,
            ),
        )

    total = query.count()
    items = (
        query.order_by(AccountModel.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def add_account(db: Session, **fields) -> AccountModel:
    """Add an account to the session and flush it to obtain its ID. Does not commit."""
    db_account = AccountModel(**fields)
    db.add(db_account)
    db.flush()
    return db_account


def delete_account(db: Session, account: AccountModel) -> None:
    """Delete an account. Does not commit."""
    db.delete(account)
    db.flush()
