import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

import app.repositories.account as account_repo
from app.core.config import settings
from app.db.models.account import Account as AccountModel
from app.db.models.account import AccountType as AccountTypeModel
from app.db.models.user import User
from app.domain.compensation import Compensations, lifecycle_transaction
from app.domain.confirmation import ConfirmationWindowPolicy
from app.errors import (
    DomainValidationError,
    DuplicateResourceError,
    ForbiddenError,
    NotFoundError,
)
from app.services.attachment import detach_all_for
from app.validation import ON_CREATE, ON_PURCHASE, ON_UPDATE, validate

logger = logging.getLogger(__name__)

ENTITY_TYPE = "Account"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _get_account(db: Session, account_id: int) -> AccountModel:
    account = account_repo.get_account_by_id(db, account_id)
    if not account:
        raise NotFoundError("Account not found")
    return account


def create_account_type(
    db: Session, name: str, description: str, creator: User
) -> AccountTypeModel:
    """
    Create an account type. Validators are usually attached at this level.

    Raises:
        DuplicateResourceError: If the name is taken
    """
    if account_repo.get_account_type_by_name(db, name):
        raise DuplicateResourceError(f"An account type named '{name}' already exists")
    return account_repo.create_account_type(
        db, name=name, description=description, creator_id=creator.id
    )


def create_account(
    db: Session,
    account_type_id: int,
    description: str,
    cost: int,
    price: int,
    creator: User,
    compensations: Compensations | None = None,
) -> AccountModel:
    """
    List a new account for sale.

    - Validates the account type exists
    - Runs "on-create" validators before committing

    Raises:
        NotFoundError: If the account type doesn't exist
        RuleFailure: If an attached validator rejects the account
    """
    if not account_repo.get_account_type_by_id(db, account_type_id):
        raise NotFoundError(f"Account type with id {account_type_id} not found")

    with lifecycle_transaction(db, compensations):
        account = account_repo.add_account(
            db,
            account_type_id=account_type_id,
            description=description,
            cost=cost,
            price=price,
            tax=0,
            creator_id=creator.id,
        )
        validate(db, account, ENTITY_TYPE, ON_CREATE)

    logger.info("Account %s listed by user %s", account.id, creator.id)
    return account


def buy_account(
    db: Session,
    account_id: int,
    buyer: User,
    compensations: Compensations | None = None,
) -> AccountModel:
    """
    Buy an account at its current price.

    The account auto-confirms after ACCOUNT_AUTO_CONFIRM_MINUTES unless the
    buyer disputes it first.

    Raises:
        NotFoundError: If the account doesn't exist
        DomainValidationError: If the account is already sold or the buyer listed it
        RuleFailure: If an attached validator rejects the purchase
    """
    account = _get_account(db, account_id)
    if account.bought_at is not None:
        raise DomainValidationError("Account has already been bought")
    if account.creator_id == buyer.id:
        raise DomainValidationError("You cannot buy your own account")

    with lifecycle_transaction(db, compensations):
        now = _now()
        account.bought_at = now
        account.buyer_id = buyer.id
        account.confirmed_at = now + timedelta(minutes=settings.account_auto_confirm_minutes)
        account.bought_at_price = account.price
        validate(db, account, ENTITY_TYPE, ON_PURCHASE)

    logger.info("Account %s bought by user %s", account.id, buyer.id)
    return account


def confirm_account(db: Session, account_id: int, buyer: User, ok: bool) -> AccountModel:
    """
    Buyer confirms the account matches its listing, or disputes it.

    Outside the confirmation window the account is left unchanged.

    Raises:
        NotFoundError: If the account doesn't exist
        ForbiddenError: If the user is not the buyer
    """
    account = _get_account(db, account_id)
    if account.buyer_id != buyer.id:
        raise ForbiddenError("Only the buyer can confirm this account")

    now = _now()
    policy = ConfirmationWindowPolicy(now=now)
    if not policy.is_open(confirmed_at=account.confirmed_at):
        logger.debug("Confirmation window of account %s is closed", account.id)
        return account

    with lifecycle_transaction(db):
        account.confirmed_at = now if ok else None

    if ok:
        logger.info("Account %s confirmed by buyer %s", account.id, buyer.id)
    else:
        logger.info("Account %s disputed by buyer %s", account.id, buyer.id)
    return account


def approve_account(
    db: Session, account_id: int, approver: User, is_refunded: bool
) -> AccountModel:
    """
    Settle a disputed account: refund the buyer or confirm the sale.

    Raises:
        NotFoundError: If the account doesn't exist
        ForbiddenError: If the user neither owns the account type nor is an admin
        DomainValidationError: If the account is not awaiting approval
    """
    account = _get_account(db, account_id)
    account_type = account.account_type
    if not approver.is_admin and account_type.creator_id != approver.id:
        raise ForbiddenError("Only the account type owner can approve this account")

    now = _now()
    policy = ConfirmationWindowPolicy(now=now)
    if not policy.awaits_approval(
        bought_at=account.bought_at,
        confirmed_at=account.confirmed_at,
        refunded_at=account.refunded_at,
    ):
        raise DomainValidationError("Account is not awaiting approval")

    with lifecycle_transaction(db):
        if is_refunded:
            account.refunded_at = now
        else:
            account.confirmed_at = now

    logger.info(
        "Account %s %s by user %s", account.id, "refunded" if is_refunded else "approved", approver.id
    )
    return account


def update_account(
    db: Session,
    account_id: int,
    editor: User,
    compensations: Compensations | None = None,
    **update_fields,
) -> AccountModel:
    """
    Update an account listing.

    Only description, cost and price can be changed; None values are ignored.

    Raises:
        NotFoundError: If the account doesn't exist
        ForbiddenError: If the user is neither the creator nor an admin
        RuleFailure: If an attached validator rejects the change
    """
    account = _get_account(db, account_id)
    if not editor.is_admin and account.creator_id != editor.id:
        raise ForbiddenError("Only the creator can update this account")

    with lifecycle_transaction(db, compensations):
        for name in ("description", "cost", "price"):
            value = update_fields.get(name)
            if value is not None:
                setattr(account, name, value)
        validate(db, account, ENTITY_TYPE, ON_UPDATE)

    return account


def delete_account(db: Session, account_id: int, actor: User) -> None:
    """
    Delete an unsold account and its validator attachments.

    Raises:
        NotFoundError: If the account doesn't exist
        ForbiddenError: If the user is neither the creator nor an admin
        DomainValidationError: If the account has been bought
    """
    account = _get_account(db, account_id)
    if not actor.is_admin and account.creator_id != actor.id:
        raise ForbiddenError("Only the creator can delete this account")
    if account.bought_at is not None:
        raise DomainValidationError("Cannot delete an account that has been bought")

    with lifecycle_transaction(db):
        detach_all_for(db, ENTITY_TYPE, account.id)
        account_repo.delete_account(db, account)
