from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.db.models.user import User
import app.repositories.account as account_repo
from app.schemas.account import AccountType, AccountTypeCreate
from app.services.account import create_account_type
from app.errors import NotFoundError

router = APIRouter(prefix="/account-types", tags=["account-types"])


@router.post("", response_model=AccountType, status_code=status.HTTP_201_CREATED)
def create_new_account_type(
    account_type_data: AccountTypeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    """
    Create an account type. Only admin users can create account types.
    """
    account_type = create_account_type(
        db,
        name=account_type_data.name,
        description=account_type_data.description,
        creator=current_user,
    )
    return AccountType.model_validate(account_type)


@router.get("", response_model=list[AccountType])
def get_all_account_types(db: Session = Depends(get_db)):
    return [AccountType.model_validate(t) for t in account_repo.get_all_account_types(db)]


@router.get("/{account_type_id}", response_model=AccountType)
def get_account_type_by_id(
    account_type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    account_type = account_repo.get_account_type_by_id(db, account_type_id)
    if not account_type:
        raise NotFoundError("Account type not found")
    return AccountType.model_validate(account_type)
