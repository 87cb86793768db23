from app.db.models.user import User
from app.db.models.validator import Validator, Validatorable
from app.db.models.account import Account, AccountType

__all__ = ["User", "Validator", "Validatorable", "AccountType", "Account"]
