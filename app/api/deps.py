from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.db.models.user import User
from app.core.security import decode_token
from app.errors import ForbiddenError, UnauthorizedError

# Tokens are issued by the identity service; this URL is informational
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_INVALID_CREDENTIALS = "Could not validate credentials"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Get the current authenticated user from JWT token."""
    payload = decode_token(token)
    if payload is None:
        raise UnauthorizedError(_INVALID_CREDENTIALS)

    # Only access tokens identify a user
    if payload.get("type") != "access":
        raise UnauthorizedError(_INVALID_CREDENTIALS)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError(_INVALID_CREDENTIALS) from None

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UnauthorizedError("User not found")

    return user


def require_roles(*role_names: str):
    """
    Create a dependency that requires the current user to have one of the specified roles.

    Example:
        Depends(require_roles("admin"))
    """
    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in role_names:
            raise ForbiddenError("Not enough permissions")
        return current_user

    return role_checker
