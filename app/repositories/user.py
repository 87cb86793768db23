from sqlalchemy.orm import Session

from app.db.models.user import User as UserModel


def get_user_by_email(db: Session, email: str) -> UserModel | None:
    """Get a user by email."""
    return db.query(UserModel).filter(UserModel.email == email).first()


def get_user_by_id(db: Session, user_id: int) -> UserModel | None:
    """Get a user by ID."""
    return db.query(UserModel).filter(UserModel.id == user_id).first()


def create_user(db: Session, email: str, name: str, role: str = "member") -> UserModel:
    """Create a new user in the database. Pure data access - no business logic."""
    db_user = UserModel(email=email, name=name, role=role)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
