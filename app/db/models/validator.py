from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Validator(Base):
    __tablename__ = "validators"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")
    # How an approver should check the rule when it is enforced manually
    approver_description = Column(Text, nullable=False, default="")
    # Ordered generic field names the rule reads / may write
    readable_fields = Column(JSON, nullable=False, default=list)
    updatable_fields = Column(JSON, nullable=False, default=list)
    # {"key": <rule key>, "params": {...}}; NULL means descriptive-only
    callback = Column(JSON, nullable=True)
    creator_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updater_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    creator = relationship("User", foreign_keys=[creator_id])
    updater = relationship("User", foreign_keys=[updater_id])
    attachments = relationship(
        "Validatorable",
        back_populates="validator",
        cascade="all, delete-orphan",
    )


class Validatorable(Base):
    """Polymorphic link between a validator and any registered entity."""

    __tablename__ = "validatorables"

    validator_id = Column(
        Integer, ForeignKey("validators.id", ondelete="CASCADE"), nullable=False
    )
    validatorable_type = Column(String(64), nullable=False)
    validatorable_id = Column(Integer, nullable=False)
    # Generic field name -> concrete attribute name on the entity
    mapped_readable_fields = Column(JSON, nullable=False, default=dict)
    mapped_updatable_fields = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    validator = relationship("Validator", back_populates="attachments")

    __table_args__ = (
        PrimaryKeyConstraint(
            "validator_id",
            "validatorable_id",
            "validatorable_type",
            name="validatorables_table_primary",
        ),
        Index("ix_validatorables_validatorable", "validatorable_type", "validatorable_id"),
    )
