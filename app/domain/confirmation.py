from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class ConfirmationWindowPolicy:
    """Defines the buyer's confirmation window for a bought account.

    Semantics:
    - Buying sets confirmed_at to the moment the account auto-confirms.
    - The buyer may confirm or dispute while now <= confirmed_at.
    - Disputing clears confirmed_at; the account then awaits approval by the
      account type's owner until it is confirmed or refunded.
    """

    now: datetime

    def is_open(self, *, confirmed_at: datetime | None) -> bool:
        confirmed_at = as_utc(confirmed_at)
        return confirmed_at is not None and as_utc(self.now) <= confirmed_at

    def awaits_approval(
        self,
        *,
        bought_at: datetime | None,
        confirmed_at: datetime | None,
        refunded_at: datetime | None,
    ) -> bool:
        return bought_at is not None and confirmed_at is None and refunded_at is None

    def sqlalchemy_awaiting_approval_predicate(self, *, bought_col, confirmed_col, refunded_col):
        """Build a SQLAlchemy predicate implementing the awaiting-approval rule."""
        from sqlalchemy import and_

        return and_(
            bought_col.isnot(None),
            confirmed_col.is_(None),
            refunded_col.is_(None),
        )
