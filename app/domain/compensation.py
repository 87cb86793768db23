from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass
class Compensations:
    """Undo steps for side effects a database rollback cannot reach.

    Steps run in reverse registration order. A step that raises is logged
    and the remaining steps still run.
    """

    _actions: list[tuple[str, Callable[[], None]]] = field(default_factory=list)

    def add(self, action: Callable[[], None], description: str = "") -> None:
        self._actions.append((description or getattr(action, "__name__", "action"), action))

    def __len__(self) -> int:
        return len(self._actions)

    def run(self) -> None:
        while self._actions:
            description, action = self._actions.pop()
            try:
                action()
            except Exception:
                logger.exception("Compensating action '%s' failed", description)

    def clear(self) -> None:
        self._actions.clear()


@contextmanager
def lifecycle_transaction(
    db: Session, compensations: Compensations | None = None
) -> Iterator[Compensations]:
    """Commit the lifecycle operation, or roll it back and compensate.

    Any exception raised inside the block rolls back the session, runs the
    registered compensations and is re-raised.
    """
    compensations = compensations if compensations is not None else Compensations()
    try:
        yield compensations
        db.commit()
    except Exception:
        db.rollback()
        compensations.run()
        raise
    compensations.clear()
