import logging

import pytest
from sqlalchemy.orm import Session

from app.db.models.account import AccountType as AccountTypeModel
from app.domain.compensation import Compensations, lifecycle_transaction


def test_compensations_run_in_reverse_order():
    calls = []
    compensations = Compensations()
    compensations.add(lambda: calls.append(1))
    compensations.add(lambda: calls.append(2))
    compensations.add(lambda: calls.append(3))

    compensations.run()

    assert calls == [3, 2, 1]
    assert len(compensations) == 0


def test_failing_compensation_is_logged_and_others_still_run(caplog):
    calls = []

    def broken():
        raise RuntimeError("storage unavailable")

    compensations = Compensations()
    compensations.add(lambda: calls.append("first"))
    compensations.add(broken, "delete upload")
    compensations.add(lambda: calls.append("last"))

    with caplog.at_level(logging.ERROR, logger="app.domain.compensation"):
        compensations.run()

    assert calls == ["last", "first"]
    assert "delete upload" in caplog.text


def test_lifecycle_transaction_commits(db: Session, admin_user):
    with lifecycle_transaction(db) as compensations:
        db.add(AccountTypeModel(name="Music", description="", creator_id=admin_user.id))
        compensations.add(lambda: pytest.fail("should not compensate"))

    db.expunge_all()
    assert db.query(AccountTypeModel).filter_by(name="Music").count() == 1


def test_lifecycle_transaction_rolls_back_and_compensates(db: Session, admin_user):
    calls = []

    with pytest.raises(ValueError):
        with lifecycle_transaction(db) as compensations:
            db.add(AccountTypeModel(name="Video", description="", creator_id=admin_user.id))
            db.flush()
            compensations.add(lambda: calls.append("undone"))
            raise ValueError("boom")

    assert calls == ["undone"]
    assert db.query(AccountTypeModel).filter_by(name="Video").count() == 0
