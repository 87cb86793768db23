import logging
import threading
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from app.errors import ConfigurationError, RuleFailure, RuleTimeout, UnresolvableCallbackError
from app.repositories.account import add_account
from app.repositories.validatorable import create_attachment
from app.services.attachment import attach_validator
from app.services.validator import update_validator
from app.validation import (
    ON_CREATE,
    ON_PURCHASE,
    ON_UPDATE,
    Fail,
    Pass,
    PassWithUpdates,
    RuleRegistry,
    validate,
)
from app.validation.entities import register_entity_type, unregister_entity_type


@pytest.fixture(scope="function")
def person_type():
    """A plain, non-ORM entity type, to show any entity can be validated."""
    register_entity_type("Person", SimpleNamespace, fields=frozenset({"id", "user_age", "state"}))
    yield "Person"
    unregister_entity_type("Person")


def _attach_person(db, validator, entity_id, readable=None, updatable=None):
    return create_attachment(db, validator.id, "Person", entity_id, readable or {}, updatable or {})


# ============================================================================
# SCENARIOS
# ============================================================================


def test_age_check_rejects_and_leaves_entity_unchanged(
    db: Session, person_type, make_validator, register_rule
):
    seen = {}

    def age_rule(snapshot, trigger, params):
        seen["snapshot"] = dict(snapshot)
        seen["trigger"] = trigger
        return Fail("too young") if snapshot["age"] < 18 else Pass()

    register_rule("age-rule", age_rule)
    validator = make_validator(
        slug="age-check", readable_fields=["age"], updatable_fields=[], callback={"key": "age-rule"}
    )
    entity = SimpleNamespace(id=1, user_age=15, state="pending")
    _attach_person(db, validator, 1, readable={"age": "user_age"})

    with pytest.raises(RuleFailure) as exc_info:
        validate(db, entity, person_type, ON_CREATE)

    assert exc_info.value.reason == "too young"
    assert exc_info.value.validator_slug == "age-check"
    assert seen == {"snapshot": {"age": 15}, "trigger": ON_CREATE}
    assert vars(entity) == {"id": 1, "user_age": 15, "state": "pending"}


def test_status_writeback_through_mapping(db: Session, person_type, make_validator, register_rule):
    register_rule("approve", lambda s, t, p: PassWithUpdates({"status": "approved"}))
    validator = make_validator(
        readable_fields=["status"], updatable_fields=["status"], callback={"key": "approve"}
    )
    entity = SimpleNamespace(id=7, user_age=30, state="pending")
    _attach_person(db, validator, 7, readable={"status": "state"}, updatable={"status": "state"})

    report = validate(db, entity, person_type, ON_UPDATE)

    assert entity.state == "approved"
    assert entity.user_age == 30
    assert report.changed_fields == {"state"}
    (outcome,) = report.outcomes
    assert outcome.status == "updated"
    assert outcome.changed_fields == ("state",)


# ============================================================================
# PROPERTIES
# ============================================================================


def test_pass_leaves_entity_unchanged(db: Session, person_type, make_validator, register_rule):
    register_rule("noop", lambda s, t, p: Pass())
    validator = make_validator(
        readable_fields=["age", "status"], updatable_fields=["status"], callback={"key": "noop"}
    )
    entity = SimpleNamespace(id=1, user_age=40, state="pending")
    before = dict(vars(entity))
    _attach_person(db, validator, 1, {"age": "user_age", "status": "state"}, {"status": "state"})

    report = validate(db, entity, person_type, ON_CREATE)

    assert vars(entity) == before
    assert [o.status for o in report.outcomes] == ["passed"]


def test_writeback_containment(db: Session, person_type, make_validator, register_rule):
    register_rule(
        "smuggler",
        lambda s, t, p: PassWithUpdates({"status": "approved", "age": 99, "id": 42}),
    )
    # "age" is updatable but unmapped; "id" is neither
    validator = make_validator(
        readable_fields=[], updatable_fields=["status", "age"], callback={"key": "smuggler"}
    )
    entity = SimpleNamespace(id=1, user_age=15, state="pending")
    _attach_person(db, validator, 1, updatable={"status": "state"})

    validate(db, entity, person_type, ON_UPDATE)

    assert vars(entity) == {"id": 1, "user_age": 15, "state": "approved"}


def test_fail_fast_skips_later_validators_and_reverts_writebacks(
    db: Session, person_type, make_validator, register_rule
):
    calls = []

    def first(snapshot, trigger, params):
        calls.append("first")
        return PassWithUpdates({"status": "approved"})

    def second(snapshot, trigger, params):
        calls.append("second")
        return Fail("nope")

    def third(snapshot, trigger, params):
        calls.append("third")
        return Pass()

    register_rule("first", first)
    register_rule("second", second)
    register_rule("third", third)
    entity = SimpleNamespace(id=3, user_age=20, state="pending")
    for key in ("first", "second", "third"):
        validator = make_validator(updatable_fields=["status"], callback={"key": key})
        _attach_person(db, validator, 3, updatable={"status": "state"})

    with pytest.raises(RuleFailure):
        validate(db, entity, person_type, ON_UPDATE)

    assert calls == ["first", "second"]
    assert entity.state == "pending"


def test_descriptive_only_validators_are_skipped(db: Session, person_type, make_validator):
    validator = make_validator(readable_fields=["age"], callback=None)
    _attach_person(db, validator, 1, readable={"age": "user_age"})

    report = validate(db, SimpleNamespace(id=1, user_age=1, state=""), person_type, ON_CREATE)

    (outcome,) = report.outcomes
    assert outcome.status == "skipped"
    assert outcome.skip_reason == "descriptive-only"
    assert report.executed == []


def test_rules_not_declaring_the_trigger_are_skipped(
    db: Session, person_type, make_validator, register_rule
):
    register_rule("purchase-guard", lambda s, t, p: Fail("blocked"), triggers=[ON_PURCHASE])
    validator = make_validator(callback={"key": "purchase-guard"})
    _attach_person(db, validator, 1)
    entity = SimpleNamespace(id=1, user_age=1, state="")

    report = validate(db, entity, person_type, ON_CREATE)
    assert report.outcomes[0].status == "skipped"

    with pytest.raises(RuleFailure):
        validate(db, entity, person_type, ON_PURCHASE)


def test_custom_trigger_types(db: Session, person_type, make_validator, register_rule):
    register_rule("refund-only", lambda s, t, p: Fail("no refunds"), triggers=["on-refund"])
    validator = make_validator(callback={"key": "refund-only"})
    _attach_person(db, validator, 1)

    with pytest.raises(RuleFailure, match="no refunds"):
        validate(db, SimpleNamespace(id=1, user_age=1, state=""), person_type, "on-refund")


def test_no_attachments_returns_empty_report(db: Session, person_type):
    report = validate(db, SimpleNamespace(id=5), person_type, ON_CREATE)
    assert report.outcomes == []
    assert report.entity_id == 5
    assert report.trigger == ON_CREATE


def test_unresolvable_callback_at_execution(
    db: Session, person_type, make_validator, register_rule
):
    register_rule("temporary", lambda s, t, p: Pass())
    validator = make_validator(callback={"key": "temporary"})
    _attach_person(db, validator, 1)
    RuleRegistry.unregister("temporary")

    with pytest.raises(UnresolvableCallbackError):
        validate(db, SimpleNamespace(id=1), person_type, ON_CREATE)


def test_rule_returning_garbage_is_a_configuration_error(
    db: Session, person_type, make_validator, register_rule
):
    register_rule("garbage", lambda s, t, p: True)
    validator = make_validator(callback={"key": "garbage"})
    _attach_person(db, validator, 1)

    with pytest.raises(ConfigurationError):
        validate(db, SimpleNamespace(id=1), person_type, ON_CREATE)


def test_rule_timeout(db: Session, person_type, make_validator, register_rule):
    release = threading.Event()

    def slow(snapshot, trigger, params):
        release.wait(5)
        return Pass()

    register_rule("slow", slow)
    validator = make_validator(slug="slow-check", callback={"key": "slow"})
    _attach_person(db, validator, 1)

    try:
        with pytest.raises(RuleTimeout) as exc_info:
            validate(db, SimpleNamespace(id=1), person_type, ON_CREATE, timeout=0.05)
        assert exc_info.value.validator_slug == "slow-check"
        assert isinstance(exc_info.value, RuleFailure)
    finally:
        release.set()


def test_rule_exception_propagates_and_reverts(
    db: Session, person_type, make_validator, register_rule
):
    def boom(snapshot, trigger, params):
        raise RuntimeError("rule crashed")

    register_rule("set-first", lambda s, t, p: PassWithUpdates({"status": "done"}))
    register_rule("boom", boom)
    entity = SimpleNamespace(id=1, state="pending")
    for key in ("set-first", "boom"):
        validator = make_validator(updatable_fields=["status"], callback={"key": key})
        _attach_person(db, validator, 1, updatable={"status": "state"})

    with pytest.raises(RuntimeError):
        validate(db, entity, person_type, ON_UPDATE)
    assert entity.state == "pending"


def test_failure_is_logged(db: Session, person_type, make_validator, register_rule, caplog):
    register_rule("deny", lambda s, t, p: Fail("denied"))
    validator = make_validator(slug="deny-all", callback={"key": "deny"})
    _attach_person(db, validator, 1)

    with caplog.at_level(logging.INFO, logger="app.validation.executor"):
        with pytest.raises(RuleFailure):
            validate(db, SimpleNamespace(id=1), person_type, ON_CREATE)

    assert "deny-all" in caplog.text
    assert "denied" in caplog.text


# ============================================================================
# ORM ENTITIES AND SCOPES
# ============================================================================


def test_account_is_governed_by_its_account_type(
    db: Session, make_validator, account_type, seller
):
    validator = make_validator(
        slug="min-price",
        readable_fields=["value"],
        callback={"key": "min-value", "params": {"min": 100, "label": "price"}},
    )
    attach_validator(db, validator.id, "AccountType", account_type.id, {"value": "price"})
    account = add_account(
        db, account_type_id=account_type.id, description="", cost=10, price=50, creator_id=seller.id
    )

    with pytest.raises(RuleFailure, match="price must be at least 100"):
        validate(db, account, "Account", ON_CREATE)

    account.price = 150
    report = validate(db, account, "Account", ON_CREATE)
    (outcome,) = report.outcomes
    assert outcome.attached_to_type == "AccountType"
    assert outcome.attached_to_id == account_type.id
    db.rollback()


def test_entity_attachment_takes_precedence_over_scope(
    db: Session, make_validator, account_type, seller, register_rule
):
    register_rule("write-tax", lambda s, t, p: PassWithUpdates({"amount": p["amount"]}))
    validator = make_validator(
        updatable_fields=["amount"], callback={"key": "write-tax", "params": {"amount": 5}}
    )
    account = add_account(
        db, account_type_id=account_type.id, description="", cost=10, price=50, creator_id=seller.id
    )
    db.commit()
    attach_validator(db, validator.id, "AccountType", account_type.id, {}, {"amount": "cost"})
    attach_validator(db, validator.id, "Account", account.id, {}, {"amount": "tax"})

    report = validate(db, account, "Account", ON_UPDATE)

    assert len(report.outcomes) == 1
    assert report.outcomes[0].attached_to_type == "Account"
    assert account.tax == 5
    assert account.cost == 10


def test_validator_field_list_update_is_seen_by_next_run(
    db: Session, person_type, make_validator, register_rule
):
    seen = []
    register_rule("record", lambda s, t, p: seen.append(dict(s)) or Pass())
    validator = make_validator(readable_fields=["age"], callback={"key": "record"})
    _attach_person(db, validator, 1, readable={"age": "user_age"})
    entity = SimpleNamespace(id=1, user_age=20, state="x")

    validate(db, entity, person_type, ON_CREATE)
    update_validator(db, validator.id, readable_fields=["age", "status"])
    validate(db, entity, person_type, ON_CREATE)

    # "status" is now readable but still unmapped, so it stays hidden
    assert seen == [{"age": 20}, {"age": 20}]
