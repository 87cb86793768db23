"""Runs the validators attached to an entity at a lifecycle trigger.

The executor never commits. Writebacks land on the in-memory entity inside
the caller's transaction, and a failing rule raises so the caller can roll
back. Writebacks made earlier in the same run are undone before raising.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

import app.repositories.validator as validator_repo
import app.repositories.validatorable as validatorable_repo
from app.core.config import settings
from app.db.models.validator import Validator as ValidatorModel
from app.db.models.validator import Validatorable as ValidatorableModel
from app.errors import ConfigurationError, RuleFailure, RuleTimeout
from app.validation.entities import get_entity_type
from app.validation.field_mapper import (
    apply_writeback,
    build_read_snapshot,
    read_field,
    revert_writeback,
)
from app.validation.rules import (
    Fail,
    Pass,
    PassWithUpdates,
    RuleHandle,
    RuleOutcome,
    resolve_callback,
)

logger = logging.getLogger(__name__)

PASSED = "passed"
UPDATED = "updated"
SKIPPED = "skipped"


@dataclass
class ValidatorOutcome:
    validator_id: int
    slug: str
    # Entity the validator is attached to; differs from the validated
    # entity when the attachment comes from a scope
    attached_to_type: str
    attached_to_id: int
    status: str
    changed_fields: tuple[str, ...] = ()
    skip_reason: str | None = None


@dataclass
class ExecutionReport:
    entity_type: str
    entity_id: Any
    trigger: str
    outcomes: list[ValidatorOutcome] = field(default_factory=list)

    @property
    def changed_fields(self) -> set[str]:
        return {name for outcome in self.outcomes for name in outcome.changed_fields}

    @property
    def executed(self) -> list[ValidatorOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status != SKIPPED]


def _collect_attachments(
    db: Session, entity: Any, entity_type: str, entity_id: Any
) -> list[ValidatorableModel]:
    """The entity's own attachments first, then those of its scopes.

    A validator reached through several attachments runs once, with the
    most specific mapping.
    """
    refs = [(entity_type, entity_id)] + get_entity_type(entity_type).scope_refs(entity)
    seen: set[int] = set()
    attachments: list[ValidatorableModel] = []
    for ref_type, ref_id in refs:
        for attachment in validatorable_repo.find_attachments_for(db, ref_type, ref_id):
            if attachment.validator_id in seen:
                continue
            seen.add(attachment.validator_id)
            attachments.append(attachment)
    return attachments


def _run_rule(
    handle: RuleHandle,
    snapshot: Any,
    trigger: str,
    timeout: float | None,
    slug: str,
) -> RuleOutcome:
    if not timeout:
        return handle.run(snapshot, trigger)

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"rule-{handle.key}")
    try:
        future = pool.submit(handle.run, snapshot, trigger)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            raise RuleTimeout(
                f"Validator '{slug}' did not finish within {timeout:g}s", validator_slug=slug
            ) from None
    finally:
        # A rule stuck past its timeout is abandoned, not joined
        pool.shutdown(wait=False)


def _skipped(
    validator: ValidatorModel, attachment: ValidatorableModel, reason: str
) -> ValidatorOutcome:
    return ValidatorOutcome(
        validator_id=validator.id,
        slug=validator.slug,
        attached_to_type=attachment.validatorable_type,
        attached_to_id=attachment.validatorable_id,
        status=SKIPPED,
        skip_reason=reason,
    )


def validate(
    db: Session,
    entity: Any,
    entity_type: str,
    trigger: str,
    timeout: float | None = None,
) -> ExecutionReport:
    """
    Run every validator attached to ``entity`` that applies to ``trigger``.

    Validators run in attachment order and stop at the first failure.

    Args:
        db: Session of the caller's transaction
        entity: The entity being created, bought or updated
        entity_type: Registered type tag of the entity
        trigger: Lifecycle trigger (e.g. "on-create")
        timeout: Per-rule timeout in seconds; defaults to RULE_TIMEOUT_SECONDS,
            0 disables it

    Returns:
        ExecutionReport with one outcome per resolved attachment

    Raises:
        RuleFailure: If a rule fails (RuleTimeout if it overruns)
        UnresolvableCallbackError: If a callback key has no registered rule
        ConfigurationError: If a rule returns something other than an outcome
    """
    if timeout is None:
        timeout = settings.rule_timeout_seconds

    entity_id = read_field(entity, "id")
    report = ExecutionReport(entity_type=entity_type, entity_id=entity_id, trigger=trigger)

    attachments = _collect_attachments(db, entity, entity_type, entity_id)
    if not attachments:
        return report

    validators = validator_repo.get_validators_by_ids(
        db, [attachment.validator_id for attachment in attachments]
    )

    applied: list[dict[str, Any]] = []
    try:
        for attachment in attachments:
            validator = validators[attachment.validator_id]

            if validator.callback is None:
                report.outcomes.append(_skipped(validator, attachment, "descriptive-only"))
                continue

            handle = resolve_callback(validator.callback)
            if not handle.applies_to(trigger):
                report.outcomes.append(_skipped(validator, attachment, f"not run on {trigger}"))
                continue

            snapshot = build_read_snapshot(
                entity, validator.readable_fields, attachment.mapped_readable_fields
            )
            outcome = _run_rule(handle, snapshot, trigger, timeout, validator.slug)

            if isinstance(outcome, Fail):
                logger.info(
                    "Validator '%s' rejected %s %s on %s: %s",
                    validator.slug,
                    entity_type,
                    entity_id,
                    trigger,
                    outcome.reason,
                )
                raise RuleFailure(outcome.reason, validator_slug=validator.slug)

            if isinstance(outcome, PassWithUpdates):
                previous = apply_writeback(
                    entity,
                    validator.updatable_fields,
                    attachment.mapped_updatable_fields,
                    outcome.updates,
                )
                applied.append(previous)
                logger.debug(
                    "Validator '%s' updated %s %s: %s",
                    validator.slug,
                    entity_type,
                    entity_id,
                    ", ".join(previous) or "no changes",
                )
                status = UPDATED
            elif isinstance(outcome, Pass):
                previous = {}
                status = PASSED
            else:
                raise ConfigurationError(
                    f"Rule '{handle.key}' returned {type(outcome).__name__}, expected a rule outcome"
                )

            report.outcomes.append(
                ValidatorOutcome(
                    validator_id=validator.id,
                    slug=validator.slug,
                    attached_to_type=attachment.validatorable_type,
                    attached_to_id=attachment.validatorable_id,
                    status=status,
                    changed_fields=tuple(previous),
                )
            )
    except Exception:
        for previous in reversed(applied):
            revert_writeback(entity, previous)
        raise

    logger.debug(
        "Validated %s %s on %s: %d ran, %d skipped",
        entity_type,
        entity_id,
        trigger,
        len(report.executed),
        len(report.outcomes) - len(report.executed),
    )
    return report
