"""Validator engine: field mapping, rule dispatch and execution.

Importing this package registers the built-in rules and entity types.
"""

from app.validation import builtin_rules  # noqa: F401
from app.validation.executor import ExecutionReport, ValidatorOutcome, validate
from app.validation.rules import (
    ON_CREATE,
    ON_PURCHASE,
    ON_UPDATE,
    Fail,
    Pass,
    PassWithUpdates,
    RuleHandle,
    RuleRegistry,
    resolve_callback,
    rule,
)

__all__ = [
    "ON_CREATE",
    "ON_PURCHASE",
    "ON_UPDATE",
    "ExecutionReport",
    "Fail",
    "Pass",
    "PassWithUpdates",
    "RuleHandle",
    "RuleRegistry",
    "ValidatorOutcome",
    "resolve_callback",
    "rule",
    "validate",
]
