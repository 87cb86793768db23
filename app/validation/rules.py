"""Rule outcomes, rule handles and the rule registry.

A validator's ``callback`` column stores ``{"key": ..., "params": {...}}``.
The key selects a rule function registered here; the params are bound to it
when the callback is resolved.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel, ValidationError

from app.errors import InvalidRuleParamsError, UnresolvableCallbackError

# Built-in lifecycle triggers. Triggers are plain strings, so new ones need
# no registration.
ON_CREATE = "on-create"
ON_PURCHASE = "on-purchase"
ON_UPDATE = "on-update"


@dataclass(frozen=True)
class Pass:
    pass


@dataclass(frozen=True)
class Fail:
    reason: str


@dataclass(frozen=True)
class PassWithUpdates:
    updates: Mapping[str, Any]


RuleOutcome = Union[Pass, Fail, PassWithUpdates]

# Rule function signature: (snapshot, trigger, params) -> RuleOutcome
RuleFn = Callable[[Mapping[str, Any], str, Mapping[str, Any]], RuleOutcome]


@dataclass(frozen=True)
class RegisteredRule:
    key: str
    fn: RuleFn
    # None means the rule runs for every trigger
    triggers: frozenset[str] | None = None
    description: str = ""
    # Validates callback params; rules without one accept any mapping
    params_model: type[BaseModel] | None = None


@dataclass(frozen=True)
class RuleHandle:
    """Executable rule bound to the params of one validator's callback."""

    key: str
    fn: RuleFn
    triggers: frozenset[str] | None = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def applies_to(self, trigger: str) -> bool:
        return self.triggers is None or trigger in self.triggers

    def run(self, snapshot: Mapping[str, Any], trigger: str) -> RuleOutcome:
        return self.fn(snapshot, trigger, self.params)


class RuleRegistry:
    """Registry for rule implementations.

    Rules must be registered before a validator's callback can reference
    them. Built-in rules register themselves when
    ``app.validation.builtin_rules`` is imported.

    Example:
        @rule("min-value", triggers=[ON_CREATE, ON_UPDATE])
        def min_value(snapshot, trigger, params) -> RuleOutcome:
            ...
    """

    _rules: dict[str, RegisteredRule] = {}

    @classmethod
    def register(
        cls,
        key: str,
        fn: RuleFn,
        triggers: Iterable[str] | None = None,
        description: str = "",
        params_model: type[BaseModel] | None = None,
    ) -> None:
        """Register a rule function under a dispatch key.

        Re-registering the same function under its key is a no-op.

        Raises:
            ValueError: If the key is already taken by a different function
        """
        existing = cls._rules.get(key)
        if existing is not None:
            if existing.fn is fn:
                return
            raise ValueError(
                f"Rule key '{key}' is already registered to {existing.fn.__qualname__}"
            )
        cls._rules[key] = RegisteredRule(
            key=key,
            fn=fn,
            triggers=frozenset(triggers) if triggers is not None else None,
            description=description,
            params_model=params_model,
        )

    @classmethod
    def unregister(cls, key: str) -> None:
        cls._rules.pop(key, None)

    @classmethod
    def get(cls, key: str) -> RegisteredRule:
        """Get a registered rule by key.

        Raises:
            UnresolvableCallbackError: If no rule is registered under the key
        """
        if key not in cls._rules:
            raise UnresolvableCallbackError(f"No rule is registered for callback key '{key}'")
        return cls._rules[key]

    @classmethod
    def list_registered(cls) -> list[RegisteredRule]:
        """List registered rules sorted by key."""
        return [cls._rules[key] for key in sorted(cls._rules)]


def rule(
    key: str,
    triggers: Iterable[str] | None = None,
    description: str = "",
    params_model: type[BaseModel] | None = None,
) -> Callable[[RuleFn], RuleFn]:
    """Decorator to register a rule function."""

    def decorator(fn: RuleFn) -> RuleFn:
        RuleRegistry.register(
            key,
            fn,
            triggers=triggers,
            description=description or (fn.__doc__ or "").strip(),
            params_model=params_model,
        )
        return fn

    return decorator


def parse_callback(callback: Any) -> tuple[str, dict[str, Any]]:
    """Split a stored callback into its dispatch key and params.

    Raises:
        UnresolvableCallbackError: If the callback is not a well-formed reference
    """
    if not isinstance(callback, Mapping):
        raise UnresolvableCallbackError("Callback must be an object with a 'key'")
    key = callback.get("key")
    if not isinstance(key, str) or not key:
        raise UnresolvableCallbackError("Callback must have a non-empty string 'key'")
    params = callback.get("params") or {}
    if not isinstance(params, Mapping):
        raise UnresolvableCallbackError("Callback 'params' must be an object")
    return key, dict(params)


def _describe_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'params'}: {error['msg']}"
        for error in exc.errors()
    )


def resolve_callback(callback: Any) -> RuleHandle:
    """Map a stored callback reference to executable rule logic.

    Raises:
        UnresolvableCallbackError: If the callback is malformed or its key is unknown
        InvalidRuleParamsError: If the params do not fit the rule's params model
    """
    key, params = parse_callback(callback)
    registered = RuleRegistry.get(key)
    if registered.params_model is not None:
        try:
            params = registered.params_model.model_validate(params).model_dump()
        except ValidationError as exc:
            raise InvalidRuleParamsError(
                f"Invalid params for rule '{key}': {_describe_errors(exc)}"
            ) from None
    return RuleHandle(
        key=registered.key,
        fn=registered.fn,
        triggers=registered.triggers,
        params=params,
    )
