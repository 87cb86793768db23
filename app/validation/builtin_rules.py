"""Rules that ship with the marketplace.

Available rules (callback key, params):
- min-value: reads ``value``; ``{"min": n}``
- max-value: reads ``value``; ``{"max": n}``
- required: every readable field must be set
- price-margin: reads ``cost`` and ``price``; ``{"min_margin_percent": n}``
- set-values: writes ``{"values": {...}}`` back to the entity
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.validation.rules import Fail, Pass, PassWithUpdates, RuleOutcome, rule


class RuleParams(BaseModel):
    # Params are stored as JSON by administrators: no coercion, no unknown keys
    model_config = ConfigDict(strict=True, extra="forbid")


class MinValueParams(RuleParams):
    min: int | float = 0
    label: str | None = None


class MaxValueParams(RuleParams):
    max: int | float | None = None
    label: str | None = None


class PriceMarginParams(RuleParams):
    min_margin_percent: float = Field(0, ge=0)


class SetValuesParams(RuleParams):
    values: dict[str, Any] = Field(default_factory=dict)


def _label(params: Mapping[str, Any], default: str) -> str:
    return params.get("label") or default


@rule("min-value", params_model=MinValueParams)
def min_value(snapshot: Mapping[str, Any], trigger: str, params: Mapping[str, Any]) -> RuleOutcome:
    """Reject when ``value`` is below ``params["min"]``."""
    value = snapshot.get("value")
    minimum = params.get("min", 0)
    label = _label(params, "value")
    if value is None:
        return Fail(f"{label} is required")
    if value < minimum:
        return Fail(f"{label} must be at least {minimum}")
    return Pass()


@rule("max-value", params_model=MaxValueParams)
def max_value(snapshot: Mapping[str, Any], trigger: str, params: Mapping[str, Any]) -> RuleOutcome:
    """Reject when ``value`` is above ``params["max"]``."""
    value = snapshot.get("value")
    maximum = params.get("max")
    label = _label(params, "value")
    if value is None or maximum is None:
        return Pass()
    if value > maximum:
        return Fail(f"{label} must be at most {maximum}")
    return Pass()


@rule("required", params_model=RuleParams)
def required(snapshot: Mapping[str, Any], trigger: str, params: Mapping[str, Any]) -> RuleOutcome:
    """Reject when any exposed field is empty."""
    missing = [name for name, value in snapshot.items() if value is None or value == ""]
    if missing:
        return Fail(f"Missing required fields: {', '.join(missing)}")
    return Pass()


@rule("price-margin", params_model=PriceMarginParams)
def price_margin(snapshot: Mapping[str, Any], trigger: str, params: Mapping[str, Any]) -> RuleOutcome:
    """Reject listings priced below cost plus a minimum margin."""
    cost = snapshot.get("cost")
    price = snapshot.get("price")
    if cost is None or price is None:
        return Pass()
    margin = params.get("min_margin_percent", 0)
    floor = cost + cost * margin / 100
    if price < floor:
        return Fail(f"Price {price} is below the minimum of {floor:g} for cost {cost}")
    return Pass()


@rule("set-values", params_model=SetValuesParams)
def set_values(snapshot: Mapping[str, Any], trigger: str, params: Mapping[str, Any]) -> RuleOutcome:
    """Write fixed values to the entity."""
    values = params.get("values") or {}
    if not values:
        return Pass()
    return PassWithUpdates(dict(values))
