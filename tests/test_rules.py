import pytest
from pydantic import BaseModel, ConfigDict

from app.errors import ConfigurationError, InvalidRuleParamsError, UnresolvableCallbackError
from app.validation import (
    ON_CREATE,
    ON_PURCHASE,
    ON_UPDATE,
    Fail,
    Pass,
    PassWithUpdates,
    RuleRegistry,
    resolve_callback,
)


# ============================================================================
# REGISTRY AND CALLBACK RESOLUTION
# ============================================================================


def test_builtin_rules_are_registered():
    keys = {registered.key for registered in RuleRegistry.list_registered()}
    assert {"min-value", "max-value", "required", "price-margin", "set-values"} <= keys


def test_resolve_callback_binds_params(register_rule):
    seen = {}

    def capture(snapshot, trigger, params):
        seen.update(params)
        return Pass()

    register_rule("capture-params", capture)
    handle = resolve_callback({"key": "capture-params", "params": {"limit": 3}})
    assert handle.key == "capture-params"
    assert handle.run({}, ON_CREATE) == Pass()
    assert seen == {"limit": 3}


def test_resolve_callback_unknown_key():
    with pytest.raises(UnresolvableCallbackError):
        resolve_callback({"key": "no-such-rule"})


@pytest.mark.parametrize(
    "callback",
    [
        "min-value",
        {"params": {}},
        {"key": ""},
        {"key": "min-value", "params": [1, 2]},
    ],
)
def test_resolve_callback_malformed(callback):
    with pytest.raises(UnresolvableCallbackError):
        resolve_callback(callback)


def test_handle_trigger_filtering(register_rule):
    register_rule("purchase-only", lambda s, t, p: Pass(), triggers=[ON_PURCHASE])
    handle = resolve_callback({"key": "purchase-only"})
    assert handle.applies_to(ON_PURCHASE)
    assert not handle.applies_to(ON_CREATE)


def test_handle_without_triggers_applies_to_any_trigger():
    handle = resolve_callback({"key": "required"})
    assert handle.applies_to(ON_UPDATE)
    assert handle.applies_to("on-refund")


def test_register_same_function_is_idempotent(register_rule):
    def keep(snapshot, trigger, params):
        return Pass()

    register_rule("idempotent", keep)
    register_rule("idempotent", keep)
    assert RuleRegistry.get("idempotent").fn is keep


def test_register_rejects_key_clash(register_rule):
    first = register_rule("clash", lambda s, t, p: Pass())
    with pytest.raises(ValueError, match="clash"):
        register_rule("clash", lambda s, t, p: Fail("replaced"))
    assert RuleRegistry.get("clash").fn is first


def test_params_model_validates_and_fills_defaults(register_rule):
    class LimitParams(BaseModel):
        model_config = ConfigDict(strict=True, extra="forbid")

        limit: int = 5

    register_rule("limited", lambda s, t, p: Pass(), params_model=LimitParams)
    assert resolve_callback({"key": "limited"}).params == {"limit": 5}
    with pytest.raises(InvalidRuleParamsError, match="limit"):
        resolve_callback({"key": "limited", "params": {"limit": "5"}})


@pytest.mark.parametrize(
    "key, params",
    [
        ("min-value", {"min": "100"}),
        ("min-value", {"minimum": 100}),
        ("max-value", {"max": "ten"}),
        ("max-value", {"max": True}),
        ("price-margin", {"min_margin_percent": "5"}),
        ("price-margin", {"min_margin_percent": -5}),
        ("set-values", {"values": ["tax", 7]}),
        ("required", {"strict": True}),
    ],
)
def test_builtin_rules_reject_bad_params(key, params):
    with pytest.raises(InvalidRuleParamsError) as exc_info:
        resolve_callback({"key": key, "params": params})
    assert isinstance(exc_info.value, ConfigurationError)
    assert key in str(exc_info.value)


# ============================================================================
# BUILT-IN RULES
# ============================================================================


def _run(key, snapshot, **params):
    return resolve_callback({"key": key, "params": params}).run(snapshot, ON_CREATE)


def test_min_value():
    assert _run("min-value", {"value": 18}, min=18) == Pass()
    assert _run("min-value", {"value": 15}, min=18, label="age") == Fail("age must be at least 18")
    assert isinstance(_run("min-value", {}, min=1), Fail)


def test_max_value():
    assert _run("max-value", {"value": 10}, max=10) == Pass()
    assert isinstance(_run("max-value", {"value": 11}, max=10), Fail)
    assert _run("max-value", {}, max=10) == Pass()


def test_required():
    assert _run("required", {"description": "x", "price": 0}) == Pass()
    outcome = _run("required", {"description": "", "price": None})
    assert isinstance(outcome, Fail)
    assert "description" in outcome.reason
    assert "price" in outcome.reason


def test_price_margin():
    assert _run("price-margin", {"cost": 100, "price": 110}, min_margin_percent=10) == Pass()
    assert isinstance(_run("price-margin", {"cost": 100, "price": 109}, min_margin_percent=10), Fail)


def test_set_values():
    outcome = _run("set-values", {}, values={"status": "approved"})
    assert outcome == PassWithUpdates({"status": "approved"})
    assert _run("set-values", {}) == Pass()
