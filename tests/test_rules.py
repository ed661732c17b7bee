"""Tests for rule normalization and the custom validator registry."""

import re

import pytest

from formforge.errors import ConfigurationError
from formforge.registry import ValidatorRegistry, validator
from formforge.rules import (
    BuiltinRule,
    CustomRule,
    normalize_rule,
    normalize_rule_table,
    normalize_rules,
    required_rule,
)
from formforge.types import Trigger


@pytest.fixture(autouse=True)
def clear_validator_registry():
    """Clear validator registry before and after each test."""
    ValidatorRegistry.clear()
    yield
    ValidatorRegistry.clear()


def accept(rule, value, callback):
    callback()


# =============================================================================
# Normalization
# =============================================================================


class TestNormalizeRules:
    def test_none_is_empty(self):
        assert normalize_rules(None) == []

    def test_single_mapping_becomes_list(self):
        rules = normalize_rules({"required": True, "message": "Required"})
        assert len(rules) == 1
        assert isinstance(rules[0], BuiltinRule)
        assert rules[0].required is True

    def test_list_keeps_order(self):
        rules = normalize_rules([
            {"required": True, "message": "first"},
            {"min": 3, "message": "second"},
        ])
        assert [r.message for r in rules] == ["first", "second"]

    def test_rule_instances_pass_through(self):
        rule = BuiltinRule(message="Required", required=True)
        assert normalize_rules([rule]) == [rule]

    def test_pattern_string_is_compiled(self):
        rule = normalize_rule({"pattern": r"^\d+$", "message": "Digits only"})
        assert isinstance(rule.pattern, re.Pattern)

    def test_validator_makes_custom_rule(self):
        rule = normalize_rule({"validator": accept, "trigger": "change", "field": "extra"})
        assert isinstance(rule, CustomRule)
        assert rule.validator is accept
        assert rule.trigger == ("change",)
        assert rule.options == {"field": "extra"}

    def test_custom_rule_needs_no_message(self):
        rule = normalize_rule({"validator": accept})
        assert rule.message is None

    def test_rule_table(self):
        table = normalize_rule_table({
            "name": {"required": True, "message": "Required"},
            "age": [{"type": "integer", "message": "Whole number"}],
        })
        assert set(table) == {"name", "age"}
        assert all(isinstance(v, list) for v in table.values())

    def test_required_rule_message_uses_label(self):
        rule = required_rule("Email")
        assert rule.required is True
        assert rule.message == "Email is required"


class TestConfigurationErrors:
    def test_missing_message_on_checking_rule(self):
        with pytest.raises(ConfigurationError, match="no message"):
            normalize_rule({"required": True})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="requried"):
            normalize_rule({"requried": True, "message": "typo"})

    def test_unknown_type(self):
        with pytest.raises(ConfigurationError, match="Unknown rule type"):
            normalize_rule({"type": "colour", "message": "x"})

    def test_invalid_pattern(self):
        with pytest.raises(ConfigurationError, match="Invalid rule pattern"):
            normalize_rule({"pattern": "([a-z", "message": "x"})

    def test_enum_type_requires_choices(self):
        with pytest.raises(ConfigurationError, match="enum"):
            normalize_rule({"type": "enum", "message": "x"})

    def test_unknown_trigger(self):
        with pytest.raises(ConfigurationError, match="Unknown trigger"):
            normalize_rule({"required": True, "message": "x", "trigger": "submit"})

    def test_non_mapping_rule(self):
        with pytest.raises(ConfigurationError):
            normalize_rules(["required"])

    def test_builtin_rule_instance_without_message(self):
        with pytest.raises(ConfigurationError):
            normalize_rules([BuiltinRule(required=True)])

    def test_non_callable_validator(self):
        with pytest.raises(ConfigurationError, match="callable"):
            normalize_rule({"validator": 42})

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_rule({"required": True})


# =============================================================================
# Triggers
# =============================================================================


class TestTriggers:
    def test_absent_trigger_applies_everywhere(self):
        rule = normalize_rule({"required": True, "message": "x"})
        assert rule.applies_to("change")
        assert rule.applies_to("blur")
        assert rule.applies_to(None)

    def test_trigger_filters(self):
        rule = normalize_rule({"required": True, "message": "x", "trigger": "blur"})
        assert rule.applies_to("blur")
        assert not rule.applies_to("change")
        assert rule.applies_to(None)

    def test_trigger_list(self):
        rule = normalize_rule({"required": True, "message": "x", "trigger": ["change", "blur"]})
        assert rule.applies_to("change")
        assert rule.applies_to("blur")

    def test_trigger_enum(self):
        rule = normalize_rule({"required": True, "message": "x", "trigger": Trigger.CHANGE})
        assert rule.trigger == ("change",)


# =============================================================================
# Registry
# =============================================================================


class TestValidatorRegistry:
    def test_register_and_resolve_by_name(self):
        ValidatorRegistry.register("accept", accept)
        rule = normalize_rule({"validator": "accept"})
        assert rule.validator is accept

    def test_register_is_idempotent(self):
        other = lambda rule, value, callback: callback("no")  # noqa: E731
        ValidatorRegistry.register("accept", accept)
        ValidatorRegistry.register("accept", other)
        assert ValidatorRegistry.get("accept") is accept

    def test_decorator(self):
        @validator("decorated")
        def decorated(rule, value, callback):
            callback()

        assert ValidatorRegistry.is_registered("decorated")
        assert ValidatorRegistry.list_registered() == ["decorated"]

    def test_unregistered_name_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="not registered"):
            normalize_rule({"validator": "missing"})

    def test_get_unregistered_raises_value_error(self):
        with pytest.raises(ValueError):
            ValidatorRegistry.get("missing")
