"""Rule definitions and normalization.

A property path maps to one rule or an ordered list of rules. Each rule is
either declarative (required, type, bounds, pattern, enum) or custom (a
validator function). Rules arrive as dicts, Rule instances, or lists of
either, and are normalized once, at ingestion, into an ordered list of
BuiltinRule / CustomRule. Malformed rules raise ConfigurationError here
rather than silently validating as passing.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from formforge.errors import ConfigurationError
from formforge.registry import ValidatorFn, ValidatorRegistry
from formforge.types import Trigger

RULE_TYPES = frozenset({
    "string",
    "number",
    "integer",
    "float",
    "boolean",
    "array",
    "object",
    "date",
    "email",
    "url",
    "hex",
    "regexp",
    "method",
    "enum",
    "any",
})

TRIGGERS = frozenset(t.value for t in Trigger)

_BUILTIN_KEYS = frozenset({
    "type", "required", "min", "max", "len", "pattern", "enum", "whitespace",
})
_COMMON_KEYS = frozenset({"message", "trigger", "required"})


# =============================================================================
# Rule Types
# =============================================================================


@dataclass(frozen=True)
class Rule:
    """Fields shared by every rule.

    Attributes:
        message: Message reported when the rule fails
        trigger: Triggers this rule runs on; empty means every trigger
        required: Whether the rule demands a non-empty value
    """

    message: str | None = None
    trigger: tuple[str, ...] = ()
    required: bool = False

    def applies_to(self, trigger: str | None) -> bool:
        """True if this rule runs for *trigger* (None selects every rule)."""
        if trigger is None or not self.trigger:
            return True
        return trigger in self.trigger


@dataclass(frozen=True)
class BuiltinRule(Rule):
    """Declarative rule evaluated by the engine's built-in checks."""

    type: str | None = None
    min: float | None = None
    max: float | None = None
    len: int | None = None
    pattern: re.Pattern | None = None
    enum: tuple[Any, ...] | None = None
    whitespace: bool = False

    @property
    def has_checks(self) -> bool:
        return (
            self.required
            or self.type is not None
            or self.min is not None
            or self.max is not None
            or self.len is not None
            or self.pattern is not None
            or self.enum is not None
        )


@dataclass(frozen=True)
class CustomRule(Rule):
    """Rule whose check is a caller-supplied validator function.

    The validator fully replaces the built-in checks. ``options`` keeps any
    extra keys from the rule definition so validators can read them.
    """

    validator: ValidatorFn | None = None
    options: Mapping[str, Any] = field(default_factory=dict)


RuleInput = Union[Rule, Mapping[str, Any]]


# =============================================================================
# Normalization
# =============================================================================


def _normalize_trigger(raw: Any) -> tuple[str, ...]:
    if raw is None or raw == "":
        return ()
    values = [raw] if isinstance(raw, (str, Trigger)) else list(raw)
    triggers = []
    for value in values:
        name = value.value if isinstance(value, Trigger) else value
        if name not in TRIGGERS:
            raise ConfigurationError(
                f"Unknown trigger '{name}'. Expected one of: {', '.join(sorted(TRIGGERS))}"
            )
        triggers.append(name)
    return tuple(triggers)


def _compile_pattern(raw: Any) -> re.Pattern | None:
    if raw is None:
        return None
    if isinstance(raw, re.Pattern):
        return raw
    try:
        return re.compile(raw)
    except re.error as e:
        raise ConfigurationError(f"Invalid rule pattern {raw!r}: {e}") from e


def _custom_rule(data: Mapping[str, Any]) -> CustomRule:
    fn = data["validator"]
    if isinstance(fn, str):
        try:
            fn = ValidatorRegistry.get(fn)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
    if not callable(fn):
        raise ConfigurationError(f"Rule validator must be callable, got {type(fn).__name__}")

    return CustomRule(
        message=data.get("message"),
        trigger=_normalize_trigger(data.get("trigger")),
        required=bool(data.get("required", False)),
        validator=fn,
        options={
            k: v for k, v in data.items()
            if k not in _COMMON_KEYS and k != "validator"
        },
    )


def _builtin_rule(data: Mapping[str, Any]) -> BuiltinRule:
    unknown = set(data) - _BUILTIN_KEYS - _COMMON_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown rule key(s): {', '.join(sorted(unknown))}")

    rule_type = data.get("type")
    if rule_type is not None and rule_type not in RULE_TYPES:
        raise ConfigurationError(
            f"Unknown rule type '{rule_type}'. Available types: {', '.join(sorted(RULE_TYPES))}"
        )

    enum = data.get("enum")
    if rule_type == "enum" and not enum:
        raise ConfigurationError("Rule of type 'enum' requires an 'enum' list")

    rule = BuiltinRule(
        message=data.get("message"),
        trigger=_normalize_trigger(data.get("trigger")),
        required=bool(data.get("required", False)),
        type=rule_type,
        min=data.get("min"),
        max=data.get("max"),
        len=data.get("len"),
        pattern=_compile_pattern(data.get("pattern")),
        enum=tuple(enum) if enum is not None else None,
        whitespace=bool(data.get("whitespace", False)),
    )

    if rule.has_checks and not rule.message:
        raise ConfigurationError(
            f"Rule {dict(data)!r} has checks but no message"
        )
    return rule


def normalize_rule(raw: RuleInput) -> Rule:
    """Normalize one rule definition into a BuiltinRule or CustomRule."""
    if isinstance(raw, Rule):
        if isinstance(raw, BuiltinRule) and raw.has_checks and not raw.message:
            raise ConfigurationError(f"Rule {raw!r} has checks but no message")
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"Rule must be a mapping or Rule, got {type(raw).__name__}"
        )
    if raw.get("validator") is not None:
        return _custom_rule(raw)
    return _builtin_rule(raw)


def normalize_rules(raw: RuleInput | Iterable[RuleInput] | None) -> list[Rule]:
    """Normalize a single rule or a list of rules into an ordered list.

    Args:
        raw: None, one rule (dict or Rule), or an iterable of them

    Returns:
        Ordered list of normalized rules (empty for None)
    """
    if raw is None:
        return []
    if isinstance(raw, (Rule, Mapping)):
        return [normalize_rule(raw)]
    return [normalize_rule(item) for item in raw]


def normalize_rule_table(
    table: Mapping[str, RuleInput | Iterable[RuleInput]] | None,
) -> dict[str, list[Rule]]:
    """Normalize a form-level rule table (path -> rule or rule list)."""
    if not table:
        return {}
    return {path: normalize_rules(raw) for path, raw in table.items()}


def required_rule(label: str) -> BuiltinRule:
    """The implicit rule appended for a field flagged ``required``."""
    return BuiltinRule(message=f"{label} is required", required=True)
