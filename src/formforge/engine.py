"""Validator engine: evaluates one ordered rule list against one value.

Built-in checks run in a fixed precedence per rule:
- Presence (required)
- Type conformance
- Bounds (len, then min/max): magnitude for numbers, length for strings/arrays
- Enum membership
- Pattern match

The first failing check short-circuits its rule; the engine still moves on
to the next rule. A custom rule's validator replaces the built-in checks and
completes through a callback (first call wins, no timeout).
"""

import asyncio
import inspect
import logging
import math
import re
from collections.abc import AsyncIterator, Iterable, Mapping
from datetime import date, time
from typing import Any

from formforge.rules import BuiltinRule, CustomRule, Rule
from formforge.types import FieldError

logger = logging.getLogger(__name__)


# =============================================================================
# Type-Specific Format Patterns
# =============================================================================

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

URL_PATTERN = re.compile(
    r"^https?://[^\s/$.?#].[^\s]*$",
    re.IGNORECASE
)

HEX_PATTERN = re.compile(r"^#?([a-f0-9]{6}|[a-f0-9]{3})$", re.IGNORECASE)

_NUMERIC_TYPES = ("number", "integer", "float")
_LENGTH_TYPES = ("string", "email", "url", "hex", "array")


# =============================================================================
# Value Predicates
# =============================================================================


def is_empty(value: Any, whitespace: bool = False) -> bool:
    """Check if a value counts as missing for a required check."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" if whitespace else value == ""
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def _is_integer(value: Any) -> bool:
    if not _is_number(value):
        return False
    return isinstance(value, int) or value.is_integer()


def _is_regexp(value: Any) -> bool:
    if isinstance(value, re.Pattern):
        return True
    if not isinstance(value, str):
        return False
    try:
        re.compile(value)
    except re.error:
        return False
    return True


def conforms(value: Any, rule_type: str, rule: BuiltinRule | None = None) -> bool:
    """Check that *value* conforms to the declared rule type."""
    if rule_type == "string":
        return isinstance(value, str)
    if rule_type == "number":
        return _is_number(value)
    if rule_type == "integer":
        return _is_integer(value)
    if rule_type == "float":
        return _is_number(value) and not _is_integer(value)
    if rule_type == "boolean":
        return isinstance(value, bool)
    if rule_type == "array":
        return isinstance(value, (list, tuple))
    if rule_type == "object":
        return isinstance(value, Mapping)
    if rule_type == "date":
        return isinstance(value, (date, time))
    if rule_type == "email":
        return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None
    if rule_type == "url":
        return isinstance(value, str) and URL_PATTERN.match(value) is not None
    if rule_type == "hex":
        return isinstance(value, str) and HEX_PATTERN.match(value) is not None
    if rule_type == "regexp":
        return _is_regexp(value)
    if rule_type == "method":
        return callable(value)
    if rule_type == "enum":
        return rule is not None and rule.enum is not None and value in rule.enum
    return True


def _measure(value: Any, rule_type: str | None) -> float | None:
    """The quantity bounds apply to: magnitude or length, or None to skip."""
    if rule_type in _NUMERIC_TYPES:
        return value if _is_number(value) else None
    if rule_type in _LENGTH_TYPES:
        return len(value) if isinstance(value, (str, list, tuple)) else None
    if rule_type is None:
        if _is_number(value):
            return value
        if isinstance(value, (str, list, tuple)):
            return len(value)
    return None


# =============================================================================
# Built-in Checks
# =============================================================================


def check_builtin(rule: BuiltinRule, value: Any, path: str | None = None) -> FieldError | None:
    """Run one declarative rule. Returns the first failure, or None."""
    message = rule.message or ""

    if is_empty(value, rule.whitespace):
        if rule.required:
            return FieldError(message=message, code="REQUIRED", field=path)
        # Optional and empty: nothing else to check
        return None

    if rule.type is not None and not conforms(value, rule.type, rule):
        code = "INVALID_OPTION" if rule.type == "enum" else f"INVALID_{rule.type.upper()}"
        return FieldError(message=message, code=code, field=path)

    measured = _measure(value, rule.type)
    if measured is not None:
        if rule.len is not None:
            if measured != rule.len:
                return FieldError(message=message, code="LENGTH", field=path)
        else:
            if rule.min is not None and measured < rule.min:
                return FieldError(message=message, code="MIN", field=path)
            if rule.max is not None and measured > rule.max:
                return FieldError(message=message, code="MAX", field=path)

    if rule.enum is not None and rule.type != "enum" and value not in rule.enum:
        return FieldError(message=message, code="INVALID_OPTION", field=path)

    if rule.pattern is not None and isinstance(value, str):
        if not rule.pattern.search(value):
            return FieldError(message=message, code="PATTERN_MISMATCH", field=path)

    return None


# =============================================================================
# Custom Validators
# =============================================================================


def _coerce(result: Any, rule: CustomRule, path: str | None) -> list[FieldError]:
    """Turn a validator's completion value into errors."""
    if result is None or result is True:
        return []
    if result is False:
        return [FieldError(message=rule.message or "", code="CUSTOM", field=path)]
    if isinstance(result, (list, tuple)):
        errors: list[FieldError] = []
        for item in result:
            errors.extend(_coerce(item, rule, path))
        return errors

    if isinstance(result, FieldError):
        error = FieldError(
            message=result.message,
            code=result.code or "CUSTOM",
            field=result.field or path,
        )
    else:
        # Exceptions and plain strings both carry their message via str()
        error = FieldError(message=str(result), code="CUSTOM", field=path)

    # A rule-level message replaces whatever the validator produced
    if rule.message:
        error = FieldError(message=rule.message, code=error.code, field=error.field)
    return [error]


def _fault(rule: CustomRule, path: str | None, exc: BaseException) -> list[FieldError]:
    logger.warning("Custom validator for '%s' raised: %s", path, exc)
    return [
        FieldError(
            message=rule.message or f"Validator error: {exc}",
            code="VALIDATOR_ERROR",
            field=path,
        )
    ]


async def run_custom(rule: CustomRule, value: Any, path: str | None = None) -> list[FieldError]:
    """Run a custom rule and wait for its completion signal.

    The validator is called as ``validator(rule, value, callback)``. The
    first callback invocation completes the rule; a coroutine validator may
    complete it by returning instead. Exceptions raised by the validator are
    converted into a VALIDATOR_ERROR.
    """
    loop = asyncio.get_running_loop()
    completion: asyncio.Future = loop.create_future()

    def callback(result: Any = None) -> None:
        if completion.done():
            logger.debug("Ignoring repeated completion from validator for '%s'", path)
            return
        completion.set_result(result)

    try:
        returned = rule.validator(rule, value, callback)
    except Exception as e:
        if not completion.done():
            return _fault(rule, path, e)
        logger.warning("Custom validator for '%s' raised after completing: %s", path, e)
        returned = None

    if inspect.isawaitable(returned):
        try:
            result = await returned
        except Exception as e:
            if not completion.done():
                return _fault(rule, path, e)
            logger.warning("Custom validator for '%s' raised after completing: %s", path, e)
        else:
            if not completion.done():
                completion.set_result(result)

    return _coerce(await completion, rule, path)


# =============================================================================
# Engine
# =============================================================================


async def iter_errors(
    value: Any,
    rules: Iterable[Rule],
    path: str | None = None,
) -> AsyncIterator[FieldError]:
    """Lazily yield the errors produced by *rules* for *value*, in rule order.

    Args:
        value: The current model value
        rules: Ordered, normalized rules
        path: Model path, recorded on each error

    Yields:
        FieldError for every failure; stops when the rules are exhausted
    """
    for rule in rules:
        if isinstance(rule, CustomRule):
            for error in await run_custom(rule, value, path):
                yield error
        elif isinstance(rule, BuiltinRule):
            error = check_builtin(rule, value, path)
            if error is not None:
                yield error


async def run(
    value: Any,
    rules: Iterable[Rule],
    path: str | None = None,
) -> list[FieldError]:
    """Evaluate every rule and collect all errors in rule-list order."""
    return [error async for error in iter_errors(value, rules, path)]
