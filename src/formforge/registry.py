"""Custom validator registry for formforge.

Provides registration and lookup of custom validator functions by name, so
rules loaded from YAML definitions can reference them (``validator: acceptTerms``).
"""

from collections.abc import Callable
from typing import Any

# Custom validator signature: (rule, value, callback) -> None | Awaitable
ValidatorFn = Callable[..., Any]


class ValidatorRegistry:
    """Registry for named custom validators.

    Validators must be explicitly registered before a rule can reference
    them by name. Registration is typically done at application startup,
    directly or with the @validator decorator.

    Example:
        @validator("acceptTerms")
        def accept_terms(rule, value, callback):
            callback() if value else callback("You must accept the terms")
    """

    _validators: dict[str, ValidatorFn] = {}

    @classmethod
    def register(cls, name: str, fn: ValidatorFn) -> None:
        """Register a validator function by name.

        Idempotent - re-registering the same name is a no-op.

        Args:
            name: Unique identifier for the validator
            fn: Callable following the custom validator protocol
        """
        if name in cls._validators:
            return
        cls._validators[name] = fn

    @classmethod
    def get(cls, name: str) -> ValidatorFn:
        """Get a registered validator by name.

        Raises:
            ValueError: If validator is not registered
        """
        if name not in cls._validators:
            raise ValueError(
                f"Validator '{name}' is not registered. "
                "Custom validators must be explicitly registered at application startup."
            )
        return cls._validators[name]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._validators

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered validator names."""
        return sorted(cls._validators.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._validators.clear()


def validator(name: str) -> Callable[[ValidatorFn], ValidatorFn]:
    """Decorator to register a custom validator.

    Usage:
        @validator("acceptTerms")
        def accept_terms(rule, value, callback):
            ...
    """

    def decorator(fn: ValidatorFn) -> ValidatorFn:
        ValidatorRegistry.register(name, fn)
        return fn

    return decorator
