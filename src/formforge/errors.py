"""Exception taxonomy for formforge.

Rule violations are never raised: they live in field state as FieldErrors.
Exceptions are reserved for programming and configuration mistakes, plus
ValidationFailed, which is how an awaited validation reports an invalid
outcome.
"""

from formforge.types import InvalidFields


class FormError(Exception):
    """Base class for all formforge errors."""
    pass


class ConfigurationError(FormError, ValueError):
    """A rule, option or form definition is malformed."""
    pass


class InvalidPathError(FormError, LookupError):
    """A property path does not resolve against the model."""
    pass


class UnknownFieldError(FormError, LookupError):
    """No mounted field carries the requested path."""
    pass


class ValidationFailed(FormError):
    """Raised when awaiting a validation whose outcome is invalid.

    Attributes:
        invalid_fields: Errors keyed by model path
    """

    def __init__(self, invalid_fields: InvalidFields):
        self.invalid_fields = invalid_fields
        paths = ", ".join(invalid_fields) or "<none>"
        super().__init__(f"Validation failed for: {paths}")
