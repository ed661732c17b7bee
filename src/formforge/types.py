"""Core types for the formforge validation system.

This module defines the values that flow between the layers:
- FieldError: one failed check, carrying the rule's message
- ValidateState: the per-field validation state machine
- ValidationOutcome: the settled result of a field or bulk validate
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Trigger(Enum):
    """Named user actions that activate a subset of a field's rules."""

    CHANGE = "change"
    BLUR = "blur"


class ValidateState(Enum):
    """Validation state of a single field.

    IDLE: Never validated, or reset/cleared since
    VALIDATING: A validate() call is in flight
    VALID: The latest validation produced no errors
    INVALID: The latest validation failed, or an external error is set
    """

    IDLE = "idle"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class FieldError:
    """A single validation error for a model path.

    Attributes:
        message: Human-readable message, usually the rule's configured message
        code: Machine-readable error code (e.g., "REQUIRED", "PATTERN_MISMATCH")
        field: Model path this error relates to
    """

    message: str
    code: str = ""
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "field": self.field,
        }


# Mapping path -> ordered list of errors; paths without errors are absent
InvalidFields = dict[str, list[FieldError]]


@dataclass(frozen=True)
class ValidationOutcome:
    """Settled result of a validate() call.

    Attributes:
        valid: True if no field produced an error
        invalid_fields: Errors keyed by model path, in rule-list order
    """

    valid: bool
    invalid_fields: InvalidFields = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "invalidFields": {
                path: [e.to_dict() for e in errors]
                for path, errors in self.invalid_fields.items()
            },
        }
