"""formforge: form validation engine for UI component libraries.

A Form coordinates a tree of Fields bound to a shared model, runs each
field's declarative rules on configurable triggers, aggregates the results
and aligns label widths across sibling fields.

Usage:
    from formforge import Form, ValidationFailed

    form = Form(model={"name": ""}, rules={
        "name": {"required": True, "message": "Please enter a name"},
    })
    form.field("name", label="Name")

    form.validate(lambda valid, invalid_fields: ...)
    # or
    try:
        await form.validate()
    except ValidationFailed as e:
        ...
"""

from formforge.engine import iter_errors, run
from formforge.errors import (
    ConfigurationError,
    FormError,
    InvalidPathError,
    UnknownFieldError,
    ValidationFailed,
)
from formforge.events import FIELDS_CHANGED, VALIDATE
from formforge.field import Field
from formforge.form import Form
from formforge.handle import ValidationHandle
from formforge.layout import LabelMeasurer, LabelWidthCoordinator, TextMeasurer
from formforge.model import Model
from formforge.registry import ValidatorRegistry, validator
from formforge.rules import BuiltinRule, CustomRule, Rule, normalize_rules
from formforge.scheduler import Scheduler
from formforge.settings import FormSettings
from formforge.types import (
    FieldError,
    InvalidFields,
    Trigger,
    ValidateState,
    ValidationOutcome,
)

__all__ = [
    # Types
    "FieldError",
    "InvalidFields",
    "Trigger",
    "ValidateState",
    "ValidationOutcome",
    # Errors
    "ConfigurationError",
    "FormError",
    "InvalidPathError",
    "UnknownFieldError",
    "ValidationFailed",
    # Rules and engine
    "BuiltinRule",
    "CustomRule",
    "Rule",
    "normalize_rules",
    "iter_errors",
    "run",
    "ValidatorRegistry",
    "validator",
    # Controller
    "Field",
    "Form",
    "Model",
    "Scheduler",
    "ValidationHandle",
    "FIELDS_CHANGED",
    "VALIDATE",
    # Layout and settings
    "LabelMeasurer",
    "LabelWidthCoordinator",
    "TextMeasurer",
    "FormSettings",
]
