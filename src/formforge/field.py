"""Field: one validated slot of a form.

A Field owns one model path, its resolved rules and its validation state.
It is constructed with an explicit reference to its Form and becomes part
of the form's registry when mounted:

    field = Field(form, "name", label="Name", rules={"required": True, "message": "Required"})
    field.mount()

State machine: idle -> validating -> valid | invalid. Each validate() call
takes a sequence number and only the latest call commits state, so an
earlier, slower validation cannot overwrite a newer result.
"""

import copy
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from formforge import engine
from formforge.errors import ConfigurationError
from formforge.handle import DoneCallback, ValidationHandle
from formforge.layout import AUTO, format_width
from formforge.rules import TRIGGERS, Rule, RuleInput, normalize_rules, required_rule
from formforge.types import FieldError, Trigger, ValidateState, ValidationOutcome

if TYPE_CHECKING:
    from formforge.form import Form

logger = logging.getLogger(__name__)


class Field:
    """A validated (model path, rules, state) unit backing one labelled control.

    Args:
        form: Owning form
        path: Model property path; fields without one take part in layout only
        label: Label text
        rules: Field-local rules; when given they replace the form's rules for the path
        required: Append an implicit required rule (and mark the field required)
        error: External error message that overrides computed state
        show_message: Whether the error text is rendered
        inline_message: Render the error inline (defaults to the form's setting)
        label_width: Fixed width or "auto"; defaults to the form's setting
        size: Control size; defaults to the form's size
        parent: Enclosing field, for nested fields
        visible: Whether the field is currently rendered
    """

    def __init__(
        self,
        form: "Form",
        path: str | None = None,
        *,
        label: str | None = None,
        rules: RuleInput | Iterable[RuleInput] | None = None,
        required: bool | None = None,
        error: str | None = None,
        show_message: bool = True,
        inline_message: bool | None = None,
        label_width: int | str | None = None,
        size: str | None = None,
        parent: "Field | None" = None,
        visible: bool = True,
    ):
        if parent is not None and parent.form is not form:
            raise ConfigurationError("A nested field must belong to its parent's form")

        self.form = form
        self.path = path
        self._label = label
        self._rules: list[Rule] | None = normalize_rules(rules) if rules is not None else None
        self.required = required
        self.show_message = show_message
        self.inline_message = inline_message
        self.label_width = label_width
        self.size = size
        self.parent = parent
        self._visible = visible

        self.validate_state = ValidateState.IDLE
        self.validate_message = ""
        self._error: str | None = None
        self.initial_value: Any = None
        self._snapshot_taken = False
        self._seq = 0
        self._unwatch = None

        if error:
            self.error = error

    def __repr__(self) -> str:
        return f"Field(path={self.path!r}, state={self.validate_state.value})"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def mounted(self) -> bool:
        return self in self.form.registry

    def mount(self) -> "Field":
        """Insert this field into its form's registry."""
        self.form.add_field(self)
        return self

    def unmount(self) -> None:
        """Remove this field from its form's registry."""
        self.form.remove_field(self)

    def _on_registered(self) -> None:
        if not self.path:
            return
        model = self.form.model
        if not self._snapshot_taken:
            self.initial_value = copy.deepcopy(model.read(self.path))
            self._snapshot_taken = True
        self._unwatch = model.watch(self.path, self._on_model_change)

    def _on_unregistered(self) -> None:
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None

    # =========================================================================
    # Attributes
    # =========================================================================

    @property
    def value(self) -> Any:
        """Current model value at this field's path."""
        if not self.path:
            return None
        return self.form.model.read(self.path)

    @property
    def label(self) -> str | None:
        return self._label

    @label.setter
    def label(self, value: str | None) -> None:
        self._label = value
        self.form._fields_changed(self)

    @property
    def label_text(self) -> str:
        """Label as rendered, with the form's suffix."""
        if not self._label:
            return ""
        return self._label + self.form.label_suffix

    @property
    def visible(self) -> bool:
        """False when this field, an enclosing field or the sub-form host is hidden."""
        if not self._visible:
            return False
        if self.parent is not None:
            return self.parent.visible
        return self.form.visible

    @visible.setter
    def visible(self, value: bool) -> None:
        if self._visible == value:
            return
        self._visible = value
        self.form._fields_changed(self)

    @property
    def disabled(self) -> bool:
        """Whether the control is disabled, inherited from the form chain."""
        return self.form.is_disabled

    @property
    def depth(self) -> int:
        """Nesting depth within the form (0 for top-level fields)."""
        depth = 0
        parent = self.parent
        while parent is not None:
            depth += 1
            parent = parent.parent
        return depth

    @property
    def is_nested(self) -> bool:
        return self.parent is not None

    @property
    def error(self) -> str | None:
        """External error message; setting it forces the invalid state."""
        return self._error

    @error.setter
    def error(self, value: str | None) -> None:
        self._error = value or None
        if self._error:
            self.validate_state = ValidateState.INVALID
            self.validate_message = self._error
        else:
            self.validate_state = ValidateState.IDLE
            self.validate_message = ""

    # =========================================================================
    # Rules
    # =========================================================================

    @property
    def rules(self) -> list[Rule] | None:
        """Field-local rules, or None when the form's rules apply."""
        return self._rules

    @rules.setter
    def rules(self, value: RuleInput | Iterable[RuleInput] | None) -> None:
        self._rules = normalize_rules(value) if value is not None else None

    def get_rules(self) -> list[Rule]:
        """Resolved rules: field-local rules, else the form's rules for the path.

        A ``required`` flag appends an implicit required rule.
        """
        if self._rules is not None:
            rules = list(self._rules)
        elif self.path:
            rules = list(self.form.rules_for(self.path))
        else:
            rules = []

        if self.required:
            rules.append(required_rule(self._label or self.path or "This field"))
        return rules

    def get_filtered_rules(self, trigger: str | None) -> list[Rule]:
        """Rules that run for *trigger* (None selects every rule)."""
        return [rule for rule in self.get_rules() if rule.applies_to(trigger)]

    @property
    def is_required(self) -> bool:
        if self.required:
            return True
        return any(rule.required for rule in self.get_rules())

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(
        self,
        trigger: str | Trigger | None = None,
        callback: DoneCallback | None = None,
    ) -> ValidationHandle:
        """Validate the current model value.

        Args:
            trigger: "change", "blur", or None to run every rule
            callback: Called as ``callback(valid, invalid_fields)`` once settled

        Returns:
            A ValidationHandle; awaiting it returns True or raises ValidationFailed
        """
        name = trigger.value if isinstance(trigger, Trigger) else trigger
        if name is not None and name not in TRIGGERS:
            raise ConfigurationError(f"Unknown trigger '{name}'")

        handle = ValidationHandle(resolve_value=True)
        if callback is not None:
            handle.add_done_callback(callback)

        rules = self.get_filtered_rules(name)
        if not rules:
            handle.settle(ValidationOutcome(valid=True))
            return handle

        self._seq += 1
        if not self._error:
            self.validate_state = ValidateState.VALIDATING

        logger.debug("Validating '%s' (trigger=%s, rules=%d)", self.path, name, len(rules))
        self.form.scheduler.spawn(self._run(self._seq, rules, self.value, handle))
        return handle

    async def _run(
        self,
        seq: int,
        rules: list[Rule],
        value: Any,
        handle: ValidationHandle,
    ) -> None:
        try:
            errors = await engine.run(value, rules, self.path)
        except Exception as e:
            logger.exception("Validation of '%s' failed unexpectedly", self.path)
            errors = [
                FieldError(
                    message=f"Validation error: {e}",
                    code="VALIDATOR_ERROR",
                    field=self.path,
                )
            ]

        valid = not errors
        message = errors[0].message if errors else ""

        if seq == self._seq:
            self._commit(valid, message)
            self.form._field_validated(self, valid, message)
        else:
            logger.debug("Discarding stale validation result for '%s'", self.path)

        invalid_fields = {self.path or "": errors} if errors else {}
        handle.settle(ValidationOutcome(valid=valid, invalid_fields=invalid_fields))

    def _commit(self, valid: bool, message: str) -> None:
        if self._error:
            self.validate_state = ValidateState.INVALID
            self.validate_message = self._error
            return
        self.validate_state = ValidateState.VALID if valid else ValidateState.INVALID
        self.validate_message = message

    def _apply_idle(self) -> None:
        # Invalidate any in-flight validation so it cannot commit afterwards
        self._seq += 1
        if self._error:
            self.validate_state = ValidateState.INVALID
            self.validate_message = self._error
        else:
            self.validate_state = ValidateState.IDLE
            self.validate_message = ""

    def clear_validate(self) -> None:
        """Reset validation state to idle without touching the model."""
        self._apply_idle()

    def reset(self) -> None:
        """Restore the mount-time model value and clear validation state.

        Does not run validation: the restoring write is not seen as a change.
        """
        self._apply_idle()
        if not self.path or not self._snapshot_taken:
            return
        model = self.form.model
        model.write(self.path, copy.deepcopy(self.initial_value))
        model.rearm(self.path)

    # =========================================================================
    # Widget Signals
    # =========================================================================

    def on_field_change(self) -> ValidationHandle:
        """The widget committed a user-driven value change."""
        if self.path:
            # The widget's own write must not trigger a second change validation
            self.form.model.rearm(self.path)
        return self.validate(Trigger.CHANGE)

    def on_field_blur(self) -> ValidationHandle:
        """The widget lost focus."""
        return self.validate(Trigger.BLUR)

    def _on_model_change(self, new: Any, old: Any) -> None:
        self.validate(Trigger.CHANGE)

    # =========================================================================
    # Render State
    # =========================================================================

    @property
    def effective_size(self) -> str | None:
        return self.size or self.form.size

    @property
    def should_show_error(self) -> bool:
        return (
            self.validate_state == ValidateState.INVALID
            and self.show_message
            and self.form.show_message
        )

    @property
    def css_classes(self) -> list[str]:
        prefix = self.form.settings.class_prefix
        classes = [f"{prefix}-form-item"]
        if self.validate_state == ValidateState.INVALID:
            classes.append("is-error")
        elif self.validate_state == ValidateState.VALIDATING:
            classes.append("is-validating")
        elif self.validate_state == ValidateState.VALID:
            classes.append("is-success")
        if self.is_required:
            classes.append("is-required")
        if self.form.hide_required_asterisk:
            classes.append("is-no-asterisk")
        if self.effective_size:
            classes.append(f"{prefix}-form-item--{self.effective_size}")
        return classes

    @property
    def error_classes(self) -> list[str] | None:
        """Classes of the error slot, or None when no message is rendered."""
        if not self.should_show_error:
            return None
        prefix = self.form.settings.class_prefix
        classes = [f"{prefix}-form-item__error"]
        inline = self.inline_message if self.inline_message is not None else self.form.inline_message
        if inline:
            classes.append(f"{prefix}-form-item__error--inline")
        return classes

    @property
    def label_style(self) -> dict[str, str]:
        if self.form.label_position == "top":
            return {}
        label_width = self.label_width or self.form.label_width
        if not label_width:
            return {}
        if label_width == AUTO:
            width = self.form.layout.measured_width(self)
            return {"width": f"{width}px"} if width is not None else {}
        return {"width": format_width(label_width)}

    @property
    def content_style(self) -> dict[str, str]:
        form = self.form
        if form.label_position == "top" or form.inline:
            return {}
        if not self._label and not self.label_width and self.is_nested:
            return {}
        label_width = self.label_width or form.label_width
        if not label_width:
            return {}
        if label_width == AUTO:
            if self.label_width == AUTO:
                width = form.layout.measured_width(self)
            else:
                width = form.layout.offset_for(self.depth)
            return {"marginLeft": f"{width}px"} if width is not None else {}
        return {"marginLeft": format_width(label_width)}
