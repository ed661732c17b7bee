"""Form controller: field registry, shared rules and bulk operations.

Usage:
    form = Form(model={"name": ""}, rules={
        "name": [{"required": True, "message": "Please enter a name", "trigger": "blur"}],
    })
    form.field("name", label="Name")

    valid = True
    try:
        await form.validate()
    except ValidationFailed as e:
        valid = False
        e.invalid_fields  # {"name": [FieldError(message="Please enter a name", ...)]}

Every operation that validates returns a ValidationHandle, which can be
awaited or given a ``callback(valid, invalid_fields)``. Validation runs on
the asyncio event loop, so these operations need a running loop.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from formforge.errors import ConfigurationError, UnknownFieldError
from formforge.events import FIELDS_CHANGED, VALIDATE, EventEmitter, Listener
from formforge.field import Field
from formforge.handle import DoneCallback, ValidationHandle
from formforge.layout import AUTO, LabelMeasurer, LabelWidthCoordinator, TextMeasurer
from formforge.model import Model
from formforge.rules import Rule, RuleInput, normalize_rule_table
from formforge.scheduler import Scheduler
from formforge.settings import FormSettings
from formforge.types import InvalidFields, ValidationOutcome

logger = logging.getLogger(__name__)

LABEL_POSITIONS = ("top", "left", "right")
SIZES = ("medium", "small", "mini")

RuleTable = Mapping[str, RuleInput | Iterable[RuleInput]]


def _check_label_width(value: Any) -> None:
    if value is None or value == AUTO or isinstance(value, (int, float)):
        return
    if isinstance(value, str) and value.strip():
        return
    raise ConfigurationError(f"Invalid label width {value!r}")


def _check_size(value: str | None) -> None:
    if value is not None and value not in SIZES:
        raise ConfigurationError(
            f"Unknown size '{value}'. Expected one of: {', '.join(SIZES)}"
        )


class Form:
    """Owns a model reference, default rules and the ordered field registry.

    Args:
        model: The model dict (mutated in place) or a shared Model
        rules: Form-level rules keyed by path
        label_width: Fixed width (``80``, ``"80px"``) or ``"auto"``
        label_position: "top", "left" or "right"
        inline: Lay fields out inline
        size: "medium", "small" or "mini"
        label_suffix: Appended to every label
        show_message: Render error messages
        inline_message: Render error messages inline
        hide_required_asterisk: Suppress the required marker
        disabled: Disable every control of the form
        validate_on_rule_change: Re-validate when ``rules`` is reassigned
        settings: Defaults; read from the environment when omitted
        measurer: Label measurer for auto label width
        scheduler: Flush scheduler for a dict model
        parent_field: The field this form is nested in, for sub-forms
    """

    def __init__(
        self,
        model: Model | dict[str, Any],
        rules: RuleTable | None = None,
        *,
        label_width: int | str | None = None,
        label_position: str = "right",
        inline: bool = False,
        size: str | None = None,
        label_suffix: str = "",
        show_message: bool = True,
        inline_message: bool = False,
        hide_required_asterisk: bool = False,
        disabled: bool = False,
        validate_on_rule_change: bool = True,
        settings: FormSettings | None = None,
        measurer: LabelMeasurer | None = None,
        scheduler: Scheduler | None = None,
        parent_field: Field | None = None,
    ):
        if model is None:
            raise ConfigurationError("A form requires a model")
        if label_position not in LABEL_POSITIONS:
            raise ConfigurationError(
                f"Unknown label position '{label_position}'. "
                f"Expected one of: {', '.join(LABEL_POSITIONS)}"
            )
        _check_label_width(label_width)
        _check_size(size)

        self.settings = settings or FormSettings.from_env()
        self.model = model if isinstance(model, Model) else Model(model, scheduler=scheduler)
        self._rules: dict[str, list[Rule]] = normalize_rule_table(rules)
        self._label_width = label_width
        self.label_position = label_position
        self.inline = inline
        self.size = size
        self.label_suffix = label_suffix
        self.show_message = show_message
        self.inline_message = inline_message
        self.hide_required_asterisk = hide_required_asterisk
        self.disabled = disabled
        self.validate_on_rule_change = validate_on_rule_change
        self.parent_field = parent_field

        self._registry: list[Field] = []
        self.events = EventEmitter()
        self.layout = LabelWidthCoordinator(
            self,
            measurer or TextMeasurer(self.settings.font_size),
            self.settings.label_padding,
        )
        if parent_field is not None:
            parent_field.form.on(FIELDS_CHANGED, self._on_host_changed)

    def __repr__(self) -> str:
        return f"Form(fields={[f.path for f in self.fields]!r})"

    @property
    def scheduler(self) -> Scheduler:
        return self.model.scheduler

    @property
    def visible(self) -> bool:
        """False when the field hosting this sub-form is hidden."""
        return self.parent_field is None or self.parent_field.visible

    @property
    def is_disabled(self) -> bool:
        """True when this form or any form it is nested in is disabled."""
        if self.disabled:
            return True
        return self.parent_field is not None and self.parent_field.form.is_disabled

    def _on_host_changed(self, field: Field) -> None:
        # Hiding the host (or one of its parents) changes which labels are visible here
        self.layout.recompute()

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def rules(self) -> dict[str, list[Rule]]:
        return self._rules

    @rules.setter
    def rules(self, value: RuleTable | None) -> None:
        self._rules = normalize_rule_table(value)
        if self.validate_on_rule_change and self.fields:
            self.validate()

    def rules_for(self, path: str) -> list[Rule]:
        """Form-level rules for *path* (empty when none)."""
        return self._rules.get(path, [])

    @property
    def label_width(self) -> int | str | None:
        return self._label_width

    @label_width.setter
    def label_width(self, value: int | str | None) -> None:
        _check_label_width(value)
        self._label_width = value
        self.layout.recompute()

    @property
    def auto_label_width(self) -> str | None:
        """The shared content offset of top-level fields in auto mode."""
        width = self.layout.offset_for(0)
        return f"{width}px" if width is not None else None

    @property
    def css_classes(self) -> list[str]:
        prefix = self.settings.class_prefix
        classes = [f"{prefix}-form", f"{prefix}-form--label-{self.label_position}"]
        if self.inline:
            classes.append(f"{prefix}-form--inline")
        return classes

    # =========================================================================
    # Registry
    # =========================================================================

    @property
    def registry(self) -> tuple[Field, ...]:
        """Every mounted field, including label-only fields, in mount order."""
        return tuple(self._registry)

    @property
    def fields(self) -> tuple[Field, ...]:
        """Mounted fields that carry a model path, in mount order."""
        return tuple(f for f in self._registry if f.path)

    def field(self, path: str | None = None, **kwargs: Any) -> Field:
        """Create a field for this form and mount it."""
        return Field(self, path, **kwargs).mount()

    def add_field(self, field: Field) -> None:
        """Append *field* to the registry. Already registered fields are ignored."""
        if field in self._registry:
            return
        if field.form is not self:
            raise ConfigurationError("Field belongs to a different form")
        self._registry.append(field)
        field._on_registered()
        self._fields_changed(field)

    def remove_field(self, field: Field) -> None:
        """Remove *field* from the registry. Unknown fields are ignored."""
        if field not in self._registry:
            return
        self._registry.remove(field)
        field._on_unregistered()
        self._fields_changed(field)

    def _fields_changed(self, field: Field) -> None:
        self.events.emit(FIELDS_CHANGED, field)

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener; ``validate`` listeners get (path, valid, message)."""
        return self.events.on(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self.events.off(event, listener)

    def _field_validated(self, field: Field, valid: bool, message: str) -> None:
        self.events.emit(VALIDATE, field.path, valid, message or None)

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    def validate(self, callback: DoneCallback | None = None) -> ValidationHandle:
        """Validate every registered field, running all rules regardless of trigger.

        Args:
            callback: Called once as ``callback(valid, invalid_fields)``

        Returns:
            A ValidationHandle; awaiting it returns None or raises ValidationFailed
        """
        return self._validate_fields(self.fields, callback)

    def validate_field(
        self,
        paths: str | Iterable[str],
        callback: DoneCallback | None = None,
    ) -> ValidationHandle:
        """Validate the fields carrying *paths*, with bulk semantics.

        Raises:
            UnknownFieldError: If a path has no mounted field
        """
        wanted = [paths] if isinstance(paths, str) else list(paths)
        targets = [f for f in self.fields if f.path in wanted]
        missing = [p for p in wanted if p not in {f.path for f in targets}]
        if missing or not targets:
            raise UnknownFieldError(
                f"No mounted field for path(s): {', '.join(missing) or '<none>'}"
            )
        return self._validate_fields(targets, callback)

    def _validate_fields(
        self,
        fields: Iterable[Field],
        callback: DoneCallback | None,
    ) -> ValidationHandle:
        handle = ValidationHandle()
        if callback is not None:
            handle.add_done_callback(callback)

        field_handles = [field.validate(None) for field in fields]
        if not field_handles:
            handle.settle(ValidationOutcome(valid=True))
            return handle

        self.scheduler.spawn(self._collect(field_handles, handle))
        return handle

    async def _collect(
        self,
        field_handles: list[ValidationHandle],
        handle: ValidationHandle,
    ) -> None:
        valid = True
        invalid_fields: InvalidFields = {}
        for field_handle in field_handles:
            outcome = await field_handle.wait()
            if outcome.valid:
                continue
            valid = False
            for path, errors in outcome.invalid_fields.items():
                invalid_fields.setdefault(path, []).extend(errors)

        logger.debug("Form validation settled: valid=%s, invalid=%s", valid, list(invalid_fields))
        handle.settle(ValidationOutcome(valid=valid, invalid_fields=invalid_fields))

    def reset_fields(self) -> None:
        """Restore every field's mount-time value and clear validation state."""
        for field in self.fields:
            field.reset()

    def clear_validate(self, paths: str | Iterable[str] | None = None) -> None:
        """Clear validation state for *paths*, or for every field when omitted."""
        if paths is None:
            targets = self.fields
        else:
            wanted = {paths} if isinstance(paths, str) else set(paths)
            targets = tuple(f for f in self.fields if f.path in wanted)
        for field in targets:
            field.clear_validate()

    async def next_tick(self) -> None:
        """Wait until pending model writes are flushed and their validations settle."""
        await self.scheduler.next_tick()
