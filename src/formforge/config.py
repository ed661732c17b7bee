"""
config.py: YAML form definitions, validated against the packaged JSON Schema.

A definition describes a form's display options, its rule table and its
field tree:

    form:
      labelWidth: auto
      rules:
        name:
          - {required: true, message: Please enter a name, trigger: blur}
      fields:
        - {path: name, label: Name}
        - label: Schedule
          fields:
            - {path: date, rules: {type: date, required: true, message: Pick a date}}

Usage:
    from formforge.config import load_definition, build_form

    definition = load_definition(Path("signup.yaml"))
    form = build_form(definition, model={"name": ""})
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from formforge.errors import ConfigurationError
from formforge.field import Field
from formforge.form import Form
from formforge.rules import normalize_rule_table, normalize_rules

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "form.schema.json"

# ---------------------------------------------------------------------------
# Public data types
# ---------------------------------------------------------------------------


@dataclass
class DefinitionIssue:
    """A single finding for a form definition file."""

    file: Path | None
    message: str
    path: str = ""          # location within the document, e.g. "form/fields[0]"
    severity: str = "error" # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        source = self.file if self.file is not None else "<definition>"
        return f"[{self.severity.upper()}] {source}{loc}: {self.message}"


@dataclass
class FieldDefinition:
    """One field of a form definition, with its nested fields."""

    path: str | None = None
    label: str | None = None
    required: bool | None = None
    rules: Any = None
    show_message: bool = True
    inline_message: bool | None = None
    label_width: int | str | None = None
    size: str | None = None
    error: str | None = None
    visible: bool = True
    fields: list[FieldDefinition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldDefinition:
        return cls(
            path=data.get("path"),
            label=data.get("label"),
            required=data.get("required"),
            rules=data.get("rules"),
            show_message=data.get("showMessage", True),
            inline_message=data.get("inlineMessage"),
            label_width=data.get("labelWidth"),
            size=data.get("size"),
            error=data.get("error"),
            visible=data.get("visible", True),
            fields=[cls.from_dict(child) for child in data.get("fields", [])],
        )


@dataclass
class FormDefinition:
    """A parsed form definition."""

    rules: dict[str, Any] = field(default_factory=dict)
    fields: list[FieldDefinition] = field(default_factory=list)
    label_width: int | str | None = None
    label_position: str = "right"
    inline: bool = False
    size: str | None = None
    label_suffix: str = ""
    show_message: bool = True
    inline_message: bool = False
    hide_required_asterisk: bool = False
    disabled: bool = False
    validate_on_rule_change: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormDefinition:
        """Create a FormDefinition from the document's ``form`` mapping."""
        return cls(
            rules=data.get("rules", {}),
            fields=[FieldDefinition.from_dict(f) for f in data.get("fields", [])],
            label_width=data.get("labelWidth"),
            label_position=data.get("labelPosition", "right"),
            inline=data.get("inline", False),
            size=data.get("size"),
            label_suffix=data.get("labelSuffix", ""),
            show_message=data.get("showMessage", True),
            inline_message=data.get("inlineMessage", False),
            hide_required_asterisk=data.get("hideRequiredAsterisk", False),
            disabled=data.get("disabled", False),
            validate_on_rule_change=data.get("validateOnRuleChange", True),
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_schema() -> dict[str, Any]:
    with _SCHEMA_PATH.open() as fh:
        return json.load(fh)


def _build_validator() -> Draft202012Validator:
    schema = _load_schema()
    registry = Registry().with_resource(
        schema["$id"], Resource(contents=schema, specification=DRAFT202012)
    )
    return Draft202012Validator(schema, registry=registry)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def _check_field_rules(
    fields: list[dict[str, Any]],
    location: str,
    file: Path | None,
) -> list[DefinitionIssue]:
    issues: list[DefinitionIssue] = []
    for i, data in enumerate(fields):
        here = f"{location}[{i}]"
        try:
            normalize_rules(data.get("rules"))
        except ConfigurationError as exc:
            issues.append(DefinitionIssue(file=file, message=str(exc), path=f"{here}/rules"))
        issues.extend(_check_field_rules(data.get("fields", []), f"{here}/fields", file))
    return issues


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_definition(doc: Any, file: Path | None = None) -> list[DefinitionIssue]:
    """
    Validate a parsed definition document.

    Runs the JSON Schema first, then normalizes every rule so that semantic
    problems (missing messages, unregistered validators, bad patterns) are
    reported as issues too.

    Returns:
        A list of :class:`DefinitionIssue` objects (empty on success).
    """
    validator = _build_validator()
    issues = [
        DefinitionIssue(file=file, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(doc), key=_json_path)
    ]
    if issues:
        return issues

    form_data = doc["form"]
    for path, raw in form_data.get("rules", {}).items():
        try:
            normalize_rule_table({path: raw})
        except ConfigurationError as exc:
            issues.append(DefinitionIssue(file=file, message=str(exc), path=f"form/rules/{path}"))
    issues.extend(_check_field_rules(form_data.get("fields", []), "form/fields", file))
    return issues


def validate_definition_file(yaml_path: Path) -> list[DefinitionIssue]:
    """Parse and validate a single definition file."""
    try:
        with yaml_path.open() as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [DefinitionIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if raw is None:
        return [
            DefinitionIssue(file=yaml_path, message="File is empty or contains only whitespace")
        ]
    return validate_definition(raw, file=yaml_path)


def load_definition(yaml_path: Path) -> FormDefinition:
    """
    Load a definition file into a :class:`FormDefinition`.

    Raises:
        ConfigurationError: If the file has any issue.
    """
    issues = validate_definition_file(yaml_path)
    if issues:
        raise ConfigurationError("\n".join(str(issue) for issue in issues))
    with yaml_path.open() as fh:
        raw = yaml.safe_load(fh)
    logger.debug("Loaded form definition from %s", yaml_path)
    return FormDefinition.from_dict(raw["form"])


def load_data(path: Path) -> dict[str, Any]:
    """Load a model document from a JSON or YAML file.

    Raises:
        ConfigurationError: If the file does not parse or is not a mapping.
    """
    with path.open() as fh:
        try:
            if path.suffix == ".json":
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{path}: JSON parse error: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{path}: YAML parse error: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: model document must be a mapping")
    return data


def _mount_fields(
    form: Form,
    definitions: list[FieldDefinition],
    parent: Field | None,
) -> None:
    for definition in definitions:
        item = Field(
            form,
            definition.path,
            label=definition.label,
            rules=definition.rules,
            required=definition.required,
            error=definition.error,
            show_message=definition.show_message,
            inline_message=definition.inline_message,
            label_width=definition.label_width,
            size=definition.size,
            parent=parent,
            visible=definition.visible,
        ).mount()
        _mount_fields(form, definition.fields, item)


def build_form(definition: FormDefinition, model: Any, **kwargs: Any) -> Form:
    """
    Construct a :class:`Form` from a definition and mount its field tree.

    Extra keyword arguments (``settings``, ``measurer``, ``scheduler``) are
    passed through to the form.
    """
    form = Form(
        model,
        definition.rules,
        label_width=definition.label_width,
        label_position=definition.label_position,
        inline=definition.inline,
        size=definition.size,
        label_suffix=definition.label_suffix,
        show_message=definition.show_message,
        inline_message=definition.inline_message,
        hide_required_asterisk=definition.hide_required_asterisk,
        disabled=definition.disabled,
        validate_on_rule_change=definition.validate_on_rule_change,
        **kwargs,
    )
    _mount_fields(form, definition.fields, None)
    return form
