"""Tests for YAML form definitions: schema checks, rule checks and form building."""

import pytest
import yaml

from formforge.config import (
    DefinitionIssue,
    FormDefinition,
    build_form,
    load_data,
    load_definition,
    validate_definition,
    validate_definition_file,
)
from formforge.errors import ConfigurationError
from formforge.registry import ValidatorRegistry
from formforge.settings import FormSettings
from formforge.types import ValidateState


SIGNUP = {
    "form": {
        "labelWidth": "auto",
        "labelSuffix": ":",
        "rules": {
            "name": [{"required": True, "message": "Please enter a name", "trigger": "blur"}],
            "email": {"type": "email", "message": "Not an email address"},
        },
        "fields": [
            {"path": "name", "label": "Name"},
            {"path": "email", "label": "Email"},
            {
                "label": "Schedule",
                "fields": [
                    {
                        "path": "date",
                        "rules": {"type": "date", "required": True, "message": "Pick a date"},
                    },
                ],
            },
        ],
    }
}


@pytest.fixture(autouse=True)
def clear_validator_registry():
    """Clear validator registry before and after each test."""
    ValidatorRegistry.clear()
    yield
    ValidatorRegistry.clear()


@pytest.fixture
def signup_file(tmp_path):
    path = tmp_path / "signup.yaml"
    path.write_text(yaml.safe_dump(SIGNUP, allow_unicode=True))
    return path


# =============================================================================
# Schema Validation
# =============================================================================


class TestValidateDefinition:
    def test_valid_definition(self):
        assert validate_definition(SIGNUP) == []

    def test_missing_form_key(self):
        issues = validate_definition({"fields": []})
        assert issues
        assert all(isinstance(i, DefinitionIssue) for i in issues)

    def test_unknown_form_option(self):
        issues = validate_definition({"form": {"labelColour": "red"}})
        assert len(issues) == 1
        assert "labelColour" in issues[0].message

    def test_bad_label_position(self):
        issues = validate_definition({"form": {"labelPosition": "bottom"}})
        assert issues[0].path == "form/labelPosition"

    def test_bad_nested_field_reports_path(self):
        doc = {"form": {"fields": [{"path": "a"}, {"path": "b", "size": "huge"}]}}
        issues = validate_definition(doc)
        assert issues[0].path == "form/fields[1]/size"

    def test_unknown_rule_key(self):
        doc = {"form": {"rules": {"name": {"requried": True, "message": "x"}}}}
        assert validate_definition(doc)

    def test_rule_without_message(self):
        doc = {"form": {"rules": {"name": {"required": True}}}}
        issues = validate_definition(doc)
        assert len(issues) == 1
        assert issues[0].path == "form/rules/name"
        assert "no message" in issues[0].message

    def test_field_rule_problems(self):
        doc = {"form": {"fields": [
            {"label": "Group", "fields": [{"path": "code", "rules": {"pattern": "([", "message": "x"}}]},
        ]}}
        issues = validate_definition(doc)
        assert issues[0].path == "form/fields[0]/fields[0]/rules"

    def test_unregistered_validator(self):
        doc = {"form": {"rules": {"name": {"validator": "unique_name"}}}}
        issues = validate_definition(doc)
        assert "not registered" in issues[0].message

    def test_registered_validator(self):
        ValidatorRegistry.register("unique_name", lambda rule, value, cb: cb())
        doc = {"form": {"rules": {"name": {"validator": "unique_name"}}}}
        assert validate_definition(doc) == []

    def test_issue_str(self, tmp_path):
        issue = DefinitionIssue(file=tmp_path / "a.yaml", message="broken", path="form/size")
        assert str(issue) == f"[ERROR] {tmp_path / 'a.yaml'} at form/size: broken"


class TestDefinitionFiles:
    def test_valid_file(self, signup_file):
        assert validate_definition_file(signup_file) == []

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        issues = validate_definition_file(path)
        assert "empty" in issues[0].message

    def test_yaml_syntax_error(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("form: [unclosed")
        issues = validate_definition_file(path)
        assert "YAML parse error" in issues[0].message

    def test_load_definition(self, signup_file):
        definition = load_definition(signup_file)
        assert isinstance(definition, FormDefinition)
        assert definition.label_width == "auto"
        assert definition.label_suffix == ":"
        assert [f.path for f in definition.fields] == ["name", "email", None]
        assert definition.fields[2].fields[0].path == "date"

    def test_load_definition_raises(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("form:\n  size: huge\n")
        with pytest.raises(ConfigurationError, match="form/size"):
            load_definition(path)


class TestLoadData:
    def test_json(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text('{"name": "Ada"}')
        assert load_data(path) == {"name": "Ada"}

    def test_yaml(self, tmp_path):
        path = tmp_path / "data.yaml"
        path.write_text("name: Ada\ntags: [a, b]\n")
        assert load_data(path) == {"name": "Ada", "tags": ["a", "b"]}

    def test_empty(self, tmp_path):
        path = tmp_path / "data.yaml"
        path.write_text("")
        assert load_data(path) == {}

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "data.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_data(path)

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text('{"name": ')
        with pytest.raises(ConfigurationError, match="JSON parse error"):
            load_data(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "data.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(ConfigurationError, match="YAML parse error"):
            load_data(path)


# =============================================================================
# Building Forms
# =============================================================================


class TestBuildForm:
    def test_builds_field_tree(self):
        form = build_form(
            FormDefinition.from_dict(SIGNUP["form"]),
            {"name": "", "email": "", "date": None},
            settings=FormSettings(),
        )

        assert [f.path for f in form.fields] == ["name", "email", "date"]
        assert len(form.registry) == 4
        date_field = form.fields[2]
        assert date_field.parent.label == "Schedule"
        assert date_field.depth == 1
        assert form.label_suffix == ":"
        assert form.auto_label_width is not None

    @pytest.mark.asyncio
    async def test_built_form_validates(self):
        form = build_form(
            FormDefinition.from_dict(SIGNUP["form"]),
            {"name": "", "email": "not-an-email", "date": None},
            settings=FormSettings(),
        )

        outcome = await form.validate().wait()

        assert set(outcome.invalid_fields) == {"name", "email", "date"}
        assert form.fields[0].validate_state == ValidateState.INVALID

    def test_field_options(self):
        definition = FormDefinition.from_dict({
            "size": "small",
            "fields": [{"path": "name", "size": "mini", "showMessage": False, "error": "Taken"}],
        })
        form = build_form(definition, {"name": ""}, settings=FormSettings())
        field = form.fields[0]

        assert field.effective_size == "mini"
        assert field.show_message is False
        assert field.validate_message == "Taken"
