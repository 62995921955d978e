"""Tests for converge.loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from converge.component import resolve_component
from converge.components.aws_iam_role import AwsIamRole
from converge.context import Context
from converge.errors import ConfigurationError
from converge.loader import (
    Definition,
    build_component,
    build_stack,
    discover,
    load,
    load_definition,
    load_programmatic,
)
from converge.stacks import Stack

from conftest import Recorder


def _write(tmp_path: Path, filename: str, content: str) -> Path:
    f = tmp_path / filename
    f.write_text(content)
    return f


@pytest.fixture(autouse=True)
def _clean_registry(registry):
    yield


class TestDiscover:
    @pytest.mark.parametrize(
        ("present", "expected"),
        [
            (["stack.py", "stack.hcl", "stack.yml", "stack.yaml", "stack.json"], "stack.py"),
            (["stack.hcl", "stack.yml", "stack.yaml", "stack.json"], "stack.hcl"),
            (["stack.yml", "stack.yaml", "stack.json"], "stack.yml"),
            (["stack.yaml", "stack.json"], "stack.yaml"),
            (["stack.json"], "stack.json"),
        ],
    )
    def test_priority(self, tmp_path, present, expected):
        for name in present:
            _write(tmp_path, name, "")
        assert discover(tmp_path) == tmp_path / expected

    def test_nothing_found(self, tmp_path):
        with pytest.raises(ConfigurationError, match="No stack file"):
            discover(tmp_path)

    def test_directory_named_like_stack_file_ignored(self, tmp_path):
        (tmp_path / "stack.py").mkdir()
        _write(tmp_path, "stack.json", "{}")
        assert discover(tmp_path) == tmp_path / "stack.json"


class TestLoad:
    def test_yaml(self, tmp_path):
        f = _write(
            tmp_path,
            "stack.yml",
            """
name: app
components:
  AwsIamRole::admin:
    role_name: app-admin
""",
        )
        assert load(f) == {"name": "app", "components": {"AwsIamRole::admin": {"role_name": "app-admin"}}}

    def test_json(self, tmp_path):
        f = _write(tmp_path, "stack.json", '{"name": "app", "components": {}}')
        assert load(f) == {"name": "app", "components": {}}

    def test_hcl(self, tmp_path):
        f = _write(
            tmp_path,
            "stack.hcl",
            """
            name = "app"
            component "AwsIamRole" "admin" {
                role_name = "app-admin"
            }
        """,
        )
        data = load(f)
        assert data["name"] == "app"
        assert data["component"][0]["AwsIamRole"]["admin"]["role_name"] == "app-admin"

    def test_renders_template(self, tmp_path):
        f = _write(tmp_path, "stack.yml", "name: app-{{ stage }}\n")
        assert load(f, context={"stage": "prod"}) == {"name": "app-prod"}

    def test_undefined_template_variable(self, tmp_path):
        f = _write(tmp_path, "stack.yml", "name: {{ missing }}\n")
        with pytest.raises(ConfigurationError, match="stack.yml"):
            load(f, context={})

    def test_invalid_yaml(self, tmp_path):
        f = _write(tmp_path, "stack.yml", "name: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load(f)

    def test_invalid_json(self, tmp_path):
        f = _write(tmp_path, "stack.json", "{not json")
        with pytest.raises(ConfigurationError):
            load(f)

    def test_top_level_must_be_mapping(self, tmp_path):
        f = _write(tmp_path, "stack.yml", "- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load(f)


class TestDefinition:
    def test_from_yaml_style_data(self):
        d = Definition.from_data({"name": "app", "components": {"Recorder::a": {"key": "x"}}})
        assert list(d.instances()) == [("Recorder", "a", {"key": "x"})]

    def test_from_hcl_style_data(self):
        d = Definition.from_data(
            {
                "name": "app",
                "component": [
                    {"Recorder": {"a": {"key": "x", "__is_block__": True}}},
                    {"Recorder": {"b": {"key": "y"}}},
                ],
            }
        )
        assert d.components == {"Recorder::a": {"key": "x"}, "Recorder::b": {"key": "y"}}

    def test_duplicate_hcl_instance(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            Definition.from_data(
                {"name": "app", "component": [{"Recorder": {"a": {}}}, {"Recorder": {"a": {}}}]},
            )

    def test_missing_name(self):
        with pytest.raises(ConfigurationError, match="name"):
            Definition.from_data({"components": {}})

    def test_invalid_component_key(self):
        d = Definition.from_data({"name": "app", "components": {"justaname": {}}})
        with pytest.raises(ConfigurationError, match="Type::instance"):
            list(d.instances())

    def test_empty_inputs(self):
        d = Definition.from_data({"name": "app", "components": {"Recorder::a": None}})
        assert list(d.instances()) == [("Recorder", "a", {})]

    def test_find(self):
        d = Definition.from_data({"name": "app", "components": {"Recorder::a": {"key": "x"}}})
        assert d.find("a") == ("Recorder", {"key": "x"})
        assert d.find("b") is None


class TestBuild:
    def test_build_component_interpolates_inputs(self):
        ctx = Context(stage="prod", env={"SUFFIX": "blue"})
        d = Definition.from_data({"name": "app", "components": {}})
        comp = build_component(d, "Recorder", "a", {"key": "${name}-${stage}-${env.SUFFIX}"}, ctx)

        assert isinstance(comp, Recorder)
        assert comp.instance_id == "prod.app.a"
        assert comp.key == "app-prod-blue"

    def test_build_component_unknown_type(self):
        d = Definition.from_data({"name": "app"})
        with pytest.raises(ConfigurationError, match="not a valid Component"):
            build_component(d, "Nope", "a", {}, Context())

    def test_build_stack(self, tmp_path):
        f = _write(
            tmp_path,
            "stack.yml",
            """
name: app
description: demo
components:
  AwsIamRole::admin:
    role_name: "{{ stage }}-admin"
    service: lambda.amazonaws.com
  Recorder::worker:
    key: w
""",
        )
        ctx = Context(stage="dev")
        stack = build_stack(load_definition(f, ctx), ctx)

        assert stack.name == "app"
        assert stack.description == "demo"
        role, worker = stack.instances
        assert isinstance(role, AwsIamRole)
        assert role.instance_id == "dev.app.admin"
        assert worker.instance_id == "dev.app.worker"

    def test_build_stack_links_component_references(self):
        ctx = Context()
        d = Definition.from_data(
            {
                "name": "app",
                "components": {
                    "Recorder::a": {"key": "a"},
                    "Recorder::b": {"key": "${component.a.ref}", "size": "${component.a.size}"},
                },
            }
        )
        a, b = build_stack(d, ctx).instances
        a.ref = "ref-a"
        a.size = 3
        resolve_component(b)
        assert (b.key, b.size) == ("ref-a", 3)

    def test_forward_reference_rejected(self):
        d = Definition.from_data(
            {
                "name": "app",
                "components": {
                    "Recorder::a": {"key": "${component.b.ref}"},
                    "Recorder::b": {"key": "b"},
                },
            }
        )
        with pytest.raises(ConfigurationError, match="declared earlier"):
            build_stack(d, Context())

    def test_build_stack_through_instance(self):
        d = Definition.from_data(
            {"name": "app", "components": {"Recorder::a": {}, "Recorder::b": {}, "Recorder::c": {}}},
        )
        stack = build_stack(d, Context(), through="b")
        assert [c.name for c in stack.instances] == ["a", "b"]


class TestLoadProgrammatic:
    def test_stack_instance(self, tmp_path):
        f = _write(
            tmp_path,
            "stack.py",
            """
from converge import Stack

stack = Stack(name="prog", description="from code")
""",
        )
        stack = load_programmatic(f, Context())
        assert isinstance(stack, Stack)
        assert stack.name == "prog"

    def test_stack_factory_receives_context(self, tmp_path):
        f = _write(
            tmp_path,
            "stack.py",
            """
from converge import Stack

def stack(ctx):
    return Stack(name=f"prog-{ctx.stage}")
""",
        )
        assert load_programmatic(f, Context(stage="qa")).name == "prog-qa"

    def test_missing_stack(self, tmp_path):
        f = _write(tmp_path, "stack.py", "value = 1\n")
        with pytest.raises(ConfigurationError, match="does not define a 'stack'"):
            load_programmatic(f, Context())
