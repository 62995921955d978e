"""Stack file discovery and loading — Python, HCL, YAML and JSON definitions."""

from __future__ import annotations

import importlib.util
import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import hcl2
import jinja2
import yaml
from pydantic import BaseModel, Field

from .component import Component, load_type
from .context import Context
from .errors import ConfigurationError
from .resolve import Resolver
from .stacks import Stack

logger = logging.getLogger(__name__)

PROGRAMMATIC_FILE = "stack.py"

# Declarative formats in priority order.
DECLARATIVE_FILES = ("stack.hcl", "stack.yml", "stack.yaml", "stack.json")

STACK_FILES = (PROGRAMMATIC_FILE, *DECLARATIVE_FILES)


def discover(root: str | Path) -> Path:
    """Return the stack file to run in `root`; a Python file wins over declarative ones."""
    root = Path(root)
    for filename in STACK_FILES:
        path = root / filename
        if path.is_file():
            logger.debug("Found stack file %s", path)
            return path
    raise ConfigurationError(f"No stack file ({', '.join(STACK_FILES)}) found in {root}")


def is_programmatic(path: Path) -> bool:
    return path.suffix == ".py"


def _template_context(ctx: Context) -> dict[str, Any]:
    return {"stage": ctx.stage, "env": ctx.env}


def load(file: Path, *, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """Render a declarative file as a Jinja2 template, then parse it by extension."""
    text = file.read_text()
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        text = env.from_string(text).render(context if context is not None else {})
    except jinja2.TemplateError as exc:
        raise ConfigurationError(f"{file}: {exc}") from exc

    try:
        if file.suffix == ".hcl":
            data = hcl2.loads(text)
        elif file.suffix in (".yml", ".yaml"):
            data = yaml.safe_load(text)
        elif file.suffix == ".json":
            data = json.loads(text)
        else:
            raise ConfigurationError(f"{file}: unsupported stack file format")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"{file}: {exc}") from exc
    except ConfigurationError:
        raise
    except Exception as exc:
        # hcl2 surfaces lark parse errors without a common base class
        raise ConfigurationError(f"{file}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"{file}: expected a mapping at the top level")
    return data


def _strip_markers(attrs: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in attrs.items() if not k.startswith("__")}


def _hcl_components(blocks: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Flatten `component "Type" "name" { ... }` blocks into 'Type::name' keys.

    python-hcl2 structure:
        {"component": [{"AwsIamRole": {"admin": {"role_name": "x"}}}, ...]}
    """
    components: dict[str, dict[str, Any]] = {}
    for block in blocks:
        for type_name, instances in _strip_markers(block).items():
            for instance_name, attrs in _strip_markers(instances).items():
                key = f"{type_name}::{instance_name}"
                if key in components:
                    raise ConfigurationError(f"Duplicate component instance: '{key}'")
                components[key] = _strip_markers(dict(attrs))
    return components


class Definition(BaseModel):
    """A parsed declarative stack file."""

    name: str
    description: str = ""
    components: dict[str, dict[str, Any] | None] = Field(default_factory=dict)

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> Definition:
        data = dict(data)
        if isinstance(data.get("component"), list):
            data["components"] = _hcl_components(data.pop("component"))
        if "name" not in data:
            raise ConfigurationError("Stack file does not declare a 'name'")
        return cls.model_validate(data)

    def instances(self) -> Iterator[tuple[str, str, dict[str, Any]]]:
        """Yield (type name, instance name, inputs) in declaration order."""
        for key, inputs in self.components.items():
            type_name, sep, instance_name = key.partition("::")
            if not sep or not type_name or not instance_name:
                raise ConfigurationError(f"Invalid component key '{key}'; expected 'Type::instance'")
            yield type_name, instance_name, dict(inputs or {})

    def find(self, instance: str) -> tuple[str, dict[str, Any]] | None:
        """Return (type name, inputs) of the instance named `instance`."""
        for type_name, instance_name, inputs in self.instances():
            if instance_name == instance:
                return type_name, inputs
        return None


def load_definition(file: Path, ctx: Context) -> Definition:
    return Definition.from_data(load(file, context=_template_context(ctx)))


def build_component(
    definition: Definition,
    type_name: str,
    instance_name: str,
    inputs: dict[str, Any],
    ctx: Context,
    built: dict[str, Component] | None = None,
) -> Component:
    """Construct one instance addressed as '<stage>.<stack>.<instance>'.

    `built` holds the instances constructed before this one, by name; they are
    what ${component.<instance>.<attr>} references can point at.
    """
    cls = load_type(type_name)
    resolver = Resolver(
        {
            "stage": ctx.stage,
            "name": definition.name,
            "instance": instance_name,
            "env": ctx.env,
        },
        built,
    )
    instance_id = f"{ctx.stage}.{definition.name}.{instance_name}"
    logger.debug("Constructing %s as %s", instance_id, cls.__name__)
    return cls(instance_id, resolver.resolve(inputs))


def build_stack(definition: Definition, ctx: Context, *, through: str | None = None) -> Stack:
    """Build the stack's instances in declaration order, stopping after `through` if given."""
    built: dict[str, Component] = {}
    for type_name, instance_name, inputs in definition.instances():
        built[instance_name] = build_component(definition, type_name, instance_name, inputs, ctx, built)
        if instance_name == through:
            break
    return Stack(name=definition.name, description=definition.description, instances=list(built.values()))


def load_programmatic(file: Path, ctx: Context) -> Stack:
    """Execute a stack.py file and return its module-level `stack`.

    `stack` may be a Stack, or a callable taking the Context and returning one.
    """
    spec = importlib.util.spec_from_file_location(f"converge_stack_{abs(hash(str(file)))}", file)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot import {file}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    stack = getattr(module, "stack", None)
    if callable(stack) and not isinstance(stack, Stack):
        stack = stack(ctx)
    if not isinstance(stack, Stack):
        raise ConfigurationError(f"{file} does not define a 'stack'")
    return stack
