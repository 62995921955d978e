"""Component base class and component type registration."""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

from .context import Context
from .diff import Action, normalize, should_deploy
from .errors import ConfigurationError
from .resolve import resolve_all
from .state import Snapshot

logger = logging.getLogger(__name__)

# -- Component Registry --

_component_registry: dict[str, type[Component]] = {}


def component(name: str):
    """Register a Component class under a type name usable in stack files."""

    def decorator(cls):
        cls.type_name = name
        _component_registry[name] = cls
        return cls

    return decorator


def type_exists(name: str) -> bool:
    return name in _component_registry


def load_type(name: str) -> type[Component]:
    """Return the Component class registered as `name`."""
    try:
        return _component_registry[name]
    except KeyError:
        raise ConfigurationError(f'Component "{name}" is not a valid Component.') from None


# -- Component ABC --


class Component(ABC):
    """Base class for all reconciled resources.

    `input_names` lists the declared inputs that are compared and persisted,
    `identity` names the input whose change forces a replacement, and
    `state_names` lists values the provider assigns on deploy.
    """

    type_name: ClassVar[str] = "Component"
    identity: ClassVar[str]
    input_names: ClassVar[tuple[str, ...]] = ()
    state_names: ClassVar[tuple[str, ...]] = ()

    def __init__(self, instance_id: str, inputs: Mapping[str, Any] | None = None) -> None:
        self.instance_id = instance_id
        for name in self.state_names:
            setattr(self, name, None)
        self.construct(dict(inputs or {}))

    @property
    def name(self) -> str:
        """Instance-local name (last segment of the instance id)."""
        return self.instance_id.rsplit(".", 1)[-1]

    def construct(self, inputs: dict[str, Any]) -> None:
        """Store raw inputs; values may be deferred."""
        for name in self.input_names:
            setattr(self, name, inputs.get(name))

    def define(self) -> dict[str, Component]:
        """Child components that must be deployed before this one."""
        return {}

    def inputs(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.input_names}

    def should_deploy(self, previous: Snapshot | Mapping[str, Any] | None) -> Action | None:
        return should_deploy(self.inputs(), previous, identity=self.identity)

    @abstractmethod
    async def deploy(self, ctx: Context, previous: Snapshot | Mapping[str, Any] | None = None) -> None:
        """Create or update the resource."""

    @abstractmethod
    async def remove(self, ctx: Context) -> None:
        """Delete the resource."""

    def restore(self, previous: Snapshot, *, inputs: bool = False) -> None:
        """Adopt derived state (and optionally inputs) from a previous deployment."""
        for name in self.state_names:
            setattr(self, name, previous.get(name))
        if inputs:
            for name in self.input_names:
                if name in previous:
                    setattr(self, name, previous[name])

    def previous(self, snapshot: Snapshot) -> Component:
        """Return a copy of this component standing for the deployment in `snapshot`."""
        old = copy.copy(self)
        old.instance_id = snapshot.instance_id
        old.restore(snapshot, inputs=True)
        return old

    def snapshot(self) -> Snapshot:
        data = {name: normalize(resolve_all(getattr(self, name))) for name in self.input_names}
        data.update({name: getattr(self, name) for name in self.state_names})
        return Snapshot(type_name=self.type_name, instance_id=self.instance_id, data=data)

    def info(self) -> dict[str, Any]:
        data = {name: getattr(self, name) for name in self.state_names}
        data.update(self.inputs())
        return {"title": self.instance_id, "type": self.type_name, "data": data}

    def outputs(self) -> dict[str, Any]:
        return self.info()["data"]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.instance_id!r})"


def resolve_component(component: Component) -> Component:
    """Replace every deferred input of `component` with its concrete value."""
    for name in component.input_names:
        setattr(component, name, normalize(resolve_all(getattr(component, name))))
    return component
