"""Shared fakes for converge tests."""

from __future__ import annotations

from typing import Any, ClassVar
from unittest.mock import AsyncMock, Mock

import pytest

from converge.component import Component, _component_registry, resolve_component
from converge.context import Context

ACCOUNT = "123456789012"


class FakeIam:
    """IamProvider double; `manager.mock_calls` records calls across all operations in order."""

    def __init__(self) -> None:
        self.create_resource = AsyncMock(side_effect=lambda spec: f"arn:aws:iam::{ACCOUNT}:role/{spec.name}")
        self.attach_policy = AsyncMock(return_value=None)
        self.detach_policy = AsyncMock(return_value=None)
        self.update_trust_policy = AsyncMock(return_value=None)
        self.delete_resource = AsyncMock(return_value=None)
        self.get_resource = AsyncMock(side_effect=lambda name: f"arn:aws:iam::{ACCOUNT}:role/{name}")

        self.manager = Mock()
        for name in (
            "create_resource",
            "attach_policy",
            "detach_policy",
            "update_trust_policy",
            "delete_resource",
            "get_resource",
        ):
            self.manager.attach_mock(getattr(self, name), name)


class Recorder(Component):
    """Provider-free component that records its lifecycle calls."""

    identity = "key"
    input_names = ("key", "size")
    state_names = ("ref",)

    events: ClassVar[list[tuple[str, str, Any]]] = []

    async def deploy(self, ctx: Context, previous=None) -> None:
        resolve_component(self)
        Recorder.events.append(("deploy", self.instance_id, self.key))
        self.ref = f"ref-{self.key}"

    async def remove(self, ctx: Context) -> None:
        Recorder.events.append(("remove", self.instance_id, self.key))
        self.ref = None


@pytest.fixture
def iam() -> FakeIam:
    return FakeIam()


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def ctx(sleep) -> Context:
    return Context(stage="dev", sleep=sleep)


@pytest.fixture
def registry():
    """Register Recorder as a component type and restore the registry afterwards."""
    saved = _component_registry.copy()
    _component_registry["Recorder"] = Recorder
    Recorder.type_name = "Recorder"
    Recorder.events.clear()
    yield _component_registry
    Recorder.events.clear()
    _component_registry.clear()
    _component_registry.update(saved)
