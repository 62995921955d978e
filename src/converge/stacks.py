"""Stack base model — the root component a run targets."""

from __future__ import annotations

import logging
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from .component import Component, resolve_component
from .context import Context
from .ops import Absent, Ensure

logger = logging.getLogger(__name__)


class Stack(BaseModel):
    """Base model that programmatic stacks subclass; declarative files build one directly.

    `commands` names the methods a run may invoke; each takes the Context and
    returns the outputs of the run.
    """

    model_config = {"arbitrary_types_allowed": True}

    commands: ClassVar[frozenset[str]] = frozenset({"deploy", "remove", "info"})
    default_command: ClassVar[str] = "deploy"

    name: str
    description: str = ""
    instances: list[Component] = Field(default_factory=list)

    def ordered(self) -> list[Component]:
        """Instances in deploy order: children from define() before their parents."""
        order: list[Component] = []
        seen: set[int] = set()

        def visit(comp: Component) -> None:
            if id(comp) in seen:
                return
            seen.add(id(comp))
            for child in comp.define().values():
                visit(child)
            order.append(comp)

        for comp in self.instances:
            visit(comp)
        return order

    async def deploy(self, ctx: Context) -> dict[str, Any]:
        logger.info("Deploying stack '%s' (%s)", self.name, ctx.stage)
        outputs: dict[str, Any] = {}
        for comp in self.ordered():
            outputs[comp.instance_id] = await Ensure(comp)(ctx)
        return outputs

    async def remove(self, ctx: Context) -> dict[str, Any]:
        logger.info("Removing stack '%s' (%s)", self.name, ctx.stage)
        for comp in reversed(self.ordered()):
            await Absent(comp)(ctx)
        return {}

    async def info(self, ctx: Context) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for comp in self.ordered():
            resolve_component(comp)
            previous = ctx.state.load(comp.instance_id)
            if previous is not None:
                comp.restore(previous)
            result[comp.instance_id] = comp.info()
        return result
