"""Reconciliation strategies — one pass over one component."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from .component import Component, resolve_component
from .context import Context
from .diff import Action
from .resolve import ResolutionPass

logger = logging.getLogger(__name__)


class ComponentOp(ABC):
    """Wraps a Component with conditional execution logic."""

    def __init__(self, component: Component) -> None:
        self.component = component

    @abstractmethod
    async def __call__(self, ctx: Context) -> dict[str, Any]: ...


class Ensure(ComponentOp):
    """Deploy, update or replace the component as its diff requires."""

    async def __call__(self, ctx: Context) -> dict[str, Any]:
        comp = self.component
        with ResolutionPass():
            resolve_component(comp)
            previous = ctx.state.load(comp.instance_id)
            action = comp.should_deploy(previous)

            if action is None:
                logger.debug("Skipping %s; up to date", comp.instance_id)
                comp.restore(previous)
            elif ctx.dry_run:
                logger.info("[DRY RUN] Would %s %s", action, comp.instance_id)
            else:
                logger.info("%s %s", "Replacing" if action is Action.REPLACE else "Deploying", comp.instance_id)
                await comp.deploy(ctx, previous)
                ctx.state.save(comp.snapshot())
                if action is Action.REPLACE:
                    logger.info("Removing replaced %s", comp.instance_id)
                    await comp.previous(previous).remove(ctx)
        return comp.outputs()


class Absent(ComponentOp):
    """Remove the component if it was deployed."""

    async def __call__(self, ctx: Context) -> dict[str, Any]:
        comp = self.component
        previous = ctx.state.load(comp.instance_id)
        if previous is None:
            logger.debug("Skipping removal of %s; not present", comp.instance_id)
            return {}
        if ctx.dry_run:
            logger.info("[DRY RUN] Would remove %s", comp.instance_id)
            return {}
        logger.info("Removing %s", comp.instance_id)
        comp.restore(previous, inputs=True)
        await comp.remove(ctx)
        ctx.state.delete(comp.instance_id)
        return {}
