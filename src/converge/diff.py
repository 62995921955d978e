"""Diff engine — classify what a redeploy has to do."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from .resolve import resolve_all
from .state import Snapshot

logger = logging.getLogger(__name__)


class Action(StrEnum):
    """Lifecycle transition required to converge; None means nothing to do."""

    DEPLOY = "deploy"
    REPLACE = "replace"


def normalize(value: Any) -> Any:
    """Reduce a value to plain dicts, lists and scalars for structural comparison."""
    if isinstance(value, BaseModel):
        return normalize(value.model_dump())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return normalize(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        return {k: normalize(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [normalize(item) for item in value]
    return value


def should_deploy(
    inputs: Mapping[str, Any],
    previous: Snapshot | Mapping[str, Any] | None,
    *,
    identity: str,
) -> Action | None:
    """Compare resolved inputs against the previous deployment.

    Only fields present in `inputs` are compared, so fields a previous version
    stored but the current one no longer declares are ignored. A change of the
    `identity` field always means REPLACE, whatever else changed.
    """
    current = normalize(resolve_all(dict(inputs)))
    if previous is None:
        return Action.DEPLOY

    if isinstance(previous, Snapshot):
        baseline = previous.project(current)
    else:
        baseline = {k: previous[k] for k in current if k in previous}
    baseline = normalize(baseline)

    if baseline.get(identity) != current.get(identity):
        logger.debug("Identity '%s' changed: %r -> %r", identity, baseline.get(identity), current.get(identity))
        return Action.REPLACE
    if baseline != current:
        return Action.DEPLOY
    return None
