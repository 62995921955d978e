"""Snapshots of deployed components and the store that keeps them."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Snapshot(BaseModel):
    """Read-only projection of a deployed component: resolved inputs plus derived state."""

    model_config = {"frozen": True}

    type_name: str
    instance_id: str
    data: dict[str, Any] = Field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def project(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return only the given fields; fields missing from the snapshot are omitted."""
        return {k: self.data[k] for k in keys if k in self.data}


class StateStore(Protocol):
    """Persistence contract for snapshots, keyed by instance id."""

    def load(self, instance_id: str) -> Snapshot | None: ...

    def save(self, snapshot: Snapshot) -> None: ...

    def delete(self, instance_id: str) -> None: ...


class MemoryStateStore:
    """Process-local StateStore."""

    def __init__(self, snapshots: Iterable[Snapshot] = ()) -> None:
        self._snapshots: dict[str, Snapshot] = {s.instance_id: s for s in snapshots}

    def load(self, instance_id: str) -> Snapshot | None:
        return self._snapshots.get(instance_id)

    def save(self, snapshot: Snapshot) -> None:
        logger.debug("Saving snapshot of '%s'", snapshot.instance_id)
        self._snapshots[snapshot.instance_id] = snapshot

    def delete(self, instance_id: str) -> None:
        logger.debug("Dropping snapshot of '%s'", instance_id)
        self._snapshots.pop(instance_id, None)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __repr__(self) -> str:
        return f"MemoryStateStore(snapshots={len(self._snapshots)})"
