"""Runtime execution context for a reconciliation run."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeAlias

from .state import MemoryStateStore, StateStore

logger = logging.getLogger(__name__)

Sleep: TypeAlias = Callable[[float], Awaitable[Any]]


class Context:
    """Runtime state passed through the reconciliation chain."""

    def __init__(
        self,
        *,
        stage: str = "dev",
        root: str | Path | None = None,
        credentials: dict[str, dict[str, Any]] | None = None,
        env: dict[str, str] | None = None,
        state: StateStore | None = None,
        dry_run: bool = False,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.stage = stage
        self.root = Path(root) if root is not None else Path.cwd()
        self.credentials = credentials or {}
        self.env = env if env is not None else {}
        self.state = state if state is not None else MemoryStateStore()
        self.dry_run = dry_run
        self.sleep = sleep
        self.is_open = False
        self._providers: dict[str, Any] = {}

    def open(self) -> Context:
        logger.debug("Opening context for stage '%s'", self.stage)
        self.is_open = True
        return self

    def close(self, status: str = "done") -> None:
        logger.debug("Closing context for stage '%s' (%s)", self.stage, status)
        self._providers.clear()
        self.is_open = False

    def __enter__(self) -> Context:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close("error" if exc is not None else "done")

    def provider(self, name: str, factory: Callable[[dict[str, Any]], Any]) -> Any:
        """Return the cached provider `name`, creating it from its credentials on first use."""
        if name not in self._providers:
            logger.debug("Creating provider '%s'", name)
            self._providers[name] = factory(self.credentials.get(name, {}))
        return self._providers[name]

    def __repr__(self) -> str:
        return f"Context(stage={self.stage!r}, root={str(self.root)!r}, dry_run={self.dry_run})"
