"""Error taxonomy and the centralized error reporter."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class ConvergeError(Exception):
    """Base class for all converge errors."""


class ConfigurationError(ConvergeError):
    """A user-facing problem with the stack definition or the request."""


class CyclicResolutionError(ConvergeError):
    """A resolvable depends on itself, directly or transitively."""


class ProviderError(ConvergeError):
    """A provider call failed."""


class PolicyNotFoundError(ProviderError):
    """The policy being detached no longer exists."""

    def __init__(self, policy_arn: str) -> None:
        super().__init__(f"Policy {policy_arn} was not found.")
        self.policy_arn = policy_arn


class ResourceNotFoundError(ProviderError):
    """The resource being addressed no longer exists."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Resource {resource_id} not found.")
        self.resource_id = resource_id


@dataclass(frozen=True)
class ErrorReport:
    """Uniform outcome of a failed run."""

    component: str
    message: str
    error: BaseException

    @property
    def kind(self) -> str:
        return type(self.error).__name__


def handle_error(error: BaseException, component: str) -> ErrorReport:
    """Log an error raised while running `component` and return its report."""
    debug = bool(os.environ.get("CONVERGE_DEBUG"))
    logger.error("%s: %s", component, error, exc_info=error if debug else None)
    return ErrorReport(component=component, message=str(error), error=error)
