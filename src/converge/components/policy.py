"""Policy references: a literal ARN or another component's ARN."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

from ..errors import ConfigurationError
from ..resolve import resolve

ADMINISTRATOR_ACCESS = "arn:aws:iam::aws:policy/AdministratorAccess"


@dataclass(frozen=True)
class PolicyArn:
    """A policy given by its ARN."""

    arn: str

    def value(self) -> dict[str, Any]:
        return {"arn": self.arn}


@dataclass(frozen=True, eq=False)
class PolicyComponent:
    """A policy produced by another component; its ARN is known after that component deploys."""

    component: Any

    def value(self) -> dict[str, Any]:
        return {"arn": resolve(self.component.arn)}


Policy: TypeAlias = PolicyArn | PolicyComponent

DEFAULT_POLICY = PolicyArn(ADMINISTRATOR_ACCESS)


def as_policy(value: Any) -> Policy | None:
    """Coerce a policy input into its tagged form."""
    if value is None or isinstance(value, PolicyArn | PolicyComponent):
        return value
    if isinstance(value, str):
        return PolicyArn(value)
    if isinstance(value, Mapping):
        if "arn" not in value:
            raise ConfigurationError(f"policy is missing 'arn': {dict(value)!r}")
        return PolicyArn(value["arn"])
    if hasattr(value, "arn"):
        return PolicyComponent(value)
    raise ConfigurationError(f"unsupported policy value: {value!r}")


def policy_value(value: Any) -> dict[str, Any] | None:
    """Return the plain {'arn': ...} mapping for a policy input."""
    policy = as_policy(value)
    return policy.value() if policy is not None else None
