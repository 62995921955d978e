"""Provider capability contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class RoleSpec:
    """Everything needed to create a role."""

    name: str
    trust_document: str
    path: str = "/"


class IamProvider(Protocol):
    """Operations a provider must expose to reconcile IAM roles.

    `detach_policy` raises PolicyNotFoundError and `delete_resource` raises
    ResourceNotFoundError when their target is already gone. Any other
    failure is reported as ProviderError.
    """

    async def create_resource(self, spec: RoleSpec) -> str: ...

    async def attach_policy(self, resource_id: str, policy_arn: str) -> None: ...

    async def detach_policy(self, resource_id: str, policy_arn: str) -> None: ...

    async def update_trust_policy(self, resource_id: str, document: str) -> None: ...

    async def delete_resource(self, resource_id: str) -> None: ...

    async def get_resource(self, resource_id: str) -> str: ...
