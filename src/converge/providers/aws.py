"""AWS IAM provider backed by boto3."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import PolicyNotFoundError, ProviderError, ResourceNotFoundError
from .base import RoleSpec

logger = logging.getLogger(__name__)

_SESSION_KEYS = frozenset(
    {"aws_access_key_id", "aws_secret_access_key", "aws_session_token", "region_name", "profile_name"}
)

_NOT_FOUND = "NoSuchEntity"


class AwsProvider:
    """IamProvider over a boto3 IAM client; blocking calls run in a worker thread."""

    def __init__(self, credentials: dict[str, Any] | None = None, *, client: Any = None) -> None:
        self._credentials = {k: v for k, v in (credentials or {}).items() if k in _SESSION_KEYS and v}
        self._client = client

    @classmethod
    def from_credentials(cls, credentials: dict[str, Any]) -> AwsProvider:
        return cls(credentials)

    @property
    def client(self) -> Any:
        if self._client is None:
            logger.debug("Creating IAM client")
            self._client = boto3.Session(**self._credentials).client("iam")
        return self._client

    async def _call(
        self,
        operation: str,
        *,
        not_found: Callable[[], ProviderError] | None = None,
        **params: Any,
    ) -> Any:
        logger.debug("IAM %s %s", operation, params.get("RoleName", ""))
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            if not_found is not None and error.get("Code") == _NOT_FOUND:
                raise not_found() from exc
            raise ProviderError(f"{operation} failed: {error.get('Message', exc)}") from exc
        except BotoCoreError as exc:
            raise ProviderError(f"{operation} failed: {exc}") from exc

    async def create_resource(self, spec: RoleSpec) -> str:
        response = await self._call(
            "create_role",
            RoleName=spec.name,
            Path=spec.path,
            AssumeRolePolicyDocument=spec.trust_document,
        )
        return response["Role"]["Arn"]

    async def attach_policy(self, resource_id: str, policy_arn: str) -> None:
        await self._call("attach_role_policy", RoleName=resource_id, PolicyArn=policy_arn)

    async def detach_policy(self, resource_id: str, policy_arn: str) -> None:
        await self._call(
            "detach_role_policy",
            not_found=lambda: PolicyNotFoundError(policy_arn),
            RoleName=resource_id,
            PolicyArn=policy_arn,
        )

    async def update_trust_policy(self, resource_id: str, document: str) -> None:
        await self._call("update_assume_role_policy", RoleName=resource_id, PolicyDocument=document)

    async def delete_resource(self, resource_id: str) -> None:
        await self._call(
            "delete_role",
            not_found=lambda: ResourceNotFoundError(resource_id),
            RoleName=resource_id,
        )

    async def get_resource(self, resource_id: str) -> str:
        response = await self._call(
            "get_role",
            not_found=lambda: ResourceNotFoundError(resource_id),
            RoleName=resource_id,
        )
        return response["Role"]["Arn"]
