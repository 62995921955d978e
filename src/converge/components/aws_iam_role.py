"""AwsIamRole — an IAM role with one attached policy."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from ..component import Component, component, resolve_component
from ..context import Context
from ..diff import normalize
from ..errors import PolicyNotFoundError, ProviderError, ResourceNotFoundError
from ..providers.aws import AwsProvider
from ..providers.base import IamProvider, RoleSpec
from ..resolve import or_, resolvable, resolve
from ..state import Snapshot
from .policy import DEFAULT_POLICY, PolicyComponent, as_policy, policy_value

logger = logging.getLogger(__name__)

# IAM trust and permission changes propagate eventually; callers acting on the
# role right after a change may otherwise be denied.
SETTLE_SECONDS = 15


def trust_document(service: str | None) -> str:
    """Assume-role policy letting `service` assume the role, serialized as sent to IAM."""
    principal = {"Service": service} if service is not None else {}
    document = {
        "Version": "2012-10-17",
        "Statement": {
            "Effect": "Allow",
            "Principal": principal,
            "Action": "sts:AssumeRole",
        },
    }
    return json.dumps(document, separators=(",", ":"))


async def attach_role_policy(iam: IamProvider, ctx: Context, role_name: str, policy: Mapping[str, Any]) -> None:
    await iam.attach_policy(role_name, policy["arn"])
    await ctx.sleep(SETTLE_SECONDS)


async def detach_role_policy(iam: IamProvider, role_name: str, policy: Mapping[str, Any]) -> None:
    await iam.detach_policy(role_name, policy["arn"])


async def create_role(
    iam: IamProvider,
    ctx: Context,
    *,
    role_name: str,
    service: str | None,
    policy: Mapping[str, Any],
) -> str:
    """Create the role and attach its policy, deleting the role again if the attach fails."""
    arn = await iam.create_resource(RoleSpec(name=role_name, trust_document=trust_document(service)))
    try:
        await attach_role_policy(iam, ctx, role_name, policy)
    except ProviderError:
        logger.warning("Attaching %s to %s failed; deleting the new role", policy["arn"], role_name)
        try:
            await iam.delete_resource(role_name)
        except ProviderError as exc:
            logger.warning("Could not delete role %s: %s", role_name, exc)
        raise
    return arn


async def delete_role(iam: IamProvider, role_name: str, policy: Mapping[str, Any] | None) -> None:
    if policy is not None:
        try:
            await detach_role_policy(iam, role_name, policy)
        except PolicyNotFoundError:
            logger.warning("Policy %s was already detached from %s", policy["arn"], role_name)
    await iam.delete_resource(role_name)


@component("AwsIamRole")
class AwsIamRole(Component):
    """IAM role trusted by one service principal, with one attached policy."""

    identity = "role_name"
    input_names = ("role_name", "service", "policy")
    state_names = ("arn",)

    def construct(self, inputs: dict[str, Any]) -> None:
        self.provider = inputs.get("provider")
        self.service = inputs.get("service")
        self.policy_input = inputs.get("policy")
        self.policy = resolvable(
            lambda: policy_value(or_(self.policy_input, DEFAULT_POLICY)),
            f"{self.instance_id}.policy",
        )
        self.role_name = resolvable(
            lambda: or_(inputs.get("role_name"), f"role-{self.instance_id.replace('.', '-')}"),
            f"{self.instance_id}.role_name",
        )

    def define(self) -> dict[str, Component]:
        policy = as_policy(resolve(self.policy_input))
        if isinstance(policy, PolicyComponent):
            return {"policy": policy.component}
        return {}

    def _iam(self, ctx: Context) -> IamProvider:
        provider = resolve(self.provider)
        if provider is None:
            provider = ctx.provider("aws", AwsProvider.from_credentials)
        return provider

    async def deploy(self, ctx: Context, previous: Snapshot | Mapping[str, Any] | None = None) -> None:
        resolve_component(self)
        iam = self._iam(ctx)

        if previous is None or previous.get("role_name") != self.role_name:
            logger.info("Creating role: %s", self.role_name)
            self.arn = await create_role(
                iam,
                ctx,
                role_name=self.role_name,
                service=self.service,
                policy=self.policy,
            )
            return

        if previous.get("service") != self.service:
            logger.info("Updating trust policy of role: %s", self.role_name)
            await iam.update_trust_policy(self.role_name, trust_document(self.service))

        old_policy = normalize(previous.get("policy"))
        if old_policy != self.policy:
            logger.info("Replacing policy of role %s: %s", self.role_name, self.policy["arn"])
            # snapshots written before the policy was tracked have nothing to detach
            if old_policy:
                await detach_role_policy(iam, self.role_name, old_policy)
            await attach_role_policy(iam, ctx, self.role_name, self.policy)

        self.arn = previous.get("arn") or await iam.get_resource(self.role_name)

    async def remove(self, ctx: Context) -> None:
        resolve_component(self)
        iam = self._iam(ctx)

        logger.info("Removing role: %s", self.role_name)
        try:
            await delete_role(iam, self.role_name, self.policy)
        except ResourceNotFoundError:
            logger.warning("Role %s was already removed", self.role_name)
        self.arn = None

    def info(self) -> dict[str, Any]:
        return {
            "title": self.role_name,
            "type": self.type_name,
            "data": {
                "arn": self.arn,
                "service": self.service,
                "policy": self.policy,
            },
        }
