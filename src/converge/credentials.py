"""Map well-known provider environment variables onto SDK credential fields."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

# Known provider environment variables and the SDK configuration keys they set.
PROVIDER_ENV_VARS: dict[str, dict[str, str]] = {
    "aws": {
        "AWS_ACCESS_KEY_ID": "aws_access_key_id",
        "AWS_SECRET_ACCESS_KEY": "aws_secret_access_key",
        "AWS_SESSION_TOKEN": "aws_session_token",
        "AWS_REGION": "region_name",
        "AWS_DEFAULT_REGION": "region_name",
    },
}


def add_env_vars_to_credentials(
    env: Mapping[str, str],
    credentials: Mapping[str, Mapping[str, Any]] | None = None,
) -> dict[str, dict[str, Any]]:
    """Return `credentials` with missing fields filled in from `env`.

    Explicitly supplied values are never overridden. The input mapping is not
    modified.
    """
    merged = {provider: dict(values) for provider, values in (credentials or {}).items()}

    for provider, env_vars in PROVIDER_ENV_VARS.items():
        for env_var, key in env_vars.items():
            if env_var not in env:
                continue
            provider_creds = merged.setdefault(provider, {})
            if provider_creds.get(key):
                continue
            logger.debug("Using %s for %s.%s", env_var, provider, key)
            provider_creds[key] = env[env_var]

    return merged
