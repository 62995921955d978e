"""Invocation dispatcher — route a run to a stack or one of its instances."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from .component import type_exists
from .context import Context, Sleep
from .credentials import add_env_vars_to_credentials
from .errors import ConfigurationError, handle_error
from .loader import build_stack, discover, is_programmatic, load_definition, load_programmatic
from .stacks import Stack
from .state import StateStore

logger = logging.getLogger(__name__)

DEFAULT_STAGE = "dev"

RUNNER_NAME = "Converge"


def read_env_files(root: Path, stage: str) -> dict[str, str]:
    """Values from `.env.<stage>` if it exists, otherwise from `.env`."""
    for path in (root / f".env.{stage}", root / ".env"):
        if path.is_file():
            logger.debug("Loading environment from %s", path)
            return {k: v for k, v in dotenv_values(path).items() if v is not None}
    return {}


def set_log_flags(*, verbose: bool, debug: bool) -> None:
    """Set the process-wide verbose/debug flags."""
    pkg_logger = logging.getLogger("converge")
    if verbose:
        os.environ["CONVERGE_VERBOSE"] = "true"
        pkg_logger.setLevel(logging.INFO)
    if debug:
        os.environ["CONVERGE_DEBUG"] = "true"
        pkg_logger.setLevel(logging.DEBUG)


async def invoke(stack: Stack, method: str | None, ctx: Context) -> Any:
    """Call `method` (or the default command) on `stack`."""
    name = method or stack.default_command
    target = getattr(stack, name, None)
    if name not in stack.commands or not callable(target):
        raise ConfigurationError(f'Component "{stack.name}" does not have a "{name}" method')
    logger.debug("Invoking %s.%s", stack.name, name)
    result = target(ctx)
    if inspect.isawaitable(result):
        result = await result
    return result


async def _run_programmatic(path: Path, ctx: Context, method: str | None) -> Any:
    stack = load_programmatic(path, ctx)
    try:
        return await invoke(stack, method, ctx)
    except Exception as error:
        return handle_error(error, stack.name)


async def _run_declarative(path: Path, ctx: Context, instance: str | None, method: str | None) -> Any:
    definition = load_definition(path, ctx)

    if not instance:
        try:
            stack = build_stack(definition, ctx)
            return await invoke(stack, method, ctx)
        except Exception as error:
            return handle_error(error, definition.name)

    found = definition.find(instance)
    if found is None:
        raise ConfigurationError(f'Component instance "{instance}" does not exist in your stack.')
    type_name, _ = found
    if not type_exists(type_name):
        raise ConfigurationError(f'Component "{type_name}" is not a valid Component.')

    try:
        *earlier, comp = build_stack(definition, ctx, through=instance).instances
        # Instances it may reference are not run; they answer from their last deployment.
        for other in earlier:
            previous = ctx.state.load(other.instance_id)
            if previous is not None:
                other.restore(previous)
        stack = Stack(name=definition.name, description=definition.description, instances=[comp])
        return await invoke(stack, method, ctx)
    except Exception as error:
        return handle_error(error, type_name)


async def run(
    *,
    root: str | Path | None = None,
    stage: str | None = None,
    instance: str | None = None,
    method: str | None = None,
    credentials: Mapping[str, Mapping[str, Any]] | None = None,
    verbose: bool = False,
    debug: bool = False,
    dry_run: bool = False,
    state: StateStore | None = None,
    environ: Mapping[str, str] | None = None,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """Run the stack found in `root` and return its outputs, or an ErrorReport.

    With neither `instance` nor `method` the stack's default command runs.
    `method` alone runs that command on the stack; `instance` with `method`
    runs it on one instance of a declarative stack. With `dry_run` the
    provider is never called and no state is written. Errors never escape.
    """
    root = Path(root) if root is not None else Path.cwd()
    stage = stage or DEFAULT_STAGE
    set_log_flags(verbose=verbose, debug=debug)

    try:
        env = dict(os.environ if environ is None else environ)
        env.update(read_env_files(root, stage))

        ctx = Context(
            stage=stage,
            root=root,
            credentials=add_env_vars_to_credentials(env, credentials),
            env=env,
            state=state,
            dry_run=dry_run,
            sleep=sleep,
        )

        if instance and not method:
            raise ConfigurationError(f'A method is required to run instance "{instance}"')

        path = discover(root)
        with ctx:
            if is_programmatic(path):
                if instance:
                    raise ConfigurationError("Targeting an instance requires a declarative stack file")
                return await _run_programmatic(path, ctx, method)
            return await _run_declarative(path, ctx, instance, method)
    except Exception as error:
        return handle_error(error, RUNNER_NAME)
