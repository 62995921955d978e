"""Deferred configuration values and ${...} interpolation of declarative inputs."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from contextvars import ContextVar
from typing import Any

from .errors import ConfigurationError, CyclicResolutionError

logger = logging.getLogger(__name__)

# -- Resolvables --


class Resolvable:
    """A value computed on demand from a zero-argument callable."""

    __slots__ = ("fn", "label")

    def __init__(self, fn: Callable[[], Any], label: str | None = None) -> None:
        self.fn = fn
        self.label = label or getattr(fn, "__qualname__", "resolvable")

    def __repr__(self) -> str:
        return f"Resolvable({self.label})"


def resolvable(fn: Callable[[], Any], label: str | None = None) -> Resolvable:
    """Mark `fn` as deferred; it runs when the value is first resolved."""
    return Resolvable(fn, label)


_active_pass: ContextVar[ResolutionPass | None] = ContextVar("converge_resolution_pass", default=None)


class ResolutionPass:
    """Scope in which each Resolvable is evaluated at most once.

    Results are cached by identity for the lifetime of the pass and dropped on
    exit. A Resolvable that is reached again while it is still being evaluated
    raises CyclicResolutionError.
    """

    def __init__(self) -> None:
        self._cache: dict[int, tuple[Resolvable, Any]] = {}
        self._stack: list[Resolvable] = []
        self._token = None

    def __enter__(self) -> ResolutionPass:
        self._token = _active_pass.set(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        _active_pass.reset(self._token)
        self._token = None
        self._cache.clear()

    def resolve(self, value: Any) -> Any:
        if not isinstance(value, Resolvable):
            return value

        cached = self._cache.get(id(value))
        if cached is not None:
            return cached[1]

        if any(r is value for r in self._stack):
            chain = " -> ".join(r.label for r in [*self._stack, value])
            raise CyclicResolutionError(f"cyclic resolution: {chain}")

        self._stack.append(value)
        try:
            result = self.resolve(value.fn())
        finally:
            self._stack.pop()

        self._cache[id(value)] = (value, result)
        return result


def resolve(value: Any) -> Any:
    """Resolve `value` if it is deferred; plain values are returned unchanged."""
    if not isinstance(value, Resolvable):
        return value
    active = _active_pass.get()
    if active is not None:
        return active.resolve(value)
    with ResolutionPass() as rp:
        return rp.resolve(value)


def resolve_all(obj: Any) -> Any:
    """Recursively resolve every Resolvable inside dicts, lists and tuples."""
    obj = resolve(obj)
    if isinstance(obj, dict):
        return {k: resolve_all(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [resolve_all(item) for item in obj]
    if isinstance(obj, tuple):
        return tuple(resolve_all(item) for item in obj)
    return obj


def or_(value: Any, default: Any) -> Any:
    """Resolve `value`, falling back to resolving `default` when it is None."""
    resolved = resolve(value)
    if resolved is None:
        return resolve(default)
    return resolved


# -- Interpolation --

_REFERENCE = re.compile(r"\$\$\{|\$\{([^{}]+)\}")
_WHOLE_REFERENCE = re.compile(r"\$\{([^{}]+)\}")

COMPONENT_NAMESPACE = "component"


class Resolver:
    """Interpolate ${...} references in the inputs of a declarative stack.

    `variables` answers plain dotted references such as ${stage} or
    ${env.AWS_REGION} while the stack is built. ${component.<instance>.<attr>}
    names an input or state value of an instance declared earlier in the same
    stack and stays deferred until that instance is deployed or restored.
    A string that is exactly one reference yields the value itself; embedded
    references are stringified. $${ produces a literal ${.
    """

    def __init__(
        self,
        variables: Mapping[str, Any] | None = None,
        components: Mapping[str, Any] | None = None,
    ) -> None:
        self.variables = variables or {}
        self.components = components if components is not None else {}

    def lookup(self, ref: str) -> Any:
        current: Any = self.variables
        for part in ref.split("."):
            try:
                current = current[part] if isinstance(current, Mapping) else getattr(current, part)
            except (KeyError, AttributeError):
                raise ConfigurationError(f"undefined variable '{ref}'") from None
        return current

    def reference(self, ref: str) -> Resolvable:
        """Deferred value of a 'component.<instance>.<attr>' reference."""
        _, _, path = ref.partition(".")
        instance, _, attr = path.partition(".")
        if not instance or not attr or "." in attr:
            raise ConfigurationError(f"invalid reference '{ref}'; expected 'component.<instance>.<attribute>'")

        target = self.components.get(instance)
        if target is None:
            raise ConfigurationError(f"'{ref}' does not name an instance declared earlier in the stack")
        if attr not in (*target.input_names, *target.state_names):
            raise ConfigurationError(f"'{ref}': {target.type_name} has no value named '{attr}'")

        return resolvable(lambda: getattr(target, attr), ref)

    def _value(self, ref: str) -> Any:
        ref = ref.strip()
        if ref.split(".", 1)[0] == COMPONENT_NAMESPACE:
            return self.reference(ref)
        return self.lookup(ref)

    def interpolate(self, text: str) -> Any:
        """Resolve the references in one string."""
        if "${" not in text:
            return text

        whole = _WHOLE_REFERENCE.fullmatch(text)
        if whole:
            return self._value(whole.group(1))

        pieces: list[Any] = []
        pos = 0
        for m in _REFERENCE.finditer(text):
            pieces.append(text[pos : m.start()])
            pieces.append("${" if m.group(1) is None else self._value(m.group(1)))
            pos = m.end()
        pieces.append(text[pos:])

        if not any(isinstance(p, Resolvable) for p in pieces):
            return "".join(str(p) for p in pieces)
        return resolvable(lambda: "".join(str(resolve(p)) for p in pieces), text)

    def resolve(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of `data` with every string interpolated."""
        return self._walk(data)

    def _walk(self, obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: self._walk(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._walk(item) for item in obj]
        if isinstance(obj, str):
            return self.interpolate(obj)
        return obj
