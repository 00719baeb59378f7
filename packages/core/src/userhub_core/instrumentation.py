"""Instrumentation hooks around pipeline operations.

Operations are dotted names such as ``cdc.process.<topic>``. A hook wraps
the operation like middleware: it receives the operation name, a mutable
attribute dict and ``next_handler``, and must await ``next_handler``
exactly once. Registrations may narrow themselves to fnmatch patterns
(``cdc.process.*``) or an arbitrary predicate.
"""

from __future__ import annotations

import fnmatch
import functools
import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("userhub.instrumentation")


@runtime_checkable
class InstrumentationHook(Protocol):
    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any: ...


@functools.lru_cache(maxsize=2048)
def _operation_matches(patterns: tuple[str, ...], operation: str) -> bool:
    return any(fnmatch.fnmatchcase(operation, pattern) for pattern in patterns)


@dataclass(eq=False)
class HookRegistration:
    """A hook plus the conditions under which it runs."""

    hook: InstrumentationHook
    priority: int = 0
    predicate: Callable[[str, dict[str, Any]], bool] | None = None
    operations: tuple[str, ...] = ()
    enabled: bool = True

    def matches(self, operation: str, attributes: dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        if self.operations and not _operation_matches(self.operations, operation):
            return False
        return self.predicate is None or self.predicate(operation, attributes)


class HookRegistry:
    """Ordered set of hook registrations; lower priority runs outermost."""

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    @property
    def registrations(self) -> tuple[HookRegistration, ...]:
        return tuple(self._registrations)

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        predicate: Callable[[str, dict[str, Any]], bool] | None = None,
        operations: list[str] | tuple[str, ...] | None = None,
        enabled: bool = True,
    ) -> HookRegistration:
        registration = HookRegistration(
            hook,
            priority=priority,
            predicate=predicate,
            operations=tuple(operations or ()),
            enabled=enabled,
        )
        self._registrations.append(registration)
        # Stable sort: equal priorities keep registration order.
        self._registrations.sort(key=lambda r: r.priority)
        logger.debug(
            "Registered hook %s (priority=%d, operations=%s)",
            type(hook).__name__,
            priority,
            list(registration.operations) or "*",
        )
        return registration

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Await ``next_handler`` inside every matching hook, outermost first."""
        chain = [r.hook for r in self._registrations if r.matches(operation, attributes)]

        async def call(index: int) -> Any:
            if index == len(chain):
                return await next_handler()
            return await chain[index](operation, attributes, lambda: call(index + 1))

        return await call(0)

    def clear(self) -> None:
        self._registrations.clear()


_registry: ContextVar[HookRegistry | None] = ContextVar("userhub_hook_registry", default=None)


def get_hook_registry() -> HookRegistry:
    """Registry bound to the current context, created on first use."""
    registry = _registry.get()
    if registry is None:
        registry = HookRegistry()
        _registry.set(registry)
    return registry


def set_hook_registry(registry: HookRegistry) -> None:
    _registry.set(registry)
