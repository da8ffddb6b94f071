"""Wrap async callables so every invocation goes through a breaker."""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, Protocol, TypeVar, overload

from tripwire.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from tripwire.circuit_breaker.exceptions import BreakerConfigError
from tripwire.circuit_breaker.metrics import Observer

T = TypeVar("T")
P = ParamSpec("P")


class ProtectedCallable(Protocol[P, T]):
    """Async callable carrying the breaker that guards it."""

    breaker: CircuitBreaker

    async def __call__(self, *args: P.args, **kwargs: P.kwargs) -> T:
        """Invoke the wrapped callable through ``breaker``."""


def _callable_name(func: object) -> str:
    callable_name = getattr(func, "__qualname__", None)
    if callable_name is None:
        callable_name = getattr(func, "__name__", None)
    if callable_name is None:
        callable_name = func.__class__.__qualname__
    return str(callable_name)


@overload
def with_circuit_breaker(
    func: Callable[P, Awaitable[T]],
    *,
    name: str | None = ...,
    config: CircuitBreakerConfig | None = ...,
    breaker: CircuitBreaker | None = ...,
    on_tripped: Observer | None = ...,
    on_normal: Observer | None = ...,
    on_probing: Observer | None = ...,
) -> ProtectedCallable[P, T]: ...


@overload
def with_circuit_breaker(
    func: None = ...,
    *,
    name: str | None = ...,
    config: CircuitBreakerConfig | None = ...,
    breaker: CircuitBreaker | None = ...,
    on_tripped: Observer | None = ...,
    on_normal: Observer | None = ...,
    on_probing: Observer | None = ...,
) -> Callable[[Callable[P, Awaitable[T]]], ProtectedCallable[P, T]]: ...


def with_circuit_breaker(
    func: Callable[P, Awaitable[T]] | None = None,
    *,
    name: str | None = None,
    config: CircuitBreakerConfig | None = None,
    breaker: CircuitBreaker | None = None,
    on_tripped: Observer | None = None,
    on_normal: Observer | None = None,
    on_probing: Observer | None = None,
) -> (
    ProtectedCallable[P, T]
    | Callable[[Callable[P, Awaitable[T]]], ProtectedCallable[P, T]]
):
    """Protect an async callable with a circuit breaker.

    Usable bare (``@with_circuit_breaker``), with options
    (``@with_circuit_breaker(config=...)``) or as a plain function call. When
    ``breaker`` is given it is shared as-is, which lets several callables
    trip together.

    Args:
        func: Async callable to protect.
        name: Breaker name. Defaults to the callable's qualified name.
        config: Configuration for a newly built breaker.
        breaker: Existing breaker to reuse instead of building one.
        on_tripped: Zero-argument hook invoked on entry to ``TRIPPED``.
        on_normal: Zero-argument hook invoked on entry to ``NORMAL``.
        on_probing: Zero-argument hook invoked on entry to ``PROBING``.

    Raises:
        BreakerConfigError: When ``breaker`` is combined with options that
            only apply to a newly built breaker.
    """
    if breaker is not None and (
        name is not None
        or config is not None
        or any(hook is not None for hook in (on_tripped, on_normal, on_probing))
    ):
        raise BreakerConfigError(
            "breaker cannot be combined with name, config or observer hooks"
        )

    def decorate(target: Callable[P, Awaitable[T]]) -> ProtectedCallable[P, T]:
        guard = breaker
        if guard is None:
            guard = CircuitBreaker(
                _callable_name(target) if name is None else name,
                config=config,
                on_tripped=on_tripped,
                on_normal=on_normal,
                on_probing=on_probing,
            )

        @functools.wraps(target)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await guard.call(target, *args, **kwargs)

        wrapper.breaker = guard  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    if func is None:
        return decorate
    return decorate(func)
