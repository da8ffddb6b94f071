"""Observability hooks for circuit breakers."""

from collections.abc import Callable
from typing import Protocol

from tripwire.circuit_breaker.state import CircuitState

Observer = Callable[[], object]


class BreakerListener(Protocol):
    """Listener protocol for circuit breaker events.

    Hooks are invoked synchronously after the breaker has released its lock.
    Return values are ignored and exceptions are logged, never propagated.
    """

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Handle circuit state transitions."""

    def on_call_rejected(self, name: str) -> None:
        """Handle call rejection while the breaker is tripped."""

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        """Handle successful protected call completion."""

    def on_call_failed(self, name: str, exc: Exception, elapsed: float) -> None:
        """Handle failed protected call completion."""


class TransitionCallbacks(BreakerListener):
    """Adapt zero-argument ``on_tripped``/``on_normal``/``on_probing`` hooks."""

    def __init__(
        self,
        *,
        on_tripped: Observer | None = None,
        on_normal: Observer | None = None,
        on_probing: Observer | None = None,
    ) -> None:
        self._callbacks: dict[CircuitState, Observer | None] = {
            CircuitState.TRIPPED: on_tripped,
            CircuitState.NORMAL: on_normal,
            CircuitState.PROBING: on_probing,
        }

    @property
    def is_empty(self) -> bool:
        return all(callback is None for callback in self._callbacks.values())

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Invoke the hook registered for the entered state."""
        _ = (name, old)
        callback = self._callbacks[new]
        if callback is not None:
            callback()

    def on_call_rejected(self, name: str) -> None:
        """No-op for this listener."""
        _ = name

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        """No-op for this listener."""
        _ = (name, elapsed)

    def on_call_failed(self, name: str, exc: Exception, elapsed: float) -> None:
        """No-op for this listener."""
        _ = (name, exc, elapsed)
