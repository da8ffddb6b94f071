"""Framework-agnostic async circuit breaker.

This package implements the circuit breaker pattern from *Release It!*.

Key behavior notes:
  - States are ``NORMAL`` (calls pass), ``TRIPPED`` (calls fail fast with
    ``CircuitOpenError``) and ``PROBING`` (trial calls decide recovery).
  - Only consecutive failures trip the breaker; any success while ``NORMAL``
    clears the streak. A single failure while ``PROBING`` trips it again with
    a fresh cooldown.
  - A cooldown task moves a tripped breaker to ``PROBING`` even when no calls
    arrive. Re-tripping replaces the pending task.
  - ``PROBING`` admits every concurrent call unless ``single_trial`` is set,
    in which case extra calls are rejected until the in-flight trial resolves.
  - If an excluded exception is raised, the call is treated as if it never
    happened: counters and state are left untouched.
"""

from tripwire.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from tripwire.circuit_breaker.cooldown import CooldownTimer
from tripwire.circuit_breaker.decorators import with_circuit_breaker
from tripwire.circuit_breaker.exceptions import (
    BreakerConfigError,
    CircuitBreakerError,
    CircuitOpenError,
)
from tripwire.circuit_breaker.metrics import BreakerListener, TransitionCallbacks
from tripwire.circuit_breaker.state import BreakerSnapshot, CircuitState

__all__ = [
    "BreakerConfigError",
    "BreakerListener",
    "BreakerSnapshot",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitState",
    "CooldownTimer",
    "TransitionCallbacks",
    "with_circuit_breaker",
]
