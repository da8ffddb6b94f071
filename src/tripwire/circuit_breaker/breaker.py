"""Core circuit breaker implementation."""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from types import TracebackType
from typing import ParamSpec, TypeVar

import structlog

from tripwire.circuit_breaker.cooldown import CooldownTimer
from tripwire.circuit_breaker.exceptions import BreakerConfigError, CircuitOpenError
from tripwire.circuit_breaker.metrics import (
    BreakerListener,
    Observer,
    TransitionCallbacks,
)
from tripwire.circuit_breaker.state import BreakerSnapshot, CircuitState
from tripwire.logging import (
    StructuredLogger,
    log_exception,
    log_info,
    log_warning,
)

T = TypeVar("T")
P = ParamSpec("P")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_positive_int(field_name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise BreakerConfigError(f"{field_name} must be an integer >= 1")


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Consecutive failures while ``NORMAL`` before tripping.
        success_threshold: Consecutive successes while ``PROBING`` before
            returning to ``NORMAL``.
        cooldown_seconds: Seconds to stay ``TRIPPED`` before probing.
        expected_exceptions: Exceptions that count as failures.
        excluded_exceptions: Exceptions that must not count as failures.
        single_trial: Admit at most one in-flight trial call while ``PROBING``.
    """

    failure_threshold: int = 3
    success_threshold: int = 2
    cooldown_seconds: float = 10.0
    expected_exceptions: tuple[type[Exception], ...] = (Exception,)
    excluded_exceptions: tuple[type[Exception], ...] = ()
    single_trial: bool = False

    def __post_init__(self) -> None:
        _require_positive_int("failure_threshold", self.failure_threshold)
        _require_positive_int("success_threshold", self.success_threshold)
        cooldown = self.cooldown_seconds
        if (
            isinstance(cooldown, bool)
            or not isinstance(cooldown, (int, float))
            or not math.isfinite(cooldown)
            or cooldown <= 0
        ):
            raise BreakerConfigError("cooldown_seconds must be a finite number > 0")
        if not self.expected_exceptions:
            raise BreakerConfigError("expected_exceptions must not be empty")


@dataclass(frozen=True, slots=True)
class _Transition:
    old: CircuitState
    new: CircuitState
    cooldown_armed: bool = True


class CircuitBreaker:
    """Stateful proxy around a dangerous async operation.

    Bookkeeping runs under a per-instance lock that is never held while the
    protected operation is awaited. Listener hooks run after the lock is
    released.
    """

    def __init__(
        self,
        name: str,
        *,
        config: CircuitBreakerConfig | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        on_tripped: Observer | None = None,
        on_normal: Observer | None = None,
        on_probing: Observer | None = None,
        logger: StructuredLogger | logging.Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Build a circuit breaker with optional custom dependencies.

        Args:
            name: Breaker name used in errors, logs and listener events.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
            listeners: Optional listener hooks for breaker events.
            on_tripped: Zero-argument hook invoked on entry to ``TRIPPED``.
            on_normal: Zero-argument hook invoked on entry to ``NORMAL``.
            on_probing: Zero-argument hook invoked on entry to ``PROBING``.
            logger: Structured logger. Defaults to a structlog logger.
            sleep: Awaitable sleep used by the cooldown timer.
        """
        self.name = name
        self.config = CircuitBreakerConfig() if config is None else config
        callbacks = TransitionCallbacks(
            on_tripped=on_tripped,
            on_normal=on_normal,
            on_probing=on_probing,
        )
        extra = tuple(listeners) if listeners is not None else ()
        self._listeners: tuple[BreakerListener, ...] = (
            extra if callbacks.is_empty else (callbacks, *extra)
        )
        self._logger: StructuredLogger | logging.Logger = (
            structlog.stdlib.get_logger(__name__) if logger is None else logger
        )
        self._cooldown = CooldownTimer(name=name, sleep=sleep)
        self._lock = threading.Lock()

        self._state = CircuitState.NORMAL
        self._failure_count = 0
        self._success_count = 0
        self._cooldown_deadline: datetime | None = None
        self._trip_generation = 0
        self._trial_token: object | None = None

    async def __aenter__(self) -> CircuitBreaker:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def state(self) -> CircuitState:
        """Current state. Reading it never triggers a transition."""
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def success_count(self) -> int:
        with self._lock:
            return self._success_count

    @property
    def cooldown_deadline(self) -> datetime | None:
        with self._lock:
            return self._cooldown_deadline

    @property
    def is_normal(self) -> bool:
        return self.state == CircuitState.NORMAL

    @property
    def is_tripped(self) -> bool:
        return self.state == CircuitState.TRIPPED

    @property
    def is_probing(self) -> bool:
        return self.state == CircuitState.PROBING

    def snapshot(self) -> BreakerSnapshot:
        """Return a consistent view of state, counters and deadline."""
        with self._lock:
            return BreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                cooldown_deadline=self._cooldown_deadline,
            )

    async def call(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke an async callable under circuit breaker protection.

        Args:
            func: Dangerous async callable to execute.
            *args: Positional arguments forwarded to ``func``.
            **kwargs: Keyword arguments forwarded to ``func``.

        Returns:
            The result of ``func`` when admitted and successful.

        Raises:
            CircuitOpenError: When the breaker is tripped and the call is
                rejected without invoking ``func``.
            Exception: The original exception from ``func`` when it is
                attempted and fails.
        """
        try:
            trial_token, transitions = self._admit(_utcnow())
        except CircuitOpenError:
            self._dispatch("on_call_rejected")
            raise
        self._emit_transitions(transitions)

        start = time.monotonic()
        try:
            result = await func(*args, **kwargs)
        except self.config.excluded_exceptions:
            raise
        except self.config.expected_exceptions as exc:
            elapsed = max(time.monotonic() - start, 0.0)
            transitions = self._record_failure(_utcnow())
            self._dispatch("on_call_failed", exc, elapsed)
            self._emit_transitions(transitions)
            raise
        else:
            elapsed = max(time.monotonic() - start, 0.0)
            transitions = self._record_success()
            self._dispatch("on_call_succeeded", elapsed)
            self._emit_transitions(transitions)
            return result
        finally:
            if trial_token is not None:
                self._release_trial(trial_token)

    execute = call

    def trip(self) -> None:
        """Force the breaker into ``TRIPPED`` from any state."""
        now = _utcnow()
        with self._lock:
            transition = self._enter_tripped(now)
        self._emit_transitions([transition])

    def reset(self) -> None:
        """Force the breaker into ``NORMAL`` from any state."""
        with self._lock:
            transition = self._enter_normal()
        self._emit_transitions([transition])

    async def close(self) -> None:
        """Release the pending cooldown task.

        A closed breaker keeps guarding calls but no longer schedules cooldown
        tasks; tripped breakers then move to ``PROBING`` on the next call after
        the deadline.
        """
        await self._cooldown.close()

    def _admit(self, now: datetime) -> tuple[object | None, list[_Transition]]:
        transitions: list[_Transition] = []
        with self._lock:
            if self._state == CircuitState.TRIPPED:
                deadline = self._cooldown_deadline
                if deadline is not None and now <= deadline:
                    raise CircuitOpenError(
                        self.name, retry_after=self._retry_after(now)
                    )
                transitions.append(self._enter_probing())

            if self._state != CircuitState.PROBING or not self.config.single_trial:
                return None, transitions

            if self._trial_token is not None:
                raise CircuitOpenError(self.name, retry_after=0.0)
            token = object()
            self._trial_token = token
            return token, transitions

    def _release_trial(self, token: object) -> None:
        with self._lock:
            if self._trial_token is token:
                self._trial_token = None

    def _retry_after(self, now: datetime) -> float:
        deadline = self._cooldown_deadline
        if deadline is None:
            return 0.0
        return max((deadline - now).total_seconds(), 0.0)

    def _record_success(self) -> list[_Transition]:
        with self._lock:
            if self._state == CircuitState.PROBING:
                self._success_count += 1
                if self._success_count >= self.config.success_threshold:
                    return [self._enter_normal()]
            elif self._state == CircuitState.NORMAL:
                self._failure_count = 0
            return []

    def _record_failure(self, now: datetime) -> list[_Transition]:
        with self._lock:
            if self._state == CircuitState.NORMAL:
                self._failure_count += 1
                if self._failure_count >= self.config.failure_threshold:
                    return [self._enter_tripped(now)]
            elif self._state == CircuitState.PROBING:
                return [self._enter_tripped(now)]
            return []

    def _on_cooldown_elapsed(self, generation: int) -> None:
        with self._lock:
            if (
                self._state != CircuitState.TRIPPED
                or generation != self._trip_generation
            ):
                return
            transition = self._enter_probing()
        self._emit_transitions([transition])

    # Transition helpers below must be called with ``self._lock`` held.

    def _enter_tripped(self, now: datetime) -> _Transition:
        old = self._state
        self._state = CircuitState.TRIPPED
        self._failure_count = 0
        self._success_count = 0
        self._trial_token = None
        self._cooldown_deadline = now + timedelta(seconds=self.config.cooldown_seconds)
        self._trip_generation += 1
        generation = self._trip_generation
        armed = self._cooldown.arm(
            self.config.cooldown_seconds,
            lambda: self._on_cooldown_elapsed(generation),
        )
        return _Transition(old, CircuitState.TRIPPED, cooldown_armed=armed)

    def _enter_probing(self) -> _Transition:
        old = self._state
        self._state = CircuitState.PROBING
        self._failure_count = 0
        self._success_count = 0
        self._trial_token = None
        self._cooldown_deadline = None
        self._cooldown.cancel()
        return _Transition(old, CircuitState.PROBING)

    def _enter_normal(self) -> _Transition:
        old = self._state
        self._state = CircuitState.NORMAL
        self._failure_count = 0
        self._success_count = 0
        self._trial_token = None
        self._cooldown_deadline = None
        self._cooldown.cancel()
        return _Transition(old, CircuitState.NORMAL)

    def _emit_transitions(self, transitions: Sequence[_Transition]) -> None:
        for transition in transitions:
            fields: dict[str, object] = {
                "breaker": self.name,
                "from_state": str(transition.old),
                "to_state": str(transition.new),
            }
            if transition.new == CircuitState.TRIPPED:
                fields["cooldown_seconds"] = self.config.cooldown_seconds
                log_warning(self._logger, "circuit_breaker.tripped", **fields)
                if not transition.cooldown_armed:
                    log_warning(
                        self._logger,
                        "circuit_breaker.cooldown_unscheduled",
                        breaker=self.name,
                        closed=self._cooldown.closed,
                    )
            else:
                log_info(self._logger, f"circuit_breaker.{transition.new}", **fields)
            self._dispatch("on_state_change", transition.old, transition.new)

    def _dispatch(self, hook: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(self.name, *args)
            except Exception:
                log_exception(
                    self._logger,
                    "circuit_breaker.listener_failed",
                    breaker=self.name,
                    hook=hook,
                )
