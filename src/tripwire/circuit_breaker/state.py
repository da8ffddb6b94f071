"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    NORMAL = "normal"
    TRIPPED = "tripped"
    PROBING = "probing"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Attributes:
        name: Breaker name.
        state: Current breaker state.
        failure_count: Consecutive failures observed while ``NORMAL``.
        success_count: Consecutive successes observed while ``PROBING``.
        cooldown_deadline: UTC time at which a ``TRIPPED`` breaker may start
            probing. ``None`` in every other state.
    """

    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    cooldown_deadline: datetime | None
