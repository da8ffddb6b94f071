"""Circuit breaker exceptions.

Callers can distinguish between:
  - A call being rejected because the breaker is tripped.
  - A breaker that could not be built from the supplied configuration.

Errors raised by the protected operation itself are never wrapped.
"""

from tripwire.errors import ConfigurationError


class CircuitBreakerError(Exception):
    """Base exception for the circuit breaker package."""


class BreakerConfigError(CircuitBreakerError, ConfigurationError):
    """Raised when breaker configuration values are invalid."""


class CircuitOpenError(CircuitBreakerError):
    """Raised when a call is rejected because the breaker is tripped.

    Attributes:
        breaker_name: Name of the breaker rejecting the call.
        retry_after: Seconds until the cooldown deadline passes. ``0.0`` when
            the breaker is probing and the single trial slot is taken.
    """

    def __init__(self, breaker_name: str, retry_after: float) -> None:
        """Initialize a breaker-open exception payload.

        Args:
            breaker_name: Breaker rejecting the call.
            retry_after: Seconds until the next trial may be admitted.
        """
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(f"circuit_open: {breaker_name} retry_after={retry_after:g}s")
