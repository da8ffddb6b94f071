from __future__ import annotations

import math

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tripwire.circuit_breaker.breaker import CircuitBreakerConfig
from tripwire.logging import get_log_level_value

DEFAULT_ENV_PREFIX = "TRIPWIRE_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class BreakerSettings(BaseSettings):
    """Environment-driven defaults for circuit breakers and their logging."""

    model_config = prefixed_settings_config(DEFAULT_ENV_PREFIX)

    failure_threshold: int = 3
    success_threshold: int = 2
    cooldown_seconds: float = 10.0
    single_trial: bool = False
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        get_log_level_value(value)
        return value.strip().upper()

    @model_validator(mode="after")
    def _validate_breaker_settings(self) -> BreakerSettings:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")
        if not math.isfinite(self.cooldown_seconds) or self.cooldown_seconds <= 0:
            raise ValueError("cooldown_seconds must be a finite number > 0")
        return self

    def to_config(
        self,
        *,
        expected_exceptions: tuple[type[Exception], ...] = (Exception,),
        excluded_exceptions: tuple[type[Exception], ...] = (),
    ) -> CircuitBreakerConfig:
        """Build a breaker configuration from these settings.

        Exception filters are code-level concerns and cannot come from the
        environment, so they are passed here.
        """
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            success_threshold=self.success_threshold,
            cooldown_seconds=self.cooldown_seconds,
            expected_exceptions=expected_exceptions,
            excluded_exceptions=excluded_exceptions,
            single_trial=self.single_trial,
        )
