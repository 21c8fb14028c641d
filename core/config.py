"""
Pydantic-based configuration for probe and sweep defaults.

All knobs are exposed via TCPSWEEP_* environment variables (or a local
.env file) so callers can shrink timeouts or widen the worker pool
without touching code.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TCPSWEEP_", case_sensitive=False, env_file=".env")

    # Probe
    probe_timeout_ms: int = Field(500, description="per-probe connect deadline in milliseconds")
    cancel_poll_ms: int = Field(50, description="cancellation check interval while waiting")

    # Sweep
    concurrency: int = Field(1, description="probe workers; 1 keeps the scan sequential")

    # Logging
    log_level: str = Field("WARNING", description="CLI log level when -v is not given")

    @field_validator("probe_timeout_ms", "cancel_poll_ms")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number of milliseconds")
        return v

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("concurrency must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return v

    @property
    def probe_timeout_s(self) -> float:
        return self.probe_timeout_ms / 1000.0

    @property
    def cancel_poll_s(self) -> float:
        return self.cancel_poll_ms / 1000.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
