"""Outbox delivery settings.

Controls the retry budget for undeliverable records and the limits the
relay job works within on each tick.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OutboxSettings(BaseSettings):
    """Configuration for the integration event publisher and relay job.

    Environment variables use OUTBOX_ prefix.
    Example: OUTBOX_MAX_ATTEMPTS=8, OUTBOX_PUBLISH_TIMEOUT=5
    """

    max_attempts: int = Field(
        default=5,
        ge=1,
        le=1000,
        description=(
            "Failed delivery or reconstruction attempts after which a record "
            "is moved to the Failed state."
        ),
    )
    publish_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300.0,
        description="Seconds to wait for the broker before treating a publish as failed.",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum number of ReadyToSend records the relay handles per tick.",
    )
    retention_days: int = Field(
        default=7,
        ge=1,
        description="Age after which Completed records may be purged.",
    )

    model_config = SettingsConfigDict(
        env_prefix="OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )


__all__ = ["OutboxSettings"]
