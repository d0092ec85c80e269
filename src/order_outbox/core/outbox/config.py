"""
Outbox Processor Configuration

Environment Variables:
    OUTBOX_BATCH_SIZE: Events fetched per tick (default: 100)
    OUTBOX_MAX_RETRIES: Failed attempts allowed before an event is abandoned (default: 3)
    OUTBOX_PROCESSING_INTERVAL_MS: Delay between ticks (default: 5000)
    OUTBOX_RECONCILIATION_INTERVAL_MS: Delay between requeue passes (default: unset, manual only)
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OutboxProcessorConfig(BaseModel):
    """Dispatcher settings."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=100, gt=0)
    max_retries: int = Field(default=3, ge=0)
    processing_interval_ms: int = Field(default=5000, gt=0)
    reconciliation_interval_ms: Optional[int] = Field(default=None, gt=0)

    @property
    def processing_interval(self) -> float:
        """Tick interval in seconds."""
        return self.processing_interval_ms / 1000

    @property
    def reconciliation_interval(self) -> Optional[float]:
        if self.reconciliation_interval_ms is None:
            return None
        return self.reconciliation_interval_ms / 1000

    @classmethod
    def from_env(cls) -> "OutboxProcessorConfig":
        """
        Build the config from OUTBOX_* variables.

        Raises:
            pydantic.ValidationError: If a variable is not a valid value
        """
        values = {}
        for field_name, env_var in (
            ("batch_size", "OUTBOX_BATCH_SIZE"),
            ("max_retries", "OUTBOX_MAX_RETRIES"),
            ("processing_interval_ms", "OUTBOX_PROCESSING_INTERVAL_MS"),
            ("reconciliation_interval_ms", "OUTBOX_RECONCILIATION_INTERVAL_MS"),
        ):
            raw = os.getenv(env_var)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        return cls(**values)
