"""
Tests for environment-driven configuration.
"""

import pytest
from pydantic import ValidationError

from order_outbox.core.database import DatabaseBackend, DatabaseConfig
from order_outbox.core.messaging import KafkaConfig
from order_outbox.core.outbox import OutboxProcessorConfig


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "OUTBOX_BATCH_SIZE", "OUTBOX_MAX_RETRIES",
        "OUTBOX_PROCESSING_INTERVAL_MS", "OUTBOX_RECONCILIATION_INTERVAL_MS",
        "DATABASE_BACKEND", "DATABASE_URL", "SQLITE_PATH",
        "KAFKA_BROKERS", "KAFKA_CLIENT_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestOutboxProcessorConfig:
    """Test dispatcher settings."""

    def test_defaults(self, clean_env):
        config = OutboxProcessorConfig.from_env()

        assert config.batch_size == 100
        assert config.max_retries == 3
        assert config.processing_interval_ms == 5000
        assert config.processing_interval == 5.0
        assert config.reconciliation_interval is None

    def test_from_env(self, clean_env):
        clean_env.setenv("OUTBOX_BATCH_SIZE", "25")
        clean_env.setenv("OUTBOX_MAX_RETRIES", "0")
        clean_env.setenv("OUTBOX_PROCESSING_INTERVAL_MS", "250")
        clean_env.setenv("OUTBOX_RECONCILIATION_INTERVAL_MS", "60000")

        config = OutboxProcessorConfig.from_env()

        assert config.batch_size == 25
        assert config.max_retries == 0
        assert config.processing_interval == 0.25
        assert config.reconciliation_interval == 60.0

    @pytest.mark.parametrize("field,value", [
        ("batch_size", 0),
        ("max_retries", -1),
        ("processing_interval_ms", 0),
        ("reconciliation_interval_ms", 0),
    ])
    def test_out_of_range(self, field, value):
        """Out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            OutboxProcessorConfig(**{field: value})

    def test_non_numeric_env(self, clean_env):
        clean_env.setenv("OUTBOX_BATCH_SIZE", "lots")
        with pytest.raises(ValidationError):
            OutboxProcessorConfig.from_env()


class TestDatabaseConfig:
    """Test database settings."""

    def test_sqlite_default(self, clean_env):
        config = DatabaseConfig()
        assert config.backend == DatabaseBackend.SQLITE
        assert config.sqlite_path == "order_outbox.db"

    def test_postgres_from_env(self, clean_env):
        clean_env.setenv("DATABASE_BACKEND", "PostgreSQL")
        clean_env.setenv("DATABASE_URL", "postgresql://u:p@db:5432/orders")

        config = DatabaseConfig()

        assert config.backend == DatabaseBackend.POSTGRESQL
        assert config.postgres_url == "postgresql://u:p@db:5432/orders"


class TestKafkaConfig:
    """Test Kafka producer settings."""

    def test_defaults(self, clean_env):
        config = KafkaConfig()
        assert config.brokers == ["localhost:9092"]
        assert config.client_id == "order-outbox"

    def test_broker_list(self, clean_env):
        clean_env.setenv("KAFKA_BROKERS", "kafka-1:9092, kafka-2:9092,")
        assert KafkaConfig().brokers == ["kafka-1:9092", "kafka-2:9092"]
