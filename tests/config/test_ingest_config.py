"""
Configuration loading tests: environment to pydantic config models.
"""

import pytest
from pydantic import ValidationError

from config import get_config, reset_config, debug_config
from config.database_config import DatabaseConfig
from config.defaults import IngestDefaults, QueueDefaults, SentinelDefaults
from config.ingest_config import IngestConfig
from config.queue_config import QueueConfig
from config.storage_config import StorageConfig


class TestIngestDefaults:

    def test_defaults_without_env(self, clean_env):
        config = IngestConfig.from_environment()
        assert config.chunk_size == IngestDefaults.CHUNK_SIZE
        assert config.index_batch_size == IngestDefaults.INDEX_BATCH_SIZE
        assert config.max_retries == IngestDefaults.MAX_RETRIES
        assert config.collection_id == SentinelDefaults.COLLECTION_ID

    def test_env_overrides(self, clean_env):
        clean_env.setenv("INGEST_CHUNK_SIZE", "250")
        clean_env.setenv("INGEST_MAX_RETRIES", "5")
        clean_env.setenv("SENTINEL_METADATA_BASE_URL", "https://meta.example.com/l1c/")
        config = IngestConfig.from_environment()
        assert config.chunk_size == 250
        assert config.max_retries == 5
        assert config.metadata_base_url == "https://meta.example.com/l1c"

    @pytest.mark.parametrize("field, value", [
        ("chunk_size", 0),
        ("index_batch_size", 0),
        ("max_retries", -1),
        ("max_consecutive_enrichment_failures", 0),
        ("fan_in_concurrency", 0),
    ])
    def test_bounds(self, field, value):
        with pytest.raises(ValidationError):
            IngestConfig(**{field: value})

    def test_max_delay_not_below_base(self):
        with pytest.raises(ValidationError):
            IngestConfig(retry_base_delay_seconds=60, retry_max_delay_seconds=30)


class TestBackoff:

    @pytest.mark.parametrize("retry, expected", [(0, 0), (1, 5), (2, 10), (3, 20), (6, 160), (7, 300), (20, 300)])
    def test_exponential_capped(self, retry, expected):
        config = IngestConfig(retry_base_delay_seconds=5, retry_max_delay_seconds=300)
        assert config.backoff_seconds(retry) == expected


class TestDomainConfigs:

    def test_database_conninfo_from_parts(self, clean_env):
        clean_env.setenv("POSTGIS_HOST", "db.example.com")
        clean_env.setenv("POSTGIS_DATABASE", "catalog")
        clean_env.setenv("POSTGIS_USER", "ingest")
        config = DatabaseConfig.from_environment()
        assert config.is_configured
        assert "host=db.example.com" in config.connection_string
        assert "dbname=catalog" in config.connection_string
        assert "user=ingest" in config.connection_string

    def test_database_url_wins(self, clean_env):
        clean_env.setenv("POSTGIS_HOST", "ignored")
        clean_env.setenv("POSTGRESQL_CONNECTION_STRING", "postgresql://u@h/db")
        assert DatabaseConfig.from_environment().connection_string == "postgresql://u@h/db"

    def test_database_unconfigured(self, clean_env):
        assert not DatabaseConfig.from_environment().is_configured

    def test_object_storage_schemes(self, clean_env):
        clean_env.setenv("OBJECT_STORAGE_SCHEMES", "az, s3 ,")
        assert StorageConfig.from_environment().object_storage_schemes == ("az", "s3")

    def test_queue_names(self, clean_env):
        config = QueueConfig.from_environment()
        assert config.ingest_queue == QueueDefaults.INGEST_QUEUE
        assert config.items_queue == QueueDefaults.ITEMS_QUEUE
        assert config.connection_string is None


class TestSingleton:

    def test_cached_until_reset(self, clean_env):
        clean_env.setenv("INGEST_CHUNK_SIZE", "10")
        first = get_config()
        clean_env.setenv("INGEST_CHUNK_SIZE", "20")
        assert get_config() is first
        reset_config()
        assert get_config().ingest.chunk_size == 20

    def test_debug_config_masks_secrets(self, clean_env):
        clean_env.setenv("POSTGIS_PASSWORD", "hunter2")
        clean_env.setenv("ServiceBusConnection", "Endpoint=sb://x/;SharedAccessKey=secret")
        dump = str(debug_config())
        assert "hunter2" not in dump
        assert "secret" not in dump
        assert "***MASKED***" in dump
