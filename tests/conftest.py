"""
Root conftest.py: sys.path, env vars, shared fixtures.

Sets up the test environment so all production code can be imported
without database connections, Service Bus or Azure credentials.
"""

import os
import sys

import pytest

# Add project root to sys.path so 'core', 'services', 'config', etc. are importable
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(autouse=True, scope="session")
def set_minimal_env_vars():
    """
    Safe defaults so config loads without Azure infrastructure.
    """
    defaults = {
        "POSTGIS_HOST": "localhost",
        "POSTGIS_DATABASE": "testdb",
        "PGSTAC_SCHEMA": "pgstac",
        "STORAGE_ACCOUNT_NAME": "teststorage",
        "ENVIRONMENT": "dev",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


@pytest.fixture(autouse=True)
def reset_process_state():
    """Per-process caches (config singleton, seeded/ensured collections) start empty."""
    from config import reset_config
    from core.fan_in import FanInDispatcher
    from core.ingest_machine import ChunkedIngestionController

    reset_config()
    FanInDispatcher.reset_ensured()
    ChunkedIngestionController.reset_seeded()
    yield
    reset_config()
