"""
Pytest Configuration and Shared Fixtures
=========================================

Settings pointing at a temporary archive and in-memory clusters shared by
the unit and integration suites.
"""
import os

import pytest

# Set test environment variables BEFORE any imports
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_LEVEL"] = "ERROR"

from ambient_sync.core.config import PRODUCTION, STAGING, Settings
from ambient_sync.infrastructure.archive import LocalArchive

from tests.fakes import FakeCluster


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from the environment, archive under tmp_path."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="testing",
        DATA_DIR=tmp_path / "data",
        AMBIENT_WEATHER_API_KEY="test-api-key",
        AMBIENT_WEATHER_APPLICATION_KEY="test-app-key",
        AMBIENT_WEATHER_MAC_ADDRESS="AA:BB:CC:DD:EE:FF",
        AMBIENT_WEATHER_REQUEST_SPACING_SECONDS=0,
        ES_URL="http://prod.test:9200",
        ES_USERNAME="elastic",
        ES_PASSWORD="secret",
        STAGING_ES_URL="http://staging.test:9200",
        STAGING_ES_USERNAME="elastic",
        STAGING_ES_PASSWORD="secret",
        REMOTE_CALL_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def archive(test_settings) -> LocalArchive:
    return LocalArchive(test_settings.DATA_DIR)


@pytest.fixture
def production_cluster() -> FakeCluster:
    return FakeCluster(PRODUCTION)


@pytest.fixture
def staging_cluster() -> FakeCluster:
    return FakeCluster(STAGING)


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
