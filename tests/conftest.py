"""
Pytest configuration and fixtures for the rollup service tests.
"""
import os
from unittest.mock import MagicMock, Mock, patch

import psycopg2
import pytest

from weather_rollup.config import RollupConfig


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires running PostgreSQL)"
    )


@pytest.fixture
def config(tmp_path):
    """Configuration that never touches a real .env file."""
    return RollupConfig(
        _env_file=None,
        json_file_path=str(tmp_path / "weather.json"),
        postgres_host="localhost",
        postgres_db="weather_test",
        postgres_user="weather",
        postgres_password="secret",
    )


@pytest.fixture
def mock_db():
    """
    Patch psycopg2.connect with a connection/cursor pair.

    Yields:
        Tuple of (mock_connect, mock_conn, mock_cursor)
    """
    with patch("weather_rollup.postgres_writer.psycopg2.connect") as mock_connect:
        mock_conn = MagicMock()
        mock_cursor = MagicMock()
        mock_conn.cursor.return_value.__enter__ = Mock(return_value=mock_cursor)
        mock_conn.cursor.return_value.__exit__ = Mock(return_value=False)
        mock_connect.return_value = mock_conn

        yield mock_connect, mock_conn, mock_cursor


@pytest.fixture(scope="session")
def postgres_config():
    """Configuration for a real PostgreSQL, skipping when it is unreachable."""
    cfg = RollupConfig(
        _env_file=None,
        postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
        postgres_port=int(os.getenv("POSTGRES_PORT", "5432")),
        postgres_db=os.getenv("POSTGRES_DB", "weather"),
        postgres_user=os.getenv("POSTGRES_USER", "weather"),
        postgres_password=os.getenv("POSTGRES_PASSWORD", "weather"),
        postgres_connect_timeout=3,
    )
    try:
        conn = psycopg2.connect(cfg.postgres_url, connect_timeout=3)
    except psycopg2.OperationalError as e:
        pytest.skip(f"PostgreSQL not available: {e}")
    conn.close()
    return cfg
