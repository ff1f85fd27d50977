"""
Test configuration and fixtures for the Site Scan AI API.

The database URL is pointed at a throwaway sqlite file before anything from
the application is imported, so engines are created against it.
"""

import os
import tempfile
from typing import Generator
from unittest.mock import MagicMock

from dotenv import load_dotenv

import pytest
from fastapi.testclient import TestClient

load_dotenv()

test_db_url = os.getenv("TEST_DATABASE_URL")
if test_db_url:
    if "postgresql://" in test_db_url and "asyncpg" not in test_db_url:
        test_db_url = test_db_url.replace("postgresql://", "postgresql+asyncpg://")
    os.environ["DATABASE_URL"] = test_db_url
else:
    test_db_path = tempfile.mktemp(suffix=".db")
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"

from app.features.scan.services.fetch.fetcher import FetchResponse, Fetcher  # noqa: E402
from app.features.scan.services.scan_config import ScanConfig  # noqa: E402


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    Entering the client runs the lifespan, which creates the tables.
    """
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture
def scan_config() -> ScanConfig:
    """Config with no PageSpeed or LLM key, whatever the local .env says."""
    return ScanConfig(user_agent="Mozilla/5.0 (compatible; RobolabScanner/1.0)")


@pytest.fixture
def make_fetcher():
    """Build a Fetcher double whose get() always returns the same response."""
    def _make(body: str = "", status: int = 200, headers=None, elapsed_ms: float = 100.0):
        fetcher = MagicMock(spec=Fetcher)
        fetcher.get.return_value = FetchResponse(
            status=status,
            headers=headers or {},
            body=body,
            elapsed_ms=elapsed_ms,
        )
        return fetcher

    return _make
