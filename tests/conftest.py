"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

from pathlib import Path
from typing import Any, Dict, Generator, List, Tuple
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from metricstack.config import reload_settings
from metricstack.main import app


class InMemoryDocumentStore:
    """Document store double that keeps inserts in a list."""

    def __init__(self) -> None:
        self.inserted: List[Tuple[str, Dict[str, Any]]] = []

    async def insert(self, collection: str, document: Dict[str, Any]) -> None:
        self.inserted.append((collection, document))

    def documents(self, collection: str = "telemetry") -> List[Dict[str, Any]]:
        return [document for name, document in self.inserted if name == collection]


class FailingDocumentStore:
    """Document store double whose writes always fail."""

    async def insert(self, collection: str, document: Dict[str, Any]) -> None:
        raise ConnectionError("store unavailable")


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def failing_store() -> FailingDocumentStore:
    return FailingDocumentStore()


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """Temporary directory backing the JSON lines store."""
    return tmp_path / "store"


@pytest.fixture
def test_env(monkeypatch: pytest.MonkeyPatch, store_dir: Path) -> Dict[str, str]:
    """Environment for a test service instance."""
    env = {
        "METRICSTACK_LOG_LEVEL": "DEBUG",
        "METRICSTACK_RATE_LIMIT_MAX_REQUESTS": "5",
        "METRICSTACK_RATE_LIMIT_WINDOW_SECONDS": "60",
        "METRICSTACK_RATE_LIMIT_SWEEP_INTERVAL_SECONDS": "3600",
        "METRICSTACK_STORE_BACKEND": "jsonl",
        "METRICSTACK_STORE_ROOT_PATH": str(store_dir),
        "METRICSTACK_STORE_DISK_FREE_MIN_RATIO": "0.0",
    }
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return env


def _client_with_env() -> Generator[TestClient, None, None]:
    with patch('metricstack.config.load_config_file') as mock_load:
        mock_load.return_value = {}
        reload_settings()

        with TestClient(app) as client:
            yield client


@pytest.fixture
def test_client(test_env: Dict[str, str]) -> Generator[TestClient, None, None]:
    """FastAPI test client backed by a JSON lines store in a temp dir."""
    yield from _client_with_env()


@pytest.fixture
def degraded_client(test_env: Dict[str, str], monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    """FastAPI test client with no document store configured."""
    monkeypatch.setenv("METRICSTACK_STORE_BACKEND", "none")
    yield from _client_with_env()


@pytest.fixture
def valid_envelope() -> Dict[str, Any]:
    """Sample valid telemetry envelope."""
    return {
        "id": "session-demo-1",
        "timestamp": 1700000000000,
        "env": {
            "userAgent": "Mozilla/5.0 (X11; Linux x86_64)",
            "language": "en-US",
            "online": True,
            "downlink": 9.2,
            "effectiveType": "4g",
            "rtt": 42,
            "saveData": False,
            "type": "wifi",
            "timezone": "Asia/Kolkata",
            "locale": "en-US",
            "offsetMinutes": -330,
            "href": "https://example.com/demo",
            "referrer": "",
        },
        "trace": [
            {"event": "telemetry_start", "timestamp": 1700000000000},
            {"event": "click", "timestamp": 1700000000500, "data": {"x": 120, "y": 80}},
        ],
        "pings": [
            {
                "site": "example.com",
                "url": "https://example.com/favicon.ico",
                "start": 1700000000000,
                "duration": 50,
                "timeout": False,
                "error": False,
            }
        ],
    }


@pytest.fixture
def minimal_envelope() -> Dict[str, Any]:
    """Smallest envelope the schema accepts."""
    return {"timestamp": 1700000000000, "env": {"userAgent": "test-agent"}}
