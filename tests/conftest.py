"""
Pytest configuration and fixtures for Publisher Config API tests.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

TEST_API_KEY = "test-api-key-12345"

# Set test environment variables before importing the app
_IMPORT_DIR = tempfile.mkdtemp(prefix="publisher_api_import_")
os.environ["API_KEY"] = TEST_API_KEY
os.environ["APP_ENV"] = "test"
os.environ["DATA_DIR"] = os.path.join(_IMPORT_DIR, "data")
os.environ["AUDIT_LOG_PATH"] = os.path.join(_IMPORT_DIR, "logs", "audit.log")

from publisher_config_api.audit import AuditLogger  # noqa: E402
from publisher_config_api.configuration import Settings  # noqa: E402
from publisher_config_api.locks import FileLockRegistry  # noqa: E402
from publisher_config_api.main import create_app  # noqa: E402
from publisher_config_api.store import PublisherStore  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_IMPORT_DIR, ignore_errors=True)


def write_json(path: Path, data) -> None:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def make_config(publisher_id: str, alias: str, **extra):
    config = {"publisherId": publisher_id, "aliasName": alias, "isActive": True, "pages": []}
    config.update(extra)
    return config


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a per-test data directory."""
    return Settings(
        environment="test",
        data_dir=str(tmp_path / "data"),
        api_key=TEST_API_KEY,
        audit_log_path=str(tmp_path / "logs" / "audit.log"),
        rate_limit_max_requests=1000,
    )


@pytest.fixture
def data_dir(settings):
    return Path(settings.data_dir)


@pytest.fixture
def audit_path(settings):
    return Path(settings.audit_log_path)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"X-API-Key": TEST_API_KEY}


@pytest.fixture
def seed(data_dir):
    """Write publisher configs plus a matching index into the data directory."""

    def _seed(*configs):
        data_dir.mkdir(parents=True, exist_ok=True)
        entries = []
        for filename, config in configs:
            write_json(data_dir / filename, config)
            entries.append({"id": config["publisherId"], "alias": config["aliasName"], "file": filename})
        entries.sort(key=lambda entry: entry["alias"].casefold())
        write_json(data_dir / "publishers.json", {"publishers": entries})
        return entries

    return _seed


@pytest.fixture
def store(tmp_path):
    """A standalone store for coroutine-level tests."""
    directory = tmp_path / "store-data"
    directory.mkdir()
    publisher_store = PublisherStore(
        directory,
        locks=FileLockRegistry(),
        audit=AuditLogger(tmp_path / "store-logs" / "audit.log"),
    )
    publisher_store.index.initialize()
    yield publisher_store
    publisher_store.audit.close()
