"""
Shared fixtures: isolated stores over temporary directories and an API client
wired to them.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.services.storage import LocalFileStore, get_store


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    # Not created up front; the store builds it on first use.
    return tmp_path / "storage"


@pytest.fixture
def store(storage_root: Path) -> LocalFileStore:
    return LocalFileStore(storage_root)


@pytest.fixture
def strict_store(storage_root: Path) -> LocalFileStore:
    return LocalFileStore(storage_root, on_missing="error")


@pytest.fixture
def client(store: LocalFileStore):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def strict_client(strict_store: LocalFileStore):
    app.dependency_overrides[get_store] = lambda: strict_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
