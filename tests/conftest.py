"""Shared fixtures: in-memory repositories and HTTP clients."""

import pytest
from fastapi.testclient import TestClient

import app.data.authentication as authentication_data
import app.data.repository as repository_data
from app.core import dependencies
from app.domain.entities import Repository
from app.domain.models import AuthCredential, AuthenticationStore, AuthUser
from app.main import create_app
from app.storage.memory_storage import InMemoryBlobStorage


@pytest.fixture
def storage():
    return InMemoryBlobStorage()


@pytest.fixture
def repository(storage):
    return Repository(storage, base_url="http://repo.test")


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the data directory at tmp_path and forget cached config/users."""
    monkeypatch.setenv(repository_data.DATA_ROOT_ENV_VAR, str(tmp_path))
    monkeypatch.setattr(repository_data, "_repository_config", None)
    monkeypatch.setattr(authentication_data, "_auth_store", None)
    dependencies.reset()
    yield tmp_path
    dependencies.reset()


def _client(repository, base_path: str = "") -> TestClient:
    application = create_app(base_path=base_path)
    application.dependency_overrides[dependencies.get_repository] = lambda: repository
    return TestClient(application)


@pytest.fixture
def client(data_dir, repository):
    with _client(repository) as c:
        yield c


@pytest.fixture
def base_client(data_dir, repository):
    """Client for an app mounted under /base."""
    with _client(repository, base_path="/base") as c:
        yield c


@pytest.fixture
def users(data_dir):
    """Configure a reader and a writer (passwords are stored as cleartext and hashed on load)."""
    store = AuthenticationStore(
        users=[
            AuthUser(
                username="reader",
                authentications=[AuthCredential(type="cleartext", password="read-pw")],
                permissions=["read"],
            ),
            AuthUser(
                username="writer",
                authentications=[AuthCredential(type="cleartext", password="write-pw")],
                permissions=["read", "write"],
            ),
        ]
    )
    (data_dir / "authentication.json").write_text(store.model_dump_json(), encoding="utf-8")
    return store


@pytest.fixture
def auth_client(users, repository):
    with _client(repository) as c:
        yield c
