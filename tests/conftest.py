"""Shared fixtures: an app on a throwaway SQLite file, accounts, and login helpers."""

from pathlib import Path
from typing import Dict

import pytest
from fastapi.testclient import TestClient

from shiptrack.auth.passwords import hash_password
from shiptrack.main import create_app
from shiptrack.models import Account
from shiptrack.storage.sqlite import SQLiteStore


TEST_ROUNDS = 4
PASSWORD = "correct-horse"


@pytest.fixture(autouse=True)
def shiptrack_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SHIPTRACK_DB_PATH", str(tmp_path / "shiptrack.sqlite3"))
    monkeypatch.setenv("SHIPTRACK_JWT_SECRET", "test-secret")
    monkeypatch.setenv("SHIPTRACK_BCRYPT_ROUNDS", str(TEST_ROUNDS))
    monkeypatch.setenv("SHIPTRACK_LOG_TO_FILE", "0")
    monkeypatch.delenv("SHIPTRACK_ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("SHIPTRACK_ADMIN_PASSWORD", raising=False)


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    s = SQLiteStore(db_path=Path(tmp_path) / "unit.sqlite3")
    s.init()
    return s


def make_account(store: SQLiteStore, email: str, role: str = "client", password: str = PASSWORD) -> Account:
    return store.create_account(
        full_name=email.split("@")[0].title(),
        email=email,
        password_hash=hash_password(password, rounds=TEST_ROUNDS),
        role=role,
    )


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def runtime(app):
    return app.state.runtime


@pytest.fixture
def client(app):
    # Context manager so HTTP calls and WebSocket sessions share one event loop.
    with TestClient(app) as c:
        yield c


def login(client: TestClient, email: str, password: str = PASSWORD) -> str:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token(client, runtime) -> str:
    make_account(runtime.store, "admin@example.com", role="admin")
    return login(client, "admin@example.com")


@pytest.fixture
def staff_token(client, runtime) -> str:
    make_account(runtime.store, "staff@example.com", role="staff")
    return login(client, "staff@example.com")
