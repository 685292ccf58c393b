"""Per-process runtime: store, realtime components and session authority.

`create_app` builds one `Runtime` and hangs it on `app.state`; handlers reach it
through the `get_runtime` dependency instead of module globals.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from fastapi.requests import HTTPConnection

from shiptrack.auth.credentials import CredentialCodec
from shiptrack.auth.passwords import DEFAULT_ROUNDS, hash_password
from shiptrack.auth.sessions import SessionAuthority
from shiptrack.realtime.gateway import DEFAULT_QUEUE_SIZE, ConnectionGateway
from shiptrack.realtime.publisher import EventPublisher
from shiptrack.realtime.registry import TopicRegistry
from shiptrack.storage.sqlite import SQLiteStore


logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "shiptrack-dev-secret-change-me"


@dataclass
class Runtime:
    store: SQLiteStore
    registry: TopicRegistry
    gateway: ConnectionGateway
    publisher: EventPublisher
    sessions: SessionAuthority
    bcrypt_rounds: int = DEFAULT_ROUNDS


def _default_db_path() -> Path:
    # shiptrack/runtime.py -> parents[1] == apps/backend
    return Path(__file__).resolve().parents[1] / "var" / "shiptrack.sqlite3"


def build_runtime(db_path: Optional[Path] = None) -> Runtime:
    if db_path is None:
        env_path = os.getenv("SHIPTRACK_DB_PATH")
        db_path = Path(env_path) if env_path else _default_db_path()
    store = SQLiteStore(db_path=db_path)
    store.init()

    secret = os.getenv("SHIPTRACK_JWT_SECRET", "")
    if not secret:
        logger.warning("SHIPTRACK_JWT_SECRET not set, using the development secret")
        secret = DEV_JWT_SECRET
    ttl = timedelta(hours=float(os.getenv("SHIPTRACK_JWT_TTL_HOURS", "5")))

    registry = TopicRegistry()
    gateway = ConnectionGateway(
        registry,
        queue_size=int(os.getenv("SHIPTRACK_WS_QUEUE_SIZE", str(DEFAULT_QUEUE_SIZE))),
    )
    publisher = EventPublisher(gateway)
    sessions = SessionAuthority(store, publisher, CredentialCodec(secret=secret, ttl=ttl))

    runtime = Runtime(
        store=store,
        registry=registry,
        gateway=gateway,
        publisher=publisher,
        sessions=sessions,
        bcrypt_rounds=int(os.getenv("SHIPTRACK_BCRYPT_ROUNDS", str(DEFAULT_ROUNDS))),
    )
    _seed_admin(runtime)
    logger.info("runtime ready db_path=%s", db_path)
    return runtime


def _seed_admin(runtime: Runtime) -> None:
    """Create the bootstrap admin from SHIPTRACK_ADMIN_EMAIL / SHIPTRACK_ADMIN_PASSWORD if missing."""
    email = os.getenv("SHIPTRACK_ADMIN_EMAIL", "").strip()
    password = os.getenv("SHIPTRACK_ADMIN_PASSWORD", "")
    if not email or not password:
        return
    if runtime.store.find_account_by_email(email) is not None:
        return
    account = runtime.store.create_account(
        full_name="Administrator",
        email=email,
        password_hash=hash_password(password, rounds=runtime.bcrypt_rounds),
        role="admin",
    )
    logger.info("seeded admin account_id=%s email=%s", account.id, email)


def get_runtime(conn: HTTPConnection) -> Runtime:
    return conn.app.state.runtime
