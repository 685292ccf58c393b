"""SQLite storage for accounts, branches, rates and shipments."""

from __future__ import annotations

import secrets
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from shiptrack.models import Account, Branch, Rate, Shipment, ShipmentUpdate


SHIPMENT_COLUMNS = (
    "client_id",
    "origin_branch_id",
    "destination_branch_id",
    "status",
    "service_type",
    "weight_kg",
    "price",
    "sender_name",
    "sender_phone",
    "receiver_name",
    "receiver_phone",
    "is_cod",
    "cod_amount",
    "estimated_delivery",
)

_SHIPMENT_SELECT = """
    SELECT s.*,
           origin.branch_name AS origin_branch_name,
           dest.branch_name AS destination_branch_name
    FROM shipments s
    LEFT JOIN branches origin ON s.origin_branch_id = origin.id
    LEFT JOIN branches dest ON s.destination_branch_id = dest.id
"""


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _dt_to_str(dt: datetime) -> str:
    return dt.isoformat()


def generate_tracking_number() -> str:
    return "TK" + "".join(str(secrets.randbelow(10)) for _ in range(10))


@contextmanager
def _constraints(what: str) -> Iterator[None]:
    """Translate constraint failures: a dangling reference is a KeyError, anything else a ValueError."""
    try:
        yield
    except sqlite3.IntegrityError as e:
        if "FOREIGN KEY" in str(e):
            raise KeyError(f"{what}: referenced row not found") from e
        raise ValueError(f"{what}: {e}") from e


@dataclass(frozen=True)
class SQLiteStore:
    db_path: Path

    def init(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS branches (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  branch_name TEXT NOT NULL,
                  branch_address TEXT NOT NULL,
                  created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS users (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  full_name TEXT NOT NULL,
                  email TEXT NOT NULL UNIQUE,
                  password_hash TEXT NOT NULL,
                  role TEXT NOT NULL,
                  branch_id INTEGER REFERENCES branches(id) ON DELETE SET NULL,
                  created_at TEXT NOT NULL,
                  active_session_id TEXT
                );
                CREATE TABLE IF NOT EXISTS rates (
                  service_type TEXT PRIMARY KEY,
                  price_per_kg REAL NOT NULL,
                  updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS shipments (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  tracking_number TEXT NOT NULL UNIQUE,
                  client_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
                  origin_branch_id INTEGER REFERENCES branches(id) ON DELETE SET NULL,
                  destination_branch_id INTEGER REFERENCES branches(id) ON DELETE SET NULL,
                  status TEXT NOT NULL,
                  service_type TEXT NOT NULL,
                  weight_kg REAL NOT NULL,
                  price REAL NOT NULL DEFAULT 0,
                  sender_name TEXT NOT NULL,
                  sender_phone TEXT,
                  receiver_name TEXT NOT NULL,
                  receiver_phone TEXT,
                  is_cod INTEGER NOT NULL DEFAULT 0,
                  cod_amount REAL NOT NULL DEFAULT 0,
                  estimated_delivery TEXT,
                  created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS shipment_updates (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  shipment_id INTEGER NOT NULL REFERENCES shipments(id) ON DELETE CASCADE,
                  location TEXT,
                  status_update TEXT NOT NULL,
                  timestamp TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_shipments_client_id ON shipments(client_id);
                CREATE INDEX IF NOT EXISTS idx_updates_shipment_id ON shipment_updates(shipment_id, id);
                """
            )
            conn.commit()

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    # --- accounts ---

    def create_account(
        self,
        *,
        full_name: str,
        email: str,
        password_hash: str,
        role: str,
        branch_id: Optional[int] = None,
    ) -> Account:
        with self._conn() as conn, _constraints("create user"):
            cur = conn.execute(
                "INSERT INTO users (full_name, email, password_hash, role, branch_id, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (full_name, email, password_hash, role, branch_id, _dt_to_str(utc_now())),
            )
            account_id = int(cur.lastrowid)
            conn.commit()
        return self.get_account(account_id)

    def get_account(self, account_id: int) -> Account:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (account_id,)).fetchone()
        if not row:
            raise KeyError(f"user not found: {account_id}")
        return Account.model_validate(dict(row))

    def find_account_by_email(self, email: str) -> Optional[Account]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return Account.model_validate(dict(row)) if row else None

    def list_accounts(self, *, role: Optional[str] = None) -> list[Account]:
        with self._conn() as conn:
            if role is None:
                rows = conn.execute("SELECT * FROM users ORDER BY id ASC").fetchall()
            else:
                rows = conn.execute("SELECT * FROM users WHERE role = ? ORDER BY id ASC", (role,)).fetchall()
        return [Account.model_validate(dict(r)) for r in rows]

    def update_role(self, account_id: int, role: str, branch_id: Optional[int]) -> Account:
        with self._conn() as conn, _constraints("update role"):
            cur = conn.execute(
                "UPDATE users SET role = ?, branch_id = ? WHERE id = ?",
                (role, branch_id, account_id),
            )
            conn.commit()
        if cur.rowcount == 0:
            raise KeyError(f"user not found: {account_id}")
        return self.get_account(account_id)

    def delete_account(self, account_id: int) -> Account:
        account = self.get_account(account_id)
        with self._conn() as conn:
            conn.execute("DELETE FROM users WHERE id = ?", (account_id,))
            conn.commit()
        return account

    def get_active_session_id(self, account_id: int) -> Optional[str]:
        with self._conn() as conn:
            row = conn.execute("SELECT active_session_id FROM users WHERE id = ?", (account_id,)).fetchone()
        if not row:
            raise KeyError(f"user not found: {account_id}")
        return row["active_session_id"]

    def swap_active_session_id(self, account_id: int, session_id: Optional[str]) -> Optional[str]:
        """Set the account's active session id and return the previous one.

        Read and write happen in one write transaction so two concurrent logins
        each see the id the other replaced; the last writer wins.
        """
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT active_session_id FROM users WHERE id = ?", (account_id,)).fetchone()
            if not row:
                conn.rollback()
                raise KeyError(f"user not found: {account_id}")
            conn.execute("UPDATE users SET active_session_id = ? WHERE id = ?", (session_id, account_id))
            conn.commit()
        return row["active_session_id"]

    # --- branches ---

    def list_branches(self) -> list[Branch]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM branches ORDER BY branch_name ASC").fetchall()
        return [Branch.model_validate(dict(r)) for r in rows]

    def get_branch(self, branch_id: int) -> Branch:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM branches WHERE id = ?", (branch_id,)).fetchone()
        if not row:
            raise KeyError(f"branch not found: {branch_id}")
        return Branch.model_validate(dict(row))

    def create_branch(self, branch_name: str, branch_address: str) -> Branch:
        with self._conn() as conn:
            cur = conn.execute(
                "INSERT INTO branches (branch_name, branch_address, created_at) VALUES (?, ?, ?)",
                (branch_name, branch_address, _dt_to_str(utc_now())),
            )
            branch_id = int(cur.lastrowid)
            conn.commit()
        return self.get_branch(branch_id)

    def update_branch(self, branch_id: int, branch_name: str, branch_address: str) -> Branch:
        with self._conn() as conn:
            cur = conn.execute(
                "UPDATE branches SET branch_name = ?, branch_address = ? WHERE id = ?",
                (branch_name, branch_address, branch_id),
            )
            conn.commit()
        if cur.rowcount == 0:
            raise KeyError(f"branch not found: {branch_id}")
        return self.get_branch(branch_id)

    def delete_branch(self, branch_id: int) -> None:
        with self._conn() as conn:
            cur = conn.execute("DELETE FROM branches WHERE id = ?", (branch_id,))
            conn.commit()
        if cur.rowcount == 0:
            raise KeyError(f"branch not found: {branch_id}")

    # --- rates ---

    def list_rates(self) -> list[Rate]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM rates ORDER BY service_type ASC").fetchall()
        return [Rate.model_validate(dict(r)) for r in rows]

    def upsert_rate(self, service_type: str, price_per_kg: float) -> Rate:
        now = utc_now()
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO rates (service_type, price_per_kg, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(service_type) DO UPDATE SET price_per_kg = excluded.price_per_kg,
                                                        updated_at = excluded.updated_at
                """,
                (service_type, price_per_kg, _dt_to_str(now)),
            )
            conn.commit()
        return Rate(service_type=service_type, price_per_kg=price_per_kg, updated_at=now)

    # --- shipments ---

    def create_shipment(self, data: dict[str, Any], *, initial_location: str) -> Shipment:
        fields = {k: data[k] for k in SHIPMENT_COLUMNS if k in data}
        fields.setdefault("status", "pending")
        now = _dt_to_str(utc_now())
        with self._conn() as conn:
            # Retry on the (unlikely) tracking-number collision.
            for _ in range(5):
                tracking_number = generate_tracking_number()
                exists = conn.execute(
                    "SELECT 1 FROM shipments WHERE tracking_number = ?", (tracking_number,)
                ).fetchone()
                if not exists:
                    break
            else:
                raise RuntimeError("could not allocate a unique tracking number")
            columns = ["tracking_number", "created_at", *fields.keys()]
            values = [tracking_number, now, *fields.values()]
            placeholders = ", ".join("?" for _ in columns)
            with _constraints("create shipment"):
                cur = conn.execute(
                    f"INSERT INTO shipments ({', '.join(columns)}) VALUES ({placeholders})",
                    values,
                )
            shipment_id = int(cur.lastrowid)
            conn.execute(
                "INSERT INTO shipment_updates (shipment_id, location, status_update, timestamp) VALUES (?, ?, ?, ?)",
                (shipment_id, initial_location, "Shipment created and pending pickup.", now),
            )
            conn.commit()
        return self.get_shipment(shipment_id)

    def get_shipment(self, shipment_id: int) -> Shipment:
        with self._conn() as conn:
            row = conn.execute(_SHIPMENT_SELECT + " WHERE s.id = ?", (shipment_id,)).fetchone()
        if not row:
            raise KeyError(f"shipment not found: {shipment_id}")
        return Shipment.model_validate(dict(row))

    def get_shipment_by_tracking(self, tracking_number: str) -> Shipment:
        with self._conn() as conn:
            row = conn.execute(_SHIPMENT_SELECT + " WHERE s.tracking_number = ?", (tracking_number,)).fetchone()
        if not row:
            raise KeyError(f"shipment not found: {tracking_number}")
        return Shipment.model_validate(dict(row))

    def list_shipments(self, *, client_id: Optional[int] = None) -> list[Shipment]:
        with self._conn() as conn:
            if client_id is None:
                rows = conn.execute(_SHIPMENT_SELECT + " ORDER BY s.id DESC").fetchall()
            else:
                rows = conn.execute(
                    _SHIPMENT_SELECT + " WHERE s.client_id = ? ORDER BY s.id DESC", (client_id,)
                ).fetchall()
        return [Shipment.model_validate(dict(r)) for r in rows]

    def update_shipment(
        self,
        shipment_id: int,
        fields: dict[str, Any],
        *,
        location: Optional[str] = None,
        status_update: Optional[str] = None,
    ) -> Shipment:
        fields = {k: v for k, v in fields.items() if k in SHIPMENT_COLUMNS}
        with self._conn() as conn:
            exists = conn.execute("SELECT 1 FROM shipments WHERE id = ?", (shipment_id,)).fetchone()
            if not exists:
                raise KeyError(f"shipment not found: {shipment_id}")
            if fields:
                set_clause = ", ".join(f"{k} = ?" for k in fields)
                with _constraints("update shipment"):
                    conn.execute(
                        f"UPDATE shipments SET {set_clause} WHERE id = ?",
                        (*fields.values(), shipment_id),
                    )
            if status_update and location:
                conn.execute(
                    "INSERT INTO shipment_updates (shipment_id, location, status_update, timestamp) VALUES (?, ?, ?, ?)",
                    (shipment_id, location, status_update, _dt_to_str(utc_now())),
                )
            conn.commit()
        return self.get_shipment(shipment_id)

    def delete_shipment(self, shipment_id: int) -> Shipment:
        shipment = self.get_shipment(shipment_id)
        with self._conn() as conn:
            conn.execute("DELETE FROM shipments WHERE id = ?", (shipment_id,))
            conn.commit()
        return shipment

    def add_update(self, shipment_id: int, *, location: Optional[str], status_update: str) -> ShipmentUpdate:
        """Append a status update and make it the shipment's current status."""
        with self._conn() as conn:
            cur = conn.execute("UPDATE shipments SET status = ? WHERE id = ?", (status_update, shipment_id))
            if cur.rowcount == 0:
                conn.rollback()
                raise KeyError(f"shipment not found: {shipment_id}")
            ts = utc_now()
            cur = conn.execute(
                "INSERT INTO shipment_updates (shipment_id, location, status_update, timestamp) VALUES (?, ?, ?, ?)",
                (shipment_id, location, status_update, _dt_to_str(ts)),
            )
            update_id = int(cur.lastrowid)
            conn.commit()
        return ShipmentUpdate(
            id=update_id,
            shipment_id=shipment_id,
            location=location,
            status_update=status_update,
            timestamp=ts,
        )

    def list_updates(self, shipment_id: int, *, newest_first: bool = True) -> list[ShipmentUpdate]:
        order = "DESC" if newest_first else "ASC"
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM shipment_updates WHERE shipment_id = ? ORDER BY timestamp {order}, id {order}",
                (shipment_id,),
            ).fetchall()
        return [ShipmentUpdate.model_validate(dict(r)) for r in rows]
