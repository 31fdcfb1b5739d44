"""
auth/store.py -- SQLAlchemy Core persistence layer for users and audit records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user /
_row_to_audit are the mappers. Service and route code never touches SQL
directly.

Uses SQLAlchemy Core (not ORM) so the dataclasses in auth/models.py stay the
authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change (DATABASE_URL), not a rewrite.

Security:
  All queries use bound parameters. No f-strings in SQL.
  audit_logs is append-only: this module exposes insert and select, nothing
  that updates or deletes an audit row.

Errors:
  sqlalchemy.exc.SQLAlchemyError propagates unchanged. IntegrityError on
  create_user() signals a duplicate email (UNIQUE constraint); the service
  layer translates both into auth.errors types.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import AuditEntry, AuditRecord, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("phone", String(30)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("supervisor_id", Integer, ForeignKey("users.id")),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

_audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("action", String(30), nullable=False),
    Column("entity_type", String(30), nullable=False),
    Column("entity_id", Integer),
    Column("user_id", Integer),
    Column("previous_values", Text),  # JSON object serialized as text
    Column("new_values", Text),  # JSON object serialized as text
    Column("ip_address", String(45)),
    Column("user_agent", Text),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_json(values: dict[str, Any] | None) -> str | None:
    return json.dumps(values, sort_keys=True) if values is not None else None


def _load_json(raw: str | None) -> dict[str, Any] | None:
    return json.loads(raw) if raw else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and AuditRecord entities.

    Usage:
        store = UserStore("sqlite:///cra_saint_louis.db")
        uid = store.create_user(User(email="a@x.org", role="CHERCHEUR", hashed_password=h))
        user = store.get_by_email("a@x.org")
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///cra_saint_louis.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists (first-run detection)."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    phone=user.phone,
                    is_active=1 if user.is_active else 0,
                    supervisor_id=user.supervisor_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_supervised(self, supervisor_id: int) -> list[User]:
        """Return the users whose supervisor is supervisor_id, ordered by last name."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select()
                .where(_users.c.supervisor_id == supervisor_id)
                .order_by(_users.c.last_name, _users.c.first_name, _users.c.id)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_password(self, user_id: int, hashed_password: str) -> bool:
        """Replace the stored hash in a single-row UPDATE.

        Returns True if a row was updated, False if user_id was not found.
        Concurrent updates to the same row are last-write-wins.
        """
        return self.update_user(user_id, hashed_password=hashed_password)

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: role, is_active, first_name, last_name, phone,
        supervisor_id, hashed_password. is_active must be passed as bool.
        updated_at is always refreshed.

        Returns True if a row was updated, False if user_id was not found.
        """
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> None:
        """Stamp the current UTC timestamp as last_login (does not touch updated_at)."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))
            conn.commit()

    # ------------------------------------------------------------------
    # Audit log (append-only)
    # ------------------------------------------------------------------

    def insert_audit(self, entry: AuditEntry) -> int:
        """Append one audit row and return its ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _audit_logs.insert().values(
                    action=entry.action,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    user_id=entry.user_id,
                    previous_values=_dump_json(entry.previous_values),
                    new_values=_dump_json(entry.new_values),
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def list_audit(
        self,
        *,
        entity_type: str | None = None,
        entity_id: int | None = None,
        action: str | None = None,
    ) -> list[AuditRecord]:
        """Return audit rows matching every given filter, oldest first."""
        query = _audit_logs.select()
        if entity_type is not None:
            query = query.where(_audit_logs.c.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(_audit_logs.c.entity_id == entity_id)
        if action is not None:
            query = query.where(_audit_logs.c.action == action)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_audit_logs.c.id)).fetchall()
        return [_row_to_audit(r) for r in rows]

    def count_audit(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_audit_logs)).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        first_name=row.first_name,
        last_name=row.last_name,
        phone=row.phone,
        is_active=bool(row.is_active),
        supervisor_id=row.supervisor_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
    )


def _row_to_audit(row) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        action=row.action,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        user_id=row.user_id,
        previous_values=_load_json(row.previous_values),
        new_values=_load_json(row.new_values),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
    )
