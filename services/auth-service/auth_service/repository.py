"""Database repository for account and invite data."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

import psycopg
from psycopg import Connection
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, Invite, parse_roles
from .domain.errors import DatabaseError

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS invites (
        token       TEXT PRIMARY KEY,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        claimed_by  TEXT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS accounts (
        username       TEXT PRIMARY KEY,
        password_hash  TEXT NOT NULL,
        roles          TEXT[] NOT NULL CHECK (cardinality(roles) > 0),
        prefs          JSONB NOT NULL DEFAULT '{}'::jsonb,
        claimed_invite TEXT NOT NULL UNIQUE REFERENCES invites(token),
        created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
)


class AccountTransaction:
    """Queries executed inside a single open database transaction."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self.committed = False

    def has_accounts(self) -> bool:
        """Return ``True`` when at least one account exists."""
        with self._conn.cursor(row_factory=tuple_row) as cur:
            cur.execute("SELECT EXISTS (SELECT 1 FROM accounts)")
            row = cur.fetchone()
        return bool(row and row[0])

    def get_account(self, username: str) -> Account | None:
        """Fetch an account by its exact username or return ``None``."""
        with self._conn.cursor(row_factory=tuple_row) as cur:
            cur.execute(
                """
                SELECT username, password_hash, roles, prefs, claimed_invite, created_at
                FROM accounts
                WHERE username = %s
                """,
                (username,),
            )
            row = cur.fetchone()
        if not row:
            return None
        return self._map_account(row)

    def insert_account(self, account: Account) -> str:
        """Insert a new account row and return its username."""
        with self._conn.cursor(row_factory=tuple_row) as cur:
            cur.execute(
                """
                INSERT INTO accounts (username, password_hash, roles, prefs, claimed_invite)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING username
                """,
                (
                    account.username,
                    account.password_hash,
                    account.role_names(),
                    Json(account.prefs),
                    account.claimed_invite,
                ),
            )
            row = cur.fetchone()
        return row[0]

    def get_invite(self, token: str) -> Invite | None:
        with self._conn.cursor(row_factory=tuple_row) as cur:
            cur.execute(
                "SELECT token, created_at, claimed_by FROM invites WHERE token = %s",
                (token,),
            )
            row = cur.fetchone()
        if not row:
            return None
        return Invite(token=row[0], created_at=row[1], claimed_by=row[2])

    def insert_invite(self, token: str, created_at: datetime) -> Invite:
        with self._conn.cursor(row_factory=tuple_row) as cur:
            cur.execute(
                """
                INSERT INTO invites (token, created_at)
                VALUES (%s, %s)
                RETURNING token, created_at, claimed_by
                """,
                (token, created_at),
            )
            row = cur.fetchone()
        return Invite(token=row[0], created_at=row[1], claimed_by=row[2])

    def claim_invite(self, token: str, username: str) -> bool:
        """Mark an unclaimed invite as claimed; ``False`` if nothing was updated."""
        with self._conn.cursor() as cur:
            cur.execute(
                """
                UPDATE invites
                SET claimed_by = %s
                WHERE token = %s AND claimed_by IS NULL
                """,
                (username, token),
            )
            return cur.rowcount == 1

    def commit(self) -> None:
        self._conn.commit()
        self.committed = True

    def _map_account(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            username=row[0],
            password_hash=row[1],
            roles=parse_roles(row[2]),
            prefs=row[3] or {},
            claimed_invite=row[4],
            created_at=row[5],
        )


class AccountRepository:
    """Postgres-backed account and invite persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the ``invites`` and ``accounts`` tables when missing."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    cur.execute(statement)
            conn.commit()
        logger.info("account schema ensured")

    @contextmanager
    def read(self) -> Iterator[AccountTransaction]:
        """Open a read-only transaction; it is always rolled back on exit."""
        with self._translate_errors():
            with self._pool.connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute("SET TRANSACTION READ ONLY")
                    yield AccountTransaction(conn)
                finally:
                    conn.rollback()

    @contextmanager
    def write(self) -> Iterator[AccountTransaction]:
        """Open a read-write transaction that rolls back unless committed."""
        with self._translate_errors():
            with self._pool.connection() as conn:
                tx = AccountTransaction(conn)
                try:
                    yield tx
                finally:
                    if not tx.committed:
                        conn.rollback()

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except psycopg.Error as exc:
            logger.error("database operation failed: %s", exc)
            raise DatabaseError() from exc
