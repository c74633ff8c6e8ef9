"""MySQL storage gateway shared by the sink and the filter."""

from __future__ import annotations

import contextlib
from collections.abc import Sequence
from typing import Any

import mysql.connector
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mysql_pipe.codec.decoder import FieldValue
from mysql_pipe.storage.dsn import ConnectionParams, parse_connection
from mysql_pipe.storage.pool import DEFAULT_MAX_LIFETIME_SECONDS, ConnectionPool

logger = structlog.get_logger()


class MissingCountError(RuntimeError):
    """Raised when an aggregate query returns no row at all."""


class BackendUnavailableError(RuntimeError):
    """Raised when the backend does not answer ``SELECT 1``."""


def insert_statement(table: str, fields: Sequence[str]) -> str:
    """``INSERT IGNORE`` with one positional placeholder per field."""
    columns = ", ".join(fields)
    placeholders = ", ".join("?" for _ in fields)
    return f"INSERT IGNORE INTO {table} ({columns}) VALUES ({placeholders})"  # noqa: S608


def count_statement(table: str, field: str) -> str:
    """Existence count of rows whose *field* equals one bound value."""
    return f"SELECT count(*) FROM {table} where {field}=?"  # noqa: S608


class StorageGateway:
    """Owns the connection pool of one resource instance.

    Statements are executed through prepared cursors so ``?`` placeholders
    bind positionally. Driver errors propagate unchanged; nothing here
    retries a write or a query.
    """

    def __init__(
        self,
        params: ConnectionParams,
        *,
        max_lifetime: float = DEFAULT_MAX_LIFETIME_SECONDS,
    ) -> None:
        self._params = params
        self._pool = ConnectionPool(self._open, max_lifetime=max_lifetime)

    @classmethod
    def from_descriptor(
        cls,
        descriptor: str,
        *,
        max_lifetime: float = DEFAULT_MAX_LIFETIME_SECONDS,
    ) -> StorageGateway:
        return cls(parse_connection(descriptor), max_lifetime=max_lifetime)

    @property
    def target(self) -> str:
        return self._params.describe()

    @property
    def closed(self) -> bool:
        return self._pool.closed

    def _open(self) -> Any:
        conn = mysql.connector.connect(**self._params.to_connect_kwargs())
        conn.autocommit = False
        logger.info("storage.connected", target=self.target)
        return conn

    def write(self, statement: str, values: Sequence[FieldValue]) -> None:
        """Execute one insert-style statement and commit it."""
        with self._pool.connection() as conn:
            cur = conn.cursor(prepared=True)
            try:
                cur.execute(statement, tuple(values))
                conn.commit()
            except Exception:
                with contextlib.suppress(Exception):
                    conn.rollback()
                raise
            finally:
                cur.close()

    def count_where(self, statement: str, key: FieldValue) -> int:
        """Run a single-row ``count(*)`` query bound to *key*."""
        with self._pool.connection() as conn:
            cur = conn.cursor(prepared=True)
            try:
                cur.execute(statement, (key,))
                rows = cur.fetchall()
            finally:
                cur.close()
            # end the read snapshot so the next count sees fresh inserts
            conn.rollback()
        if not rows:
            msg = f"count query returned no rows: {statement}"
            raise MissingCountError(msg)
        return int(rows[0][0])

    def ping(self) -> bool:
        try:
            with self._pool.connection() as conn:
                cur = conn.cursor()
                try:
                    cur.execute("SELECT 1")
                    cur.fetchall()
                finally:
                    cur.close()
        except Exception as exc:
            logger.warning("storage.ping_failed", target=self.target, error=str(exc))
            return False
        return True

    @retry(
        retry=retry_if_exception_type(BackendUnavailableError),
        stop=stop_after_attempt(10),
        wait=wait_exponential(multiplier=1, max=15),
        reraise=True,
    )
    def wait_until_ready(self) -> None:
        """Block until the backend answers ``SELECT 1``."""
        if not self.ping():
            msg = f"MySQL at {self.target} is not reachable"
            raise BackendUnavailableError(msg)
        logger.info("storage.ready", target=self.target)

    def health(self) -> dict[str, Any]:
        connected = False if self.closed else self.ping()
        return {
            "type": "mysql",
            "target": self.target,
            "status": "running" if connected else "stopped",
            "idle_connections": self._pool.idle_count,
        }

    def close(self) -> None:
        if self._pool.closed:
            return
        self._pool.close()
        logger.info("storage.closed", target=self.target)

    def __enter__(self) -> StorageGateway:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
