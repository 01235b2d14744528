"""PostgreSQL client for running the metadata store without Supabase.

Used for local development and demos when ``USE_LOCAL_DB=1``; the tables
mirror the Supabase schema (``parties``, ``photos``).
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Generator

from psycopg2 import pool
from psycopg2.extras import RealDictCursor


class PostgresClient:
    """PostgreSQL database client with connection pooling."""

    def __init__(self) -> None:
        self._pool: Any = None
        try:
            self._pool = pool.ThreadedConnectionPool(
                minconn=1,
                maxconn=int(os.getenv("POSTGRES_POOL_SIZE", "10")),
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "photobooze"),
                user=os.getenv("POSTGRES_USER", "photobooze"),
                password=os.getenv("POSTGRES_PASSWORD", "photobooze_dev_password"),
            )
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Failed to initialize PostgreSQL connection pool: {exc}") from exc

    @contextmanager
    def get_cursor(self) -> Generator[Any, None, None]:
        """Yield a dict cursor; commits on success and rolls back on error.

        Connections go back to the pool on exit. Each call is its own
        transaction, so a single insert either fully succeeds or fully fails.
        """
        conn = self._pool.getconn()
        try:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def execute_one(self, query: str, params: tuple = ()) -> dict[str, Any] | None:
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            return dict(result) if result else None

    def execute_many(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def execute_insert(self, query: str, params: tuple = ()) -> dict[str, Any]:
        """Execute an INSERT ... RETURNING query and return the inserted row."""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            if not result:
                raise RuntimeError("Insert query did not return a row")
            return dict(result)

    def close(self) -> None:
        if self._pool:
            self._pool.closeall()


# Singleton instance
_POSTGRES_CLIENT: PostgresClient | None = None


def get_postgres_client() -> PostgresClient | None:
    """Get PostgreSQL client singleton, or None unless ``USE_LOCAL_DB=1``."""
    global _POSTGRES_CLIENT
    if os.getenv("USE_LOCAL_DB", "0") != "1":
        return None
    if _POSTGRES_CLIENT is None:
        _POSTGRES_CLIENT = PostgresClient()
    return _POSTGRES_CLIENT
