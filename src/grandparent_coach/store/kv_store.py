from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def _on_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"Storage busy ({exc}). Retrying (attempt {retry_state.attempt_number}/3)...")


_write_retry = retry(
    retry=retry_if_exception_type(sqlite3.OperationalError),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
    stop=stop_after_attempt(3),
    before_sleep=_on_retry,
    reraise=True,
)


class KeyValueStore:
    """Durable keyed records, each holding one JSON document."""

    def __init__(self, db_path: str):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._initialize_schema()

    def close(self) -> None:
        self._conn.close()

    def get(self, key: str) -> Any | None:
        row = self._conn.execute(
            "SELECT value_json FROM records WHERE key = ? LIMIT 1",
            (key,),
        ).fetchone()
        if row is None:
            return None
        return json.loads(row["value_json"])

    @_write_retry
    def set(self, key: str, value: Any) -> None:
        with self.transaction():
            self._put(key, value)

    @_write_retry
    def remove(self, key: str) -> None:
        with self.transaction():
            self._conn.execute("DELETE FROM records WHERE key = ?", (key,))

    @_write_retry
    def apply(self, puts: dict[str, Any], removes: list[str] | None = None) -> None:
        """Write several records in one transaction."""
        with self.transaction():
            for key, value in puts.items():
                self._put(key, value)
            for key in removes or []:
                self._conn.execute("DELETE FROM records WHERE key = ?", (key,))

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()

    def _put(self, key: str, value: Any) -> None:
        self._conn.execute(
            """
            INSERT INTO records (key, value_json, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value_json = excluded.value_json,
                updated_at = excluded.updated_at
            """,
            (key, json.dumps(value, ensure_ascii=True), utc_now().isoformat()),
        )

    def _initialize_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS records (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        self._conn.commit()
