from __future__ import annotations

import sqlite3

from loguru import logger

from grandparent_coach.store.kv_store import KeyValueStore

FREE_COUNT_KEY = "gpc:free_count"


class UsageCounter:
    """Device-wide count of model calls made on the free tier."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    def get(self) -> int:
        try:
            raw = self._store.get(FREE_COUNT_KEY)
        except sqlite3.Error as ex:
            logger.warning(f"Failed to read usage counter: {ex}")
            return 0
        try:
            return max(0, int(raw or 0))
        except (TypeError, ValueError):
            return 0

    def increment(self) -> int:
        nxt = self.get() + 1
        try:
            self._store.set(FREE_COUNT_KEY, nxt)
        except sqlite3.Error as ex:
            logger.warning(f"Failed to persist usage counter: {ex}")
        return nxt

    def reset(self) -> bool:
        try:
            self._store.remove(FREE_COUNT_KEY)
        except sqlite3.Error as ex:
            logger.warning(f"Failed to reset usage counter: {ex}")
            return False
        logger.info("Usage counter reset")
        return True

    def exceeded(self, limit: int) -> bool:
        return self.get() >= limit
