import sqlite3
from unittest.mock import patch

from grandparent_coach.store.usage import FREE_COUNT_KEY
from tests.store.base import StoreTestCase


class UsageCounterTests(StoreTestCase):
    def test_starts_at_zero(self) -> None:
        self.assertEqual(0, self._usage.get())
        self.assertFalse(self._usage.exceeded(3))

    def test_increment_persists(self) -> None:
        self.assertEqual(1, self._usage.increment())
        self.assertEqual(2, self._usage.increment())
        self.assertEqual(2, self._kv.get(FREE_COUNT_KEY))

    def test_exceeded_at_limit(self) -> None:
        for _ in range(3):
            self._usage.increment()
        self.assertTrue(self._usage.exceeded(3))
        self.assertFalse(self._usage.exceeded(4))

    def test_reset_clears_count(self) -> None:
        self._usage.increment()
        self._usage.reset()
        self.assertEqual(0, self._usage.get())
        self.assertIsNone(self._kv.get(FREE_COUNT_KEY))

    def test_corrupt_value_reads_as_zero(self) -> None:
        self._kv.set(FREE_COUNT_KEY, "many")
        self.assertEqual(0, self._usage.get())

    def test_read_fault_reads_as_zero(self) -> None:
        self._usage.increment()
        with patch.object(self._kv, "get", side_effect=sqlite3.OperationalError("disk I/O error")):
            self.assertEqual(0, self._usage.get())

    def test_reset_fault_reports_failure(self) -> None:
        self._usage.increment()
        with patch.object(self._kv, "remove", side_effect=sqlite3.OperationalError("database is locked")):
            self.assertFalse(self._usage.reset())
        self.assertEqual(1, self._usage.get())

    def test_reset_reports_success(self) -> None:
        self.assertTrue(self._usage.reset())
