"""Unit tests for the in-process retry ledger."""

import threading

from src.worker.ledger import RetryLedger


class TestRetryLedger:
    """Tests for RetryLedger bookkeeping."""

    def test_unknown_video_has_no_entry(self):
        """Test that a never-seen video has no entry and counts as zero."""
        ledger = RetryLedger()

        assert "v1" not in ledger
        assert ledger.count("v1") == 0
        assert len(ledger) == 0

    def test_first_failure_returns_zero_and_stores_one(self):
        """Test that the first failure reports the pre-increment value."""
        ledger = RetryLedger()

        previous = ledger.record_failure("v1")

        assert previous == 0
        assert ledger.count("v1") == 1
        assert "v1" in ledger

    def test_subsequent_failures_increment(self):
        """Test that each failure returns the count before it."""
        ledger = RetryLedger()

        assert [ledger.record_failure("v1") for _ in range(3)] == [0, 1, 2]
        assert ledger.count("v1") == 3

    def test_videos_are_tracked_independently(self):
        """Test that counts for different videos do not interfere."""
        ledger = RetryLedger()

        ledger.record_failure("v1")
        ledger.record_failure("v1")
        ledger.record_failure("v2")

        assert ledger.count("v1") == 2
        assert ledger.count("v2") == 1

    def test_clear_removes_entry(self):
        """Test that clearing removes the entry regardless of count."""
        ledger = RetryLedger()
        for _ in range(5):
            ledger.record_failure("v1")

        ledger.clear("v1")

        assert "v1" not in ledger
        assert ledger.count("v1") == 0

    def test_clear_unknown_video_is_noop(self):
        """Test that clearing a missing entry does not raise."""
        ledger = RetryLedger()

        ledger.clear("missing")

        assert len(ledger) == 0

    def test_concurrent_failures_are_not_lost(self):
        """Test that concurrent increments for one video are all counted."""
        ledger = RetryLedger()
        threads_count = 8
        per_thread = 250
        observed: list[int] = []
        observed_lock = threading.Lock()

        def worker():
            for _ in range(per_thread):
                previous = ledger.record_failure("v1")
                with observed_lock:
                    observed.append(previous)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        total = threads_count * per_thread
        assert ledger.count("v1") == total
        # Every pre-increment value is handed out exactly once
        assert sorted(observed) == list(range(total))
