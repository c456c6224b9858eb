"""In-process record of encoding failures per video.

Counts only failures this process has observed since it started; the
queue's delivery counter remains the authority on total attempts.
"""

import threading


class RetryLedger:
    """Thread-safe mapping of video ID to local failure count.

    An entry exists only for a video that has failed at least once in this
    process. Absence means zero recorded failures.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def record_failure(self, video_id: str) -> int:
        """Increment the failure count for a video.

        Returns:
            The count before this failure (0 for the first failure)
        """
        with self._lock:
            previous = self._counts.get(video_id, 0)
            self._counts[video_id] = previous + 1
            return previous

    def count(self, video_id: str) -> int:
        with self._lock:
            return self._counts.get(video_id, 0)

    def clear(self, video_id: str) -> None:
        """Forget a video. No-op if it has no entry."""
        with self._lock:
            self._counts.pop(video_id, None)

    def __contains__(self, video_id: object) -> bool:
        with self._lock:
            return video_id in self._counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)
