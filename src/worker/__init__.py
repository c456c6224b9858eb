"""Worker module for the video worker.

This module handles:
- The job lifecycle controller
- The in-process retry ledger
- The process entry point (worker.main)
"""

from .ledger import RetryLedger
from .processor import JobProcessor

__all__ = [
    "RetryLedger",
    "JobProcessor",
]
