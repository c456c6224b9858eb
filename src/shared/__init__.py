"""Shared utilities for the video worker."""

from .config import Settings, get_settings
from .exceptions import (
    VideoWorkerError,
    PayloadDecodeError,
    EncodingError,
    StatusReportError,
    RetryExhaustedError,
    DeliveryAlreadySettledError,
)
from .models import (
    VideoUploadMessage,
    EncodeResult,
    OutcomeKind,
    JobOutcome,
    DeliveryAction,
    AdvisoryResult,
    FailureReport,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "VideoWorkerError",
    "PayloadDecodeError",
    "EncodingError",
    "StatusReportError",
    "RetryExhaustedError",
    "DeliveryAlreadySettledError",
    # Models
    "VideoUploadMessage",
    "EncodeResult",
    "OutcomeKind",
    "JobOutcome",
    "DeliveryAction",
    "AdvisoryResult",
    "FailureReport",
]
