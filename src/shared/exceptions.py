"""Custom exception hierarchy for the video worker.

All worker-specific exceptions inherit from VideoWorkerError,
enabling consistent error handling and structured log records.

Exception hierarchy:
    VideoWorkerError (base)
    ├── PayloadDecodeError
    ├── EncodingError
    ├── StatusReportError
    ├── RetryExhaustedError
    └── DeliveryAlreadySettledError
"""

from typing import Any


class VideoWorkerError(Exception):
    """Base exception for all worker errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for metrics/filtering
        details: Additional context as key-value pairs
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize worker error.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (e.g., 'ENCODING_FAILED')
            details: Additional context for debugging
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with error_code, error_message, and details.
            Note: Uses 'error_message' instead of 'message' to avoid conflicts
            with Python's logging module which reserves 'message' internally.
        """
        return {
            "error_code": self.error_code,
            "error_message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.error_code!r}, {self.message!r})"


class PayloadDecodeError(VideoWorkerError):
    """Raised when a queue payload cannot be decoded into a job.

    This covers:
    - Invalid JSON
    - Missing video_id or upload_file_path
    - Wrong field types

    Such messages are terminated and never retried.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "PAYLOAD_DECODE_ERROR", details)


class EncodingError(VideoWorkerError):
    """Raised when the transcode step fails.

    This covers:
    - ffmpeg exiting non-zero
    - ffmpeg timing out
    - ffmpeg missing from PATH
    - Output directory creation failures
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "ENCODING_FAILED", details)


class StatusReportError(VideoWorkerError):
    """Raised when a call to the status service fails.

    This covers:
    - Connection and timeout errors
    - HTTP error responses
    - Responses with success=false
    - Undecodable response bodies
    """

    def __init__(
        self,
        message: str,
        video_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        error_details = {"video_id": video_id, **(details or {})}
        super().__init__(message, "STATUS_REPORT_ERROR", error_details)
        self.video_id = video_id


class RetryExhaustedError(VideoWorkerError):
    """Raised when a bounded retry loop gives up.

    The last underlying error is kept on ``last_error``.
    """

    def __init__(
        self,
        attempts: int,
        last_error: Exception,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize retry exhausted error.

        Args:
            attempts: Number of attempts made
            last_error: The exception raised by the final attempt
            details: Additional context
        """
        error_details = details or {}
        error_details["attempts"] = attempts
        error_details["last_error"] = str(last_error)
        error_details["last_error_type"] = type(last_error).__name__

        super().__init__(
            f"Operation failed after {attempts} attempts: {last_error}",
            "RETRY_EXHAUSTED",
            error_details,
        )
        self.attempts = attempts
        self.last_error = last_error


class DeliveryAlreadySettledError(VideoWorkerError):
    """Raised when a delivery is acked, nacked or terminated twice."""

    def __init__(self, subject: str, action: str) -> None:
        super().__init__(
            f"Delivery on {subject} was already settled with {action}",
            "DELIVERY_ALREADY_SETTLED",
            {"subject": subject, "settled_with": action},
        )
