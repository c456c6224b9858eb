"""Pydantic models for data validation and serialization.

This module defines the core data structures used throughout the worker:
- The upload event payload received from the queue
- The encoder output bundle
- The job outcome and the delivery action it maps to
- The failure report sent to the status service

All models use Pydantic v2 for validation and serialization.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Timezone-aware current time, used for all reported timestamps."""
    return datetime.now(timezone.utc)


class VideoUploadMessage(BaseModel):
    """Upload event published when a user finishes uploading a video.

    ``video_id`` identifies the job and stays the same across redeliveries.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    video_id: str = Field(
        min_length=1,
        description="Unique video identifier, used as the job ID",
    )
    file_name: str = Field(
        default="",
        description="Original file name as uploaded",
    )
    upload_file_path: str = Field(
        min_length=1,
        description="Path of the uploaded source file",
    )
    original_format: str = Field(
        default="",
        description="Container format of the upload (e.g., 'mp4')",
    )
    uploader_id: str = Field(
        default="",
        description="ID of the uploading user",
    )
    title: str = Field(
        default="",
        description="Display title",
    )
    description: str = Field(
        default="",
        description="Display description",
    )

    @field_validator("video_id")
    @classmethod
    def validate_video_id(cls, v: str) -> str:
        """Reject IDs that cannot be used as a single directory name."""
        if v in (".", "..") or any(c in v for c in ("/", "\\", "\x00")):
            raise ValueError("video_id must not contain path separators or be . or ..")
        return v


class EncodeResult(BaseModel):
    """Output bundle of a successful encode."""

    model_config = ConfigDict(frozen=True)

    hls_path: str = Field(
        min_length=1,
        description="Path to the HLS playlist",
    )
    thumbnail_path: str | None = Field(
        default=None,
        description="Path to the thumbnail, None if thumbnail generation failed",
    )
    duration_seconds: int = Field(
        default=0,
        ge=0,
        description="Duration in whole seconds, 0 if unknown",
    )


class OutcomeKind(str, Enum):
    """How the controller classified one processing attempt."""

    SUCCESS = "SUCCESS"
    RETRYABLE = "RETRYABLE"
    TERMINAL = "TERMINAL"
    # No retry decision could be obtained; the transport ceiling decides.
    UNCONFIRMED = "UNCONFIRMED"


class JobOutcome(BaseModel):
    """Result of JobProcessor.process for one delivery."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    reason: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls) -> "JobOutcome":
        return cls(kind=OutcomeKind.SUCCESS)

    @classmethod
    def retryable(cls, reason: str, error_code: str) -> "JobOutcome":
        return cls(kind=OutcomeKind.RETRYABLE, reason=reason, error_code=error_code)

    @classmethod
    def terminal(cls, reason: str, error_code: str) -> "JobOutcome":
        return cls(kind=OutcomeKind.TERMINAL, reason=reason, error_code=error_code)

    @classmethod
    def unconfirmed(cls, reason: str, error_code: str) -> "JobOutcome":
        return cls(kind=OutcomeKind.UNCONFIRMED, reason=reason, error_code=error_code)

    @property
    def is_success(self) -> bool:
        """Check if the job completed successfully."""
        return self.kind == OutcomeKind.SUCCESS


class DeliveryAction(str, Enum):
    """Transport action taken for one delivery."""

    ACK = "ACK"
    NAK = "NAK"
    TERM = "TERM"


class AdvisoryResult(BaseModel):
    """Result of a fire-and-log call. Callers are free to ignore it."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    error: str | None = None


class FailureReport(BaseModel):
    """Payload of a failure report sent to the status service.

    ``retry_count`` is this process's own observation: failures seen for the
    video since the worker last started. ``delivery_count`` is the transport's
    delivery counter, which survives restarts. The two are reported side by
    side and never merged.
    """

    model_config = ConfigDict(frozen=True)

    failure_reason: str
    error_code: str
    retry_count: int = Field(ge=0)
    delivery_count: int = Field(ge=1)
    should_retry: bool = Field(
        description="Worker's hint, retry_count < max_retries",
    )
    failed_at: datetime = Field(default_factory=utc_now)
