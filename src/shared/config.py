"""Environment-aware configuration with validation.

This module provides centralized configuration management using Pydantic Settings.
All environment variables are validated at startup to fail fast on misconfigurations.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Worker settings loaded from environment variables.

    Every setting has a default so a worker can start against a local
    NATS server and status service without any configuration.

    Example:
        >>> settings = get_settings()
        >>> print(settings.nats_subject)
        'video.upload.created'
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # NATS JetStream
    nats_url: str = Field(
        default="nats://localhost:4222",
        alias="NATS_URL",
        description="NATS server URL",
    )
    nats_stream: str = Field(
        default="VIDEO_UPLOADS",
        alias="NATS_STREAM",
        description="JetStream stream holding upload events",
    )
    nats_subject: str = Field(
        default="video.upload.created",
        alias="NATS_SUBJECT",
        description="Subject upload events are published on",
    )
    nats_consumer: str = Field(
        default="video-worker-group",
        alias="NATS_CONSUMER",
        description="Queue group and durable consumer name shared by all workers",
    )
    ack_wait_seconds: int = Field(
        default=600,
        ge=30,
        alias="ACK_WAIT_SECONDS",
        description="Processing deadline before JetStream redelivers an unacked message",
    )
    stream_max_age_hours: int = Field(
        default=24,
        ge=1,
        alias="STREAM_MAX_AGE_HOURS",
        description="Retention for messages in a newly created stream",
    )

    # Status service
    video_management_url: str = Field(
        default="http://localhost:8080/internal",
        alias="VIDEO_MANAGEMENT_URL",
        description="Base URL of the video management status service",
    )
    status_request_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        alias="STATUS_REQUEST_TIMEOUT_SECONDS",
        description="Timeout for a single status service request",
    )

    # Worker
    worker_id: str = Field(
        default="worker-1",
        alias="WORKER_ID",
        description="Identity reported to the status service",
    )
    max_concurrent_jobs: int = Field(
        default=3,
        ge=1,
        alias="MAX_CONCURRENT_JOBS",
        description="Reserved; messages are currently handled one at a time per subscription",
    )

    # FFmpeg
    ffmpeg_hls_time: int = Field(
        default=10,
        ge=1,
        le=60,
        alias="FFMPEG_HLS_TIME",
        description="Target HLS segment duration in seconds",
    )
    ffmpeg_preset: str = Field(
        default="medium",
        alias="FFMPEG_PRESET",
        description="libx264 preset",
    )
    ffmpeg_crf: int = Field(
        default=23,
        ge=0,
        le=51,
        alias="FFMPEG_CRF",
        description="libx264 constant rate factor",
    )
    encode_timeout_seconds: int = Field(
        default=3600,
        ge=60,
        alias="ENCODE_TIMEOUT_SECONDS",
        description="Upper bound on a single ffmpeg run",
    )

    # Paths
    input_video_path: str = Field(
        default="./uploads/videos",
        alias="INPUT_VIDEO_PATH",
        description="Directory uploaded source files are read from",
    )
    output_hls_path: str = Field(
        default="./outputs/hls",
        alias="OUTPUT_HLS_PATH",
        description="Root directory for HLS output, one subdirectory per video",
    )
    output_thumbnail_path: str = Field(
        default="./outputs/thumbnails",
        alias="OUTPUT_THUMBNAIL_PATH",
        description="Root directory for thumbnails, one subdirectory per video",
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        alias="MAX_RETRIES",
        description="Redeliveries allowed after the first delivery",
    )
    status_update_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        alias="STATUS_UPDATE_ATTEMPTS",
        description="Attempts at reporting a finished encode before giving up",
    )
    retry_backoff_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=300.0,
        alias="RETRY_BACKOFF_SECONDS",
        description="Linear backoff unit between status update attempts",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    @field_validator("nats_url", mode="before")
    @classmethod
    def validate_nats_url(cls, v: str) -> str:
        """Ensure the NATS URL uses a NATS scheme."""
        if v and not v.startswith(("nats://", "tls://")):
            raise ValueError("NATS URL must start with nats:// or tls://")
        return v

    @field_validator("video_management_url", mode="before")
    @classmethod
    def validate_video_management_url(cls, v: str) -> str:
        """Ensure the status service URL is HTTP(S) and has no trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Video management URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lowercase levels such as 'info'."""
        return v.upper() if isinstance(v, str) else v

    @property
    def max_delivery_attempts(self) -> int:
        """One original delivery plus the configured retries."""
        return self.max_retries + 1

    @property
    def stream_max_age_seconds(self) -> int:
        """Get stream retention in seconds."""
        return self.stream_max_age_hours * 60 * 60


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached worker settings.

    Settings are loaded once and cached for the lifetime of the process.

    Returns:
        Validated Settings instance

    Raises:
        ValidationError: If environment variables are invalid
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when environment variables change.
    """
    get_settings.cache_clear()
