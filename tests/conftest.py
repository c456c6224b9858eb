"""Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup
- Settings rooted in a temporary directory
- A JobProcessor factory wired to the fakes in tests/fakes.py
- Sample upload event payloads
"""

import json
import os
from typing import Any, Callable, Generator

import pytest

# Set application environment variables BEFORE importing any application code
os.environ["NATS_URL"] = "nats://localhost:4222"
os.environ["VIDEO_MANAGEMENT_URL"] = "http://video-management.test/internal"
os.environ["WORKER_ID"] = "worker-test"
os.environ["MAX_RETRIES"] = "2"
os.environ["RETRY_BACKOFF_SECONDS"] = "5"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["POWERTOOLS_METRICS_NAMESPACE"] = "VideoWorkerTest"

from src.shared.config import Settings, clear_settings_cache  # noqa: E402
from src.shared.models import VideoUploadMessage  # noqa: E402
from src.worker.ledger import RetryLedger  # noqa: E402
from src.worker.processor import JobProcessor  # noqa: E402
from tests.fakes import FakeEncoder, FakeStatusClient  # noqa: E402


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path: Any) -> Settings:
    """Settings rooted in a temporary directory with max_retries=2."""
    return Settings(
        input_video_path=str(tmp_path / "uploads"),
        output_hls_path=str(tmp_path / "hls"),
        output_thumbnail_path=str(tmp_path / "thumbnails"),
        max_retries=2,
        status_update_attempts=3,
        retry_backoff_seconds=5.0,
    )


@pytest.fixture
def mock_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up complete worker environment."""
    env_vars = {
        "NATS_URL": "nats://nats.test:4222",
        "NATS_STREAM": "TEST_UPLOADS",
        "NATS_SUBJECT": "test.upload.created",
        "NATS_CONSUMER": "test-worker-group",
        "VIDEO_MANAGEMENT_URL": "https://video-management.test/internal/",
        "WORKER_ID": "worker-42",
        "MAX_RETRIES": "4",
        "RETRY_BACKOFF_SECONDS": "2",
        "LOG_LEVEL": "debug",
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def sleeps() -> list[float]:
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def make_processor(settings: Settings, sleeps: list[float]) -> Callable[..., JobProcessor]:
    """Factory building a JobProcessor around fakes."""

    def _make(
        encoder: FakeEncoder | None = None,
        status_client: FakeStatusClient | None = None,
        ledger: RetryLedger | None = None,
    ) -> JobProcessor:
        return JobProcessor(
            encoder=encoder or FakeEncoder(),
            status_client=status_client or FakeStatusClient(),
            ledger=ledger if ledger is not None else RetryLedger(),
            input_root=settings.input_video_path,
            status_update_attempts=settings.status_update_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
            sleep=sleeps.append,
        )

    return _make


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_upload_dict() -> dict[str, str]:
    """Upload event as published by the upload service."""
    return {
        "video_id": "v1",
        "file_name": "holiday.mov",
        "upload_file_path": "/var/uploads/tmp/abc123/holiday.mov",
        "original_format": "mov",
        "uploader_id": "user-7",
        "title": "Holiday 2024",
        "description": "Beach day",
    }


@pytest.fixture
def sample_upload(sample_upload_dict: dict[str, str]) -> VideoUploadMessage:
    return VideoUploadMessage(**sample_upload_dict)


@pytest.fixture
def sample_upload_bytes(sample_upload_dict: dict[str, str]) -> bytes:
    return json.dumps(sample_upload_dict).encode("utf-8")
