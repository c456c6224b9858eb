"""Job lifecycle controller.

Drives one upload event through the encoder and the status service and
classifies the result so the transport can ack, nak or terminate it:

1. Heartbeat the status service (advisory)
2. Encode to HLS; on failure, escalate and let the status service decide
3. Report completion, retrying with linear backoff
"""

import os
import time
from typing import Callable

from aws_lambda_powertools import Logger

from ..encoder import FFmpegEncoder
from ..shared.advisory import run_advisory
from ..shared.config import Settings
from ..shared.exceptions import EncodingError, RetryExhaustedError, StatusReportError
from ..shared.models import AdvisoryResult, EncodeResult, JobOutcome, VideoUploadMessage
from ..shared.retry import linear_backoff, retry_with_backoff
from ..status_client import StatusServiceClient
from .ledger import RetryLedger

logger = Logger(service="video-worker")

ENCODING_FAILED = "ENCODING_FAILED"
STATUS_UPDATE_FAILED = "STATUS_UPDATE_FAILED"
FAILURE_REPORT_FAILED = "FAILURE_REPORT_FAILED"


class JobProcessor:
    """Processes one video per call and returns its JobOutcome.

    The ledger is injected so that its lifetime and sharing are decided by
    whoever wires the worker together.
    """

    def __init__(
        self,
        encoder: FFmpegEncoder,
        status_client: StatusServiceClient,
        ledger: RetryLedger,
        input_root: str,
        status_update_attempts: int = 3,
        retry_backoff_seconds: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.encoder = encoder
        self.status_client = status_client
        self.ledger = ledger
        self.input_root = input_root
        self.status_update_attempts = status_update_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        encoder: FFmpegEncoder,
        status_client: StatusServiceClient,
        ledger: RetryLedger,
    ) -> "JobProcessor":
        return cls(
            encoder=encoder,
            status_client=status_client,
            ledger=ledger,
            input_root=settings.input_video_path,
            status_update_attempts=settings.status_update_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )

    def input_path_for(self, job: VideoUploadMessage) -> str:
        """Resolve the upload inside the input root, ignoring its directories."""
        return os.path.join(self.input_root, os.path.basename(job.upload_file_path))

    def process(self, job: VideoUploadMessage, delivery_count: int = 1) -> JobOutcome:
        """Run the full processing workflow for one delivery.

        Args:
            job: Decoded upload event
            delivery_count: Transport delivery counter (1 on first delivery)

        Returns:
            JobOutcome classifying this attempt
        """
        video_id = job.video_id

        logger.info(
            "Starting video processing",
            extra={
                "video_id": video_id,
                "title": job.title,
                "file": job.file_name,
                "delivery_count": delivery_count,
            },
        )

        self.notify_processing(video_id)

        try:
            result = self.encoder.encode(self.input_path_for(job), video_id)
        except EncodingError as e:
            return self.escalate_failure(video_id, e, ENCODING_FAILED, delivery_count)

        try:
            self._report_done(video_id, result)
        except RetryExhaustedError as e:
            logger.error(
                "Failed to update video status after retries, encoding succeeded",
                extra={"video_id": video_id, **e.to_dict()},
            )
            return JobOutcome.unconfirmed(
                f"failed to update video status after retries: {e.last_error}",
                STATUS_UPDATE_FAILED,
            )

        logger.info("Video processing completed successfully", extra={"video_id": video_id})
        return JobOutcome.success()

    def notify_processing(self, video_id: str) -> AdvisoryResult:
        """Heartbeat the status service; failure never stops processing."""
        return run_advisory(
            lambda: self.status_client.mark_processing(video_id),
            "mark video as processing",
            video_id=video_id,
        )

    def escalate_failure(
        self,
        video_id: str,
        error: Exception,
        error_code: str,
        delivery_count: int,
    ) -> JobOutcome:
        """Record a failure, clean up, and ask the status service whether to retry.

        The status service's answer is authoritative; the transport may still
        terminate the message once its own delivery ceiling is reached.
        """
        reason = str(error)
        logger.error(
            "Video processing failed",
            extra={"video_id": video_id, "error_code": error_code, "error": reason},
        )

        retry_count = self.ledger.record_failure(video_id)

        run_advisory(
            lambda: self.encoder.discard_artifacts(video_id),
            "discard partial output",
            video_id=video_id,
        )

        try:
            should_retry = self.status_client.report_failure(
                video_id,
                reason,
                error_code,
                retry_count,
                delivery_count,
            )
        except StatusReportError as e:
            logger.error(
                "Failed to report video failure to status service",
                extra={"video_id": video_id, **e.to_dict()},
            )
            return JobOutcome.unconfirmed(reason, FAILURE_REPORT_FAILED)

        if not should_retry:
            logger.info(
                "Max retries reached, video marked as permanently failed",
                extra={"video_id": video_id, "retry_count": retry_count},
            )
            self.ledger.clear(video_id)
            return JobOutcome.terminal(reason, error_code)

        return JobOutcome.retryable(reason, error_code)

    def _report_done(self, video_id: str, result: EncodeResult) -> None:
        retry_with_backoff(
            lambda: self.status_client.update_status(
                video_id,
                result.hls_path,
                result.thumbnail_path,
                result.duration_seconds,
            ),
            max_attempts=self.status_update_attempts,
            backoff=linear_backoff(self.retry_backoff_seconds),
            sleep=self._sleep,
            retry_on=(StatusReportError,),
        )
