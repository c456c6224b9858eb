"""HTTP client for the video management status service.

The worker tells the status service three things about a video:
1. Processing has started (heartbeat)
2. Encoding finished, with output locations and duration
3. Encoding failed, asking whether the video should be retried

Every endpoint answers with JSON:
    {"success": true, "message": "...", "should_retry": false}
"""

import http.client
import json
import urllib.parse
import urllib.request
from typing import Any
from urllib.error import HTTPError, URLError

from aws_lambda_powertools import Logger

from ..shared.config import Settings
from ..shared.exceptions import StatusReportError
from ..shared.models import FailureReport, utc_now

logger = Logger(service="video-worker")


class StatusServiceClient:
    """Reports video processing state to the video management service."""

    def __init__(
        self,
        base_url: str,
        worker_id: str,
        max_retries: int,
        timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Service base URL, without trailing slash
            worker_id: Identity sent with processing heartbeats
            max_retries: Configured retry limit, used for the should_retry hint
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.worker_id = worker_id
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "StatusServiceClient":
        return cls(
            base_url=settings.video_management_url,
            worker_id=settings.worker_id,
            max_retries=settings.max_retries,
            timeout_seconds=settings.status_request_timeout_seconds,
        )

    def mark_processing(self, video_id: str) -> None:
        """Notify the service that this worker started processing a video.

        Raises:
            StatusReportError: If the service could not be reached or refused
        """
        logger.info("Marking video as processing", extra={"video_id": video_id})

        self._post(
            f"/videos/{_quote(video_id)}/processing",
            {
                "worker_id": self.worker_id,
                "started_at": utc_now().isoformat(),
            },
            video_id=video_id,
            operation="mark video as processing",
        )

    def update_status(
        self,
        video_id: str,
        hls_path: str,
        thumbnail_path: str | None,
        duration_seconds: int,
    ) -> None:
        """Mark a video as done after a successful encode.

        Raises:
            StatusReportError: If the service could not be reached or refused
        """
        logger.info(
            "Updating video status to done",
            extra={
                "video_id": video_id,
                "hls_path": hls_path,
                "duration_seconds": duration_seconds,
            },
        )

        self._post(
            f"/videos/{_quote(video_id)}/status",
            {
                "status": "done",
                "hls_path": hls_path,
                "thumbnail_path": thumbnail_path or "",
                "duration": duration_seconds,
                "completed_at": utc_now().isoformat(),
            },
            video_id=video_id,
            operation="update video status",
        )

    def report_failure(
        self,
        video_id: str,
        reason: str,
        error_code: str,
        retry_count: int,
        delivery_count: int,
    ) -> bool:
        """Report a failed encode and ask whether to retry.

        ``retry_count`` counts failures this worker process has seen for the
        video. ``delivery_count`` is the queue's own counter and includes
        deliveries handled before a restart. The service may use either.

        Args:
            video_id: Video identifier
            reason: Human-readable failure reason
            error_code: Machine-readable error code (e.g., 'ENCODING_FAILED')
            retry_count: Local failure count before this failure
            delivery_count: Transport delivery counter for this delivery

        Returns:
            The service's should_retry decision

        Raises:
            StatusReportError: If the service could not be reached or refused
        """
        report = FailureReport(
            failure_reason=reason,
            error_code=error_code,
            retry_count=retry_count,
            delivery_count=delivery_count,
            should_retry=retry_count < self.max_retries,
        )

        logger.warning(
            "Reporting video failure",
            extra={
                "video_id": video_id,
                "failure_reason": reason,
                "error_code": error_code,
                "retry_count": retry_count,
                "delivery_count": delivery_count,
            },
        )

        body = self._post(
            f"/videos/{_quote(video_id)}/failure",
            report.model_dump(mode="json"),
            video_id=video_id,
            operation="report video failure",
        )

        should_retry = bool(body.get("should_retry", False))
        logger.info(
            "Video failure reported",
            extra={"video_id": video_id, "should_retry": should_retry},
        )
        return should_retry

    def close(self) -> None:
        """Release client resources. urllib keeps no pooled connections."""
        logger.info("Closing status service client")

    def _post(
        self,
        path: str,
        payload: dict[str, Any],
        video_id: str,
        operation: str,
    ) -> dict[str, Any]:
        """POST JSON and return the decoded response body.

        Raises:
            StatusReportError: On transport errors, HTTP errors, undecodable
                bodies, or a response with success=false
        """
        url = f"{self.base_url}{path}"
        request = urllib.request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "User-Agent": "VideoWorker/1.0",
                "X-Worker-Id": self.worker_id,
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as e:
            raise StatusReportError(
                f"Failed to {operation}: HTTP {e.code}: {e.reason}",
                video_id,
                {"url": url, "status_code": e.code},
            )
        except URLError as e:
            raise StatusReportError(
                f"Failed to {operation}: {e.reason}",
                video_id,
                {"url": url},
            )
        except TimeoutError:
            raise StatusReportError(
                f"Failed to {operation}: timed out after {self.timeout_seconds}s",
                video_id,
                {"url": url},
            )
        except (OSError, http.client.HTTPException, UnicodeDecodeError) as e:
            raise StatusReportError(
                f"Failed to {operation}: {type(e).__name__}: {e}",
                video_id,
                {"url": url},
            )

        try:
            body = json.loads(raw) if raw else {}
        except json.JSONDecodeError as e:
            raise StatusReportError(
                f"Failed to {operation}: invalid response body: {e}",
                video_id,
                {"url": url, "response": raw[:500]},
            )

        if not isinstance(body, dict) or not body.get("success", False):
            message = body.get("message", "") if isinstance(body, dict) else ""
            raise StatusReportError(
                f"Failed to {operation}: {message or 'service reported failure'}",
                video_id,
                {"url": url},
            )

        return body


def _quote(video_id: str) -> str:
    return urllib.parse.quote(video_id, safe="")
