"""Fire-and-log wrappers for calls whose failure must not change control flow."""

from typing import Any, Callable

from aws_lambda_powertools import Logger

from .models import AdvisoryResult

logger = Logger(service="video-worker")


def run_advisory(func: Callable[[], Any], description: str, **context: Any) -> AdvisoryResult:
    """Run ``func`` and log instead of raising if it fails.

    Args:
        func: Zero-argument callable
        description: What the call does, used in the log message
        **context: Extra fields for the log record (e.g., video_id)

    Returns:
        AdvisoryResult with ok=False and the error text on failure
    """
    try:
        func()
    except Exception as e:
        logger.warning(
            f"Advisory call failed: {description}",
            extra={**context, "error": str(e), "error_type": type(e).__name__},
        )
        return AdvisoryResult(ok=False, error=str(e))

    return AdvisoryResult(ok=True)
