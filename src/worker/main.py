"""Process entry point for the video worker.

Loads settings, prepares output directories, wires the encoder, status
client, ledger and controller together, and consumes upload events until
SIGINT or SIGTERM.
"""

import asyncio
import os
import signal
import sys

from aws_lambda_powertools import Logger

from ..encoder import FFmpegEncoder
from ..shared.config import Settings, get_settings
from ..status_client import StatusServiceClient
from ..transport import JobConsumer
from .ledger import RetryLedger
from .processor import JobProcessor

logger = Logger(service="video-worker")


class VideoWorker:
    """Owns the collaborators of one worker process."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.status_client = StatusServiceClient.from_settings(settings)
        self.encoder = FFmpegEncoder.from_settings(settings)
        self.ledger = RetryLedger()
        self.processor = JobProcessor.from_settings(
            settings,
            encoder=self.encoder,
            status_client=self.status_client,
            ledger=self.ledger,
        )
        self.consumer = JobConsumer(settings, self.processor)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Consume until ``stop_event`` is set, then release resources."""
        logger.info("Starting video worker", extra={"worker_id": self.settings.worker_id})
        try:
            await self.consumer.start(stop_event)
        finally:
            self.status_client.close()
            logger.info("Worker stopped successfully")


def prepare_directories(settings: Settings) -> None:
    """Create input and output roots if missing.

    Raises:
        OSError: If a directory cannot be created
    """
    for directory in (
        settings.input_video_path,
        settings.output_hls_path,
        settings.output_thumbnail_path,
    ):
        os.makedirs(directory, exist_ok=True)


def install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    def _request_stop(sig: signal.Signals) -> None:
        logger.info("Received shutdown signal, gracefully stopping", extra={"signal": sig.name})
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_stop, sig)


async def _serve(settings: Settings) -> None:
    stop_event = asyncio.Event()
    install_signal_handlers(asyncio.get_running_loop(), stop_event)
    await VideoWorker(settings).run(stop_event)


def main() -> int:
    settings = get_settings()
    # Every module logs through the shared "video-worker" service logger
    logger.setLevel(settings.log_level)

    logger.info(
        "Configuration loaded",
        extra={
            "worker_id": settings.worker_id,
            "max_concurrent_jobs": settings.max_concurrent_jobs,
            "max_retries": settings.max_retries,
            "nats_url": settings.nats_url,
            "video_management_url": settings.video_management_url,
        },
    )

    try:
        prepare_directories(settings)
    except OSError:
        logger.exception("Failed to create working directories")
        return 1

    try:
        asyncio.run(_serve(settings))
    except Exception:
        logger.exception("Worker stopped with error")
        return 1

    logger.info("Worker shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
