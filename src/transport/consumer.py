"""NATS JetStream consumer for upload events.

Subscribes to the upload subject as a durable queue-group consumer with
manual acknowledgment, hands each decoded event to the JobProcessor in a
worker thread, and settles the message according to decide_action.
"""

import asyncio
from typing import Any

import nats
from aws_lambda_powertools import Logger, Metrics
from aws_lambda_powertools.metrics import MetricUnit
from nats.js.api import AckPolicy, ConsumerConfig, RetentionPolicy, StreamConfig
from nats.js.errors import NotFoundError

from ..shared.config import Settings
from ..shared.exceptions import PayloadDecodeError
from ..shared.models import DeliveryAction, JobOutcome, OutcomeKind, VideoUploadMessage
from ..worker.processor import JobProcessor
from .delivery import DeliveryEnvelope, decide_action, decode_payload

logger = Logger(service="video-worker")
metrics = Metrics(service="video-worker", namespace="VideoWorker")

UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

_ACTION_METRICS = {
    DeliveryAction.ACK: "MessagesAcked",
    DeliveryAction.NAK: "MessagesNacked",
    DeliveryAction.TERM: "MessagesTerminated",
}


class JobConsumer:
    """Pulls upload events from JetStream and settles each one exactly once."""

    def __init__(
        self,
        settings: Settings,
        processor: JobProcessor,
        progress_interval: float | None = None,
    ) -> None:
        self.settings = settings
        self.processor = processor
        # Two in-progress acks per ack_wait window
        self.progress_interval = (
            progress_interval if progress_interval is not None else settings.ack_wait_seconds / 2
        )
        self._nc: Any = None
        self._js: Any = None
        self._sub: Any = None

    @property
    def max_attempts(self) -> int:
        return self.settings.max_delivery_attempts

    async def connect(self) -> None:
        """Connect to NATS and open a JetStream context."""
        self._nc = await nats.connect(self.settings.nats_url, name=self.settings.worker_id)
        self._js = self._nc.jetstream()
        logger.info("Connected to NATS", extra={"nats_url": self.settings.nats_url})

    async def ensure_stream(self) -> None:
        """Create the upload stream if it does not exist yet."""
        stream = self.settings.nats_stream

        try:
            await self._js.stream_info(stream)
            logger.info("Stream already exists", extra={"stream": stream})
            return
        except NotFoundError:
            pass

        logger.info("Creating stream", extra={"stream": stream})
        await self._js.add_stream(
            StreamConfig(
                name=stream,
                subjects=[self.settings.nats_subject],
                retention=RetentionPolicy.WORK_QUEUE,
                max_age=self.settings.stream_max_age_seconds,
            )
        )
        logger.info("Stream created successfully", extra={"stream": stream})

    async def subscribe(self) -> None:
        """Subscribe as the durable queue-group consumer.

        JetStream binds a queue group to the durable consumer of the same
        name, so NATS_CONSUMER names both.
        """
        group = self.settings.nats_consumer
        self._sub = await self._js.subscribe(
            self.settings.nats_subject,
            queue=group,
            durable=group,
            cb=self._on_message,
            manual_ack=True,
            config=ConsumerConfig(
                ack_policy=AckPolicy.EXPLICIT,
                ack_wait=self.settings.ack_wait_seconds,
                max_deliver=self.max_attempts,
            ),
        )
        logger.info(
            "NATS consumer started successfully",
            extra={
                "subject": self.settings.nats_subject,
                "consumer": group,
                "max_deliver": self.max_attempts,
            },
        )

    async def start(self, stop_event: asyncio.Event) -> None:
        """Consume until ``stop_event`` is set, then drain and disconnect."""
        logger.info("Starting NATS consumer")
        await self.connect()
        try:
            await self.ensure_stream()
            await self.subscribe()
            await stop_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop taking deliveries and release the connection.

        Draining lets in-flight callbacks finish before the connection closes.
        """
        logger.info("Stopping NATS consumer")

        if self._nc is not None and not self._nc.is_closed:
            try:
                await self._nc.drain()
            except Exception:
                logger.exception("Failed to drain NATS connection")
                await self._nc.close()

        self._sub = None
        logger.info("NATS consumer stopped")

    async def _on_message(self, msg: Any) -> None:
        await self.handle_message(DeliveryEnvelope(msg))

    async def handle_message(self, envelope: DeliveryEnvelope) -> DeliveryAction:
        """Decode, process and settle one delivery.

        Returns:
            The action applied to the delivery
        """
        logger.debug("Received message", extra={"subject": envelope.subject})

        try:
            job = decode_payload(envelope.data)
        except PayloadDecodeError as e:
            logger.error("Failed to decode message, terminating", extra=e.to_dict())
            metrics.add_metric(name="MalformedPayloads", unit=MetricUnit.Count, value=1)
            await self._settle(envelope, DeliveryAction.TERM, video_id=None)
            return DeliveryAction.TERM

        num_delivered = envelope.num_delivered
        logger.info(
            "Processing video upload",
            extra={
                "video_id": job.video_id,
                "title": job.title,
                "num_delivered": num_delivered,
            },
        )

        try:
            outcome = await self._process_with_progress(envelope, job, num_delivered)
        except Exception as e:
            logger.exception("Unexpected error processing video", extra={"video_id": job.video_id})
            outcome = JobOutcome.unconfirmed(str(e), UNEXPECTED_ERROR)

        action = decide_action(outcome, num_delivered, self.max_attempts)

        if action == DeliveryAction.TERM and outcome.kind != OutcomeKind.TERMINAL:
            logger.warning(
                "Max retries reached, terminating message",
                extra={
                    "video_id": job.video_id,
                    "num_delivered": num_delivered,
                    "outcome": outcome.kind.value,
                },
            )
        elif not outcome.is_success:
            logger.error(
                "Failed to process video",
                extra={
                    "video_id": job.video_id,
                    "outcome": outcome.kind.value,
                    "reason": outcome.reason,
                    "error_code": outcome.error_code,
                    "action": action.value,
                },
            )

        await self._settle(envelope, action, video_id=job.video_id)
        return action

    async def _process_with_progress(
        self,
        envelope: DeliveryEnvelope,
        job: VideoUploadMessage,
        num_delivered: int,
    ) -> JobOutcome:
        """Run the controller in a worker thread, signalling progress until it returns."""
        work = asyncio.ensure_future(asyncio.to_thread(self.processor.process, job, num_delivered))

        while True:
            done, _ = await asyncio.wait({work}, timeout=self.progress_interval)
            if done:
                return work.result()

            try:
                await envelope.touch()
                logger.debug("Sent in-progress ack", extra={"video_id": job.video_id})
            except Exception as e:
                logger.warning(
                    "Failed to send in-progress ack",
                    extra={"video_id": job.video_id, "error": str(e)},
                )

    async def _settle(
        self,
        envelope: DeliveryEnvelope,
        action: DeliveryAction,
        video_id: str | None,
    ) -> None:
        try:
            await envelope.settle(action)
        except Exception as e:
            logger.error(
                "Failed to settle message",
                extra={"video_id": video_id, "action": action.value, "error": str(e)},
            )
            metrics.add_metric(name="SettleFailures", unit=MetricUnit.Count, value=1)
            metrics.flush_metrics()
            return

        metrics.add_metric(name=_ACTION_METRICS[action], unit=MetricUnit.Count, value=1)
        metrics.flush_metrics()

        if action == DeliveryAction.ACK:
            logger.info("Video processed successfully", extra={"video_id": video_id})
