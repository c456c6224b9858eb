"""Acknowledgment policy for delivered upload events.

Maps the controller's JobOutcome plus the transport's delivery counter to
exactly one of ack, nak or term. The transport's ceiling always wins: once a
message has been delivered max_attempts times it is never requeued again.
"""

from typing import Any

from nats.errors import NotJSMessageError
from pydantic import ValidationError

from ..shared.exceptions import DeliveryAlreadySettledError, PayloadDecodeError
from ..shared.models import DeliveryAction, JobOutcome, OutcomeKind, VideoUploadMessage


def decide_action(outcome: JobOutcome, num_delivered: int, max_attempts: int) -> DeliveryAction:
    """Choose the transport action for a processed delivery.

    Args:
        outcome: Controller outcome for this delivery
        num_delivered: Transport delivery counter (1 on first delivery)
        max_attempts: max_retries + 1

    Returns:
        DeliveryAction to apply
    """
    if outcome.kind == OutcomeKind.SUCCESS:
        return DeliveryAction.ACK

    if num_delivered >= max_attempts:
        return DeliveryAction.TERM

    if outcome.kind == OutcomeKind.TERMINAL:
        return DeliveryAction.TERM

    # RETRYABLE, or UNCONFIRMED where only the transport ceiling can decide
    return DeliveryAction.NAK


def decode_payload(data: bytes) -> VideoUploadMessage:
    """Decode a raw message body into an upload event.

    Raises:
        PayloadDecodeError: If the body is not valid JSON or fails validation
    """
    try:
        return VideoUploadMessage.model_validate_json(data)
    except ValidationError as e:
        raise PayloadDecodeError(
            "Failed to decode upload event",
            {"errors": e.errors(include_url=False, include_input=False), "size_bytes": len(data)},
        )
    except ValueError as e:
        raise PayloadDecodeError(
            f"Failed to decode upload event: {e}",
            {"size_bytes": len(data)},
        )


class DeliveryEnvelope:
    """One delivery of one message, settled exactly once.

    Wraps a JetStream message; a second ack/nak/term raises instead of
    reaching the server.
    """

    def __init__(self, msg: Any) -> None:
        self._msg = msg
        self._settled_with: DeliveryAction | None = None

    @property
    def data(self) -> bytes:
        return self._msg.data

    @property
    def subject(self) -> str:
        return self._msg.subject

    @property
    def num_delivered(self) -> int:
        """Delivery counter from JetStream metadata, 1 if unavailable."""
        try:
            return int(self._msg.metadata.num_delivered)
        except NotJSMessageError:
            return 1

    @property
    def settled_with(self) -> DeliveryAction | None:
        return self._settled_with

    async def touch(self) -> None:
        """Extend the ack deadline while the delivery is still being processed.

        Does nothing once the delivery has been settled.
        """
        if self._settled_with is None:
            await self._msg.in_progress()

    async def settle(self, action: DeliveryAction) -> None:
        """Apply an action to the underlying message.

        Raises:
            DeliveryAlreadySettledError: If this delivery was already settled
        """
        if self._settled_with is not None:
            raise DeliveryAlreadySettledError(self.subject, self._settled_with.value)
        self._settled_with = action

        if action == DeliveryAction.ACK:
            await self._msg.ack()
        elif action == DeliveryAction.NAK:
            await self._msg.nak()
        else:
            await self._msg.term()
