"""Unit tests for payload decoding and the ack policy."""

import asyncio
import json

import pytest
from nats.errors import NotJSMessageError

from src.shared.exceptions import DeliveryAlreadySettledError, PayloadDecodeError
from src.shared.models import DeliveryAction, JobOutcome
from src.transport.delivery import DeliveryEnvelope, decide_action, decode_payload
from tests.fakes import FakeMsg

MAX_ATTEMPTS = 3  # max_retries=2


class TestDecideAction:
    """Tests for the outcome x delivery-counter policy table."""

    @pytest.mark.parametrize("num_delivered", [1, 2, 3, 7])
    def test_success_is_always_acked(self, num_delivered):
        """Test that success acks even past the ceiling."""
        action = decide_action(JobOutcome.success(), num_delivered, MAX_ATTEMPTS)

        assert action == DeliveryAction.ACK

    @pytest.mark.parametrize("num_delivered", [1, 2])
    def test_retryable_below_ceiling_is_nacked(self, num_delivered):
        """Test that a retryable outcome is requeued while deliveries remain."""
        outcome = JobOutcome.retryable("ffmpeg failed", "ENCODING_FAILED")

        assert decide_action(outcome, num_delivered, MAX_ATTEMPTS) == DeliveryAction.NAK

    @pytest.mark.parametrize("num_delivered", [3, 4])
    def test_retryable_at_ceiling_is_terminated(self, num_delivered):
        """Test that the transport ceiling overrides a retryable outcome."""
        outcome = JobOutcome.retryable("ffmpeg failed", "ENCODING_FAILED")

        assert decide_action(outcome, num_delivered, MAX_ATTEMPTS) == DeliveryAction.TERM

    @pytest.mark.parametrize("num_delivered", [1, 3])
    def test_terminal_is_always_terminated(self, num_delivered):
        """Test that a terminal outcome is never requeued."""
        outcome = JobOutcome.terminal("ffmpeg failed", "ENCODING_FAILED")

        assert decide_action(outcome, num_delivered, MAX_ATTEMPTS) == DeliveryAction.TERM

    def test_unconfirmed_below_ceiling_is_nacked(self):
        """Test that an unconfirmed outcome leaves the decision to the transport."""
        outcome = JobOutcome.unconfirmed("status service down", "FAILURE_REPORT_FAILED")

        assert decide_action(outcome, 1, MAX_ATTEMPTS) == DeliveryAction.NAK

    def test_unconfirmed_at_ceiling_is_terminated(self):
        """Test that an unconfirmed outcome stops at the ceiling."""
        outcome = JobOutcome.unconfirmed("status service down", "FAILURE_REPORT_FAILED")

        assert decide_action(outcome, 3, MAX_ATTEMPTS) == DeliveryAction.TERM


class TestDecodePayload:
    """Tests for upload event decoding."""

    def test_valid_payload(self, sample_upload_bytes):
        """Test that a complete payload decodes into an upload event."""
        job = decode_payload(sample_upload_bytes)

        assert job.video_id == "v1"
        assert job.upload_file_path == "/var/uploads/tmp/abc123/holiday.mov"
        assert job.title == "Holiday 2024"

    def test_optional_fields_default(self):
        """Test that display metadata may be omitted."""
        job = decode_payload(b'{"video_id": "v9", "upload_file_path": "a.mp4"}')

        assert job.title == ""
        assert job.uploader_id == ""

    def test_unknown_fields_ignored(self, sample_upload_dict):
        """Test that extra producer fields do not break decoding."""
        payload = json.dumps({**sample_upload_dict, "checksum": "abc"}).encode()

        assert decode_payload(payload).video_id == "v1"

    @pytest.mark.parametrize(
        "data",
        [
            b"not json",
            b"",
            b"[]",
            b'{"upload_file_path": "a.mp4"}',
            b'{"video_id": "", "upload_file_path": "a.mp4"}',
            b'{"video_id": "v1"}',
            b'{"video_id": 12, "upload_file_path": "a.mp4"}',
            b"\xff\xfe",
            b'{"video_id": "..", "upload_file_path": "a.mp4"}',
            b'{"video_id": ".", "upload_file_path": "a.mp4"}',
            b'{"video_id": "../other-video", "upload_file_path": "a.mp4"}',
            b'{"video_id": "a\\\\b", "upload_file_path": "a.mp4"}',
        ],
    )
    def test_malformed_payload(self, data):
        """Test that malformed payloads raise PayloadDecodeError."""
        with pytest.raises(PayloadDecodeError) as exc_info:
            decode_payload(data)

        assert exc_info.value.error_code == "PAYLOAD_DECODE_ERROR"


class TestDeliveryEnvelope:
    """Tests for one-shot settlement."""

    @pytest.mark.parametrize(
        "action,call",
        [
            (DeliveryAction.ACK, "ack"),
            (DeliveryAction.NAK, "nak"),
            (DeliveryAction.TERM, "term"),
        ],
    )
    def test_settle_maps_to_transport_call(self, action, call):
        """Test that each action reaches the matching message method."""
        msg = FakeMsg(b"{}")
        envelope = DeliveryEnvelope(msg)

        asyncio.run(envelope.settle(action))

        assert msg.calls == [call]
        assert envelope.settled_with == action

    def test_second_settle_raises(self):
        """Test that a delivery cannot be settled twice."""
        msg = FakeMsg(b"{}")
        envelope = DeliveryEnvelope(msg)
        asyncio.run(envelope.settle(DeliveryAction.NAK))

        with pytest.raises(DeliveryAlreadySettledError):
            asyncio.run(envelope.settle(DeliveryAction.ACK))

        assert msg.calls == ["nak"]

    def test_num_delivered_from_metadata(self):
        """Test that the delivery counter comes from JetStream metadata."""
        envelope = DeliveryEnvelope(FakeMsg(b"{}", num_delivered=2))

        assert envelope.num_delivered == 2

    def test_num_delivered_defaults_to_one_for_core_messages(self):
        """Test that a non-JetStream message counts as a first delivery."""

        class CoreMsg(FakeMsg):
            @property
            def metadata(self):
                raise NotJSMessageError

            @metadata.setter
            def metadata(self, value):
                pass

        envelope = DeliveryEnvelope(CoreMsg(b"{}"))

        assert envelope.num_delivered == 1

    def test_touch_sends_in_progress(self):
        """Test that touching an open delivery extends its deadline."""
        msg = FakeMsg(b"{}")
        envelope = DeliveryEnvelope(msg)

        asyncio.run(envelope.touch())
        asyncio.run(envelope.touch())

        assert msg.calls == ["in_progress", "in_progress"]
        assert envelope.settled_with is None

    def test_touch_after_settle_is_noop(self):
        """Test that a settled delivery is never touched."""
        msg = FakeMsg(b"{}")
        envelope = DeliveryEnvelope(msg)
        asyncio.run(envelope.settle(DeliveryAction.ACK))

        asyncio.run(envelope.touch())

        assert msg.calls == ["ack"]
