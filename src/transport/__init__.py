"""Transport module for the video worker.

This module handles:
- JetStream stream provisioning and durable subscription
- Payload decoding
- Ack / nak / term policy for each delivery
"""

from .consumer import JobConsumer
from .delivery import DeliveryEnvelope, decide_action, decode_payload

__all__ = [
    "JobConsumer",
    "DeliveryEnvelope",
    "decide_action",
    "decode_payload",
]
