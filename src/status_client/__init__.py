"""Status service client for the video worker."""

from .client import StatusServiceClient

__all__ = [
    "StatusServiceClient",
]
