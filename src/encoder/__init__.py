"""Encoder module for the video worker.

This module handles:
- HLS encoding with FFmpeg
- Duration probing with FFprobe
- Thumbnail extraction
- Cleanup of partial output
"""

from .ffmpeg import FFmpegEncoder

__all__ = [
    "FFmpegEncoder",
]
