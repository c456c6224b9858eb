"""HLS encoding using FFmpeg.

Converts an uploaded video into a single-rendition HLS VOD playlist,
probes its duration with FFprobe and grabs a thumbnail frame.
Only the HLS encode is mandatory; duration and thumbnail are best effort.
"""

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger

from ..shared.config import Settings
from ..shared.exceptions import EncodingError
from ..shared.models import EncodeResult

logger = Logger(service="video-worker")

PLAYLIST_NAME = "playlist.m3u8"
SEGMENT_PATTERN = "segment_%03d.ts"
THUMBNAIL_NAME = "thumbnail.jpg"
THUMBNAIL_OFFSET = "00:00:05"
PROBE_TIMEOUT_SECONDS = 60
THUMBNAIL_TIMEOUT_SECONDS = 120


class FFmpegEncoder:
    """Encodes uploads to HLS under per-video output directories.

    Layout:
        <hls_root>/<video_id>/playlist.m3u8
        <hls_root>/<video_id>/segment_000.ts ...
        <thumbnail_root>/<video_id>/thumbnail.jpg
    """

    def __init__(
        self,
        hls_root: str,
        thumbnail_root: str,
        preset: str = "medium",
        crf: int = 23,
        hls_time: int = 10,
        timeout_seconds: int = 3600,
    ) -> None:
        self.hls_root = Path(hls_root)
        self.thumbnail_root = Path(thumbnail_root)
        self.preset = preset
        self.crf = crf
        self.hls_time = hls_time
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "FFmpegEncoder":
        return cls(
            hls_root=settings.output_hls_path,
            thumbnail_root=settings.output_thumbnail_path,
            preset=settings.ffmpeg_preset,
            crf=settings.ffmpeg_crf,
            hls_time=settings.ffmpeg_hls_time,
            timeout_seconds=settings.encode_timeout_seconds,
        )

    def hls_dir(self, video_id: str) -> Path:
        return _video_dir(self.hls_root, video_id)

    def thumbnail_dir(self, video_id: str) -> Path:
        return _video_dir(self.thumbnail_root, video_id)

    def build_hls_command(self, input_path: str, video_id: str) -> list[str]:
        """Build the FFmpeg argument list for an HLS VOD encode."""
        output_dir = self.hls_dir(video_id)
        return [
            "ffmpeg",
            "-y",
            "-i", input_path,
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-c:a", "aac",
            "-b:a", "128k",
            "-hls_time", str(self.hls_time),
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", str(output_dir / SEGMENT_PATTERN),
            "-f", "hls",
            str(output_dir / PLAYLIST_NAME),
        ]

    def encode(self, input_path: str, video_id: str) -> EncodeResult:
        """Encode a video to HLS.

        Args:
            input_path: Local path to the uploaded source file
            video_id: Video identifier, used to name output directories

        Returns:
            EncodeResult with playlist path, optional thumbnail and duration

        Raises:
            EncodingError: If the output directory cannot be created or FFmpeg fails
        """
        logger.info(
            "Starting HLS encoding",
            extra={"video_id": video_id, "input_path": input_path},
        )

        output_dir = self.hls_dir(video_id)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EncodingError(
                f"Failed to create output directory: {e}",
                {"video_id": video_id, "output_dir": str(output_dir)},
            )

        command = self.build_hls_command(input_path, video_id)
        logger.debug("Executing FFmpeg", extra={"command": " ".join(command)})
        _run_ffmpeg(command, self.timeout_seconds, video_id)

        duration = self.probe_duration(input_path)
        thumbnail_path = self.generate_thumbnail(input_path, video_id)
        hls_path = str(output_dir / PLAYLIST_NAME)

        logger.info(
            "HLS encoding completed",
            extra={
                "video_id": video_id,
                "hls_path": hls_path,
                "duration_seconds": duration,
                "has_thumbnail": thumbnail_path is not None,
            },
        )

        return EncodeResult(
            hls_path=hls_path,
            thumbnail_path=thumbnail_path,
            duration_seconds=duration,
        )

    def probe_duration(self, input_path: str) -> int:
        """Get duration in whole seconds, or 0 if FFprobe cannot tell."""
        try:
            result = subprocess.run(
                [
                    "ffprobe",
                    "-v", "error",
                    "-print_format", "json",
                    "-show_format",
                    input_path,
                ],
                capture_output=True,
                text=True,
                errors="replace",
                timeout=PROBE_TIMEOUT_SECONDS,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning("Failed to probe duration, using 0", extra={"error": str(e)})
            return 0

        if result.returncode != 0:
            logger.warning(
                "Failed to probe duration, using 0",
                extra={"input_path": input_path, "stderr": result.stderr[-500:]},
            )
            return 0

        return _parse_duration(result.stdout)

    def generate_thumbnail(self, input_path: str, video_id: str) -> str | None:
        """Extract a single frame as the thumbnail.

        Returns:
            Thumbnail path, or None if extraction failed
        """
        output_dir = self.thumbnail_dir(video_id)
        thumbnail_path = output_dir / THUMBNAIL_NAME

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            result = subprocess.run(
                [
                    "ffmpeg",
                    "-y",
                    "-ss", THUMBNAIL_OFFSET,
                    "-i", input_path,
                    "-vframes", "1",
                    "-vf", "scale=1280:720:force_original_aspect_ratio=decrease",
                    "-q:v", "2",
                    str(thumbnail_path),
                ],
                capture_output=True,
                text=True,
                errors="replace",
                timeout=THUMBNAIL_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(
                "Failed to generate thumbnail",
                extra={"video_id": video_id, "error": str(e)},
            )
            return None

        if result.returncode != 0:
            logger.warning(
                "Failed to generate thumbnail",
                extra={"video_id": video_id, "stderr": result.stderr[-500:]},
            )
            return None

        logger.info(
            "Thumbnail generated",
            extra={"video_id": video_id, "thumbnail_path": str(thumbnail_path)},
        )
        return str(thumbnail_path)

    def discard_artifacts(self, video_id: str) -> None:
        """Remove partial HLS and thumbnail output for a video.

        Raises:
            OSError: If a directory exists but cannot be removed
            EncodingError: If the video ID escapes an output root
        """
        for directory in (self.hls_dir(video_id), self.thumbnail_dir(video_id)):
            if directory.exists():
                shutil.rmtree(directory)
                logger.debug("Removed output directory", extra={"dir": str(directory)})


def _run_ffmpeg(command: list[str], timeout_seconds: int, video_id: str) -> None:
    """Run FFmpeg and translate every failure mode into EncodingError."""
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout_seconds,
        )
    except subprocess.TimeoutExpired:
        raise EncodingError(
            "FFmpeg timed out",
            {"video_id": video_id, "timeout_seconds": timeout_seconds},
        )
    except FileNotFoundError:
        raise EncodingError(
            "FFmpeg not found - ensure FFmpeg is installed",
            {"video_id": video_id},
        )
    except OSError as e:
        raise EncodingError(
            f"Failed to run FFmpeg: {e}",
            {"video_id": video_id},
        )

    if result.returncode != 0:
        raise EncodingError(
            f"ffmpeg encoding failed with exit code {result.returncode}",
            {
                "video_id": video_id,
                "returncode": result.returncode,
                "stderr": result.stderr[-2000:],
            },
        )


def _parse_duration(stdout: str) -> int:
    """Parse FFprobe JSON output into whole seconds."""
    try:
        data: dict[str, Any] = json.loads(stdout)
        return int(float(data["format"]["duration"]))
    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
        return 0


def _video_dir(root: Path, video_id: str) -> Path:
    """Per-video directory directly under ``root``.

    Raises:
        EncodingError: If the ID would resolve anywhere else
    """
    directory = root / video_id
    if directory.resolve().parent != root.resolve():
        raise EncodingError(
            "Video ID does not map to a directory under the output root",
            {"video_id": video_id, "root": str(root)},
        )
    return directory
