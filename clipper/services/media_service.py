"""
Media Service - Thin FFmpeg wrapper for audio extraction and clip cutting.
"""

import asyncio
import logging
import os
import shutil
import subprocess

from clipper.config import get_settings

logger = logging.getLogger(__name__)


class MediaService:
    """
    Service for the two media operations the pipeline needs.

    - extract_audio: mono 16kHz 16-bit PCM WAV for transcription
    - cut_clip: vertical 720x1280 MP4 (scale to cover, then center crop)

    FFmpeg runs in a thread pool so the event loop keeps serving requests.
    """

    def __init__(self):
        self.settings = get_settings()
        self._verify_ffmpeg()

    def _verify_ffmpeg(self):
        """Warn if FFmpeg is missing; calls will fail at runtime."""
        if not shutil.which("ffmpeg"):
            logger.warning("FFmpeg not found in PATH - media processing will fail")

    async def extract_audio(self, video_path: str, audio_path: str) -> str:
        """
        Extract a speech-ready audio track from a video.

        Args:
            video_path: Source video file
            audio_path: Destination WAV file

        Returns:
            Path to the extracted audio

        Raises:
            MediaProcessingError: If FFmpeg fails or produces no output
        """
        if not os.path.isfile(video_path):
            raise MediaProcessingError(f"Video file not found: {video_path}")

        logger.info(f"Extracting audio from video: {video_path}")

        cmd = [
            "ffmpeg",
            "-y",
            "-i", video_path,
            "-vn",  # No video
            "-acodec", "pcm_s16le",
            "-ar", str(self.settings.audio_sample_rate),
            "-ac", str(self.settings.audio_channels),
            audio_path,
        ]
        await self._run_cmd(cmd)

        if not os.path.exists(audio_path):
            raise MediaProcessingError("Audio extraction produced no output file")

        logger.info(f"Audio extracted to: {audio_path}")
        return audio_path

    async def cut_clip(
        self,
        video_path: str,
        output_path: str,
        start_seconds: float,
        duration_seconds: float,
    ) -> str:
        """
        Cut a vertical clip out of a video.

        Args:
            video_path: Source video file
            output_path: Destination MP4 file
            start_seconds: Offset into the source
            duration_seconds: Length of the clip

        Returns:
            Path to the rendered clip

        Raises:
            MediaProcessingError: If FFmpeg fails or produces no output
        """
        if not os.path.isfile(video_path):
            raise MediaProcessingError(f"Video file not found: {video_path}")

        logger.info(
            f"Cutting clip {output_path}: start={start_seconds:.2f}s, "
            f"duration={duration_seconds:.2f}s"
        )

        cmd = [
            "ffmpeg",
            "-y",
            "-ss", f"{start_seconds:.3f}",
            "-i", video_path,
            "-t", f"{duration_seconds:.3f}",
            "-vf", ",".join(self.build_vertical_filters()),
            "-c:v", "libx264",
            "-preset", self.settings.ffmpeg_preset,
            "-crf", str(self.settings.ffmpeg_crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-b:a", "128k",
            "-movflags", "+faststart",
            output_path,
        ]
        await self._run_cmd(cmd)

        if not os.path.exists(output_path):
            raise MediaProcessingError(f"Clip rendering produced no output file: {output_path}")

        return output_path

    def build_vertical_filters(self) -> list[str]:
        """Scale to cover the target frame, then center-crop to it."""
        width = self.settings.clip_width
        height = self.settings.clip_height
        return [
            f"scale={width}:{height}:force_original_aspect_ratio=increase",
            f"crop={width}:{height}",
        ]

    async def _run_cmd(self, cmd: list[str]) -> None:
        """Run a command asynchronously."""
        logger.debug(f"Running: {' '.join(cmd[:10])}...")

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                lambda: subprocess.run(cmd, capture_output=True)
            )
        except OSError as e:
            raise MediaProcessingError(f"Failed to start FFmpeg: {e}") from e

        if result.returncode != 0:
            error_msg = result.stderr.decode(errors="replace")[-1000:] if result.stderr else "Unknown error"
            raise MediaProcessingError(f"FFmpeg failed: {error_msg}")


class MediaProcessingError(Exception):
    """Exception raised when the media engine fails."""
    pass
