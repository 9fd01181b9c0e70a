"""
Video Downloader Service - Fetches remote videos with yt-dlp.

yt-dlp handles both platform URLs (YouTube, Vimeo, ...) and plain links to
video files through its generic extractor, so a single code path covers
every remote source.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Optional

import yt_dlp

from clipper.config import get_settings

logger = logging.getLogger(__name__)


# Tried in order; an MP4 keeps the clipping step free of a remux
FORMAT_SELECTORS = [
    "best[ext=mp4]",
    "best",
]


@dataclass
class DownloadResult:
    """Result of video download operation."""

    video_path: str
    file_size_bytes: int
    title: Optional[str] = None


class VideoDownloaderService:
    """
    Service for downloading videos from remote URLs.

    No retries beyond the format fallback: a failed download is final and
    the caller decides what to do with it.
    """

    def __init__(self):
        self.settings = get_settings()

        try:
            logger.info(f"VideoDownloaderService initialized with yt-dlp {yt_dlp.version.__version__}")
        except AttributeError:
            logger.info("VideoDownloaderService initialized with yt-dlp library")

    def _build_ytdlp_opts(self, outtmpl: str, format_selector: str) -> dict:
        """Build yt-dlp options dictionary for downloading."""
        opts = {
            "format": format_selector,
            "outtmpl": outtmpl,
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "retries": 3,
            "fragment_retries": 3,
            "force_overwrites": True,
        }

        if self.settings.ytdlp_proxy:
            opts["proxy"] = self.settings.ytdlp_proxy

        return opts

    async def download_video(
        self,
        url: str,
        output_dir: str,
        file_stem: str,
    ) -> DownloadResult:
        """
        Download a video to ``{output_dir}/{file_stem}.<ext>``.

        Args:
            url: Remote video URL
            output_dir: Directory to save the video
            file_stem: Filename without extension (the job id)

        Returns:
            DownloadResult with the local path

        Raises:
            VideoDownloadError: If the source is unreachable, unsupported or yields no file
        """
        os.makedirs(output_dir, exist_ok=True)
        outtmpl = os.path.join(output_dir, f"{file_stem}.%(ext)s")

        logger.info(f"Downloading video from URL: {url[:100]}")

        loop = asyncio.get_running_loop()

        def do_download() -> Optional[dict]:
            last_error: Optional[Exception] = None

            for fmt_idx, format_selector in enumerate(FORMAT_SELECTORS):
                try:
                    ydl_opts = self._build_ytdlp_opts(outtmpl, format_selector)
                    with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                        return ydl.extract_info(url, download=True)
                except yt_dlp.utils.DownloadError as e:
                    last_error = e
                    logger.warning(
                        f"Download attempt {fmt_idx + 1}/{len(FORMAT_SELECTORS)} "
                        f"({format_selector}) failed: {str(e)[:200]}"
                    )

            raise last_error or VideoDownloadError("All download attempts failed")

        try:
            info = await loop.run_in_executor(None, do_download)
        except VideoDownloadError:
            raise
        except Exception as e:
            raise VideoDownloadError(f"Failed to download video: {e}") from e

        video_path = self._find_downloaded_file(output_dir, file_stem)
        if video_path is None:
            raise VideoDownloadError(f"Download completed but no file found for {file_stem}")

        file_size = os.path.getsize(video_path)
        logger.info(f"Video downloaded: {video_path} ({file_size / 1024 / 1024:.1f} MB)")

        return DownloadResult(
            video_path=video_path,
            file_size_bytes=file_size,
            title=info.get("title") if isinstance(info, dict) else None,
        )

    def _find_downloaded_file(self, output_dir: str, file_stem: str) -> Optional[str]:
        """Locate the file yt-dlp produced; the extension is only known afterwards."""
        candidates = sorted(
            name for name in os.listdir(output_dir)
            if name.startswith(file_stem) and not name.endswith((".part", ".ytdl"))
        )
        for name in candidates:
            path = os.path.join(output_dir, name)
            if os.path.isfile(path) and os.path.getsize(path) > 0:
                return path
        return None


class VideoDownloadError(Exception):
    """Exception raised when video download fails."""
    pass
