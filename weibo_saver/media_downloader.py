"""
Concurrent media acquisition.

Downloads every image or video of one post as a single batch:
- Each URL is streamed straight to disk with ``httpx`` + ``aiofiles``
- Only HTTP 200 counts as success; anything else aborts that one item
- The batch is joined with ``asyncio.gather(return_exceptions=True)`` so an
  item failure never cancels its siblings or escapes the call
"""

import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union
from urllib.parse import urlparse

import aiofiles
import httpx

from .config import SaverConfig, get_config
from .data_structures import (
    MediaAcquisitionResult, MediaFailure, MediaKind, MediaOutcome, MediaSuccess
)
from .errors import MediaDownloadError

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r'\.[0-9a-z]+$', re.IGNORECASE)
CHUNK_SIZE = 64 * 1024


def sniff_extension(url: str, default: str) -> str:
    """Trailing file extension of the URL path, or ``default`` when there is none."""
    match = _EXTENSION_RE.search(urlparse(url).path)
    return match.group(0).lower() if match else default


def media_filename(base_title: str, timestamp_ms: int, index: int, extension: str) -> str:
    return f"{base_title}-{timestamp_ms}-{index}{extension}"


class MediaDownloader:
    """Failure-isolated batch downloader sharing one HTTP client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config: Optional[SaverConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.http_client = http_client
        self.config = config or get_config()
        self.clock = clock

    def _extension_for(self, url: str, kind: MediaKind) -> str:
        if kind == MediaKind.VIDEO:
            return self.config.video_extension
        return sniff_extension(url, self.config.image_default_extension)

    async def acquire(
        self,
        urls: Sequence[str],
        destination_dir: Union[str, Path],
        base_title: str,
        kind: MediaKind = MediaKind.IMAGE,
    ) -> List[str]:
        """
        Download a batch and return only the successful filenames.

        Failed URLs are logged, never raised.
        """
        result = await self.download_batch(urls, destination_dir, base_title, kind)
        return result.filenames

    async def download_batch(
        self,
        urls: Sequence[str],
        destination_dir: Union[str, Path],
        base_title: str,
        kind: MediaKind = MediaKind.IMAGE,
    ) -> MediaAcquisitionResult:
        """
        Download all URLs concurrently and settle every item.

        Args:
            urls: Media URLs in discovery order
            destination_dir: Directory the files are written into
            base_title: Filename stem shared by the batch
            kind: Image or video; videos always get the video extension

        Returns:
            MediaAcquisitionResult with one outcome per input URL
        """
        result = MediaAcquisitionResult()
        if not urls:
            return result

        destination = Path(destination_dir)
        timestamp_ms = int(self.clock().timestamp() * 1000)

        tasks = [
            self._download_one(url, destination / media_filename(
                base_title, timestamp_ms, index, self._extension_for(url, kind)))
            for index, url in enumerate(urls)
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Unexpected error downloading {url}: {type(outcome).__name__}: {outcome}")
                outcome = MediaFailure(url=url, reason=f"UNEXPECTED_ERROR: {outcome}")
            result.add(outcome)

        for failure in result.failures:
            logger.warning(f"Failed to download {kind.value} {failure.url}: {failure.reason}")
        logger.info(f"Downloaded {len(result.successes)}/{len(urls)} {kind.value}s into {destination}")
        return result

    async def _download_one(self, url: str, target: Path) -> MediaOutcome:
        try:
            await self._stream_to_file(url, target)
        except MediaDownloadError as e:
            self._discard(target)
            return MediaFailure(url=url, reason=e.message)
        except httpx.HTTPError as e:
            self._discard(target)
            return MediaFailure(url=url, reason=f"{type(e).__name__}: {e}")
        except OSError as e:
            self._discard(target)
            return MediaFailure(url=url, reason=f"FILE_SYSTEM_ERROR: {e}")

        logger.debug(f"Saved {url} as {target.name}")
        return MediaSuccess(url=url, filename=target.name)

    async def _stream_to_file(self, url: str, target: Path) -> None:
        async with self.http_client.stream('GET', url) as response:
            if response.status_code != 200:
                raise MediaDownloadError(
                    f"HTTP {response.status_code}",
                    {"url": url, "status_code": response.status_code}
                )

            async with aiofiles.open(target, 'wb') as f:
                async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                    await f.write(chunk)

    @staticmethod
    def _discard(target: Path) -> None:
        """Remove a partially written file."""
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Error cleaning up partial file {target}: {e}")
