"""
Embedded Data Extraction

Builds a Post from the ``$render_data`` object a Weibo status page injects at
runtime. Handles reposts (outer status wrapping a retweeted status), long-form
text, image variants, video sources and the link-only image repost quirk.

This extractor never recovers: any missing field surfaces as
ExtractionSchemaError and the caller decides what to do.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from .config import SaverConfig, get_config
from .data_structures import FetchedPage, Post, Provenance
from .errors import ExtractionSchemaError
from .text_processor import html_to_markdown, parse_weibo_timestamp

logger = logging.getLogger(__name__)

WEIBO_SITE = 'weibo.com'


def _append_unique(urls: List[str], url: Optional[str]) -> None:
    if url and url not in urls:
        urls.append(url)


class EmbeddedDataExtractor:
    """Extracts a Post from a page's embedded data object."""

    def __init__(self, config: Optional[SaverConfig] = None):
        self.config = config or get_config()

    def extract(self, page: FetchedPage) -> Post:
        """
        Extract a Post from a rendered page.

        Args:
            page: Page rendered with script execution

        Returns:
            Post with provenance STRUCTURED

        Raises:
            ExtractionSchemaError: the data object or a required field is missing
        """
        data = page.render_data
        if not isinstance(data, dict) or not data.get('status'):
            raise ExtractionSchemaError(
                f"No embedded status object found for {page.url}",
                error_code="SCHEMA_MISSING",
                details={"url": page.url}
            )

        try:
            return self._build_post(page.url, data['status'])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ExtractionSchemaError(
                f"Malformed embedded data for {page.url}: {type(e).__name__}: {e}",
                details={"url": page.url}
            ) from e

    def _build_post(self, url: str, status: Dict[str, Any]) -> Post:
        retweeted = status.get('retweeted_status')
        is_retweet = retweeted is not None

        origin_text = ''
        origin_author = ''
        if is_retweet:
            origin_text = html_to_markdown(self._status_html(retweeted))
            origin_author = self._screen_name(retweeted)

        outer_html = self._status_html(status)
        text = html_to_markdown(outer_html)
        author = self._screen_name(status)

        pics = (retweeted if is_retweet else status).get('pics') or []
        images = self._collect_images(pics, outer_html)
        videos = self._collect_videos(pics, status, retweeted)

        created_at = parse_weibo_timestamp(status['created_at'])

        logger.info(f"Extracted post by {author} ({'repost' if is_retweet else 'original'}): "
                    f"{len(images)} images, {len(videos)} videos")

        return Post(
            source_url=url,
            site=WEIBO_SITE,
            author=author,
            origin_author=origin_author,
            text=text,
            origin_text=origin_text,
            images=images,
            videos=videos,
            created_at=created_at,
            provenance=Provenance.STRUCTURED
        )

    def _status_html(self, status: Dict[str, Any]) -> str:
        """Body HTML, preferring the long-form content when the status is marked long-form."""
        if status.get('isLongText'):
            long_text = (status.get('longText') or {}).get('longTextContent')
            if long_text:
                return long_text
        return status['text']

    def _screen_name(self, status: Dict[str, Any]) -> str:
        user = status.get('user') or {}
        return user.get('screen_name') or self.config.unknown_user_sentinel

    def _collect_images(self, pics: Sequence[Dict[str, Any]], outer_html: str) -> List[str]:
        images: List[str] = []
        for pic in pics:
            # Live photos and video placeholders carry a video source instead of a still
            if pic.get('videoSrc'):
                continue
            large = pic.get('large') or {}
            _append_unique(images, large.get('url') or pic.get('url'))

        if self.config.weibo_short_link_marker in outer_html:
            soup = BeautifulSoup(outer_html, 'html.parser')
            for anchor in soup.find_all('a', href=True):
                href = anchor['href']
                if href.startswith(self.config.weibo_short_link_prefix):
                    _append_unique(images, href)

        return images

    def _collect_videos(self, pics: Sequence[Dict[str, Any]], status: Dict[str, Any],
                        retweeted: Optional[Dict[str, Any]]) -> List[str]:
        candidates: List[str] = []
        for pic in pics:
            _append_unique(candidates, pic.get('videoSrc'))

        if not candidates:
            _append_unique(candidates, self._stream_url(status))
            if retweeted is not None:
                _append_unique(candidates, self._stream_url(retweeted))

        videos = [url for url in candidates if self._is_playable(url)]
        dropped = len(candidates) - len(videos)
        if dropped:
            logger.debug(f"Dropped {dropped} video URL(s) outside the CDN allowlist")
        return videos

    @staticmethod
    def _stream_url(status: Dict[str, Any]) -> Optional[str]:
        page_info = status.get('page_info') or {}
        media_info = page_info.get('media_info') or {}
        return media_info.get('stream_url_hd') or media_info.get('stream_url')

    def _is_playable(self, url: str) -> bool:
        return any(url.startswith(prefix) for prefix in self.config.video_cdn_prefixes)
