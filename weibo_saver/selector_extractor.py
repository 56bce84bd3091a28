"""
Heuristic Selector Extraction

Extracts RedNote posts from rendered markup when no embedded data object is
available. Each field has an ordered list of selector candidates resolved by a
single "first non-empty match wins" rule; media fields scan attributes in a
fixed preference order and fall back to broader scans when the specific
selectors yield nothing.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag
from dateutil import parser as dateparser

from .config import SaverConfig, get_config
from .data_structures import FetchedPage, Post, Provenance
from .text_processor import format_date

logger = logging.getLogger(__name__)

REDNOTE_SITE = 'xiaohongshu.com'
DEFAULT_AUTHOR = 'Unknown'
DEFAULT_TITLE = 'Untitled'
EMPTY_CONTENT_TEMPLATE = 'No content could be extracted from this RedNote post. The URL was: {url}'

IMAGE_ATTRIBUTES = ('src', 'data-src', 'data-original', 'data-url')
VIDEO_ATTRIBUTES = ('src', 'data-src', 'data-url', 'data-video')

_ABSOLUTE_URL_RE = re.compile(r'https?://', re.IGNORECASE)
_SCRIPT_VIDEO_URL_RE = re.compile(r'https?://[^"\'\s]+\.(?:mp4|mov|avi|flv|wmv)[^"\'\s]*', re.IGNORECASE)
_MONTH_DAY_RE = re.compile(r'(?<![\d-])(\d{2})-(\d{2})(?![\d-])')


class FieldKind(str, Enum):
    TEXT = "text"
    TITLE = "title"
    AUTHOR = "author"
    DATE = "date"
    IMAGES = "images"
    VIDEOS = "videos"


@dataclass(frozen=True)
class SelectorCandidate:
    """
    One markup location for a field.

    ``attributes`` are read in order before falling back to element text;
    meta-tag candidates read only ``content``.
    """
    selector: str
    field: FieldKind
    attributes: Tuple[str, ...] = ()
    use_text: bool = True

    @classmethod
    def meta(cls, selector: str, field: FieldKind) -> 'SelectorCandidate':
        return cls(selector, field, attributes=('content',), use_text=False)


DEFAULT_SELECTORS: Tuple[SelectorCandidate, ...] = (
    SelectorCandidate('.content-container', FieldKind.TEXT),
    SelectorCandidate('.note-card-title', FieldKind.TEXT),

    SelectorCandidate('.note-slider-img', FieldKind.IMAGES),

    SelectorCandidate('video source', FieldKind.VIDEOS),
    SelectorCandidate('video', FieldKind.VIDEOS),
    SelectorCandidate('.video-container video', FieldKind.VIDEOS),
    SelectorCandidate('.media-video', FieldKind.VIDEOS),
    SelectorCandidate('.video-player', FieldKind.VIDEOS),
    SelectorCandidate('.video-content video', FieldKind.VIDEOS),
    SelectorCandidate('source[type="video/mp4"]', FieldKind.VIDEOS),
    SelectorCandidate('.status-video', FieldKind.VIDEOS),

    SelectorCandidate('.author-username', FieldKind.AUTHOR),
    SelectorCandidate('.note-card-name', FieldKind.AUTHOR),
    SelectorCandidate.meta('meta[property="og:author"]', FieldKind.AUTHOR),
    SelectorCandidate.meta('meta[name="author"]', FieldKind.AUTHOR),

    SelectorCandidate('.publish-time-container', FieldKind.DATE, attributes=('datetime',)),
    SelectorCandidate('time', FieldKind.DATE, attributes=('datetime',)),
    SelectorCandidate.meta('meta[property="article:published_time"]', FieldKind.DATE),

    SelectorCandidate('.title', FieldKind.TITLE),
    SelectorCandidate('.note-card-title', FieldKind.TITLE),
    SelectorCandidate.meta('meta[property="og:title"]', FieldKind.TITLE),
    SelectorCandidate('h1', FieldKind.TITLE),
)


def _candidate_value(element: Tag, candidate: SelectorCandidate) -> str:
    for attribute in candidate.attributes:
        value = element.get(attribute)
        if value and value.strip():
            return value.strip()
    if candidate.use_text:
        return element.get_text().strip()
    return ''


def first_match(soup: BeautifulSoup, candidates: Sequence[SelectorCandidate]) -> Optional[str]:
    """
    Resolve a field from its candidates in priority order.

    The first candidate whose element yields non-empty trimmed content wins;
    later candidates are not consulted even if they would match better.
    """
    for candidate in candidates:
        element = soup.select_one(candidate.selector)
        if element is None:
            continue
        value = _candidate_value(element, candidate)
        if value:
            logger.debug(f"Found {candidate.field.value} using selector {candidate.selector}")
            return value
    return None


def parse_rednote_date(raw: Optional[str], now: datetime) -> str:
    """
    Normalize a RedNote publish date to ``YYYY-MM-DD``.

    A bare ``MM-DD`` (the site omits the year for recent posts) takes the
    current year; anything else goes through generic parsing; unparsable
    input yields today's date. Never raises.
    """
    if raw:
        match = _MONTH_DAY_RE.search(raw)
        if match:
            month, day = int(match.group(1)), int(match.group(2))
            try:
                return format_date(datetime(now.year, month, day))
            except ValueError:
                logger.debug(f"Invalid month-day in date {raw!r}")

        try:
            return format_date(dateparser.parse(raw))
        except (ValueError, OverflowError):
            logger.debug(f"Failed to parse date {raw!r}, using current date")

    return format_date(now)


def find_best_content_block(soup: BeautifulSoup) -> str:
    """
    Content-density fallback for pages where no text selector matched.

    Candidate blocks are scanned and logged, but no block is selected: the
    selection criteria are undefined, so this strategy deliberately returns
    an empty string.
    """
    candidates = 0
    for element in soup.select('div, article, section'):
        if len(element.get_text().strip()) > 2:
            candidates += 1
    logger.debug(f"Content-density scan saw {candidates} candidate blocks, none selected")
    return ''


class HeuristicSelectorExtractor:
    """Extracts a Post from markup using ordered selector cascades."""

    def __init__(
        self,
        config: Optional[SaverConfig] = None,
        selectors: Sequence[SelectorCandidate] = DEFAULT_SELECTORS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or get_config()
        self.clock = clock
        self._selectors: Dict[FieldKind, List[SelectorCandidate]] = {kind: [] for kind in FieldKind}
        for candidate in selectors:
            self._selectors[candidate.field].append(candidate)

    def selectors_for(self, field: FieldKind) -> List[SelectorCandidate]:
        return list(self._selectors[field])

    def extract(self, page: FetchedPage) -> Post:
        """
        Extract a Post from rendered markup.

        An empty page still succeeds: its text states that nothing could be
        extracted and names the source URL.
        """
        soup = BeautifulSoup(page.html, 'html.parser')

        text = first_match(soup, self._selectors[FieldKind.TEXT]) or ''
        title = first_match(soup, self._selectors[FieldKind.TITLE]) or DEFAULT_TITLE
        author = first_match(soup, self._selectors[FieldKind.AUTHOR]) or DEFAULT_AUTHOR
        created_at = parse_rednote_date(first_match(soup, self._selectors[FieldKind.DATE]), self.clock())
        images = self.extract_images(soup)
        videos = self.extract_videos(soup)

        if not text:
            text = find_best_content_block(soup)

        logger.debug(f"Content extraction results: text={len(text)} chars, images={len(images)}, "
                     f"videos={len(videos)}, author_found={author != DEFAULT_AUTHOR}, "
                     f"title_found={title != DEFAULT_TITLE}")

        if not text and not images and not videos:
            logger.warning(f"No content extracted from {page.url}")
            text = EMPTY_CONTENT_TEMPLATE.format(url=page.url)

        return Post(
            source_url=page.url,
            site=REDNOTE_SITE,
            author=author,
            title=title,
            text=text,
            images=images,
            videos=videos,
            created_at=created_at,
            provenance=Provenance.STRUCTURED
        )

    def _accept_image(self, value: Optional[str]) -> bool:
        if not value or not _ABSOLUTE_URL_RE.search(value):
            return False
        return not any(blocked in value for blocked in self.config.image_blocklist)

    def _scan_images(self, elements: Sequence[Tag], images: List[str]) -> None:
        for element in elements:
            value = next((element.get(attr) for attr in IMAGE_ATTRIBUTES if element.get(attr)), None)
            if self._accept_image(value) and value not in images:
                images.append(value)

    def extract_images(self, soup: BeautifulSoup) -> List[str]:
        images: List[str] = []
        for candidate in self._selectors[FieldKind.IMAGES]:
            elements = soup.select(candidate.selector)
            if elements:
                logger.debug(f"Found {len(elements)} image elements using selector {candidate.selector}")
                self._scan_images(elements, images)
                if images:
                    break

        if not images:
            self._scan_images(soup.find_all('img'), images)
        return images

    def extract_videos(self, soup: BeautifulSoup) -> List[str]:
        videos: List[str] = []
        for candidate in self._selectors[FieldKind.VIDEOS]:
            elements = soup.select(candidate.selector)
            if not elements:
                continue
            logger.debug(f"Found {len(elements)} video elements using selector {candidate.selector}")
            for element in elements:
                value = next((element.get(attr) for attr in VIDEO_ATTRIBUTES if element.get(attr)), None)
                if value and _ABSOLUTE_URL_RE.search(value) and value not in videos:
                    videos.append(value)
            if videos:
                break

        selector_found = bool(videos)

        meta = soup.select_one('meta[property="og:video"]')
        meta_url = meta.get('content') if meta else None
        if meta_url and _ABSOLUTE_URL_RE.search(meta_url) and meta_url not in videos:
            videos.append(meta_url)

        if not selector_found:
            self._scan_scripts_for_videos(soup, videos)
        return videos

    @staticmethod
    def _scan_scripts_for_videos(soup: BeautifulSoup, videos: List[str]) -> None:
        """Last resort: URL-shaped strings ending in a video extension inside inline scripts."""
        for script in soup.find_all('script', src=False):
            content = script.string or script.get_text()
            if not content or 'video' not in content:
                continue
            if '{' not in content and '[' not in content:
                continue
            content = content.replace('\\u002F', '/').replace('\\/', '/')
            for url in _SCRIPT_VIDEO_URL_RE.findall(content):
                if url not in videos:
                    videos.append(url)
