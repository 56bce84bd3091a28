"""
Text processing utilities.

Locates post URLs inside raw mail bodies, converts post HTML into Markdown and
builds filesystem-safe titles. Everything here is a pure function over text.
"""

import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from dateutil import parser as dateparser
from markdownify import markdownify

logger = logging.getLogger(__name__)

WEIBO_MARKER_PHRASE = '更多精彩评论:'
WEIBO_WEB_PREFIX = 'https://weibo.com/'
WEIBO_MOBILE_PREFIX = 'https://m.weibo.cn/status/'

WEIBO_TIME_FORMAT = '%a %b %d %H:%M:%S %z %Y'
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
DATE_FORMAT = '%Y-%m-%d'

# First anchor href; the quote must be closed on the same value or nothing matches
_ANCHOR_HREF_RE = re.compile(r'<a\s[^>]*?href\s*=\s*\\?(["\'])([^"\'<>\s\\]*)\\?\1', re.IGNORECASE)
_POST_ID_RE = re.compile(r'^[0-9A-Za-z]+$')
_REDNOTE_URL_RE = re.compile(
    r'https?://(?:www\.)?(?:xhslink\.com|xiaohongshu\.com)/[^\s"\'<>，。、；！]+',
    re.IGNORECASE,
)
_INVALID_FILENAME_CHARS_RE = re.compile(r'[\\/:*?"<>|]')


def locate_weibo_url(
    raw_body: str,
    marker_phrase: str = WEIBO_MARKER_PHRASE,
    web_prefix: str = WEIBO_WEB_PREFIX,
    mobile_prefix: str = WEIBO_MOBILE_PREFIX,
) -> Optional[str]:
    """
    Pull the canonical mobile post URL out of a Weibo share mail body.

    The share link is the first anchor after the *last* occurrence of the
    marker phrase. Its trailing path segment is the post id, which is rebuilt
    under the mobile status prefix.

    Args:
        raw_body: HTML (or HTML-ish) mail body
        marker_phrase: Phrase that precedes the share link
        web_prefix: Prefix the share link must start with
        mobile_prefix: Prefix of the returned canonical URL

    Returns:
        Canonical post URL, or None when no valid link is present
    """
    if not raw_body or marker_phrase not in raw_body:
        return None

    segment = raw_body.split(marker_phrase)[-1]
    match = _ANCHOR_HREF_RE.search(segment)
    if not match:
        return None

    href = match.group(2)
    if not href.startswith(web_prefix):
        logger.debug(f"Share link does not start with {web_prefix}: {href}")
        return None

    path = urlparse(href).path
    post_id = path.rsplit('/', 1)[-1]
    if not post_id or not _POST_ID_RE.match(post_id):
        return None

    return mobile_prefix + post_id


def locate_rednote_url(raw_body: str) -> Optional[str]:
    """Return the first RedNote share URL in a mail body, anchors before bare text, or None."""
    if not raw_body:
        return None

    soup = BeautifulSoup(raw_body, 'html.parser')
    for anchor in soup.find_all('a', href=True):
        match = _REDNOTE_URL_RE.match(anchor['href'].strip())
        if match:
            return match.group(0).rstrip('.,;)]}')

    match = _REDNOTE_URL_RE.search(raw_body)
    if not match:
        return None
    return match.group(0).rstrip('.,;)]}')


def clean_weibo_html(html: str) -> str:
    """Replace emoticon images with their alt text so they survive as plain text."""
    soup = BeautifulSoup(html, 'html.parser')
    for icon in soup.select('span.url-icon'):
        img = icon.find('img')
        icon.replace_with(img.get('alt', '') if img else '')
    return str(soup)


def html_to_markdown(html: Optional[str]) -> str:
    """Convert a post body from HTML to Markdown."""
    if not html:
        return ''
    return markdownify(clean_weibo_html(html), heading_style='ATX').strip()


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def format_date(value: datetime) -> str:
    return value.strftime(DATE_FORMAT)


def parse_weibo_timestamp(value: str) -> str:
    """
    Normalize a Weibo ``created_at`` value to ``YYYY-MM-DD HH:MM:SS``.

    The wall-clock time is kept in the post's own UTC offset. Raises
    ValueError when the value cannot be parsed.
    """
    try:
        parsed = datetime.strptime(value, WEIBO_TIME_FORMAT)
    except ValueError:
        try:
            parsed = dateparser.parse(value)
        except OverflowError as e:
            raise ValueError(f"Unparsable timestamp: {value!r}") from e
    return format_timestamp(parsed)


def create_filename_from_title(text: str) -> str:
    """Filter a title so it can be used as a filename on any common filesystem."""
    filtered = _INVALID_FILENAME_CHARS_RE.sub('', text)
    filtered = filtered.replace('#', '')
    filtered = filtered.split('(https')[0]
    filtered = filtered.split('![[')[0]
    return re.sub(r'\s', '', filtered)


def truncate_text(text: str, max_length: int = 40) -> str:
    if not text or len(text) <= max_length:
        return text or ''
    return text[:max_length]


def generate_post_title(text: str, username: str, max_length: int = 40) -> str:
    """Build the filename stem ``<user>-<first characters of the post>``."""
    return create_filename_from_title(f"{username}-{truncate_text(text, max_length)}")


def generate_rednote_title(title: str, text: str, author: str, created_at: str) -> str:
    """Build the filename stem ``<title>-<author>-<date>`` for a RedNote post."""
    base = (title or text or 'RedNote Post')[:30].strip()
    stem = f"{base}-{author or 'Unknown'}-{created_at[:10]}"
    return re.sub(r'[\\/:*?"<>|]', '_', stem)
