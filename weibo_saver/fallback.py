"""
Fallback record synthesis.

When a located post cannot be fetched or its embedded data is unusable, the
pipeline still saves exactly one record. The fallback Post keeps the raw mail
body verbatim so nothing is lost, and marks itself with sentinel authors.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable

from .data_structures import Post, Provenance
from .selector_extractor import REDNOTE_SITE
from .text_processor import format_date, format_timestamp

logger = logging.getLogger(__name__)

FALLBACK_AUTHOR = 'Error'
FALLBACK_ORIGIN_AUTHOR = 'MailBody'


def synthesize_fallback(
    error: BaseException,
    raw_body: str,
    source_url: str = '',
    site: str = 'weibo.com',
    title: str = '',
    clock: Callable[[], datetime] = datetime.now,
) -> Post:
    """
    Convert an extraction failure into a degraded but valid Post.

    Always succeeds. The text leads with a random discriminator, then the error, so
    repeated failures of the same source never collide on a filename.
    """
    discriminator = uuid.uuid4()
    now = clock()
    logger.error(f"Saving fallback record for {source_url or 'unknown source'}: {error}")

    return Post(
        source_url=source_url,
        site=site,
        title=title,
        author=FALLBACK_AUTHOR,
        origin_author=FALLBACK_ORIGIN_AUTHOR,
        text=f"{discriminator}-{error}",
        origin_text=raw_body or '',
        images=(),
        videos=(),
        created_at=format_date(now) if site == REDNOTE_SITE else format_timestamp(now),
        provenance=Provenance.FALLBACK
    )
