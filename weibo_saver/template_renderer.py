"""
Markdown rendering for saved posts.

Posts are rendered through mustache templates with ``pystache``. HTML escaping
is chosen per call: every render builds its own ``pystache.Renderer`` so no
setting leaks between renders.
"""

import html
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import pystache
from pystache.parser import ParsingError

from .data_structures import Post
from .errors import TemplateRenderingError
from .text_processor import format_timestamp

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / 'templates'
TEMPLATE_SUFFIX = '.mustache'

TEMPLATE_KEYS = (
    'title', 'site', 'date_saved', 'user', 'created_at', 'url',
    'outer_text', 'origin_user', 'origin_text', 'pics', 'videos',
)


def media_markdown(filenames: Sequence[str], folder: str) -> str:
    """One Markdown embed per file, separated by blank lines."""
    return '\n\n'.join(f"![]({folder}/{filename})" for filename in filenames)


def record_title(post: Post) -> str:
    """Heading of the saved record: the post title, or ``<author>的微博``."""
    return post.title or f"{post.author}的微博"


def build_template_data(
    post: Post,
    image_filenames: Sequence[str] = (),
    video_filenames: Sequence[str] = (),
    saved_at: Optional[datetime] = None,
) -> Dict[str, str]:
    """Map a finished Post and its downloaded media onto the template placeholders."""
    return {
        'title': record_title(post),
        'site': post.site,
        'date_saved': format_timestamp(saved_at or datetime.now()),
        'user': post.author,
        'created_at': post.created_at,
        'url': post.source_url,
        'outer_text': post.text,
        'origin_user': post.origin_author,
        'origin_text': post.origin_text,
        'pics': media_markdown(image_filenames, 'images'),
        'videos': media_markdown(video_filenames, 'videos'),
    }


def _no_escape(value: str) -> str:
    return value


def render_markdown(template: str, data: Dict[str, str], escape_html: bool = False) -> str:
    """
    Render a mustache template.

    Args:
        template: Template source
        data: Placeholder values
        escape_html: HTML-escape ``{{name}}`` values for this render only

    Raises:
        TemplateRenderingError: the template could not be parsed or rendered
    """
    escape = (lambda value: html.escape(value, quote=True)) if escape_html else _no_escape
    renderer = pystache.Renderer(escape=escape, missing_tags='ignore')
    try:
        return renderer.render(template, data)
    except (ParsingError, TypeError, ValueError) as e:
        raise TemplateRenderingError(f"Failed to render template: {e}") from e


def load_template(name: str, template_dir: Optional[Union[str, Path]] = None) -> str:
    """
    Load ``<name>.mustache`` from ``template_dir`` or the packaged templates.

    Raises:
        TemplateRenderingError: the template file cannot be read
    """
    directory = Path(template_dir) if template_dir else TEMPLATE_DIR
    path = directory / f"{name}{TEMPLATE_SUFFIX}"
    try:
        template = path.read_text(encoding='utf-8')
    except OSError as e:
        raise TemplateRenderingError(f"Cannot load template {path}: {e}", {"path": str(path)}) from e

    logger.debug(f"Loaded template {path}")
    return template
