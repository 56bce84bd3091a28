"""
Post Pipeline Orchestrator

Runs one share mail end to end, strictly in sequence:

    locate URL -> fetch page -> extract (or synthesize a fallback)
    -> acquire media -> render Markdown -> save

Every located post produces exactly one saved record. A mail without a post URL
raises NoContentURLError to the caller; page and extraction failures never do.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .config import SaverConfig, get_config
from .data_structures import MailMessage, MediaKind, Post, PostSource
from .embedded_extractor import EmbeddedDataExtractor
from .errors import ExtractionSchemaError, NoContentURLError, PageFetchError, handle_saver_error
from .fallback import synthesize_fallback
from .http_service import HTTPService
from .mail import classify_mail
from .media_downloader import MediaDownloader
from .page_renderer import PageRenderer, create_page_renderer
from .selector_extractor import REDNOTE_SITE, HeuristicSelectorExtractor
from .storage import StorageManager
from .template_renderer import build_template_data, load_template, render_markdown
from .text_processor import generate_post_title, generate_rednote_title, locate_rednote_url, locate_weibo_url

logger = logging.getLogger(__name__)

REDNOTE_FALLBACK_TITLE = 'Failed to Fetch Content'


@dataclass
class PipelineResult:
    """Outcome of one processed post."""
    post: Post
    image_filenames: List[str] = field(default_factory=list)
    video_filenames: List[str] = field(default_factory=list)
    markdown_path: Optional[Path] = None

    @property
    def is_fallback(self) -> bool:
        return self.post.is_fallback


class PostPipeline:
    """
    Orchestrates locating, extracting and saving shared posts.

    Collaborators can be injected; anything left out is built from the config
    when the pipeline is entered as an async context manager.
    """

    def __init__(
        self,
        config: Optional[SaverConfig] = None,
        http_service: Optional[HTTPService] = None,
        weibo_renderer: Optional[PageRenderer] = None,
        storage: Optional[StorageManager] = None,
        media_downloader: Optional[MediaDownloader] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or get_config()
        self.clock = clock
        self.http_service = http_service or HTTPService(self.config)
        self.weibo_renderer = weibo_renderer or create_page_renderer(self.config, self.http_service)
        self.storage = storage or StorageManager(self.config.storage_base_path, clock=clock)
        self.media_downloader = media_downloader

        self.embedded_extractor = EmbeddedDataExtractor(self.config)
        self.selector_extractor = HeuristicSelectorExtractor(self.config, clock=clock)

    async def __aenter__(self):
        await self._ensure_media_downloader()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_media_downloader(self) -> MediaDownloader:
        if self.media_downloader is None:
            client = await self.http_service.get_client()
            self.media_downloader = MediaDownloader(client, self.config, clock=self.clock)
        return self.media_downloader

    async def close(self):
        await self.weibo_renderer.close()
        await self.http_service.close()
        logger.info("Post pipeline closed")

    async def process_mail(self, message: MailMessage) -> Optional[PipelineResult]:
        """
        Route a mail to the matching pipeline.

        Returns:
            PipelineResult, or None for mail that belongs to neither source

        Raises:
            NoContentURLError: the mail matched a source but carried no post URL
        """
        source = classify_mail(message, self.config)
        if source is None:
            return None

        logger.info(f"Processing {source.value} mail from {message.sender_address}: {message.subject!r}")
        if source == PostSource.REDNOTE:
            return await self.process_rednote(message.raw_html_body)
        return await self.process_weibo(message.raw_html_body)

    async def process_weibo(self, raw_body: str) -> PipelineResult:
        """Save a Weibo post shared in ``raw_body``."""
        url = locate_weibo_url(
            raw_body,
            marker_phrase=self.config.weibo_marker_phrase,
            web_prefix=self.config.weibo_web_prefix,
            mobile_prefix=self.config.weibo_mobile_prefix
        )
        if url is None:
            raise NoContentURLError("No Weibo post URL found in mail body", {"source": PostSource.WEIBO.value})

        logger.info(f"Processing Weibo post {url}")
        try:
            page = await self.weibo_renderer.render(url)
            post = self.embedded_extractor.extract(page)
        except (PageFetchError, ExtractionSchemaError) as e:
            handle_saver_error(e)
            post = synthesize_fallback(e, raw_body, source_url=url, clock=self.clock)

        title = generate_post_title(post.text, post.author)
        return await self.process_post(post, title, template_name='weibo')

    async def process_rednote(self, raw_body: str) -> PipelineResult:
        """Save a RedNote post shared in ``raw_body``."""
        url = locate_rednote_url(raw_body)
        if url is None:
            raise NoContentURLError("No RedNote post URL found in mail body", {"source": PostSource.REDNOTE.value})

        logger.info(f"Processing RedNote post {url}")
        try:
            page = await self.http_service.fetch_page(url)
            post = self.selector_extractor.extract(page)
        except PageFetchError as e:
            handle_saver_error(e)
            post = synthesize_fallback(e, raw_body, source_url=url, site=REDNOTE_SITE,
                                       title=REDNOTE_FALLBACK_TITLE, clock=self.clock)

        title = generate_rednote_title(post.title, post.text, post.author, post.created_at)
        return await self.process_post(post, title, template_name='rednote')

    async def process_post(self, post: Post, title: str, template_name: str = 'weibo') -> PipelineResult:
        """
        Acquire media, render and save an already-built Post.

        Args:
            post: Extracted or fallback post
            title: Filename stem for the record and its media
            template_name: Packaged (or configured) template to render with

        Returns:
            PipelineResult with the saved Markdown path
        """
        paths = self.storage.create_directory_structure()
        downloader = await self._ensure_media_downloader()

        image_filenames: List[str] = []
        if post.images:
            image_filenames = await downloader.acquire(post.images, paths.images, title, MediaKind.IMAGE)

        video_filenames: List[str] = []
        if post.videos:
            video_filenames = await downloader.acquire(post.videos, paths.videos, title, MediaKind.VIDEO)

        template = load_template(template_name, self.config.template_dir)
        data = build_template_data(post, image_filenames, video_filenames, saved_at=self.clock())
        content = render_markdown(template, data, escape_html=self.config.escape_html)

        filename = self.storage.generate_unique_filename(paths.date, title)
        markdown_path = await self.storage.save_text(paths.date / filename, content)

        logger.info(f"Saved {'fallback' if post.is_fallback else 'post'} record {markdown_path} "
                    f"({len(image_filenames)} images, {len(video_filenames)} videos)")

        return PipelineResult(
            post=post,
            image_filenames=image_filenames,
            video_filenames=video_filenames,
            markdown_path=markdown_path
        )
