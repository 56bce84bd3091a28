"""
Weibo Saver

Saves Weibo and RedNote posts shared by mail as Markdown records with their
images and videos. Every located post yields exactly one record, a degraded
fallback when the page cannot be fetched or parsed.

Main Components:
- PostPipeline: Orchestrates locate -> fetch -> extract -> media -> save
- EmbeddedDataExtractor: Weibo posts from the page's injected data object
- HeuristicSelectorExtractor: RedNote posts from ordered selector cascades
- MediaDownloader: Concurrent, failure-isolated media batches
- SaverConfig: Environment-driven configuration
"""

from .config import SaverConfig, get_config, reload_config
from .data_structures import (
    MailMessage, MediaAcquisitionResult, MediaFailure, MediaKind, MediaSuccess,
    Post, PostSource, Provenance
)
from .embedded_extractor import EmbeddedDataExtractor
from .errors import (
    ConfigurationError, ExtractionSchemaError, MediaDownloadError, NoContentURLError,
    PageFetchError, SaverError, StorageError, TemplateRenderingError
)
from .fallback import synthesize_fallback
from .media_downloader import MediaDownloader
from .pipeline import PipelineResult, PostPipeline
from .selector_extractor import FieldKind, HeuristicSelectorExtractor, SelectorCandidate, first_match
from .text_processor import locate_rednote_url, locate_weibo_url

__version__ = "1.0.0"

__all__ = [
    # Pipeline
    "PostPipeline",
    "PipelineResult",

    # Configuration
    "SaverConfig",
    "get_config",
    "reload_config",

    # Data model
    "Post",
    "Provenance",
    "PostSource",
    "MailMessage",
    "MediaKind",
    "MediaSuccess",
    "MediaFailure",
    "MediaAcquisitionResult",

    # Components
    "locate_weibo_url",
    "locate_rednote_url",
    "EmbeddedDataExtractor",
    "HeuristicSelectorExtractor",
    "SelectorCandidate",
    "FieldKind",
    "first_match",
    "synthesize_fallback",
    "MediaDownloader",

    # Errors
    "SaverError",
    "NoContentURLError",
    "PageFetchError",
    "ExtractionSchemaError",
    "MediaDownloadError",
    "ConfigurationError",
    "StorageError",
    "TemplateRenderingError",
]
