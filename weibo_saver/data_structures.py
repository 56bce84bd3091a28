"""
Data Structures for Weibo Saver

Pydantic models and small dataclasses for everything that flows through the
pipeline: inbound mail, extracted posts and media acquisition outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Provenance(str, Enum):
    """Whether a post came from a real extraction or was synthesized after a failure."""
    STRUCTURED = "structured"
    FALLBACK = "fallback"


class PostSource(str, Enum):
    """Source family a mail points at."""
    WEIBO = "weibo"
    REDNOTE = "rednote"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class Post(BaseModel):
    """Normalized content record produced once per pipeline run."""
    model_config = ConfigDict(frozen=True)

    source_url: str = Field(..., description="Resolved canonical URL of the post")
    site: str = Field(default="weibo.com", description="Site the post was saved from")
    author: str = Field(..., description="Poster, or a sentinel for fallback records")
    origin_author: str = Field(default="", description="Original poster when this is a repost")
    title: str = Field(default="", description="Post title when the source has one")
    text: str = Field(default="", description="Body content as Markdown")
    origin_text: str = Field(default="", description="Quoted or original content")
    images: Tuple[str, ...] = Field(default_factory=tuple, description="Image URLs in discovery order")
    videos: Tuple[str, ...] = Field(default_factory=tuple, description="Video URLs in discovery order")
    created_at: str = Field(..., description="YYYY-MM-DD HH:MM:SS or YYYY-MM-DD")
    provenance: Provenance = Field(default=Provenance.STRUCTURED)

    @field_validator('images', 'videos', mode='before')
    @classmethod
    def dedupe_urls(cls, v):
        if v is None:
            return ()
        seen = []
        for url in v:
            if url and url not in seen:
                seen.append(url)
        return tuple(seen)

    @property
    def is_fallback(self) -> bool:
        return self.provenance == Provenance.FALLBACK

    @property
    def is_repost(self) -> bool:
        return bool(self.origin_author or self.origin_text)


@dataclass(frozen=True)
class MailMessage:
    """The parts of an inbound mail the pipeline consumes."""
    sender_address: str
    subject: str
    raw_html_body: str
    received_at: Optional[datetime] = None


@dataclass
class FetchedPage:
    """A fetched (and possibly script-executed) source page."""
    url: str
    html: str
    final_url: Optional[str] = None
    status_code: int = 200
    render_data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class MediaSuccess:
    url: str
    filename: str


@dataclass(frozen=True)
class MediaFailure:
    url: str
    reason: str


MediaOutcome = Union[MediaSuccess, MediaFailure]


@dataclass
class MediaAcquisitionResult:
    """Settled outcomes of one media batch."""
    successes: List[MediaSuccess] = field(default_factory=list)
    failures: List[MediaFailure] = field(default_factory=list)

    @property
    def filenames(self) -> List[str]:
        return [success.filename for success in self.successes]

    @property
    def failed_urls(self) -> List[str]:
        return [failure.url for failure in self.failures]

    def add(self, outcome: MediaOutcome) -> None:
        if isinstance(outcome, MediaSuccess):
            self.successes.append(outcome)
        else:
            self.failures.append(outcome)
