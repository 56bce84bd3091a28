"""
Configuration Management for Weibo Saver

Handles environment variable loading (optionally from a .env file) and provides
centralized configuration for mail polling, page fetching, extraction and storage.
"""

import logging
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Singleton pattern per process
_config_instance = None

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/15.0 Safari/605.1.15'
)


class SaverConfig(BaseSettings):
    """Configuration for the post saving pipeline."""

    # Environment
    environment: str = "development"
    log_level: str = "info"
    log_json: bool = False
    log_dir: Optional[str] = None

    # Mail Configuration
    imap_user: Optional[str] = None
    imap_password: Optional[str] = None
    imap_host: Optional[str] = None
    imap_port: int = 993
    imap_mailbox: str = "INBOX"
    imap_search_filter: str = "UNSEEN"
    imap_poll_interval: float = 60.0
    mail_allowed_from: str = ""  # Comma-separated sender allowlist, empty accepts everyone
    weibo_subject_filter: str = "微博分享"
    rednote_subject_filter: str = "小红书"

    # Weibo URL Location
    weibo_marker_phrase: str = "更多精彩评论:"
    weibo_web_prefix: str = "https://weibo.com/"
    weibo_mobile_prefix: str = "https://m.weibo.cn/status/"

    # Embedded Data Extraction
    weibo_short_link_marker: str = "查看图片"
    weibo_short_link_prefix: str = "https://weibo.cn/sinaurl?u="
    video_cdn_prefixes: List[str] = [
        "https://f.video.weibocdn.com/",
        "http://f.video.weibocdn.com/",
    ]
    unknown_user_sentinel: str = "unknown"

    # Heuristic Extraction
    image_blocklist: List[str] = ["avatar", "picasso"]

    # HTTP Configuration
    http_timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT

    # Page Rendering Configuration
    page_renderer: str = "playwright"  # "playwright" | "static"
    js_render_timeout: float = 30.0
    js_wait_time: float = 2.0
    js_headless: bool = True

    # Storage Configuration
    storage_base_path: str = "saved_data"
    template_dir: Optional[str] = None
    escape_html: bool = False
    image_default_extension: str = ".jpg"
    video_extension: str = ".mp4"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "env_prefix": "",
        "extra": "ignore",
    }

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['debug', 'info', 'warning', 'error', 'critical']
        if v.lower() not in valid_levels:
            raise ValueError(f'log_level must be one of {valid_levels}')
        return v.lower()

    @field_validator('page_renderer')
    @classmethod
    def validate_page_renderer(cls, v):
        if v.lower() not in ('playwright', 'static'):
            raise ValueError('page_renderer must be "playwright" or "static"')
        return v.lower()

    @field_validator('image_default_extension', 'video_extension')
    @classmethod
    def validate_extension(cls, v):
        if not v.startswith('.'):
            return f'.{v}'
        return v

    @property
    def allowed_senders(self) -> List[str]:
        """Sender allowlist parsed from the comma-separated setting."""
        return [addr.strip().lower() for addr in self.mail_allowed_from.split(',') if addr.strip()]

    @property
    def imap_configured(self) -> bool:
        return bool(self.imap_user and self.imap_password and self.imap_host)

    def log_configuration(self):
        """Log the effective configuration with secrets masked."""
        logger.info("=== Weibo Saver Configuration ===")
        logger.info(f"Environment: {self.environment}, log level: {self.log_level}")
        logger.info(f"IMAP: {self.imap_user or '-'}@{self.imap_host or '-'}:{self.imap_port} "
                    f"mailbox={self.imap_mailbox} password={'***' if self.imap_password else '-'}")
        logger.info(f"Allowed senders: {self.allowed_senders or 'any'}")
        logger.info(f"Page renderer: {self.page_renderer} (timeout {self.js_render_timeout}s)")
        logger.info(f"Video CDN allowlist: {self.video_cdn_prefixes}")
        logger.info(f"Storage: {self.storage_base_path}")


def get_config() -> SaverConfig:
    """Get singleton config instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = SaverConfig()
    return _config_instance


def reload_config() -> SaverConfig:
    """Reload configuration from environment."""
    global _config_instance
    _config_instance = None
    return get_config()
