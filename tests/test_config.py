"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from weibo_saver import config as config_module
from weibo_saver.config import SaverConfig, get_config, reload_config


class TestSaverConfig:
    """Test settings defaults, validation and environment overrides."""

    def test_defaults(self):
        """Test the documented defaults."""
        config = SaverConfig(_env_file=None)

        assert config.environment == "testing"
        assert config.log_level == "debug"
        assert config.weibo_marker_phrase == "更多精彩评论:"
        assert config.weibo_mobile_prefix == "https://m.weibo.cn/status/"
        assert config.imap_port == 993
        assert config.image_default_extension == ".jpg"
        assert config.video_extension == ".mp4"
        assert config.escape_html is False

    def test_env_override(self, monkeypatch):
        """Test environment variables override defaults case-insensitively."""
        monkeypatch.setenv("IMAP_POLL_INTERVAL", "5")
        monkeypatch.setenv("page_renderer", "STATIC")

        config = SaverConfig(_env_file=None)
        assert config.imap_poll_interval == 5.0
        assert config.page_renderer == "static"

    def test_env_file(self, tmp_path, monkeypatch):
        """Test settings are read from a .env file."""
        monkeypatch.delenv("STORAGE_BASE_PATH", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("STORAGE_BASE_PATH=/data/posts\n", encoding="utf-8")

        assert SaverConfig(_env_file=str(env_file)).storage_base_path == "/data/posts"

    def test_invalid_log_level(self):
        """Test an unknown log level is rejected."""
        with pytest.raises(ValidationError):
            SaverConfig(_env_file=None, log_level="verbose")

    def test_invalid_page_renderer(self):
        """Test an unknown renderer is rejected."""
        with pytest.raises(ValidationError):
            SaverConfig(_env_file=None, page_renderer="selenium")

    def test_extension_dot(self):
        """Test extensions are normalized to start with a dot."""
        config = SaverConfig(_env_file=None, image_default_extension="png", video_extension=".mov")
        assert config.image_default_extension == ".png"
        assert config.video_extension == ".mov"

    def test_allowed_senders(self):
        """Test the allowlist is split, trimmed and lower-cased."""
        config = SaverConfig(_env_file=None, mail_allowed_from=" Me@Example.com, ,other@example.com ")
        assert config.allowed_senders == ["me@example.com", "other@example.com"]

    def test_allowed_senders_empty(self):
        """Test an empty allowlist parses to no entries."""
        assert SaverConfig(_env_file=None, mail_allowed_from="").allowed_senders == []

    def test_imap_configured(self, monkeypatch):
        """Test IMAP counts as configured only with user, password and host."""
        for name in ("IMAP_USER", "IMAP_PASSWORD", "IMAP_HOST"):
            monkeypatch.delenv(name, raising=False)

        assert not SaverConfig(_env_file=None, imap_user="u", imap_password="p").imap_configured
        assert SaverConfig(_env_file=None, imap_user="u", imap_password="p", imap_host="h").imap_configured


class TestConfigSingleton:
    """Test the process-wide config instance."""

    @pytest.fixture(autouse=True)
    def reset_singleton(self, monkeypatch):
        monkeypatch.setattr(config_module, "_config_instance", None)

    def test_get_config_cached(self):
        """Test repeated calls return the same instance."""
        assert get_config() is get_config()

    def test_reload_config(self, monkeypatch):
        """Test reloading picks up environment changes."""
        first = get_config()
        monkeypatch.setenv("ESCAPE_HTML", "true")

        reloaded = reload_config()
        assert reloaded is not first
        assert reloaded.escape_html is True
