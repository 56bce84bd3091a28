import os
from datetime import datetime

import httpx
import pytest

from weibo_saver.config import SaverConfig

# Set test environment variables
os.environ.update({
    "ENVIRONMENT": "testing",
    "LOG_LEVEL": "debug",
})

FIXED_NOW = datetime(2024, 5, 6, 7, 8, 9)

WEIBO_SHARE_BODY = (
    '<html><body><p>分享一条微博</p>'
    '<p>更多精彩评论: <a href="https://weibo.com/1234567/NxYz12AB">https://weibo.com/1234567/NxYz12AB</a></p>'
    '</body></html>'
)

REDNOTE_SHARE_BODY = (
    '<html><body><p>看看这篇笔记</p>'
    '<a href="https://xhslink.com/a/AbC123">https://xhslink.com/a/AbC123</a>'
    '</body></html>'
)


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_status(**overrides):
    """Minimal embedded status object."""
    status = {
        'created_at': 'Mon May 06 07:08:09 +0800 2024',
        'text': '<p>hello world</p>',
        'user': {'screen_name': 'alice'},
        'pics': [],
    }
    status.update(overrides)
    return status


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def config(tmp_path):
    """Config isolated from any .env file, storing under tmp_path."""
    return SaverConfig(
        _env_file=None,
        storage_base_path=str(tmp_path / 'saved_data'),
        mail_allowed_from='me@example.com',
        page_renderer='static',
    )


@pytest.fixture
def mock_client_factory():
    """Build AsyncClients backed by an httpx.MockTransport handler."""
    clients = []

    def factory(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        clients.append(client)
        return client

    return factory
