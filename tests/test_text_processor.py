"""
Test suite for text processing

Covers post URL location in raw mail bodies, HTML to Markdown conversion,
timestamp normalization and filename stems.
"""

import pytest

from weibo_saver.text_processor import (
    create_filename_from_title,
    generate_post_title,
    generate_rednote_title,
    html_to_markdown,
    locate_rednote_url,
    locate_weibo_url,
    parse_weibo_timestamp,
)


class TestLocateWeiboUrl:
    """Test canonical URL location in Weibo share mails."""

    def test_rebuilds_mobile_url(self):
        """Test the share link id is rebuilt under the mobile prefix."""
        body = '更多精彩评论:...<a href="https://weibo.com/1/ABCdef">link</a>'
        assert locate_weibo_url(body) == "https://m.weibo.cn/status/ABCdef"

    def test_escaped_quotes(self):
        """Test an anchor whose quotes are backslash-escaped in the body."""
        body = '更多精彩评论:...<a href=\\"https://weibo.com/1/ABCdef\\">link</a>'
        assert locate_weibo_url(body) == "https://m.weibo.cn/status/ABCdef"

    def test_last_marker_wins(self):
        """Test the link after the last marker is used, not the first."""
        body = (
            '更多精彩评论:<a href="https://weibo.com/1/FIRST1">a</a>'
            '<p>quoted text</p>'
            '更多精彩评论:<a href="https://weibo.com/2/LAST2">b</a>'
        )
        assert locate_weibo_url(body) == "https://m.weibo.cn/status/LAST2"

    def test_last_marker_without_anchor(self):
        """Test a valid link before the last marker is not used."""
        body = '更多精彩评论:<a href="https://weibo.com/1/FIRST1">a</a> 更多精彩评论: nothing here'
        assert locate_weibo_url(body) is None

    def test_missing_marker(self):
        """Test bodies without the marker phrase yield no URL."""
        assert locate_weibo_url('<a href="https://weibo.com/1/ABCdef">link</a>') is None
        assert locate_weibo_url('') is None

    def test_wrong_prefix(self):
        """Test anchors outside the web domain are rejected."""
        body = '更多精彩评论:<a href="https://example.com/1/ABCdef">link</a>'
        assert locate_weibo_url(body) is None

    def test_unterminated_quote(self):
        """Test a missing quote terminator degrades to no URL."""
        body = '更多精彩评论:<a href="https://weibo.com/1/ABCdef'
        assert locate_weibo_url(body) is None

    def test_truncated_id(self):
        """Test a link with an empty trailing segment yields no URL."""
        body = '更多精彩评论:<a href="https://weibo.com/1/">link</a>'
        assert locate_weibo_url(body) is None

    def test_custom_prefixes(self):
        """Test marker and prefixes can be overridden."""
        body = 'MORE:<a href="https://w.example/9/XYZ">x</a>'
        url = locate_weibo_url(body, marker_phrase='MORE:', web_prefix='https://w.example/',
                               mobile_prefix='https://m.example/s/')
        assert url == 'https://m.example/s/XYZ'


class TestLocateRednoteUrl:
    """Test RedNote share URL location."""

    def test_anchor_href(self):
        """Test the share link is read from an anchor."""
        body = '<p>笔记</p><a href="https://xhslink.com/a/AbC123">打开</a>'
        assert locate_rednote_url(body) == 'https://xhslink.com/a/AbC123'

    def test_bare_text(self):
        """Test a bare URL in text is found and trailing punctuation dropped."""
        body = '快来看 http://xhslink.com/a/xyz9，复制本条信息'
        assert locate_rednote_url(body) == 'http://xhslink.com/a/xyz9'

    def test_explore_url(self):
        """Test full xiaohongshu.com URLs are accepted."""
        body = 'see https://www.xiaohongshu.com/explore/65f0a1b2c3d4e5f6a7b8c9d0.'
        assert locate_rednote_url(body) == 'https://www.xiaohongshu.com/explore/65f0a1b2c3d4e5f6a7b8c9d0'

    def test_not_found(self):
        """Test bodies without a RedNote URL yield None."""
        assert locate_rednote_url('<a href="https://weibo.com/1/ABC">x</a>') is None
        assert locate_rednote_url('') is None


class TestMarkdownConversion:
    """Test HTML to Markdown conversion of post bodies."""

    def test_paragraph(self):
        """Test a paragraph becomes plain text."""
        assert html_to_markdown('<p>full text</p>') == 'full text'

    def test_emoticons_become_alt_text(self):
        """Test emoticon images are replaced with their alt text."""
        html = '哈哈<span class="url-icon"><img alt="[笑cry]" src="https://face.t.sinajs.cn/x.png"></span>'
        markdown = html_to_markdown(html)
        assert '笑cry' in markdown
        assert 'sinajs' not in markdown

    def test_links_kept(self):
        """Test anchors become Markdown links."""
        markdown = html_to_markdown('<a href="https://example.com/">site</a>')
        assert markdown == '[site](https://example.com/)'

    def test_empty(self):
        """Test empty input converts to an empty string."""
        assert html_to_markdown('') == ''
        assert html_to_markdown(None) == ''


class TestTimestamps:
    """Test embedded timestamp normalization."""

    def test_weibo_format(self):
        """Test the native format keeps the post's own wall-clock time."""
        assert parse_weibo_timestamp('Mon May 06 07:08:09 +0800 2024') == '2024-05-06 07:08:09'

    def test_generic_format(self):
        """Test other formats go through generic parsing."""
        assert parse_weibo_timestamp('2024-05-06T07:08:09+08:00') == '2024-05-06 07:08:09'

    def test_unparsable(self):
        """Test unparsable values raise ValueError."""
        with pytest.raises(ValueError):
            parse_weibo_timestamp('not a date')


class TestTitles:
    """Test filename stems."""

    def test_filename_filtering(self):
        """Test invalid characters, hashes and whitespace are removed."""
        assert create_filename_from_title('a/b:c #tag d') == 'abctagd'

    def test_cut_at_link(self):
        """Test everything from an inline link onward is dropped."""
        assert create_filename_from_title('look [here](https://x.y/)') == 'look[here]'

    def test_post_title(self):
        """Test the stem is user plus the start of the text."""
        assert generate_post_title('hello world #tag', 'alice') == 'alice-helloworldtag'
        assert generate_post_title('x' * 60, 'bob') == 'bob-' + 'x' * 40

    def test_rednote_title(self):
        """Test the RedNote stem is title, author and date."""
        assert generate_rednote_title('a/b title', '', 'bob', '2024-05-06 10:00:00') == 'a_b title-bob-2024-05-06'

    def test_rednote_title_defaults(self):
        """Test missing title falls back to text, then a fixed name."""
        assert generate_rednote_title('', 'some text', '', '2024-05-06') == 'some text-Unknown-2024-05-06'
        assert generate_rednote_title('', '', 'eve', '2024-05-06') == 'RedNote Post-eve-2024-05-06'

    def test_rednote_title_author_filtered(self):
        """Test path separators in the author never reach the filename."""
        assert generate_rednote_title('', 'hi', 'AC/DC', '2024-05-06') == 'hi-AC_DC-2024-05-06'
