import pytest

from feed_stream.cursor import OffsetCursor, TokenCursor
from feed_stream.youtube import WatchHistory


def test_first_page_is_full_document():
    req = WatchHistory().request_for(None)
    assert req.url == "https://www.youtube.com/feed/history"
    assert req.kind == "document"
    assert req.expect == "html"
    assert "Mozilla" in req.headers["User-Agent"]


def test_next_page_follows_relative_href():
    src = WatchHistory(base_url="https://m.example.test/")
    req = src.request_for(TokenCursor("/browse_ajax?action_continuation=1&continuation=abc"))
    assert req.url == "https://m.example.test/browse_ajax?action_continuation=1&continuation=abc"
    assert req.kind == "envelope"
    assert req.expect == "json"


def test_offset_cursor_rejected():
    with pytest.raises(TypeError):
        WatchHistory().request_for(OffsetCursor(consumed=1, total=2))
