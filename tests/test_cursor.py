import pytest

from feed_stream.cursor import (
    OffsetCursor,
    TokenCursor,
    has_advanced,
    is_exhausted,
    offset_cursor_from,
    token_cursor_from,
)
from feed_stream.html_tree import HtmlDocument


def test_token_cursor_from_load_more_button():
    more = HtmlDocument(
        '<button class="yt-uix-button yt-uix-load-more" '
        'data-uix-load-more-href="/browse_ajax?action_continuation=1&amp;continuation=XYZ">Load more</button>'
    )
    assert token_cursor_from(more) == TokenCursor("/browse_ajax?action_continuation=1&continuation=XYZ")


@pytest.mark.parametrize(
    "html",
    [
        "<div>nothing here</div>",
        '<button class="yt-uix-load-more"></button>',
        '<button class="yt-uix-load-more" data-uix-load-more-href="  "></button>',
    ],
)
def test_token_cursor_absent(html):
    assert token_cursor_from(HtmlDocument(html)) is None


def test_token_cursor_no_document():
    assert token_cursor_from(None) is None


def test_offset_cursor_accumulates_and_rereads_total():
    c1 = offset_cursor_from(None, 40, {"totalItems": 90})
    assert c1 == OffsetCursor(consumed=40, total=90)
    c2 = offset_cursor_from(c1, 40, {"totalItems": 85})
    assert c2 == OffsetCursor(consumed=80, total=85)


@pytest.mark.parametrize("data", [None, {}, {"totalItems": "lots"}, {"totalItems": True}])
def test_offset_cursor_bad_total_is_zero(data):
    assert offset_cursor_from(None, 3, data) == OffsetCursor(consumed=3, total=0)


def test_is_exhausted():
    assert is_exhausted(None)
    assert not is_exhausted(TokenCursor("/next"))
    assert is_exhausted(TokenCursor(""))
    assert not is_exhausted(OffsetCursor(consumed=40, total=41))
    assert is_exhausted(OffsetCursor(consumed=41, total=41))
    assert is_exhausted(OffsetCursor(consumed=50, total=41))


def test_has_advanced_token():
    assert has_advanced(None, TokenCursor("/a"))
    assert has_advanced(TokenCursor("/a"), TokenCursor("/b"))
    assert not has_advanced(TokenCursor("/a"), TokenCursor("/a"))
    assert not has_advanced(TokenCursor("/a"), None)


def test_has_advanced_offset():
    assert has_advanced(None, OffsetCursor(consumed=5, total=10))
    assert not has_advanced(None, OffsetCursor(consumed=0, total=10))
    assert has_advanced(OffsetCursor(5, 10), OffsetCursor(7, 10))
    assert not has_advanced(OffsetCursor(5, 10), OffsetCursor(5, 12))


def test_unknown_cursor_type():
    with pytest.raises(TypeError):
        is_exhausted("/next")
