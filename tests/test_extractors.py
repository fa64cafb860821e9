from feed_stream.extractors import count_book_items, extract_books, extract_videos, parse_book
from feed_stream.html_tree import HtmlDocument
from feed_stream.records import BookInfo, VideoInfo


def _video(vid="abc", *, title="Title", author="Chan", desc="About", duration="4:05",
           thumb='<img src="https://i.ytimg.com/s.jpg" data-thumb="https://i.ytimg.com/hq.jpg">'):
    parts = [f'<div class="yt-lockup yt-lockup-video" data-context-item-id="{vid}">']
    if thumb is not None:
        parts.append(f'<span class="yt-thumb-simple">{thumb}</span>')
    if duration is not None:
        parts.append(f'<span class="video-time">{duration}</span>')
    if title is not None:
        parts.append(f'<h3 class="yt-lockup-title"><a href="/watch?v={vid}">{title}</a></h3>')
    if author is not None:
        parts.append(f'<div class="yt-lockup-byline"><a href="/user/x">{author}</a></div>')
    if desc is not None:
        parts.append(f'<div class="yt-lockup-description">{desc}</div>')
    parts.append("</div>")
    return "".join(parts)


def test_full_video_record():
    doc = HtmlDocument(_video())
    assert extract_videos(doc) == [
        VideoInfo(
            id="abc",
            title="Title",
            author="Chan",
            description="About",
            thumbnail_url="https://i.ytimg.com/hq.jpg",
            duration_seconds=245,
        )
    ]


def test_videos_in_document_order():
    doc = HtmlDocument(_video("v1") + _video("v2") + _video("v3"))
    assert [v.id for v in extract_videos(doc)] == ["v1", "v2", "v3"]


def test_unparsable_duration_keeps_record():
    doc = HtmlDocument(_video(duration="--:--") + _video("v2", duration="abc"))
    videos = extract_videos(doc)
    assert len(videos) == 2
    assert [v.duration_seconds for v in videos] == [0, 0]
    assert videos[0].title == "Title"


def test_long_duration():
    doc = HtmlDocument(_video(duration="1:02:03"))
    assert extract_videos(doc)[0].duration_seconds == 3723


def test_missing_fields_are_zero_values():
    doc = HtmlDocument(_video(title=None, author=None, desc=None, duration=None, thumb=None))
    assert extract_videos(doc) == [VideoInfo(id="abc")]


def test_missing_id_marker_still_emitted():
    doc = HtmlDocument('<div class="yt-lockup-video"><h3 class="yt-lockup-title"><a>T</a></h3></div>')
    (video,) = extract_videos(doc)
    assert video.id == ""
    assert video.title == "T"


def test_thumbnail_falls_back_to_src():
    doc = HtmlDocument(_video(thumb='<img src="https://i.ytimg.com/s.jpg">'))
    assert extract_videos(doc)[0].thumbnail_url == "https://i.ytimg.com/s.jpg"


def test_no_document():
    assert extract_videos(None) == []


def _volume(**over):
    vol = {
        "id": "vol1",
        "volumeInfo": {
            "title": "Dune",
            "authors": ["Frank Herbert"],
            "publisher": "Ace",
            "description": "Spice.",
            "pageCount": 612,
            "imageLinks": {"thumbnail": "http://t/1", "smallThumbnail": "http://t/s1"},
        },
        "userInfo": {"updated": "2017-01-01T00:00:00.000Z", "isUploaded": False},
    }
    vol.update(over)
    return vol


def test_full_book_record():
    assert parse_book(_volume()) == BookInfo(
        id="vol1",
        title="Dune",
        authors=("Frank Herbert",),
        publisher="Ace",
        description="Spice.",
        page_count=612,
        thumbnail_url="http://t/1",
        small_thumbnail_url="http://t/s1",
        update_timestamp=1483228800,
        uploaded=False,
    )


def test_book_bad_timestamp_is_zero():
    book = parse_book(_volume(userInfo={"updated": "last week", "isUploaded": True}))
    assert book.update_timestamp == 0
    assert book.uploaded is True
    assert book.title == "Dune"


def test_book_missing_sections():
    assert parse_book({"id": "x"}) == BookInfo(id="x")


def test_extract_books_skips_non_objects():
    data = {"items": [_volume(id="a"), "junk", None, _volume(id="b")], "totalItems": 4}
    assert [b.id for b in extract_books(data)] == ["a", "b"]


def test_extract_books_without_items():
    assert extract_books({"totalItems": 0}) == []
    assert extract_books(None) == []


def test_book_to_dict_lists_authors():
    d = parse_book(_volume()).to_dict()
    assert d["authors"] == ["Frank Herbert"]
    assert d["page_count"] == 612


def test_count_book_items_includes_malformed_entries():
    data = {"items": [{"id": "b1"}, None, "x", {"id": "b4"}], "totalItems": 9}
    assert count_book_items(data) == 4
    assert len(extract_books(data)) == 2
    assert count_book_items({"items": "nope"}) == 0
    assert count_book_items(None) == 0
