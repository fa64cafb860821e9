"""
extractors.py — записи из разобранной страницы.

Каждое поле извлекается независимо: нет элемента / не разобрался текст ->
поле остаётся нулевым, запись всё равно отдаётся (частичные записи валидны).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import FieldParseError
from .field_parse import parse_duration, parse_timestamp
from .html_tree import Element, HtmlDocument
from .records import BookInfo, VideoInfo


logger = logging.getLogger(__name__)

VIDEO_ITEM_SELECTOR = ".yt-lockup-video"
VIDEO_ID_ATTR = "data-context-item-id"


def _link_text(element: Element, container_selector: str) -> str:
    container = element.select_one(container_selector)
    if container is None:
        return ""
    link = container.select_one("a")
    if link is None:
        return ""
    return link.text()


def _thumbnail(element: Element) -> str:
    container = element.select_one(".yt-thumb-simple")
    if container is None:
        return ""
    img = container.select_one("img")
    if img is None:
        return ""
    # data-thumb: lazy-load картинка, src: заглушка или eager-картинка
    return img.attr("data-thumb").strip() or img.attr("src").strip()


def _duration(element: Element) -> int:
    node = element.select_one(".video-time")
    if node is None:
        return 0
    try:
        return parse_duration(node.text())
    except FieldParseError as e:
        logger.debug("duration skipped: %s", e)
        return 0


def parse_video_info(element: Element) -> VideoInfo:
    desc = element.select_one(".yt-lockup-description")
    return VideoInfo(
        id=element.attr(VIDEO_ID_ATTR).strip(),
        title=_link_text(element, ".yt-lockup-title"),
        author=_link_text(element, ".yt-lockup-byline"),
        description=desc.text() if desc is not None else "",
        thumbnail_url=_thumbnail(element),
        duration_seconds=_duration(element),
    )


def extract_videos(doc: Optional[HtmlDocument]) -> list[VideoInfo]:
    """All history items of a page, in document order."""
    if doc is None:
        return []
    return [parse_video_info(el) for el in doc.select(VIDEO_ITEM_SELECTOR)]


def _str(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


def _int(v: Any) -> int:
    if isinstance(v, bool):
        return 0
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return 0


def parse_book(volume: dict[str, Any]) -> BookInfo:
    info = volume.get("volumeInfo")
    if not isinstance(info, dict):
        info = {}
    user = volume.get("userInfo")
    if not isinstance(user, dict):
        user = {}
    links = info.get("imageLinks")
    if not isinstance(links, dict):
        links = {}
    authors = info.get("authors")
    if not isinstance(authors, list):
        authors = []

    updated = 0
    if _str(user.get("updated")):
        try:
            updated = parse_timestamp(user["updated"])
        except FieldParseError as e:
            logger.debug("updateTime skipped: %s", e)

    return BookInfo(
        id=_str(volume.get("id")),
        title=_str(info.get("title")),
        authors=tuple(a.strip() for a in authors if isinstance(a, str) and a.strip()),
        publisher=_str(info.get("publisher")),
        description=_str(info.get("description")),
        page_count=_int(info.get("pageCount")),
        thumbnail_url=_str(links.get("thumbnail")),
        small_thumbnail_url=_str(links.get("smallThumbnail")),
        update_timestamp=updated,
        uploaded=bool(user.get("isUploaded")),
    )


def book_items(data: Optional[dict[str, Any]]) -> list[dict[str, Any]]:
    """Raw volume objects of one offset-API page (non-dict entries dropped)."""
    items = (data or {}).get("items")
    if not isinstance(items, list):
        return []
    return [it for it in items if isinstance(it, dict)]


def count_book_items(data: Optional[dict[str, Any]]) -> int:
    """Length of the raw `items` array, malformed entries included."""
    items = (data or {}).get("items")
    return len(items) if isinstance(items, list) else 0


def extract_books(data: Optional[dict[str, Any]]) -> list[BookInfo]:
    return [parse_book(v) for v in book_items(data)]
