"""play_books.py — библиотека Google Play Books (offset API).

Запросы идут в clients6.google.com/books/v1/volumes/mybooks:
  maxResults, source, key, acquireMethod (повторяется по фильтрам), startIndex.
Ответ: {"items": [...], "totalItems": N}. Offset-курсор: startIndex = сколько
уже получили; конец, когда получили >= totalItems.

Ключ запроса и origin token достаются со страницы play.google.com/books
(fetch_auth_info) — это шаг подготовки, а не часть цикла пагинации.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from .cursor import Cursor, OffsetCursor
from .errors import AuthInfoError
from .extractors import count_book_items, extract_books
from .http_engine import BROWSER_USER_AGENT, HttpEngine
from .page_decode import Page
from .records import ALL_BOOK_SOURCES, BookSource, Record
from .resp_read import decode_text
from .sources import PageRequest, Source


logger = logging.getLogger(__name__)

PLAY_BOOKS_HOME_URL = "https://play.google.com/books"
MY_BOOKS_URL = "https://clients6.google.com/books/v1/volumes/mybooks"
ORIGIN = "https://play.google.com"
CLIENT_SOURCE = "ge-books-fe"
DEFAULT_PAGE_SIZE = 40

_REQUEST_KEY_RE = re.compile(r'var js_flags=\["(.*?)"')
_ORIGIN_TOKEN_RE = re.compile(r'remove",""\]\],"(.*?)"')


@dataclass(frozen=True)
class PlayBooksAuthInfo:
    """Extra values every Play Books web API request needs."""
    request_key: str
    origin_token: str


def parse_auth_info(html: str) -> PlayBooksAuthInfo:
    m_key = _REQUEST_KEY_RE.search(html or "")
    if not m_key:
        raise AuthInfoError("failed to extract key from homepage")
    m_tok = _ORIGIN_TOKEN_RE.search(html or "")
    if not m_tok:
        raise AuthInfoError("failed to extract origin token from homepage")
    return PlayBooksAuthInfo(request_key=m_key.group(1), origin_token=m_tok.group(1))


def fetch_auth_info(engine: HttpEngine, *, user_agent: str = BROWSER_USER_AGENT) -> PlayBooksAuthInfo:
    # без браузерного UA страница приходит без нужного JS
    resp = engine.fetch(PLAY_BOOKS_HOME_URL, headers={"User-Agent": user_agent}, expect="html")
    text = decode_text(resp.content or b"", resp.headers.get("Content-Type", "")).text
    info = parse_auth_info(text)
    logger.debug("play books auth info extracted (key len=%d)", len(info.request_key))
    return info


class MyBooks(Source):
    """The user's Play Books library, filtered by acquisition source."""

    name = "play_books"
    pagination = "offset"

    def __init__(
        self,
        auth_info: PlayBooksAuthInfo,
        sources: Optional[Iterable[BookSource]] = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        url: str = MY_BOOKS_URL,
    ) -> None:
        self.auth_info = auth_info
        self.sources: tuple[BookSource, ...] = tuple(BookSource(s) for s in (sources if sources is not None else ALL_BOOK_SOURCES))
        self.page_size = int(page_size)
        self.url = url

    def base_params(self) -> list[tuple[str, Any]]:
        params: list[tuple[str, Any]] = [
            ("maxResults", self.page_size),
            ("source", CLIENT_SOURCE),
            ("key", self.auth_info.request_key),
        ]
        params.extend(("acquireMethod", s.value) for s in self.sources)
        return params

    def request_for(self, cursor: Optional[Cursor]) -> PageRequest:
        if cursor is not None and not isinstance(cursor, OffsetCursor):
            raise TypeError(f"{self.name} expects an OffsetCursor, got {cursor!r}")
        start = cursor.consumed if cursor is not None else 0
        return PageRequest(
            url=self.url,
            kind="json",
            params=tuple(self.base_params() + [("startIndex", start)]),
            headers={
                "OriginToken": self.auth_info.origin_token,
                "X-Origin": ORIGIN,
            },
        )

    def extract(self, page: Page) -> list[Record]:
        return list(extract_books(page.data))

    def page_item_count(self, page: Page, records: Sequence[Record]) -> int:
        # startIndex считает сырой items вместе с нераспознанными записями
        return count_book_items(page.data)
