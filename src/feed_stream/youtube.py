"""youtube.py — история просмотров YouTube.

Первая страница — полный HTML (/feed/history), дальше — JSON-конверты,
путь к которым лежит в кнопке "load more" (token-курсор).
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urljoin

from .cursor import Cursor, TokenCursor
from .extractors import extract_videos
from .http_engine import BROWSER_USER_AGENT
from .page_decode import Page
from .records import Record
from .sources import PageRequest, Source


YOUTUBE_BASE_URL = "https://www.youtube.com"
HISTORY_PATH = "/feed/history"


class WatchHistory(Source):
    """The signed-in user's video viewing history, newest first."""

    name = "youtube_history"
    pagination = "token"

    def __init__(self, *, base_url: str = YOUTUBE_BASE_URL, user_agent: str = BROWSER_USER_AGENT) -> None:
        self.base_url = base_url.rstrip("/")
        # без браузерного UA YouTube отдаёт другую разметку
        self.headers = {"User-Agent": user_agent}

    def request_for(self, cursor: Optional[Cursor]) -> PageRequest:
        if cursor is None:
            return PageRequest(url=self.base_url + HISTORY_PATH, kind="document", headers=dict(self.headers))
        if not isinstance(cursor, TokenCursor):
            raise TypeError(f"{self.name} expects a TokenCursor, got {cursor!r}")
        return PageRequest(url=urljoin(self.base_url + "/", cursor.href), kind="envelope", headers=dict(self.headers))

    def extract(self, page: Page) -> list[Record]:
        return list(extract_videos(page.content))
