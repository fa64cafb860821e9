"""records.py — записи, которые отдаёт поток.

Запись — плоский неизменяемый объект (frozen dataclass). Все поля кроме id
необязательны: если извлечь поле не удалось, остаётся нулевое значение
("" / 0 / пустой tuple), а сама запись всё равно отдаётся потребителю.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True)
class VideoInfo:
    """One entry of the YouTube watch history."""

    id: str = ""
    title: str = ""
    author: str = ""
    description: str = ""
    thumbnail_url: str = ""
    duration_seconds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BookInfo:
    """One volume of the Play Books library.

    update_timestamp — последний раз, когда книгу "обновляли" (по факту:
    открывали), UNIX-время в секундах; 0 если неизвестно.
    """

    id: str = ""
    title: str = ""
    authors: tuple[str, ...] = ()
    publisher: str = ""
    description: str = ""
    page_count: int = 0
    thumbnail_url: str = ""
    small_thumbnail_url: str = ""
    update_timestamp: int = 0
    uploaded: bool = False

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["authors"] = list(self.authors)
        return d


Record = Union[VideoInfo, BookInfo]


class BookSource(str, Enum):
    """How a book got into the library (`acquireMethod` filter value)."""

    PREORDERED = "PREORDERED"
    PREVIOUSLY_RENTED = "PREVIOUSLY_RENTED"
    PUBLIC_DOMAIN = "PUBLIC_DOMAIN"
    PURCHASED = "PURCHASED"
    RENTED = "RENTED"
    SAMPLE = "SAMPLE"
    UPLOADED = "UPLOADED"


ALL_BOOK_SOURCES: tuple[BookSource, ...] = tuple(BookSource)
