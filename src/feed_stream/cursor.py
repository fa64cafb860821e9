from __future__ import annotations

"""
cursor.py — состояние продолжения пагинации.

Два варианта (tagged union Cursor):
- TokenCursor(href)            — относительный путь следующей страницы;
                                 нет курсора (None) = страниц больше нет.
- OffsetCursor(consumed, total) — сколько записей уже видели и сколько всего;
                                 страницы есть, пока consumed < total.

Курсор пересчитывается заново на каждой странице и не живёт дольше одного потока.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from .html_tree import HtmlDocument


LOAD_MORE_SELECTOR = ".yt-uix-load-more"
LOAD_MORE_HREF_ATTR = "data-uix-load-more-href"
TOTAL_ITEMS_FIELD = "totalItems"


@dataclass(frozen=True)
class TokenCursor:
    href: str


@dataclass(frozen=True)
class OffsetCursor:
    consumed: int
    total: int


Cursor = Union[TokenCursor, OffsetCursor]


def token_cursor_from(more: Optional[HtmlDocument]) -> Optional[TokenCursor]:
    """Read the "load more" href off the control markup; None means exhausted."""
    if more is None:
        return None
    button = more.select_one(LOAD_MORE_SELECTOR)
    if button is None:
        return None
    href = button.attr(LOAD_MORE_HREF_ATTR).strip()
    if not href:
        return None
    return TokenCursor(href=href)


def _as_int(v: Any) -> int:
    if isinstance(v, bool):
        return 0
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().isdigit():
        return int(v.strip())
    return 0


def offset_cursor_from(prev: Optional[OffsetCursor], item_count: int, data: Optional[dict[str, Any]]) -> OffsetCursor:
    """
    consumed накапливается, а total перечитывается с КАЖДОЙ страницы
    (сервер может менять total прямо во время листания).
    """
    consumed = (prev.consumed if prev is not None else 0) + max(0, int(item_count))
    total = _as_int((data or {}).get(TOTAL_ITEMS_FIELD))
    return OffsetCursor(consumed=consumed, total=total)


def is_exhausted(cursor: Optional[Cursor]) -> bool:
    if cursor is None:
        return True
    if isinstance(cursor, TokenCursor):
        return not cursor.href
    if isinstance(cursor, OffsetCursor):
        return cursor.consumed >= cursor.total
    raise TypeError(f"unknown cursor: {cursor!r}")


def has_advanced(prev: Optional[Cursor], new: Optional[Cursor]) -> bool:
    """Did pagination move forward between two pages?"""
    if new is None:
        return False
    if isinstance(new, TokenCursor):
        return not (isinstance(prev, TokenCursor) and prev.href == new.href)
    if isinstance(new, OffsetCursor):
        before = prev.consumed if isinstance(prev, OffsetCursor) else 0
        return new.consumed > before
    raise TypeError(f"unknown cursor: {new!r}")
