"""sources.py — что и как запрашивать у конкретного сайта.

Source — "техкарта" ленты: как собрать запрос для текущего курсора, каким
видом транспорта придёт ответ, как из страницы достать записи и по какой
схеме считать курсор. Цикл (fetch -> decode -> extract -> advance) живёт
в stream.py и одинаков для всех источников.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Sequence

from .cursor import Cursor
from .page_decode import Page, TransportKind
from .records import Record


PaginationScheme = Literal["token", "offset"]


@dataclass(frozen=True)
class PageRequest:
    url: str
    kind: TransportKind
    method: str = "GET"
    # список пар: фильтры могут повторяться (acquireMethod=A&acquireMethod=B)
    params: Sequence[tuple[str, Any]] = ()
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def expect(self) -> str:
        return "html" if self.kind == "document" else "json"


class Source(ABC):
    """Base class for a paginated feed."""

    name: str = "base"
    pagination: PaginationScheme = "token"

    @abstractmethod
    def request_for(self, cursor: Optional[Cursor]) -> PageRequest:
        """Request for the first page (cursor None) or the page after `cursor`."""

    @abstractmethod
    def extract(self, page: Page) -> list[Record]:
        """Records of one decoded page, in document order."""

    def page_item_count(self, page: Page, records: Sequence[Record]) -> int:
        """How many server-side items the page held; offset pagination advances by this."""
        return len(records)
