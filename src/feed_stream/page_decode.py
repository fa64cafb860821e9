"""page_decode.py — сырые байты страницы -> Page.

Виды транспорта (TransportKind):
- "document": полный HTML-документ (первая страница истории). content и more —
  одно и то же дерево: кнопка "load more" лежит рядом с карточками.
- "envelope": JSON-конверт с двумя HTML-фрагментами:
    {"content_html": "...", "load_more_widget_html": "..."}
  Нет/пустой load_more_widget_html -> это последняя страница (more=None).
- "json": обычный JSON-объект (offset API библиотеки книг).

Ошибки разбора -> DecodeError. Повторов здесь нет: повторы — дело транспорта.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional

from .errors import DecodeError
from .html_tree import HtmlDocument
from .resp_read import decode_text, read_json_bytes


TransportKind = Literal["document", "envelope", "json"]

ENVELOPE_CONTENT_FIELD = "content_html"
ENVELOPE_MORE_FIELD = "load_more_widget_html"


@dataclass(frozen=True)
class Page:
    kind: TransportKind
    size_bytes: int
    content: Optional[HtmlDocument] = None
    more: Optional[HtmlDocument] = None
    data: Optional[dict[str, Any]] = None


def _parse_html(text: str) -> HtmlDocument:
    try:
        return HtmlDocument(text)
    except (AssertionError, ValueError) as e:
        raise DecodeError(f"unparsable markup: {e}") from e


def _decode_document(raw: bytes, content_type: str) -> Page:
    doc = _parse_html(decode_text(raw, content_type).text)
    return Page(kind="document", size_bytes=len(raw), content=doc, more=doc)


def _read_object(raw: bytes, content_type: str, *, detect_soft: bool) -> dict[str, Any]:
    jr = read_json_bytes(raw, content_type, detect_soft=detect_soft)
    if not jr.ok:
        raise DecodeError(f"{jr.error}: {jr.details} preview={jr.preview!r}")
    if not isinstance(jr.data, dict):
        raise DecodeError(f"expected JSON object, got {type(jr.data).__name__}")
    return jr.data


def _decode_envelope(raw: bytes, content_type: str) -> Page:
    obj = _read_object(raw, content_type, detect_soft=False)

    content_html = obj.get(ENVELOPE_CONTENT_FIELD)
    if not isinstance(content_html, str):
        raise DecodeError(f"envelope has no string {ENVELOPE_CONTENT_FIELD!r} field")

    more_html = obj.get(ENVELOPE_MORE_FIELD)
    if more_html is not None and not isinstance(more_html, str):
        raise DecodeError(f"envelope field {ENVELOPE_MORE_FIELD!r} is not a string")

    content = _parse_html(content_html)
    more = _parse_html(more_html) if more_html and more_html.strip() else None
    return Page(kind="envelope", size_bytes=len(raw), content=content, more=more)


def _decode_json(raw: bytes, content_type: str) -> Page:
    obj = _read_object(raw, content_type, detect_soft=True)
    return Page(kind="json", size_bytes=len(raw), data=obj)


def decode_page(raw: bytes, kind: TransportKind, *, content_type: str = "") -> Page:
    """Decode one fetched page according to its declared transport kind."""
    if kind == "document":
        return _decode_document(raw, content_type)
    if kind == "envelope":
        return _decode_envelope(raw, content_type)
    if kind == "json":
        return _decode_json(raw, content_type)
    raise ValueError(f"unknown transport kind: {kind!r}")
