from __future__ import annotations

"""
resp_read.py — безопасно превратить сырые байты страницы в текст/JSON.

Модуль НЕ делает HTTP. Типичные сюрпризы, которые он снимает:
- charset в Content-Type отсутствует или врёт,
- JSON начинается с XSSI-префикса (")]}'\\n" у Google),
- BOM в начале UTF-8,
- HTTP 200, но внутри JSON явно написано "error" (soft error).
"""

from dataclasses import dataclass
from typing import Any, Optional, Union
import json
import re


JSONType = Union[dict[str, Any], list[Any]]


@dataclass
class TextPayload:
    text: str
    encoding_used: str
    source: str
    size_bytes: int


@dataclass
class JsonReadResult:
    ok: bool
    data: Optional[JSONType] = None
    error: Optional[str] = None          # json_decode_error | soft_error
    details: Optional[str] = None
    preview: Optional[str] = None
    encoding_used: Optional[str] = None


def _extract_charset(content_type: str) -> Optional[str]:
    m = re.search(r"charset=([^\s;]+)", content_type or "", flags=re.IGNORECASE)
    return m.group(1).strip("\"'") if m else None


def decode_text(
    raw: bytes,
    content_type: str = "",
    *,
    fallback_encodings: tuple[str, ...] = ("utf-8",),
    errors: str = "replace",
) -> TextPayload:
    """
    Байты -> текст.

    1) charset из Content-Type, если он известен Python
    2) fallback_encodings по очереди (строгий режим, без замен)
    3) в самом конце — utf-8 с заменой битых байтов
    """
    raw = raw or b""
    size = len(raw)

    charset = _extract_charset(content_type)
    if charset:
        try:
            return TextPayload(raw.decode(charset, errors=errors), charset, "header_charset", size)
        except LookupError:
            pass

    for enc in fallback_encodings:
        try:
            return TextPayload(raw.decode(enc), enc, "fallback_list", size)
        except (LookupError, UnicodeDecodeError):
            continue

    return TextPayload(raw.decode("utf-8", errors="replace"), "utf-8", "fallback_utf8", size)


_XSSI_PREFIXES: tuple[str, ...] = (
    ")]}'",
    "while(1);",
    "for(;;);",
)


def strip_xssi_prefix(text: str) -> str:
    """Убираем XSSI-префикс (обычно отдельной первой строкой)."""
    t = text.lstrip()
    for pref in _XSSI_PREFIXES:
        if t.startswith(pref):
            lines = t.splitlines(True)
            if len(lines) > 1:
                return "".join(lines[1:])
            return t[len(pref):]
    return text


def _strip_bom(text: str) -> str:
    if text.startswith("\ufeff"):
        return text.lstrip("\ufeff")
    return text


def detect_soft_error(data: JSONType) -> Optional[str]:
    """Ошибка уровня приложения при HTTP 200: {"error": ...} / {"errors": [...]}."""
    if not isinstance(data, dict):
        return None

    if "error" in data:
        val = data.get("error")
        if isinstance(val, str) and val.strip():
            return f"error: {val.strip()}"
        if isinstance(val, dict) and val:
            msg = val.get("message")
            if isinstance(msg, str) and msg.strip():
                return f"error: {msg.strip()}"
            return "error: non-empty"
        if isinstance(val, list) and val:
            return "error: non-empty"
    errs = data.get("errors")
    if isinstance(errs, (list, dict)) and errs:
        return "errors: non-empty"
    return None


def read_json_bytes(
    raw: bytes,
    content_type: str = "",
    *,
    detect_soft: bool = True,
    preview_len: int = 220,
) -> JsonReadResult:
    """Безопасная попытка извлечь JSON из байтов. Не бросает исключений."""
    tp = decode_text(raw, content_type)
    preview = tp.text[:preview_len].replace("\n", " ")
    cleaned = _strip_bom(strip_xssi_prefix(tp.text)).lstrip()

    try:
        data: JSONType = json.loads(cleaned)
    except ValueError as e:
        return JsonReadResult(
            ok=False,
            error="json_decode_error",
            details=str(e),
            preview=preview,
            encoding_used=tp.encoding_used,
        )

    if detect_soft:
        soft = detect_soft_error(data)
        if soft:
            return JsonReadResult(
                ok=False,
                error="soft_error",
                details=soft,
                preview=preview,
                encoding_used=tp.encoding_used,
                data=data,
            )

    return JsonReadResult(ok=True, data=data, preview=preview, encoding_used=tp.encoding_used)
