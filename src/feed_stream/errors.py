"""errors.py — исключения feed_stream.

Фатальные для потока: TransportError, DecodeError (первая такая ошибка
заканчивает поток, уже отданные записи остаются валидными).
Локальные: FieldParseError (поле записи -> нулевое значение, наружу не выходит).
"""

from __future__ import annotations

from typing import Optional


class FeedStreamError(Exception):
    """Base class for errors surfaced by feed_stream."""


class TransportError(FeedStreamError):
    """The transport failed to deliver a page (network, timeout, HTTP status)."""

    def __init__(
        self,
        reason: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        self.reason = reason
        self.url = url
        self.status_code = status_code
        self.hint = hint
        msg = reason
        if status_code is not None and not reason.startswith("http_"):
            msg += f" (status={status_code})"
        if hint:
            msg += f" hint={hint}"
        if url:
            msg += f" url={url}"
        super().__init__(msg)


class DecodeError(FeedStreamError):
    """Page bytes could not be interpreted as the declared transport kind."""


class FieldParseError(ValueError):
    """A single record field (duration, timestamp) has unexpected text."""


class AuthInfoError(FeedStreamError):
    """Play Books homepage did not contain the expected request key / origin token."""


class ConfigError(FeedStreamError):
    """Invalid client config or secrets file."""
