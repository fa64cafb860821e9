from __future__ import annotations

"""
stream.py — пагинатор ленты: страница за страницей, запись за записью.

Один шаг цикла:
  request_for(cursor) -> HttpEngine.request -> decode_page -> source.extract
  -> записи наружу -> новый курсор.

Остановка (по приоритету):
1) отмена (CancelToken) — не ошибка; проверяется до и после каждого fetch
   и при каждой отдаче записи;
2) TransportError / DecodeError — поток заканчивается, уже отданные записи
   остаются у потребителя, ошибка одна;
3) курсор исчерпан (нет href / consumed >= total);
4) страница без записей и без сдвига курсора (или тот же href, что и раньше);
5) max_pages, если задан.

iter_records — ленивый генератор в потоке вызывающего.
RecordStream — тот же генератор в отдельном потоке-производителе, записи
передаются через рандеву (производитель ждёт, пока запись заберут).
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterator, Literal, Optional

from .cursor import (
    Cursor,
    OffsetCursor,
    has_advanced,
    is_exhausted,
    offset_cursor_from,
    token_cursor_from,
)
from .errors import DecodeError, FeedStreamError, TransportError
from .http_engine import HttpEngine, check_response
from .page_decode import Page, decode_page
from .records import Record
from .sources import Source


logger = logging.getLogger(__name__)

# advance: записей нет, но курсор сдвинулся (страница из одних нераспознанных items)
OutcomeKind = Literal["records", "advance", "empty", "transport_error", "decode_error"]


class CancelToken:
    """Cooperative cancellation flag shared by a stream and its consumer."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class FetchOutcome:
    kind: OutcomeKind
    records: tuple[Record, ...] = ()
    cursor: Optional[Cursor] = None
    error: Optional[FeedStreamError] = None
    size_bytes: int = 0


def _next_cursor(source: Source, prev: Optional[Cursor], page: Page, item_count: int) -> Optional[Cursor]:
    scheme = source.pagination
    if scheme == "token":
        return token_cursor_from(page.more)
    if scheme == "offset":
        if prev is not None and not isinstance(prev, OffsetCursor):
            raise TypeError(f"{source.name}: offset pagination got {prev!r}")
        return offset_cursor_from(prev, item_count, page.data)
    raise ValueError(f"{source.name}: unknown pagination scheme {scheme!r}")


def fetch_page(source: Source, engine: HttpEngine, cursor: Optional[Cursor]) -> FetchOutcome:
    """One fetch -> decode -> extract step. Errors come back as outcomes, not exceptions."""
    req = source.request_for(cursor)
    resp, err, elapsed_ms = engine.request(
        req.url,
        method=req.method,
        params=list(req.params),
        headers=dict(req.headers),
        expect=req.expect,
    )
    try:
        resp = check_response(resp, err, url=req.url)
    except TransportError as e:
        return FetchOutcome(kind="transport_error", cursor=cursor, error=e)

    raw = resp.content or b""
    try:
        page = decode_page(raw, req.kind, content_type=resp.headers.get("Content-Type", ""))
    except DecodeError as e:
        return FetchOutcome(kind="decode_error", cursor=cursor, error=e, size_bytes=len(raw))

    records = tuple(source.extract(page))
    new_cursor = _next_cursor(source, cursor, page, source.page_item_count(page, records))
    logger.debug(
        "%s: fetched %s in %dms (%d bytes, %d records)",
        source.name, req.url, elapsed_ms, page.size_bytes, len(records),
    )
    kind: OutcomeKind
    if records:
        kind = "records"
    elif has_advanced(cursor, new_cursor):
        kind = "advance"
    else:
        kind = "empty"
    return FetchOutcome(kind=kind, records=records, cursor=new_cursor, size_bytes=page.size_bytes)


def iter_records(
    source: Source,
    engine: HttpEngine,
    *,
    cancel: Optional[CancelToken] = None,
    max_pages: Optional[int] = None,
) -> Iterator[Record]:
    """
    Lazily yield every record of `source`, in page order then document order.

    Raises the TransportError / DecodeError of the failing page after all
    records of earlier pages were yielded. Cancellation ends the iteration
    silently.
    """
    token = cancel if cancel is not None else CancelToken()
    cursor: Optional[Cursor] = None
    page_no = 0
    emitted = 0

    while True:
        if token.cancelled:
            logger.info("%s: cancelled before page %d (%d records)", source.name, page_no + 1, emitted)
            return

        outcome = fetch_page(source, engine, cursor)
        page_no += 1

        if token.cancelled:
            logger.info("%s: cancelled after page %d (%d records)", source.name, page_no, emitted)
            return
        if outcome.error is not None:
            logger.warning("%s: page %d failed (%s): %s", source.name, page_no, outcome.kind, outcome.error)
            raise outcome.error

        logger.debug("%s: page %d records=%d cursor=%r", source.name, page_no, len(outcome.records), outcome.cursor)
        for rec in outcome.records:
            if token.cancelled:
                logger.info("%s: cancelled on page %d (%d records)", source.name, page_no, emitted)
                return
            yield rec
            emitted += 1

        if outcome.kind == "empty":
            reason = "no progress"
        elif is_exhausted(outcome.cursor):
            reason = "cursor exhausted"
        elif not has_advanced(cursor, outcome.cursor):
            reason = "cursor repeated"
        elif max_pages and page_no >= max_pages:
            reason = f"max_pages={max_pages}"
        else:
            cursor = outcome.cursor
            continue

        logger.info("%s: done after %d pages, %d records (%s)", source.name, page_no, emitted, reason)
        return


class RecordStream:
    """
    Runs iter_records on a producer thread and hands records over one by one.

    Each record is a rendezvous: the producer blocks until the consumer takes
    it. A consumer that stops iterating early MUST call cancel() (or leave the
    ``with`` block), otherwise the producer stays parked on the handoff and the
    thread never finishes.

        with RecordStream(WatchHistory(), engine) as stream:
            for video in stream:
                ...
        stream.raise_for_error()
    """

    def __init__(
        self,
        source: Source,
        engine: HttpEngine,
        *,
        max_pages: Optional[int] = None,
        poll_interval: float = 0.05,
    ) -> None:
        self.source = source
        self.engine = engine
        self.max_pages = max_pages
        self.poll_interval = float(poll_interval)

        self._token = CancelToken()
        self._cond = threading.Condition()
        self._slot: Optional[Record] = None
        self._has_item = False
        self._done = False
        self._error: Optional[Exception] = None
        self._thread: Optional[threading.Thread] = None

    # --- lifecycle

    def start(self) -> "RecordStream":
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._run, name=f"feed-stream-{self.source.name}", daemon=True
            )
            self._thread.start()
        return self

    def cancel(self) -> None:
        self._token.cancel()
        with self._cond:
            self._cond.notify_all()

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    @property
    def error(self) -> Optional[Exception]:
        """The terminal error, or None after a clean finish or a cancel."""
        return self._error

    def raise_for_error(self) -> None:
        if self._error is not None:
            raise self._error

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the producer; True when it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self) -> "RecordStream":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()
        self.join(timeout=5.0)

    # --- consumer side

    def __iter__(self) -> "RecordStream":
        self.start()
        return self

    def __next__(self) -> Record:
        self.start()
        with self._cond:
            while not self._has_item and not self._done and not self._token.cancelled:
                self._cond.wait(self.poll_interval)
            rec = self._slot
            if self._token.cancelled or not self._has_item or rec is None:
                raise StopIteration
            self._slot = None
            self._has_item = False
            self._cond.notify_all()
        return rec

    # --- producer side

    def _offer(self, rec: Record) -> bool:
        with self._cond:
            self._slot = rec
            self._has_item = True
            self._cond.notify_all()
            while self._has_item and not self._token.cancelled:
                self._cond.wait(self.poll_interval)
            if self._has_item:
                # отменили, пока запись ждала потребителя
                self._slot = None
                self._has_item = False
                return False
        return True

    def _set_error(self, e: Exception) -> None:
        with self._cond:
            if self._error is None:
                self._error = e

    def _run(self) -> None:
        gen = iter_records(self.source, self.engine, cancel=self._token, max_pages=self.max_pages)
        try:
            for rec in gen:
                if not self._offer(rec):
                    break
        except FeedStreamError as e:
            self._set_error(e)
        except Exception as e:
            logger.exception("%s: producer crashed", self.source.name)
            self._set_error(e)
        finally:
            gen.close()
            with self._cond:
                self._done = True
                self._cond.notify_all()


def collect(stream: RecordStream) -> tuple[list[Record], Optional[Exception]]:
    """Drain the whole stream: every record received plus the terminal error, if any."""
    records = list(stream)
    stream.join()
    return records, stream.error
