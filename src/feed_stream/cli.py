from __future__ import annotations

"""
cli.py — консольная точка входа `feed-stream`.

Команды:
- history : история просмотров YouTube -> JSONL
- books   : библиотека Google Play Books -> JSONL (--source повторяется)

Общие флаги (до команды): --config, --secrets, --diag-http, --cache-dir,
--replay, --pretty, -v/-vv.

Сессия берётся из cookies браузера (secrets.json, см. secret_store.py).
Итог прогона печатается в stdout одним JSON; логи идут в stderr.
"""

import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from .config import ClientConfig, build_engine, load_config
from .errors import FeedStreamError
from .http_engine import HttpEngine
from .play_books import DEFAULT_PAGE_SIZE, MyBooks, fetch_auth_info
from .records import BookSource
from .secret_store import SecretStore
from .sources import Source
from .storage_jsonl import JsonlWriter
from .stream import RecordStream
from .youtube import WatchHistory


logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOG_DATE_FORMAT = "%H:%M:%S"


class CliError(Exception):
    def __init__(self, message: str, exit_code: int = 2) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def setup_logging(level: int = logging.WARNING) -> logging.Logger:
    """One stderr handler on the package logger; safe to call repeatedly."""
    root = logging.getLogger("feed_stream")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _LOG_DATE_FORMAT))
    root.addHandler(handler)
    return root


def _level_from_verbosity(v: int) -> int:
    if v >= 2:
        return logging.DEBUG
    if v == 1:
        return logging.INFO
    return logging.WARNING


def _pretty(obj: Any, pretty: bool) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=(2 if pretty else None))


def _get_secret_store(args: argparse.Namespace) -> Optional[SecretStore]:
    path = getattr(args, "secrets", None)
    if path:
        return SecretStore(path)
    return SecretStore.from_env()


def _load_client_config(args: argparse.Namespace) -> ClientConfig:
    cfg = load_config(getattr(args, "config", None))
    return cfg.with_overrides(
        cache_dir=getattr(args, "cache_dir", None),
        replay=bool(getattr(args, "replay", False)),
        diag_http=bool(getattr(args, "diag_http", False)),
        max_pages=getattr(args, "max_pages", None),
    )


def _build_engine(cfg: ClientConfig, args: argparse.Namespace) -> HttpEngine:
    return build_engine(cfg, _get_secret_store(args))


def _run_to_jsonl(source: Source, engine: HttpEngine, cfg: ClientConfig, args: argparse.Namespace) -> int:
    max_items = int(args.max_items or 0)
    stopped_early = False

    with JsonlWriter(args.out, unique=bool(args.unique)) as writer:
        with RecordStream(source, engine, max_pages=cfg.max_pages) as stream:
            for rec in stream:
                writer.write(rec)
                if max_items and writer.written >= max_items:
                    # дальше не листаем: производитель снимается с рандеву
                    stream.cancel()
                    stopped_early = True
                    break
        err = stream.error

    summary = {
        "source": source.name,
        "out": args.out,
        "records_written": writer.written,
        "duplicates_skipped": writer.skipped,
        "stopped_early": stopped_early,
        "error": str(err) if err is not None else None,
    }
    print(_pretty(summary, args.pretty))
    if err is not None:
        logger.error("%s: stream ended with error after %d records: %s", source.name, writer.written, err)
        return 1
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    cfg = _load_client_config(args)
    engine = _build_engine(cfg, args)
    return _run_to_jsonl(WatchHistory(), engine, cfg, args)


def _parse_book_sources(values: Optional[Sequence[str]]) -> Optional[list[BookSource]]:
    if not values:
        return None
    out: list[BookSource] = []
    for v in values:
        try:
            out.append(BookSource(v.strip().upper()))
        except ValueError:
            allowed = ", ".join(s.value for s in BookSource)
            raise CliError(f"Unknown book source: {v} (allowed: {allowed})", exit_code=2) from None
    return out


def cmd_books(args: argparse.Namespace) -> int:
    sources = _parse_book_sources(args.source)
    cfg = _load_client_config(args)
    engine = _build_engine(cfg, args)
    auth_info = fetch_auth_info(engine)
    source = MyBooks(auth_info, sources, page_size=args.page_size)
    return _run_to_jsonl(source, engine, cfg, args)


def _add_output_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--out", required=True, help="JSONL output path")
    p.add_argument("--max-items", type=int, default=0, help="stop after N records (0=no limit)")
    p.add_argument("--max-pages", type=int, default=None, help="stop after N pages (overrides config)")
    p.add_argument("--unique", action="store_true", help="drop repeated records (same id)")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="feed-stream")
    p.add_argument("--pretty", action="store_true", help="pretty JSON output")
    p.add_argument("--config", default=None, help="path to config.json")
    p.add_argument("--secrets", default=None, help=f"path to secrets.json (overrides ENV {SecretStore.ENV_KEY})")
    p.add_argument("--diag-http", action="store_true", help="log short HTTP diagnostics on errors")
    p.add_argument("--cache-dir", default=None, help="cache dir for HTTP responses (optional)")
    p.add_argument("--replay", action="store_true", help="replay from cache only (no network)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v info, -vv debug")

    sub = p.add_subparsers(dest="cmd", required=True)

    h = sub.add_parser("history", help="YouTube watch history -> JSONL")
    _add_output_args(h)
    h.set_defaults(fn=cmd_history)

    b = sub.add_parser("books", help="Google Play Books library -> JSONL")
    _add_output_args(b)
    b.add_argument(
        "--source",
        action="append",
        default=[],
        help="acquire method filter, repeatable (default: all): " + ", ".join(s.value for s in BookSource),
    )
    b.add_argument("--page-size", type=int, default=DEFAULT_PAGE_SIZE)
    b.set_defaults(fn=cmd_books)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    setup_logging(_level_from_verbosity(args.verbose))

    try:
        return int(args.fn(args) or 0)
    except CliError as e:
        print(str(e), file=sys.stderr)
        return int(e.exit_code)
    except FeedStreamError as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
