from __future__ import annotations

"""storage_jsonl.py — запись потока в JSONL (одна запись = одна строка).

В истории просмотров одно и то же видео встречается несколько раз, поэтому
есть опциональная дедупликация по ключу записи:
  1) есть id  => "<kind>:id:<id>"
  2) иначе    => "<kind>:sha1:<sha1(json_sorted)>"
"""

import hashlib
import json
from pathlib import Path
from typing import IO, Any, Iterable, Optional

from .records import Record


def record_key(rec: Record) -> str:
    kind = type(rec).__name__
    if rec.id:
        return f"{kind}:id:{rec.id}"
    blob = json.dumps(rec.to_dict(), ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return f"{kind}:sha1:{hashlib.sha1(blob).hexdigest()}"


class JsonlWriter:
    def __init__(self, path: str, *, unique: bool = False) -> None:
        self.path = str(path)
        self.unique = bool(unique)
        self.written = 0
        self.skipped = 0
        self._seen: set[str] = set()
        self._f: Optional[IO[str]] = None

    def open(self) -> "JsonlWriter":
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._f = open(self.path, "w", encoding="utf-8")
        return self

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
            self._f = None

    def __enter__(self) -> "JsonlWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write(self, rec: Record) -> bool:
        """False when the record was dropped as a duplicate."""
        if self._f is None:
            raise RuntimeError("JsonlWriter is not open")
        if self.unique:
            key = record_key(rec)
            if key in self._seen:
                self.skipped += 1
                return False
            self._seen.add(key)
        self._f.write(json.dumps(rec.to_dict(), ensure_ascii=False) + "\n")
        self.written += 1
        return True


def write_jsonl(path: str, records: Iterable[Record], *, unique: bool = False) -> int:
    with JsonlWriter(path, unique=unique) as w:
        for rec in records:
            w.write(rec)
    return w.written


def read_jsonl(path: str) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                out.append(json.loads(line))
    return out
