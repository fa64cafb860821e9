from __future__ import annotations

"""
http_engine.py — аутентифицированный транспорт:
requests.Session (cookies уже в сессии) + rate limit (per-domain) + retry/backoff.

Ключевые фичи:
- TokenBucket со стартом "полным ведром" (start_full=True)
- MinDelayWrapper (минимальная пауза между запросами + jitter)
- Retry-After: поддержка секунд и HTTP-date
- кэш ответов на диск + replay (прогон без сети)
- make_http_engine_from_meta: сборка из dict-конфига (config.http)

Повторы живут ТОЛЬКО здесь. Поток (stream.py) получает либо ответ, либо
TransportError и дальше не повторяет.
"""

import hashlib
import json
import logging
import random
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union
from urllib.parse import urlparse

import requests
from requests.structures import CaseInsensitiveDict

from .errors import TransportError


logger = logging.getLogger(__name__)

AuthHook = Callable[[requests.Session, str, dict[str, Any], dict[str, str]], None]

# query-параметры: dict или список пар (повторяющиеся фильтры, acquireMethod=...&acquireMethod=...)
Params = Union[dict[str, Any], Sequence[tuple[str, Any]]]

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

DEFAULT_HTML_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

DEFAULT_JSON_HEADERS: dict[str, str] = {
    "Accept": "application/json, text/plain, */*",
}


def _block_hint(resp: requests.Response) -> Optional[str]:
    """Грубая эвристика для диагностики, не детектор."""
    sc = resp.status_code
    if sc not in (401, 403, 429):
        return None
    try:
        txt = (resp.text or "").lower()
    except (UnicodeDecodeError, LookupError):
        txt = ""
    if "captcha" in txt or "g-recaptcha" in txt:
        return "captcha"
    if sc == 429:
        return "rate_limited"
    if "sign in" in txt or "login" in txt or sc == 401:
        return "auth_required"
    return "access_denied"


def _domain_of(url: str) -> str:
    try:
        return urlparse(url).netloc.lower()
    except ValueError:
        return ""


# =========================
# Rate limit
# =========================

class RateLimiter:
    """Интерфейс ограничителя: вернуть сколько секунд ждать перед запросом."""
    def acquire(self) -> float:
        raise NotImplementedError


@dataclass
class TokenBucket(RateLimiter):
    """
    Можно сделать "несколько быстрых запросов", затем ждать.

    - rate_per_sec: сколько токенов добавляется в секунду
    - capacity: максимум токенов (разовый рывок)
    - start_full: ведро стартует полным (первый запрос без ожидания)
    """
    rate_per_sec: float
    capacity: float
    start_full: bool = True

    tokens: float = field(default=0.0)
    last_ts: float = field(default_factory=time.monotonic)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.start_full and self.tokens <= 0.0:
            self.tokens = float(self.capacity)

    def acquire(self) -> float:
        with self._lock:
            now = time.monotonic()
            elapsed = max(0.0, now - self.last_ts)
            self.last_ts = now

            self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return 0.0

            need = 1.0 - self.tokens
            wait = need / max(self.rate_per_sec, 1e-9)
            self.tokens = 0.0
            return float(max(0.0, wait))


@dataclass
class MinDelayWrapper(RateLimiter):
    """wait = max(inner_wait, respect_min_delay) + random(0..jitter)"""
    inner: RateLimiter
    min_delay: float = 0.0
    jitter: float = 0.0
    _next_allowed_ts: float = field(default=0.0)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def acquire(self) -> float:
        inner_wait = float(self.inner.acquire())
        now = time.monotonic()
        with self._lock:
            wait_min = 0.0
            if self._next_allowed_ts > now:
                wait_min = self._next_allowed_ts - now

            wait = max(inner_wait, wait_min)
            if self.jitter > 0:
                wait += random.uniform(0.0, self.jitter)

            self._next_allowed_ts = now + wait + max(0.0, self.min_delay)
        return float(max(0.0, wait))


def make_limiter_factory_from_cfg(cfg: dict[str, Any]) -> Callable[[str], RateLimiter]:
    """
    cfg пример:
    {"rate_per_sec": 1.0, "capacity": 2, "start_full": true, "min_delay_ms": 300, "jitter_ms": 200}
    """
    min_delay = float(cfg.get("min_delay_ms", 0) or 0) / 1000.0
    jitter = float(cfg.get("jitter_ms", 0) or 0) / 1000.0

    def factory(_domain: str) -> RateLimiter:
        rl: RateLimiter = TokenBucket(
            rate_per_sec=float(cfg.get("rate_per_sec", 1.0)),
            capacity=float(cfg.get("capacity", 2.0)),
            start_full=bool(cfg.get("start_full", True)),
        )
        if min_delay or jitter:
            rl = MinDelayWrapper(inner=rl, min_delay=min_delay, jitter=jitter)
        return rl

    return factory


# =========================
# Retry / backoff
# =========================

@dataclass
class RetryPolicy:
    max_attempts: int = 4
    base_delay: float = 0.5
    cap_delay: float = 8.0
    jitter: str = "full"  # none | full
    retry_statuses: tuple[int, ...] = (429, 500, 502, 503, 504)
    respect_retry_after: bool = True


def make_retry_policy_from_cfg(cfg: dict[str, Any]) -> RetryPolicy:
    if not isinstance(cfg, dict):
        return RetryPolicy()
    return RetryPolicy(
        max_attempts=max(1, int(cfg.get("max_attempts", 4))),
        base_delay=float(cfg.get("base_delay", 0.5)),
        cap_delay=float(cfg.get("cap_delay", 8.0)),
        jitter=str(cfg.get("jitter", "full")),
        retry_statuses=tuple(int(x) for x in (cfg.get("retry_statuses") or (429, 500, 502, 503, 504))),
        respect_retry_after=bool(cfg.get("respect_retry_after", True)),
    )


def _backoff_delay(attempt: int, pol: RetryPolicy) -> float:
    exp = pol.base_delay * (2 ** max(0, attempt - 1))
    delay = min(pol.cap_delay, exp)
    if pol.jitter == "full":
        return float(random.uniform(0.0, delay))
    return float(delay)


def _retry_after_seconds(resp: requests.Response) -> Optional[float]:
    ra = (resp.headers.get("Retry-After") or "").strip()
    if not ra:
        return None
    try:
        sec = float(ra)
        return sec if sec > 0 else None
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(ra)
    except (TypeError, ValueError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    sec = (dt - datetime.now(timezone.utc)).total_seconds()
    return sec if sec > 0 else None


# =========================
# HttpEngine
# =========================

class HttpEngine:
    """Единая точка выполнения HTTP-запросов (rate-limit + retry + auth hook)."""

    def __init__(
        self,
        *,
        default_timeout: float = 10.0,
        default_headers: Optional[dict[str, str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        limiter_factory: Optional[Callable[[str], RateLimiter]] = None,
        auth_hook: Optional[AuthHook] = None,
        diag_http: bool = False,
        session: Optional[requests.Session] = None,
        cache_dir: Optional[str] = None,
        replay: bool = False,
        cache_store_statuses: Optional[Sequence[int]] = None,
    ) -> None:
        self.default_timeout = float(default_timeout)
        self.default_headers = dict(default_headers or {})
        self.retry_policy = retry_policy or RetryPolicy()
        self.diag_http = bool(diag_http)
        self.last_diag: Optional[dict[str, Any]] = None
        self._limiters: dict[str, RateLimiter] = {}
        self._limiters_lock = threading.Lock()
        self._limiter_factory = limiter_factory or (lambda _d: TokenBucket(rate_per_sec=1.0, capacity=2.0, start_full=True))
        self.session = session or requests.Session()
        self._auth_hook = auth_hook

        self.cache_dir = cache_dir
        self.replay = bool(replay)
        self.cache_store_statuses = set(int(x) for x in (cache_store_statuses or [200, 203]))
        if self.cache_dir:
            Path(self.cache_dir).mkdir(parents=True, exist_ok=True)

    def _mode_headers(self, expect: str) -> dict[str, str]:
        return dict(DEFAULT_JSON_HEADERS if expect == "json" else DEFAULT_HTML_HEADERS)

    def _emit_diag(self, d: dict[str, Any]) -> None:
        self.last_diag = d
        if not self.diag_http:
            return
        parts = [
            f"[HTTP] {d.get('method')} {d.get('domain')} sc={d.get('status')} err={d.get('err')}",
            f"try={d.get('attempt')}/{d.get('max_attempts')} elapsed={d.get('elapsed_ms')}ms",
        ]
        if d.get("hint"):
            parts.append(f"hint={d['hint']}")
        parts.append(f"url={d.get('url')}")
        logger.warning(" ".join(parts))

    # --------- cache helpers ---------

    def _cache_key(self, *, method: str, url: str, params: Params, expect: str) -> str:
        """Стабильный ключ: метод + url + params (порядок пар сохраняем) + режим."""
        if isinstance(params, dict):
            p: Any = sorted((str(k), str(v)) for k, v in params.items())
        else:
            p = [(str(k), str(v)) for k, v in params]
        key_obj = {"m": method.upper(), "u": url, "p": p, "mode": expect}
        blob = json.dumps(key_obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha1(blob).hexdigest()

    def _cache_paths(self, key: str) -> tuple[Path, Path]:
        assert self.cache_dir
        base = Path(self.cache_dir)
        return base / f"{key}.meta.json", base / f"{key}.body"

    def _cache_load(self, key: str, *, url: str) -> Optional[requests.Response]:
        if not self.cache_dir:
            return None
        meta_path, body_path = self._cache_paths(key)
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            body = body_path.read_bytes()
        except FileNotFoundError:
            return None

        resp = requests.Response()
        resp.status_code = int(meta.get("status_code") or 200)
        resp._content = body
        hdrs = meta.get("headers")
        resp.headers = CaseInsensitiveDict({str(k): str(v) for k, v in hdrs.items()} if isinstance(hdrs, dict) else {})
        resp.url = url
        enc = meta.get("encoding")
        if isinstance(enc, str) and enc:
            resp.encoding = enc
        return resp

    def _cache_save(self, key: str, resp: requests.Response) -> None:
        if not self.cache_dir or int(resp.status_code) not in self.cache_store_statuses:
            return
        meta_path, body_path = self._cache_paths(key)
        meta = {
            "status_code": int(resp.status_code),
            "headers": dict(resp.headers or {}),
            "encoding": resp.encoding,
        }
        try:
            meta_path.write_text(json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8")
            body_path.write_bytes(resp.content or b"")
        except OSError as e:
            # ошибка записи кэша не прерывает прогон
            logger.warning("cache write failed for %s: %s", resp.url, e)

    def _get_limiter(self, domain: str) -> RateLimiter:
        with self._limiters_lock:
            if domain not in self._limiters:
                self._limiters[domain] = self._limiter_factory(domain)
            return self._limiters[domain]

    def _sleep(self, sec: float) -> None:
        if sec and sec > 0:
            time.sleep(float(sec))

    def request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Optional[Params] = None,
        headers: Optional[dict[str, str]] = None,
        data: Any = None,
        timeout: Optional[float] = None,
        allow_redirects: bool = True,
        expect: str = "html",
    ) -> tuple[Optional[requests.Response], Optional[str], int]:
        """
        Returns (response, error, elapsed_ms).

        error is None on 2xx/3xx; "http_<status>" when retries are exhausted on
        a bad status (response is still returned); "timeout" / "network_error:*"
        with response None when the network failed on every attempt.
        """
        domain = _domain_of(url)
        limiter = self._get_limiter(domain)
        pol = self.retry_policy

        merged_params: Any = dict(params) if isinstance(params, dict) else list(params or [])

        # порядок важен: default_headers -> mode_headers -> request_headers
        merged_headers = dict(self.default_headers)
        merged_headers.update(self._mode_headers(expect))
        if headers:
            merged_headers.update(headers)

        if self._auth_hook is not None:
            # auth_hook может добавить headers/query-параметры и подгрузить cookies в session
            hook_params: dict[str, Any] = {}
            self._auth_hook(self.session, url, hook_params, merged_headers)
            if hook_params:
                if isinstance(merged_params, dict):
                    for k, v in hook_params.items():
                        merged_params.setdefault(k, v)
                else:
                    merged_params.extend(hook_params.items())

        cache_key: Optional[str] = None
        if self.cache_dir:
            cache_key = self._cache_key(method=method, url=url, params=merged_params, expect=expect)
            if self.replay:
                cached = self._cache_load(cache_key, url=url)
                if cached is not None:
                    return cached, None, 0
                return None, "cache_miss", 0

        last_err: Optional[str] = None
        start_all = time.monotonic()

        for attempt in range(1, pol.max_attempts + 1):
            self._sleep(limiter.acquire())

            t0 = time.monotonic()
            resp: Optional[requests.Response]
            try:
                resp = self.session.request(
                    method=method,
                    url=url,
                    params=merged_params,
                    headers=merged_headers,
                    data=data,
                    timeout=float(timeout or self.default_timeout),
                    allow_redirects=allow_redirects,
                )
            except requests.Timeout:
                last_err = "timeout"
                resp = None
            except requests.RequestException as e:
                last_err = f"network_error:{type(e).__name__}"
                resp = None
            elapsed_ms = int((time.monotonic() - t0) * 1000)

            if resp is None:
                self._emit_diag({
                    "url": url, "domain": domain, "method": method, "status": None,
                    "err": last_err, "attempt": attempt, "max_attempts": pol.max_attempts,
                    "elapsed_ms": elapsed_ms, "hint": None,
                })
            else:
                sc = resp.status_code
                if 200 <= sc < 400:
                    if cache_key is not None:
                        self._cache_save(cache_key, resp)
                    logger.debug("%s %s -> %s (%sms)", method, resp.url or url, sc, elapsed_ms)
                    return resp, None, elapsed_ms

                last_err = f"http_{sc}"
                self._emit_diag({
                    "url": url, "domain": domain, "method": method, "status": sc,
                    "err": last_err, "attempt": attempt, "max_attempts": pol.max_attempts,
                    "elapsed_ms": elapsed_ms, "hint": _block_hint(resp),
                })
                if sc not in pol.retry_statuses or attempt >= pol.max_attempts:
                    return resp, last_err, elapsed_ms

                if pol.respect_retry_after:
                    ra = _retry_after_seconds(resp)
                    if ra is not None:
                        self._sleep(min(ra, pol.cap_delay * 4))
                        continue

            if attempt >= pol.max_attempts:
                break

            self._sleep(_backoff_delay(attempt, pol))

        elapsed_ms = int((time.monotonic() - start_all) * 1000)
        return None, last_err or "request_failed", elapsed_ms

    def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Optional[Params] = None,
        headers: Optional[dict[str, str]] = None,
        data: Any = None,
        expect: str = "html",
    ) -> requests.Response:
        """Like request(), but any failure becomes TransportError."""
        resp, err, _ms = self.request(url, method=method, params=params, headers=headers, data=data, expect=expect)
        return check_response(resp, err, url=url)


def make_http_engine_from_meta(
    http_meta: dict[str, Any],
    *,
    default_timeout: float = 10.0,
    default_headers: Optional[dict[str, str]] = None,
    session: Optional[requests.Session] = None,
    auth_hook: Optional[AuthHook] = None,
) -> HttpEngine:
    """
    Собрать HttpEngine из http_meta (config.http).

    Ожидаемые ключи:
      "rate_limit" -> dict для make_limiter_factory_from_cfg
      "retries"    -> dict для make_retry_policy_from_cfg
      "cache"      -> {"dir": "...", "replay": false, "store_statuses": [200]}
      "diag_http"  -> bool
    """
    meta = http_meta if isinstance(http_meta, dict) else {}
    rl_cfg = meta.get("rate_limit")
    rt_cfg = meta.get("retries")
    cache_cfg = meta.get("cache")

    cache_dir = None
    replay = False
    store_statuses: Optional[list[int]] = None
    if isinstance(cache_cfg, dict):
        cache_dir = cache_cfg.get("dir")
        replay = bool(cache_cfg.get("replay"))
        sts = cache_cfg.get("store_statuses")
        if isinstance(sts, list) and sts:
            store_statuses = [int(x) for x in sts]

    return HttpEngine(
        default_timeout=default_timeout,
        default_headers=default_headers,
        retry_policy=make_retry_policy_from_cfg(rt_cfg) if isinstance(rt_cfg, dict) else None,
        limiter_factory=make_limiter_factory_from_cfg(rl_cfg) if isinstance(rl_cfg, dict) else None,
        auth_hook=auth_hook,
        diag_http=bool(meta.get("diag_http")),
        session=session,
        cache_dir=str(cache_dir) if isinstance(cache_dir, str) and cache_dir else None,
        replay=replay,
        cache_store_statuses=store_statuses,
    )


def check_response(resp: Optional[requests.Response], err: Optional[str], *, url: str) -> requests.Response:
    """Turn the (response, error) pair of HttpEngine.request into a response or TransportError."""
    if resp is None:
        raise TransportError(err or "request_failed", url=url)
    if err is not None or not (200 <= int(resp.status_code) < 400):
        raise TransportError(
            err or f"http_{resp.status_code}",
            url=url,
            status_code=int(resp.status_code),
            hint=_block_hint(resp),
        )
    return resp
