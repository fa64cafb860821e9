"""
config.py — настройки клиента (JSON-файл) и сборка HttpEngine.

Формат config.json (все ключи необязательны):
{
  "timeout": 20.0,
  "headers": {"Accept-Language": "en-US,en;q=0.8"},
  "max_pages": 0,
  "http": {
    "rate_limit": {"rate_per_sec": 1.0, "capacity": 2, "min_delay_ms": 250, "jitter_ms": 250},
    "retries": {"max_attempts": 4, "base_delay": 0.5, "cap_delay": 8.0},
    "cache": {"dir": ".cache/http", "replay": false},
    "diag_http": false
  },
  "auth": {"by_domain": {"youtube.com": "google", "google.com": "google"}}
}

Флаги CLI (--cache-dir, --replay, --diag-http, --max-pages) перекрывают файл.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import ConfigError
from .http_engine import HttpEngine, make_http_engine_from_meta
from .secret_store import SecretStore


DEFAULT_TIMEOUT = 20.0


def _auth_cfg_active(auth_cfg: Any) -> bool:
    if not isinstance(auth_cfg, dict):
        return False
    return isinstance(auth_cfg.get("ref"), str) or bool(auth_cfg.get("by_domain"))


@dataclass
class ClientConfig:
    timeout: float = DEFAULT_TIMEOUT
    headers: dict[str, str] = field(default_factory=dict)
    http: dict[str, Any] = field(default_factory=dict)
    auth: dict[str, Any] = field(default_factory=dict)
    max_pages: Optional[int] = None

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "ClientConfig":
        if not isinstance(d, dict):
            raise ConfigError("config must be a JSON object")

        try:
            timeout = float(d.get("timeout") or DEFAULT_TIMEOUT)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"timeout must be a number: {d.get('timeout')!r}") from e

        headers = d.get("headers") or {}
        if not isinstance(headers, dict):
            raise ConfigError("headers must be an object")

        http = d.get("http") or {}
        if not isinstance(http, dict):
            raise ConfigError("http must be an object")

        auth = d.get("auth") or {}
        if not isinstance(auth, dict):
            raise ConfigError("auth must be an object")

        max_pages = d.get("max_pages")
        if max_pages is not None:
            if isinstance(max_pages, bool) or not isinstance(max_pages, int) or max_pages < 0:
                raise ConfigError(f"max_pages must be a non-negative integer: {max_pages!r}")
            # 0 = без ограничения
            max_pages = max_pages or None

        return ClientConfig(
            timeout=timeout,
            headers={str(k): str(v) for k, v in headers.items()},
            http=dict(http),
            auth=dict(auth),
            max_pages=max_pages,
        )

    def with_overrides(
        self,
        *,
        cache_dir: Optional[str] = None,
        replay: bool = False,
        diag_http: bool = False,
        max_pages: Optional[int] = None,
    ) -> "ClientConfig":
        """Copy with CLI flags applied on top of the file values."""
        http = dict(self.http)
        if cache_dir or replay:
            cache = dict(http.get("cache") or {})
            if cache_dir:
                cache["dir"] = cache_dir
            if replay:
                cache["replay"] = True
            http["cache"] = cache
        if diag_http:
            http["diag_http"] = True
        return ClientConfig(
            timeout=self.timeout,
            headers=dict(self.headers),
            http=http,
            auth=dict(self.auth),
            max_pages=max_pages if max_pages else self.max_pages,
        )


def load_config(path: Optional[str]) -> ClientConfig:
    """Read config.json; no path means defaults."""
    if not path:
        return ClientConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    return ClientConfig.from_dict(raw)


def build_engine(config: ClientConfig, secrets: Optional[SecretStore] = None) -> HttpEngine:
    if _auth_cfg_active(config.auth) and secrets is None:
        raise ConfigError(
            f"config.auth is set but no secrets file is configured "
            f"(use --secrets or {SecretStore.ENV_KEY})"
        )
    auth_hook = secrets.make_auth_hook(config.auth) if secrets is not None and config.auth else None
    return make_http_engine_from_meta(
        config.http,
        default_timeout=config.timeout,
        default_headers=config.headers,
        auth_hook=auth_hook,
    )
