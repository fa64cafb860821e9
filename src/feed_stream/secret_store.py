from __future__ import annotations

"""
secret_store.py — локальное хранилище секретов (vault), НЕ коммитится в репозиторий.

feed_stream не проходит логин сам: сессия становится "аутентифицированной"
за счёт cookies, экспортированных из браузера, где пользователь уже вошёл.

ENV:
- FEED_STREAM_SECRETS_PATH=/abs/or/relative/secrets.json

Формат secrets.json (пример):
{
  "google": {"type": "cookies_file", "path": "google.cookies.json"},
  "extra":  {"type": "headers", "headers": {"X-Goog-AuthUser": "0"}},
  "api":    {"type": "bearer", "token": "..."}
}

Выбор секрета для URL (config.auth):
- {"ref": "google"}
- {"by_domain": {"youtube.com": "google", "google.com": "google"}}
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

import requests

from .errors import ConfigError
from .http_engine import AuthHook


def _domain_of(url: str) -> str:
    try:
        return (urlparse(url).netloc or "").lower()
    except ValueError:
        return ""


def _load_json(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e


@dataclass(frozen=True)
class AuthSelection:
    """Результат выбора секрета для URL."""
    ref: str
    secret: dict[str, Any]


class SecretStore:
    ENV_KEY = "FEED_STREAM_SECRETS_PATH"

    def __init__(self, secrets_path: str) -> None:
        self.secrets_path = str(secrets_path)
        self.base_dir = str(Path(self.secrets_path).resolve().parent)
        raw = _load_json(self.secrets_path)
        if not isinstance(raw, dict):
            raise ConfigError("secrets.json must be an object: {ref: {...}}")
        self._secrets: dict[str, dict[str, Any]] = {
            k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, dict)
        }
        if not self._secrets:
            raise ConfigError("secrets.json has no valid entries")

        # cookies одного ref грузим в сессию один раз
        self._cookies_loaded: set[str] = set()

    @classmethod
    def from_env(cls) -> Optional["SecretStore"]:
        p = os.getenv(cls.ENV_KEY, "").strip()
        if not p:
            return None
        return cls(str(Path(p).expanduser().resolve()))

    def get(self, ref: str) -> dict[str, Any]:
        if ref not in self._secrets:
            raise ConfigError(f"Secret ref not found: {ref}")
        return self._secrets[ref]

    def resolve_ref(self, auth_cfg: dict[str, Any], url: str) -> Optional[str]:
        if not isinstance(auth_cfg, dict):
            return None
        if isinstance(auth_cfg.get("ref"), str):
            return str(auth_cfg["ref"])
        by_domain = auth_cfg.get("by_domain")
        if isinstance(by_domain, dict):
            dom = _domain_of(url)
            if isinstance(by_domain.get(dom), str):
                return str(by_domain[dom])
            # www.youtube.com -> youtube.com
            for k, v in by_domain.items():
                if isinstance(k, str) and isinstance(v, str) and dom.endswith("." + k):
                    return v
        return None

    def _resolve_path(self, p: str) -> str:
        pp = Path(p).expanduser()
        if pp.is_absolute():
            return str(pp)
        return str((Path(self.base_dir) / pp).resolve())

    @staticmethod
    def _cookies_from_json(raw: Any) -> list[dict[str, Any]]:
        # Chrome export: list[dict] with name/value/domain/path, или {"cookies": [...]}
        if isinstance(raw, dict):
            raw = raw.get("cookies")
        if isinstance(raw, list):
            return [x for x in raw if isinstance(x, dict) and "name" in x and "value" in x]
        return []

    def _load_cookies_into_session(self, session: requests.Session, ref: str, secret: dict[str, Any]) -> None:
        if ref in self._cookies_loaded:
            return
        p = secret.get("path")
        if not isinstance(p, str) or not p.strip():
            raise ConfigError(f"cookies_file secret '{ref}' has no path")
        cookie_path = self._resolve_path(p.strip())
        cookies = self._cookies_from_json(_load_json(cookie_path))
        if not cookies:
            raise ConfigError(f"cookies file '{cookie_path}' has no cookies list")
        for c in cookies:
            kwargs: dict[str, Any] = {}
            domain = c.get("domain")
            path = c.get("path")
            if isinstance(domain, str) and domain:
                kwargs["domain"] = domain
            if isinstance(path, str) and path:
                kwargs["path"] = path
            session.cookies.set(str(c["name"]), str(c["value"]), **kwargs)
        self._cookies_loaded.add(ref)

    @staticmethod
    def _headers_from_secret(secret: dict[str, Any]) -> dict[str, str]:
        out: dict[str, str] = {}
        typ = str(secret.get("type") or "").strip().lower()

        if isinstance(secret.get("headers"), dict):
            for k, v in secret["headers"].items():
                if isinstance(k, str) and isinstance(v, (str, int, float)):
                    out[k] = str(v)

        if typ == "bearer":
            token = secret.get("token")
            if not isinstance(token, str) or not token:
                raise ConfigError("bearer secret requires 'token'")
            out["Authorization"] = f"Bearer {token}"
        elif typ not in ("cookies_file", "headers"):
            raise ConfigError(f"Unsupported secret type: {typ}")
        return out

    def select_for_url(self, auth_cfg: dict[str, Any], url: str) -> Optional[AuthSelection]:
        ref = self.resolve_ref(auth_cfg, url)
        if not ref:
            return None
        return AuthSelection(ref=ref, secret=self.get(ref))

    def make_auth_hook(self, auth_cfg: dict[str, Any]) -> AuthHook:
        """
        hook(session, url, params, headers):
        - выбирает секрет по url (ref/by_domain),
        - подгружает cookies (cookies_file),
        - добавляет заголовки (headers/bearer).
        """
        def _hook(session: requests.Session, url: str, params: dict[str, Any], headers: dict[str, str]) -> None:
            sel = self.select_for_url(auth_cfg, url)
            if sel is None:
                return
            if str(sel.secret.get("type") or "").strip().lower() == "cookies_file":
                self._load_cookies_into_session(session, sel.ref, sel.secret)
            extra = self._headers_from_secret(sel.secret)
            if extra:
                headers.update(extra)

        return _hook
