import json

import pytest

from feed_stream.config import ClientConfig, build_engine, load_config
from feed_stream.errors import ConfigError
from feed_stream.records import BookInfo, VideoInfo
from feed_stream.secret_store import SecretStore
from feed_stream.storage_jsonl import JsonlWriter, read_jsonl, record_key, write_jsonl


def test_load_config_defaults():
    cfg = load_config(None)
    assert cfg.timeout == 20.0
    assert cfg.max_pages is None
    assert cfg.http == {}


def test_load_config_file(tmp_path):
    p = tmp_path / "config.json"
    p.write_text(json.dumps({
        "timeout": 5,
        "headers": {"Accept-Language": "en"},
        "max_pages": 3,
        "http": {"retries": {"max_attempts": 2}},
        "auth": {"ref": "google"},
    }), encoding="utf-8")
    cfg = load_config(str(p))
    assert cfg == ClientConfig(
        timeout=5.0,
        headers={"Accept-Language": "en"},
        http={"retries": {"max_attempts": 2}},
        auth={"ref": "google"},
        max_pages=3,
    )


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"timeout": "fast"},
        {"headers": ["x"]},
        {"http": "yes"},
        {"max_pages": -1},
        {"max_pages": True},
    ],
)
def test_invalid_config(raw):
    with pytest.raises(ConfigError):
        ClientConfig.from_dict(raw)


def test_unreadable_config(tmp_path):
    p = tmp_path / "config.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(p))
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "absent.json"))


def test_overrides_apply_on_top_of_file():
    cfg = ClientConfig.from_dict({"http": {"cache": {"dir": "a"}}, "max_pages": 5})
    out = cfg.with_overrides(cache_dir="b", replay=True, diag_http=True, max_pages=2)
    assert out.http == {"cache": {"dir": "b", "replay": True}, "diag_http": True}
    assert out.max_pages == 2
    # исходный конфиг не меняется
    assert cfg.http == {"cache": {"dir": "a"}}
    assert cfg.with_overrides().max_pages == 5


def test_build_engine_requires_secrets_when_auth_set():
    with pytest.raises(ConfigError):
        build_engine(ClientConfig(auth={"ref": "google"}))


def test_build_engine_with_secrets(tmp_path):
    p = tmp_path / "secrets.json"
    p.write_text('{"google": {"type": "bearer", "token": "T"}}', encoding="utf-8")
    cfg = ClientConfig(timeout=3.0, auth={"ref": "google"}, http={"diag_http": True})
    eng = build_engine(cfg, SecretStore(str(p)))
    assert eng.default_timeout == 3.0
    assert eng.diag_http is True
    assert eng._auth_hook is not None


def test_record_key():
    assert record_key(VideoInfo(id="abc")) == "VideoInfo:id:abc"
    assert record_key(BookInfo(id="abc")) == "BookInfo:id:abc"
    anon = record_key(VideoInfo(title="x"))
    assert anon.startswith("VideoInfo:sha1:")
    assert anon == record_key(VideoInfo(title="x"))
    assert anon != record_key(VideoInfo(title="y"))


def test_jsonl_writer_unique(tmp_path):
    out = tmp_path / "sub" / "out.jsonl"
    with JsonlWriter(str(out), unique=True) as w:
        assert w.write(VideoInfo(id="a", title="first"))
        assert not w.write(VideoInfo(id="a", title="again"))
        assert w.write(VideoInfo(id="b"))
    assert (w.written, w.skipped) == (2, 1)
    rows = read_jsonl(str(out))
    assert [r["id"] for r in rows] == ["a", "b"]
    assert rows[0]["title"] == "first"


def test_write_jsonl_keeps_repeats_by_default(tmp_path):
    out = tmp_path / "out.jsonl"
    n = write_jsonl(str(out), [BookInfo(id="a", authors=("X",)), BookInfo(id="a")])
    assert n == 2
    rows = read_jsonl(str(out))
    assert rows[0]["authors"] == ["X"]
