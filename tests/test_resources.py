import logging

import pytest
import requests
from fastapi.testclient import TestClient

from cinegen.errors import StorageError
from cinegen.storage.cache import LocalCache
from cinegen.storage.remote import RemoteStore
from cinegen.storage.resources import ResourceCache, canonical_key, split_key
from cinegen.storage.server import create_app

from conftest import PNG_DATA_URL, FakeSession

KEY = "/api/files/get/alice/images/a.png"


class CountingClient:
    """Wraps a TestClient and counts the requests that reach it."""

    def __init__(self, http):
        self.http = http
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(("GET", url))
        return self.http.get(url, **kwargs)

    def post(self, url, **kwargs):
        self.calls.append(("POST", url))
        return self.http.post(url, **kwargs)


@pytest.fixture
def http(tmp_path):
    return CountingClient(TestClient(create_app(tmp_path / "UserSaved")))


@pytest.fixture
def cache(tmp_path):
    return LocalCache(tmp_path / "cache")


@pytest.fixture
def resources(http, cache):
    remote = RemoteStore("http://testserver", username="alice", session=http)
    return ResourceCache(remote, cache, store_url="http://localhost:3001")


def offline(cache):
    session = FakeSession()
    session.add("GET", "/api/files", requests.ConnectionError("refused"))
    session.add("POST", "/api/files", requests.ConnectionError("refused"))
    return ResourceCache(RemoteStore("http://store.test", username="alice", session=session), cache)


@pytest.mark.parametrize(
    "reference",
    [
        "http://localhost:3001/api/files/get/alice/images/a.png",
        "https://store.example.com/api/files/get/alice/images/a.png?v=2",
        "/api/files/get/alice/images/a.png",
        "/proxy/api/files/get/alice/images/a.png",
    ],
)
def test_canonical_key_is_host_independent(reference):
    assert canonical_key(reference) == KEY


def test_canonical_key_rejects_foreign_urls():
    assert canonical_key("https://cdn.example.com/a.png") is None
    assert canonical_key("") is None


def test_split_key():
    assert split_key(KEY) == ("alice", "images", "a.png")
    assert split_key("/api/files/get/alice/a.png") is None


def test_data_url_passes_through(resources, http):
    assert resources.resolve(PNG_DATA_URL) == PNG_DATA_URL
    assert http.calls == []


def test_foreign_reference_is_unresolved(resources, http):
    assert resources.resolve("https://cdn.example.com/a.png") is None
    assert resources.resolve(None) is None
    assert http.calls == []


def test_save_returns_store_url_and_warms_cache(resources, cache):
    reference = resources.save("images", "a.png", PNG_DATA_URL)

    assert reference == "http://localhost:3001" + KEY
    assert cache.get(KEY) == PNG_DATA_URL


def test_resolve_after_save_works_with_store_offline(resources, cache):
    reference = resources.save("images", "a.png", PNG_DATA_URL)

    assert offline(cache).resolve(reference) == PNG_DATA_URL


def test_resolve_is_idempotent_and_fetches_once(tmp_path, http):
    RemoteStore("http://testserver", username="alice", session=http).save("images", "a.png", PNG_DATA_URL)
    http.calls.clear()
    remote = RemoteStore("http://testserver", username="bob", session=http)
    resources = ResourceCache(remote, LocalCache(tmp_path / "fresh"))

    first = resources.resolve("http://elsewhere:9999" + KEY)
    second = resources.resolve(KEY)

    assert first == second == PNG_DATA_URL
    assert http.calls == [("GET", "http://testserver" + KEY)]


def test_missing_resource_is_none(resources):
    assert resources.resolve("/api/files/get/alice/images/ghost.png") is None


def test_store_failure_on_read_is_none(cache, caplog):
    with caplog.at_level(logging.WARNING, logger="cinegen.storage.resources"):
        assert offline(cache).resolve(KEY) is None
    assert "Could not fetch" in caplog.text


def test_store_failure_on_save_propagates(cache):
    with pytest.raises(StorageError):
        offline(cache).save("images", "a.png", PNG_DATA_URL)
    assert cache.get(KEY) is None


def test_cache_failure_on_save_is_swallowed(resources, cache, monkeypatch, caplog):
    def broken_put(*args, **kwargs):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(cache, "put", broken_put)

    with caplog.at_level(logging.WARNING, logger="cinegen.storage.resources"):
        reference = resources.save("images", "a.png", PNG_DATA_URL)

    assert reference.endswith(KEY)
    assert "could not warm the cache" in caplog.text
    monkeypatch.undo()
    assert resources.resolve(reference) == PNG_DATA_URL


def test_raw_base64_save_is_cached_as_data_url(resources, cache):
    resources.save("videos", "clip.mp4", "aGVsbG8=", "video/mp4")
    assert cache.get("/api/files/get/alice/videos/clip.mp4") == "data:video/mp4;base64,aGVsbG8="


def test_local_cache_roundtrip_and_delete(cache):
    assert cache.get(KEY) is None
    entry = cache.put(KEY, PNG_DATA_URL)

    assert entry.mime_type == "image/png"
    assert cache.contains(KEY)
    assert cache.get(KEY) == PNG_DATA_URL
    assert cache.delete(KEY)
    assert not cache.contains(KEY)


def test_local_cache_rejects_non_data_urls(cache):
    with pytest.raises(ValueError):
        cache.put(KEY, "https://cdn.example.com/a.png")


def test_local_cache_ignores_corrupt_metadata(cache):
    cache.put(KEY, PNG_DATA_URL)
    meta = next(cache.root.rglob("*.json"))
    meta.write_text("{not json", encoding="utf-8")

    assert cache.get(KEY) is None


def test_cache_failure_on_read_still_returns_payload(tmp_path, http, monkeypatch, caplog):
    RemoteStore("http://testserver", username="alice", session=http).save("images", "a.png", PNG_DATA_URL)
    cache = LocalCache(tmp_path / "fresh")
    resources = ResourceCache(RemoteStore("http://testserver", session=http), cache)

    def broken_put(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(cache, "put", broken_put)

    with caplog.at_level(logging.WARNING, logger="cinegen.storage.resources"):
        assert resources.resolve(KEY) == PNG_DATA_URL

    assert "Failed to cache" in caplog.text
    assert not cache.contains(KEY)


def test_explicit_mime_type_is_used_for_the_cached_copy(resources, cache, tmp_path, http):
    reference = resources.save("videos", "v.mp4", "data:application/octet-stream;base64,aGVsbG8=", "video/mp4")

    cached = resources.resolve(reference)
    uncached = ResourceCache(resources.remote, LocalCache(tmp_path / "empty")).resolve(reference)

    assert cached == uncached == "data:video/mp4;base64,aGVsbG8="


def test_resolve_many_keeps_order(resources):
    reference = resources.save("images", "a.png", PNG_DATA_URL)

    resolved = resources.resolve_many([reference, None, "https://cdn.example.com/x.png", "data:image/png;base64,eA=="])

    assert resolved == [PNG_DATA_URL, None, None, "data:image/png;base64,eA=="]
