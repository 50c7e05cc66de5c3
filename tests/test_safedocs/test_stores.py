"""Unit tests for the store adapters in safedocs.sync."""

import json
from pathlib import Path

import httpx
import pytest

from safedocs.engine import SyncEngine
from safedocs.errors import Failure, StoreUnavailable
from safedocs.sync.base import CredentialRecord, RemoteStore
from safedocs.sync.duckdb_cache import CachedStore, DuckDBRecordCache
from safedocs.sync.http import HttpRecordStore
from safedocs.sync.memory import MemoryStore
from safedocs.tree import DocumentTree

RECORD = {"auth": {"passwordHash": "abc"}, "encryptedData": "v1$salt$token"}

# ---------------------------------------------------------------------------
# CredentialRecord
# ---------------------------------------------------------------------------


class TestCredentialRecord:
    def test_from_dict(self):
        rec = CredentialRecord.from_dict({**RECORD, "updatedAt": 5})
        assert rec == CredentialRecord("abc", "v1$salt$token", 5)

    def test_missing_auth(self):
        assert CredentialRecord.from_dict({"encryptedData": "x"}).password_hash == ""

    def test_to_dict_omits_unset_timestamp(self):
        assert CredentialRecord("abc", "v1$salt$token").to_dict() == RECORD


# ---------------------------------------------------------------------------
# MemoryStore
# ---------------------------------------------------------------------------


class TestMemoryStore:
    def test_satisfies_protocol(self):
        assert isinstance(MemoryStore(), RemoteStore)

    def test_set_stamps_updated_at(self):
        store = MemoryStore(clock=lambda: 42)
        assert store.set("main", RECORD)["updatedAt"] == 42
        assert store.get("main")["updatedAt"] == 42

    def test_returns_copies(self):
        store = MemoryStore()
        store.set("main", RECORD)
        store.get("main")["auth"]["passwordHash"] = "mutated"
        assert store.get("main")["auth"]["passwordHash"] == "abc"

    def test_offline_raises(self):
        store = MemoryStore()
        store.online = False
        with pytest.raises(StoreUnavailable):
            store.get("main")


# ---------------------------------------------------------------------------
# HttpRecordStore
# ---------------------------------------------------------------------------


class FakeBackend:
    def __init__(self) -> None:
        self.records: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        record_id = request.url.path.rsplit("/", 1)[-1]
        if request.method == "GET":
            if record_id not in self.records:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=self.records[record_id])
        if request.method == "PUT":
            stored = {**json.loads(request.content), "updatedAt": "2026-01-01T00:00:00Z"}
            self.records[record_id] = stored
            return httpx.Response(200, json=stored)
        return httpx.Response(405)


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def http_store(backend: FakeBackend) -> HttpRecordStore:
    with HttpRecordStore("https://docs.test/api/", api_token="tok", transport=httpx.MockTransport(backend)) as s:
        yield s


class TestHttpRecordStore:
    def test_absent_record(self, http_store: HttpRecordStore):
        assert http_store.get("main") is None

    def test_put_then_get(self, http_store: HttpRecordStore):
        stored = http_store.set("main", RECORD)
        assert stored["updatedAt"] == "2026-01-01T00:00:00Z"
        assert http_store.get("main")["encryptedData"] == "v1$salt$token"

    def test_sends_bearer_token_and_path(self, http_store: HttpRecordStore, backend: FakeBackend):
        http_store.get("main")
        request = backend.requests[0]
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.path == "/api/records/main"

    def test_server_error_becomes_store_unavailable(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        with HttpRecordStore("https://docs.test", transport=transport) as store:
            with pytest.raises(StoreUnavailable):
                store.get("main")
            with pytest.raises(StoreUnavailable):
                store.set("main", RECORD)

    def test_network_error_becomes_store_unavailable(self):
        def _refuse(request):
            raise httpx.ConnectError("refused", request=request)

        with HttpRecordStore("https://docs.test", transport=httpx.MockTransport(_refuse)) as store:
            with pytest.raises(StoreUnavailable):
                store.get("main")

    def test_non_object_body_becomes_store_unavailable(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["not", "a", "record"]))
        with HttpRecordStore("https://docs.test", transport=transport) as store:
            with pytest.raises(StoreUnavailable):
                store.get("main")
            engine = SyncEngine(store)
            assert engine.unlock("pw").failure is Failure.CONNECTION_ERROR

    def test_env_configuration(self, monkeypatch, backend: FakeBackend):
        monkeypatch.setenv("SAFEDOCS_STORE_URL", "https://env.test")
        monkeypatch.setenv("SAFEDOCS_API_TOKEN", "env-token")
        with HttpRecordStore(transport=httpx.MockTransport(backend)) as store:
            store.get("main")
        assert backend.requests[0].url.host == "env.test"
        assert backend.requests[0].headers["Authorization"] == "Bearer env-token"

    def test_engine_over_http(self, http_store: HttpRecordStore, crypto, tree: DocumentTree):
        engine = SyncEngine(http_store, crypto=crypto)
        assert engine.provision("pw", tree).ok
        assert engine.last_synced_at == "2026-01-01T00:00:00Z"
        engine.lock()
        assert engine.unlock("pw").value == tree


# ---------------------------------------------------------------------------
# DuckDBRecordCache / CachedStore
# ---------------------------------------------------------------------------


@pytest.fixture()
def cache(tmp_path: Path) -> DuckDBRecordCache:
    with DuckDBRecordCache(tmp_path / "cache" / "records.duckdb") as c:
        yield c


class TestDuckDBRecordCache:
    def test_missing(self, cache: DuckDBRecordCache):
        assert cache.get("main") is None

    def test_put_get_overwrite(self, cache: DuckDBRecordCache):
        cache.put("main", RECORD)
        cache.put("main", {**RECORD, "encryptedData": "newer"})
        assert cache.get("main")["encryptedData"] == "newer"

    def test_clear(self, cache: DuckDBRecordCache):
        cache.put("main", RECORD)
        cache.clear("main")
        assert cache.get("main") is None

    def test_persists_across_connections(self, tmp_path: Path):
        path = tmp_path / "c.duckdb"
        with DuckDBRecordCache(path) as first:
            first.put("main", RECORD)
        with DuckDBRecordCache(path) as second:
            assert second.get("main") == RECORD


class TestCachedStore:
    def test_read_refreshes_cache(self, cache: DuckDBRecordCache):
        remote = MemoryStore(clock=lambda: 1)
        remote.set("main", RECORD)
        store = CachedStore(remote, cache)
        assert store.get("main")["encryptedData"] == "v1$salt$token"
        assert cache.get("main")["updatedAt"] == 1

    def test_offline_read_served_from_cache(self, cache: DuckDBRecordCache):
        remote = MemoryStore()
        store = CachedStore(remote, cache)
        store.set("main", RECORD)
        remote.online = False
        assert store.get("main")["auth"] == RECORD["auth"]
        assert store.served_from_cache

    def test_offline_read_without_cache_raises(self, cache: DuckDBRecordCache):
        remote = MemoryStore()
        remote.online = False
        with pytest.raises(StoreUnavailable):
            CachedStore(remote, cache).get("main")

    def test_offline_write_fails_and_cache_untouched(self, cache: DuckDBRecordCache):
        remote = MemoryStore()
        store = CachedStore(remote, cache)
        store.set("main", RECORD)
        remote.online = False
        with pytest.raises(StoreUnavailable):
            store.set("main", {**RECORD, "encryptedData": "unsent"})
        assert cache.get("main")["encryptedData"] == "v1$salt$token"

    def test_remote_deletion_clears_cache(self, cache: DuckDBRecordCache):
        remote = MemoryStore()
        store = CachedStore(remote, cache)
        store.set("main", RECORD)
        del remote.records["main"]
        assert store.get("main") is None
        assert cache.get("main") is None

    def test_offline_unlock_via_engine(self, cache: DuckDBRecordCache, crypto, tree: DocumentTree):
        remote = MemoryStore()
        engine = SyncEngine(CachedStore(remote, cache), crypto=crypto)
        engine.provision("pw", tree)
        engine.lock()
        remote.online = False
        assert engine.unlock("pw").value == tree
        assert engine.push(tree, "pw").failure is Failure.CONNECTION_ERROR

    def test_offline_with_unreadable_cache_is_connection_error(self, tmp_path: Path, crypto):
        remote = MemoryStore()
        remote.online = False
        cache = DuckDBRecordCache(tmp_path / "closed.duckdb")
        cache.close()
        store = CachedStore(remote, cache)
        with pytest.raises(StoreUnavailable):
            store.get("main")
        engine = SyncEngine(store, crypto=crypto)
        assert engine.unlock("pw").failure is Failure.CONNECTION_ERROR
