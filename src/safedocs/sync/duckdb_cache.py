"""DuckDB offline cache for the encrypted credential record.

The cache only ever holds what the remote store holds: the password hash and
the ciphertext.  Plaintext notes and the passphrase never touch disk.

:class:`CachedStore` wraps any remote store:

1. ``get`` asks the remote first and refreshes the cache on success.  When the
   remote raises :class:`~safedocs.errors.StoreUnavailable` the cached copy is
   served instead (if there is one).
2. ``set`` writes through to the remote; only an acknowledged write updates the
   cache.  An offline write still fails, so the session keeps its unsynced
   state and reports ``saveFailed``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import duckdb

from safedocs.errors import StoreUnavailable
from safedocs.sync.base import RemoteStore

logger = logging.getLogger("safedocs.sync.cache")


class DuckDBRecordCache:
    """Local DuckDB table keyed by record id."""

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(self._db_path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS records (
                record_id  VARCHAR PRIMARY KEY,
                payload    VARCHAR NOT NULL,
                cached_at  TIMESTAMPTZ DEFAULT now()
            );
        """)

    def put(self, record_id: str, record: dict[str, Any]) -> None:
        self.conn.execute(
            """
            INSERT INTO records (record_id, payload, cached_at)
            VALUES (?, ?, now())
            ON CONFLICT (record_id) DO UPDATE SET
                payload   = excluded.payload,
                cached_at = now();
            """,
            [record_id, json.dumps(record, default=str)],
        )

    def get(self, record_id: str) -> dict[str, Any] | None:
        row = self.conn.execute(
            "SELECT payload FROM records WHERE record_id = ?",
            [record_id],
        ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def clear(self, record_id: str) -> None:
        self.conn.execute("DELETE FROM records WHERE record_id = ?", [record_id])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "DuckDBRecordCache":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class CachedStore:
    """Read-through / write-through cache in front of a remote store."""

    def __init__(self, remote: RemoteStore, cache: DuckDBRecordCache) -> None:
        self.remote = remote
        self.cache = cache
        #: True when the last ``get`` was answered from the cache
        self.served_from_cache = False

    def get(self, record_id: str) -> dict[str, Any] | None:
        try:
            record = self.remote.get(record_id)
        except StoreUnavailable:
            try:
                cached = self.cache.get(record_id)
            except duckdb.Error as exc:
                logger.warning("local cache unreadable for %s: %s", record_id, exc)
                raise StoreUnavailable(f"remote unreachable and cache unreadable: {exc}") from exc
            if cached is None:
                raise
            logger.warning("remote store unreachable; serving cached copy of %s", record_id)
            self.served_from_cache = True
            return cached
        self.served_from_cache = False
        self._refresh(record_id, record)
        return record

    def set(self, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        stored = self.remote.set(record_id, record)
        self._refresh(record_id, stored)
        return stored

    def _refresh(self, record_id: str, record: dict[str, Any] | None) -> None:
        try:
            if record is None:
                self.cache.clear(record_id)
            else:
                self.cache.put(record_id, record)
        except duckdb.Error as exc:
            logger.warning("could not update local cache for %s: %s", record_id, exc)

    def close(self) -> None:
        self.cache.close()
        close = getattr(self.remote, "close", None)
        if close is not None:
            close()
