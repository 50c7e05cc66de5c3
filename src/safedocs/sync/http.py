"""HTTP document store client.

A thin ``httpx`` client for a backend that keeps one JSON document per record
id.  The server stamps ``updatedAt`` on every write.

Expected routes
---------------
GET  /records/{record_id}    – fetch the record (404 when absent)
PUT  /records/{record_id}    – overwrite the record, returns the stored record

Callers authenticate with ``Authorization: Bearer <token>``.

Environment variables (all optional; direct kwargs take precedence):
    SAFEDOCS_STORE_URL   – base URL of the backend
    SAFEDOCS_API_TOKEN   – bearer token
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from safedocs.errors import StoreUnavailable

logger = logging.getLogger("safedocs.sync.http")


class HttpRecordStore:
    """:class:`~safedocs.sync.base.RemoteStore` backed by an HTTP API."""

    def __init__(
        self,
        store_url: str | None = None,
        *,
        api_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = (store_url or os.getenv("SAFEDOCS_STORE_URL", "")).rstrip("/")
        self._token = api_token or os.getenv("SAFEDOCS_API_TOKEN", "")
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._token}", "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def get(self, record_id: str) -> dict[str, Any] | None:
        try:
            r = self._client.get(f"/records/{record_id}")
            if r.status_code == 404:
                return None
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("GET %s failed: %s", record_id, exc)
            raise StoreUnavailable(str(exc)) from exc
        if not isinstance(body, dict):
            logger.warning("GET %s returned a %s, not an object", record_id, type(body).__name__)
            raise StoreUnavailable(f"record {record_id!r} body is not a JSON object")
        return body

    def set(self, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        try:
            r = self._client.put(f"/records/{record_id}", json=record)
            r.raise_for_status()
            stored = r.json() if r.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("PUT %s failed: %s", record_id, exc)
            raise StoreUnavailable(str(exc)) from exc
        return {**record, **stored} if isinstance(stored, dict) else dict(record)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpRecordStore":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
