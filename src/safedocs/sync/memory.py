"""In-process store, for tests and for running without a backend."""

from __future__ import annotations

import copy
from typing import Any, Callable

from safedocs.errors import StoreUnavailable
from safedocs.tree import now_ms


class MemoryStore:
    """Dict-backed :class:`~safedocs.sync.base.RemoteStore`.

    Set ``online = False`` to simulate an unreachable backend.
    """

    def __init__(self, *, clock: Callable[[], int] = now_ms) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.online = True
        self.writes = 0
        self._clock = clock

    def _check(self) -> None:
        if not self.online:
            raise StoreUnavailable("memory store is offline")

    def get(self, record_id: str) -> dict[str, Any] | None:
        self._check()
        record = self.records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def set(self, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        self._check()
        stored = copy.deepcopy(record)
        stored["updatedAt"] = self._clock()
        self.records[record_id] = stored
        self.writes += 1
        return copy.deepcopy(stored)
