"""Shared fixtures: a fast KDF, a fake clock and an in-memory store."""

from __future__ import annotations

import itertools

import pytest

from safedocs.crypto import CryptoGateway
from safedocs.engine import SyncEngine
from safedocs.sync.memory import MemoryStore
from safedocs.tree import DocumentTree, Tab, TextPage

# Low iteration count keeps the suite quick; the format is unchanged.
FAST_ITERATIONS = 1_000


@pytest.fixture()
def crypto() -> CryptoGateway:
    return CryptoGateway(iterations=FAST_ITERATIONS)


@pytest.fixture()
def clock():
    """Monotonic fake millisecond clock: 1000, 1001, 1002, …"""
    counter = itertools.count(1000)
    return lambda: next(counter)


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore(clock=lambda: 1_700_000_000_000)


@pytest.fixture()
def engine(store: MemoryStore, crypto: CryptoGateway) -> SyncEngine:
    return SyncEngine(store, crypto=crypto)


@pytest.fixture()
def tree(clock) -> DocumentTree:
    return DocumentTree(
        [
            Tab(
                id="tab-a",
                name="Ideas",
                pages=[TextPage(id="page-1", title="First", body="hello", updated_at=1)],
            ),
        ],
        clock=clock,
    )
