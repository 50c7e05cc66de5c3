"""SafeDocs: a password-encrypted note store synced as one remote document."""

from safedocs.autosave import AsyncioTimerQueue, AutosaveScheduler, ManualTimerQueue
from safedocs.config import SafeDocsConfig, build_engine, load_config
from safedocs.crypto import CryptoGateway, hash_password
from safedocs.engine import SyncEngine, SyncState
from safedocs.errors import Failure, Outcome, Rejection, StoreUnavailable
from safedocs.grid import GridRow
from safedocs.session import SessionContext, SessionController, describe_failure
from safedocs.tree import DocumentTree, GridPage, PageMode, Tab, TextPage

__all__ = [
    "AsyncioTimerQueue",
    "AutosaveScheduler",
    "ManualTimerQueue",
    "SafeDocsConfig",
    "build_engine",
    "load_config",
    "CryptoGateway",
    "hash_password",
    "SyncEngine",
    "SyncState",
    "Failure",
    "Outcome",
    "Rejection",
    "StoreUnavailable",
    "GridRow",
    "SessionContext",
    "SessionController",
    "describe_failure",
    "DocumentTree",
    "GridPage",
    "PageMode",
    "Tab",
    "TextPage",
]
