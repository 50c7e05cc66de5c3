"""Remote document store adapters."""

from safedocs.sync.base import CredentialRecord, RemoteStore
from safedocs.sync.memory import MemoryStore

__all__ = ["CredentialRecord", "RemoteStore", "MemoryStore"]
