"""Remote store protocol and the credential record it holds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RemoteStore(Protocol):
    """Single-document key/value store shared by all backends.

    Implementations (in-memory, HTTP, DuckDB-cached, …) must satisfy this
    protocol so the sync engine can swap backends without changing call sites.
    Network or backend failures are raised as
    :class:`~safedocs.errors.StoreUnavailable`.
    """

    def get(self, record_id: str) -> dict[str, Any] | None:
        """Fetch the record stored under *record_id*, or ``None`` when absent."""
        ...

    def set(self, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        """Overwrite *record_id* with *record*; return it with ``updatedAt`` set."""
        ...


@dataclass(frozen=True)
class CredentialRecord:
    """The one remote object: password hash plus encrypted document."""

    password_hash: str
    encrypted_data: str
    updated_at: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CredentialRecord":
        auth = data.get("auth") if isinstance(data.get("auth"), dict) else {}
        return cls(
            password_hash=str(auth.get("passwordHash") or ""),
            encrypted_data=str(data.get("encryptedData") or ""),
            updated_at=data.get("updatedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "auth": {"passwordHash": self.password_hash},
            "encryptedData": self.encrypted_data,
        }
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data
