"""Outcome type and failure taxonomy shared by every public operation.

Nothing in the session-facing API raises for expected conditions (wrong
password, missing record, offline backend, invariant violations).  Instead each
call returns an :class:`Outcome` that either carries a value or a tagged
:class:`Failure`::

    result = engine.unlock("hunter2")
    if result.ok:
        tree = result.value
    elif result.failure is Failure.WRONG_PASSWORD:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Failure(str, Enum):
    """Recoverable-by-user failure categories."""

    WRONG_PASSWORD = "wrongPassword"
    RECORD_NOT_FOUND = "notFound"
    DECRYPTION_FAILURE = "decryptionFailure"
    CONNECTION_ERROR = "connectionError"
    STRUCTURAL_REJECTION = "rejected"


class Rejection(str, Enum):
    """Reason attached to a :attr:`Failure.STRUCTURAL_REJECTION`."""

    LAST_TAB = "lastTab"
    NOT_FOUND = "notFound"
    WRONG_MODE = "wrongMode"
    ROW_OUT_OF_RANGE = "rowOutOfRange"
    INVALID_FIELD = "invalidField"
    INVALID_MODE = "invalidMode"
    NOT_TABULAR = "notTabular"
    LOCKED = "locked"
    ALREADY_UNLOCKED = "alreadyUnlocked"
    SAVE_IN_PROGRESS = "saveInProgress"
    EMPTY_PASSPHRASE = "emptyPassphrase"


@dataclass(frozen=True)
class Outcome:
    """Either a success ``value`` or a ``failure`` (plus optional reason)."""

    value: Any = None
    failure: Failure | None = None
    reason: Rejection | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: Failure, detail: str = "") -> "Outcome":
        return cls(failure=failure, detail=detail)

    @classmethod
    def rejected(cls, reason: Rejection, detail: str = "") -> "Outcome":
        return cls(failure=Failure.STRUCTURAL_REJECTION, reason=reason, detail=detail)

    def __bool__(self) -> bool:
        return self.ok


class StoreUnavailable(Exception):
    """Raised by store adapters when the backend cannot be reached."""


class ConfigError(ValueError):
    """Raised when the local bootstrap configuration is invalid."""
