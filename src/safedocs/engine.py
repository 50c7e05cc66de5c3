"""SyncEngine: owns the single remote credential record.

Unlock flow
-----------
1. Fetch the record.
2. Absent → ``RECORD_NOT_FOUND`` (the caller decides whether to provision).
3. Compare ``hash_password(passphrase)`` with the stored hash.  A mismatch is
   ``WRONG_PASSWORD`` and decryption is never attempted.
4. Decrypt.  ``None`` despite a matching hash (corruption, or the rare hash
   collision) is ``DECRYPTION_FAILURE``.
5. Otherwise the engine is ``UNLOCKED`` and the tree is returned.

Writes (``provision`` and ``push``) always replace the whole record.  There is
no version check: two unlocked sessions pushing concurrently overwrite each
other and the last write wins.
"""

from __future__ import annotations

import logging
from enum import Enum

from safedocs.crypto import CryptoGateway, hash_password
from safedocs.errors import Failure, Outcome, Rejection, StoreUnavailable
from safedocs.sync.base import CredentialRecord, RemoteStore
from safedocs.tree import DocumentTree

logger = logging.getLogger("safedocs.engine")

DEFAULT_RECORD_ID = "main"


class SyncState(str, Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"
    PROVISIONING = "provisioning"
    SAVING = "saving"


class SyncEngine:
    def __init__(
        self,
        store: RemoteStore,
        *,
        crypto: CryptoGateway | None = None,
        record_id: str = DEFAULT_RECORD_ID,
    ) -> None:
        self.store = store
        self.crypto = crypto or CryptoGateway()
        self.record_id = record_id
        self.state = SyncState.LOCKED
        #: ``updatedAt`` of the last record read or written
        self.last_synced_at = None

    def _transition(self, state: SyncState) -> None:
        logger.debug("sync state %s -> %s", self.state.value, state.value)
        self.state = state

    # ------------------------------------------------------------------
    # Unlock / provision
    # ------------------------------------------------------------------

    def _unlock_failed(self, previous: SyncState) -> None:
        # a failed re-unlock must not lock out a session that is already open
        self._transition(SyncState.UNLOCKED if previous is SyncState.UNLOCKED else SyncState.LOCKED)

    def unlock(self, passphrase: str) -> Outcome:
        previous = self.state
        self._transition(SyncState.UNLOCKING)
        try:
            raw = self.store.get(self.record_id)
        except StoreUnavailable as exc:
            self._unlock_failed(previous)
            logger.warning("unlock failed, store unavailable: %s", exc)
            return Outcome.fail(Failure.CONNECTION_ERROR, str(exc))

        if raw is None:
            self._unlock_failed(previous)
            logger.info("no record %r in store", self.record_id)
            return Outcome.fail(Failure.RECORD_NOT_FOUND, f"record {self.record_id!r} does not exist")

        if not isinstance(raw, dict):
            self._unlock_failed(previous)
            logger.warning("record %r is not an object", self.record_id)
            return Outcome.fail(Failure.DECRYPTION_FAILURE, "stored record is malformed")

        record = CredentialRecord.from_dict(raw)
        if not record.password_hash or record.password_hash != hash_password(passphrase):
            self._unlock_failed(previous)
            return Outcome.fail(Failure.WRONG_PASSWORD, "password does not match")

        tree = self.crypto.decrypt(record.encrypted_data, passphrase)
        if tree is None:
            self._unlock_failed(previous)
            logger.warning("password hash matched but record %r could not be decrypted", self.record_id)
            return Outcome.fail(Failure.DECRYPTION_FAILURE, "data is corrupt or the password hash collided")

        self.last_synced_at = record.updated_at
        self._transition(SyncState.UNLOCKED)
        logger.info("unlocked record %r", self.record_id)
        return Outcome.success(tree)

    def provision(self, passphrase: str, initial_tree: DocumentTree) -> Outcome:
        """Create (or, after user confirmation, replace) the record."""
        previous = self.state
        self._transition(SyncState.PROVISIONING)
        outcome = self._write(initial_tree, passphrase)
        if outcome.ok:
            self._transition(SyncState.UNLOCKED)
            logger.info("provisioned record %r", self.record_id)
        else:
            self._unlock_failed(previous)
        return outcome

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push(self, tree: DocumentTree, passphrase: str) -> Outcome:
        if self.state is not SyncState.UNLOCKED:
            return Outcome.rejected(Rejection.LOCKED, f"cannot push while {self.state.value}")
        self._transition(SyncState.SAVING)
        try:
            outcome = self._write(tree, passphrase)
        finally:
            # lock() may have run while the write was in flight
            if self.state is SyncState.SAVING:
                self._transition(SyncState.UNLOCKED)
        if outcome.ok:
            logger.info("pushed record %r", self.record_id)
        return outcome

    def _write(self, tree: DocumentTree, passphrase: str) -> Outcome:
        record = CredentialRecord(
            password_hash=hash_password(passphrase),
            encrypted_data=self.crypto.encrypt(tree, passphrase),
        )
        try:
            stored = self.store.set(self.record_id, record.to_dict())
        except StoreUnavailable as exc:
            logger.warning("write of %r failed: %s", self.record_id, exc)
            return Outcome.fail(Failure.CONNECTION_ERROR, str(exc))
        self.last_synced_at = stored.get("updatedAt") if isinstance(stored, dict) else None
        return Outcome.success(self.last_synced_at)

    def lock(self) -> None:
        self._transition(SyncState.LOCKED)
