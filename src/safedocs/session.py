"""SessionController: the gatekeeper between UI events and the core.

The unlocked session lives in an explicit :class:`SessionContext` (passphrase,
working tree, current selection).  UI glue calls the controller's methods;
each successful mutation schedules an autosave.  Status changes are reported
through a single ``on_status`` callback with one of ``"unlocked"``,
``"locked"``, ``"saving"``, ``"saved"`` or ``"saveFailed"``.

Typical flow::

    session = SessionController(engine, timers=AsyncioTimerQueue())
    result = session.unlock(passphrase)
    if result.failure is Failure.RECORD_NOT_FOUND and user_confirms():
        session.provision(passphrase)
    session.add_page(session.context.current_tab_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from safedocs.autosave import (
    DEFAULT_QUIET_INTERVAL_MS,
    SAVE_FAILED,
    SAVED,
    SAVING,
    AutosaveScheduler,
    ManualTimerQueue,
    TimerQueue,
)
from safedocs.engine import SyncEngine
from safedocs.errors import Failure, Outcome, Rejection
from safedocs.grid import GridRow
from safedocs.tree import DocumentTree, PageMode, Tab

logger = logging.getLogger("safedocs.session")

UNLOCKED = "unlocked"
LOCKED = "locked"


@dataclass
class SessionContext:
    passphrase: str
    tree: DocumentTree
    current_tab_id: str | None = None
    current_page_id: str | None = None

    @property
    def current_tab(self) -> Tab | None:
        return self.tree.find_tab(self.current_tab_id) if self.current_tab_id else None


class SessionController:
    """Unlock/relock lifecycle plus every UI-originated mutation.

    Without *timers* a :class:`ManualTimerQueue` is used, which only fires when
    advanced; pending edits are still written by :meth:`save_now` and
    :meth:`lock`.
    """

    def __init__(
        self,
        engine: SyncEngine,
        *,
        timers: TimerQueue | None = None,
        quiet_interval_ms: int = DEFAULT_QUIET_INTERVAL_MS,
        on_status: Callable[[str], None] | None = None,
        initial_tree: Callable[[], DocumentTree] = DocumentTree.initial,
    ) -> None:
        self.engine = engine
        self.context: SessionContext | None = None
        self._on_status = on_status
        self._initial_tree = initial_tree
        self.autosave = AutosaveScheduler(
            timers if timers is not None else ManualTimerQueue(),
            self._push,
            quiet_interval_ms=quiet_interval_ms,
            on_status=self._emit,
            snapshot=self._snapshot,
        )

    @property
    def is_unlocked(self) -> bool:
        return self.context is not None

    def _emit(self, status: str) -> None:
        if self._on_status is not None:
            self._on_status(status)

    def _snapshot(self) -> tuple[DocumentTree, str] | None:
        """Copy of what a push should write, taken on the calling thread."""
        if self.context is None:
            return None
        return self.context.tree.copy(), self.context.passphrase

    def _push(self, state: tuple[DocumentTree, str] | None) -> Outcome:
        if state is None:
            return Outcome.rejected(Rejection.LOCKED, "session is locked")
        tree, passphrase = state
        return self.engine.push(tree, passphrase)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def unlock(self, passphrase: str) -> Outcome:
        if not passphrase:
            return Outcome.rejected(Rejection.EMPTY_PASSPHRASE, "a passphrase is required")
        if self.context is not None:
            return Outcome.rejected(Rejection.ALREADY_UNLOCKED, "lock the session before unlocking again")
        outcome = self.engine.unlock(passphrase)
        if not outcome.ok:
            return outcome
        tree: DocumentTree = outcome.value
        seeded = tree.is_empty
        if seeded:
            logger.info("unlocked document has no tabs; seeding the starter document")
            tree = self._initial_tree()
        self._open(passphrase, tree)
        if seeded:
            self.autosave.notify()
        return Outcome.success(tree)

    def provision(self, passphrase: str, tree: DocumentTree | None = None) -> Outcome:
        """Create the remote record; the caller has already confirmed with the user."""
        if not passphrase:
            return Outcome.rejected(Rejection.EMPTY_PASSPHRASE, "a passphrase is required")
        if self.context is not None:
            return Outcome.rejected(Rejection.ALREADY_UNLOCKED, "lock the session before provisioning")
        tree = tree if tree is not None else self._initial_tree()
        outcome = self.engine.provision(passphrase, tree)
        if not outcome.ok:
            return outcome
        self._open(passphrase, tree)
        return Outcome.success(tree)

    def _open(self, passphrase: str, tree: DocumentTree) -> None:
        self.context = SessionContext(passphrase=passphrase, tree=tree)
        if tree.tabs:
            self.select_tab(tree.tabs[0].id)
        self._emit(UNLOCKED)

    def lock(self, *, flush: bool = True) -> Outcome | None:
        """Drop the passphrase and working tree, saving pending edits first.

        If that save fails (or one is still running) the session stays
        unlocked and the failed outcome is returned, so the edits are not
        lost; ``lock(flush=False)`` discards them.
        """
        result = self.autosave.flush() if flush else None
        if result is not None and not result.ok:
            logger.warning("not locking, pending edits were not saved: %s", result.detail)
            if result.reason is not Rejection.SAVE_IN_PROGRESS:
                # keep the edits scheduled so a later lock() or autosave retries them
                self.autosave.notify()
            return result
        self.autosave.cancel()
        self.engine.lock()
        self.context = None
        self._emit(LOCKED)
        return result

    def save_now(self) -> Outcome:
        if self.context is None:
            return Outcome.rejected(Rejection.LOCKED, "session is locked")
        if self.autosave.in_flight:
            return Outcome.rejected(Rejection.SAVE_IN_PROGRESS, "a save is already running")
        self.autosave.cancel()
        self._emit(SAVING)
        outcome = self._push(self._snapshot())
        self._emit(SAVED if outcome.ok else SAVE_FAILED)
        return outcome

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_tab(self, tab_id: str) -> Outcome:
        ctx = self.context
        if ctx is None:
            return Outcome.rejected(Rejection.LOCKED, "session is locked")
        tab = ctx.tree.find_tab(tab_id)
        if tab is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no tab {tab_id!r}")
        ctx.current_tab_id = tab.id
        ctx.current_page_id = tab.pages[0].id if tab.pages else None
        return Outcome.success(tab)

    def select_page(self, page_id: str) -> Outcome:
        ctx = self.context
        if ctx is None:
            return Outcome.rejected(Rejection.LOCKED, "session is locked")
        tab = ctx.tree.tab_of_page(page_id)
        if tab is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no page {page_id!r}")
        ctx.current_tab_id = tab.id
        ctx.current_page_id = page_id
        return Outcome.success(ctx.tree.find_page(page_id))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _mutate(self, op: Callable[[DocumentTree], Outcome]) -> Outcome:
        if self.context is None:
            return Outcome.rejected(Rejection.LOCKED, "session is locked")
        outcome = op(self.context.tree)
        if outcome.ok:
            self.autosave.notify()
        return outcome

    def add_tab(self, name: str) -> Outcome:
        outcome = self._mutate(lambda tree: Outcome.success(tree.add_tab(name)))
        if outcome.ok:
            self.select_tab(outcome.value.id)
        return outcome

    def delete_tab(self, tab_id: str) -> Outcome:
        outcome = self._mutate(lambda tree: tree.delete_tab(tab_id))
        if outcome.ok and self.context.current_tab_id == tab_id:
            self.select_tab(self.context.tree.tabs[0].id)
        return outcome

    def rename_tab(self, tab_id: str, name: str) -> Outcome:
        return self._mutate(lambda tree: tree.rename_tab(tab_id, name))

    def add_page(self, tab_id: str) -> Outcome:
        outcome = self._mutate(lambda tree: tree.add_page(tab_id))
        if outcome.ok:
            self.select_page(outcome.value.id)
        return outcome

    def set_page_mode(self, page_id: str, mode: PageMode | str) -> Outcome:
        return self._mutate(lambda tree: tree.set_page_mode(page_id, mode))

    def update_page_field(self, page_id: str, field_name: str, value: str) -> Outcome:
        return self._mutate(lambda tree: tree.update_page_field(page_id, field_name, value))

    def add_row(self, page_id: str) -> Outcome:
        return self._mutate(lambda tree: tree.add_row(page_id))

    def delete_row(self, page_id: str, index: int) -> Outcome:
        return self._mutate(lambda tree: tree.delete_row(page_id, index))

    def update_cell(self, page_id: str, index: int, column: str, value: str) -> Outcome:
        return self._mutate(lambda tree: tree.update_cell(page_id, index, column, value))

    def bulk_insert_rows(self, page_id: str, rows: list[GridRow]) -> Outcome:
        return self._mutate(lambda tree: tree.bulk_insert_rows(page_id, rows))

    def paste_rows(self, page_id: str, text: str) -> Outcome:
        return self._mutate(lambda tree: tree.paste_rows(page_id, text))


def describe_failure(outcome: Outcome) -> str:
    """Short user-facing message for a failed outcome."""
    messages = {
        Failure.WRONG_PASSWORD: "Wrong password",
        Failure.RECORD_NOT_FOUND: "No data found in the cloud",
        Failure.DECRYPTION_FAILURE: "Decryption error: the data is corrupt or the password is wrong (hash collision)",
        Failure.CONNECTION_ERROR: "Connection error",
    }
    if outcome.failure is Failure.STRUCTURAL_REJECTION:
        return outcome.detail or (outcome.reason.value if outcome.reason else "rejected")
    message = messages.get(outcome.failure, "")
    return f"{message}: {outcome.detail}" if outcome.failure is Failure.CONNECTION_ERROR and outcome.detail else message
