"""DocumentTree: the in-memory note hierarchy (tabs → pages).

Pages are a tagged union of :class:`TextPage` and :class:`GridPage`.  The wire
form used for encryption keeps the flat ``{id, title, content, mode,
updatedAt}`` layout, where ``content`` is either free text or the JSON form of
the grid rows.

All structural operations are synchronous and return an
:class:`~safedocs.errors.Outcome` (``add_tab`` excepted, which always
succeeds).  Invariant: a populated tree never loses its last tab.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Union

from safedocs.errors import Outcome, Rejection
from safedocs.grid import COLUMNS, GridRow, is_tabular, parse_paste, parse_rows, serialize_rows

Clock = Callable[[], int]

WELCOME_TEXT = (
    "This is a cloud-synced thinking space.\n\n"
    "How it works:\n"
    "Your notes are encrypted on this device and stored in your own backend.\n"
    "Use the same settings and passphrase on your computer and phone to open\n"
    "the same notes anywhere.\n\n"
    "Everything is encrypted before it leaves the device."
)


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class PageMode(str, Enum):
    TEXT = "text"
    GRID = "grid"


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


@dataclass
class TextPage:
    id: str
    title: str = ""
    body: str = ""
    updated_at: int = 0

    mode = PageMode.TEXT

    @property
    def content(self) -> str:
        return self.body

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.body,
            "mode": self.mode.value,
            "updatedAt": self.updated_at,
        }


@dataclass
class GridPage:
    id: str
    title: str = ""
    rows: list[GridRow] = field(default_factory=list)
    updated_at: int = 0

    mode = PageMode.GRID

    @property
    def content(self) -> str:
        return serialize_rows(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "mode": self.mode.value,
            "updatedAt": self.updated_at,
        }


Page = Union[TextPage, GridPage]


def page_from_dict(data: dict[str, Any]) -> Page:
    """Build a page from its wire form; a missing ``mode`` means text."""
    mode = data.get("mode") or PageMode.TEXT.value
    common = {
        "id": str(data["id"]),
        "title": data.get("title") or "",
        "updated_at": int(data.get("updatedAt") or 0),
    }
    if mode == PageMode.GRID.value:
        return GridPage(rows=parse_rows(data.get("content")), **common)
    content = data.get("content")
    return TextPage(body=content if isinstance(content, str) else "", **common)


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------


@dataclass
class Tab:
    id: str
    name: str
    pages: list[Page] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "pages": [p.to_dict() for p in self.pages]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tab":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            pages=[page_from_dict(p) for p in data.get("pages") or []],
        )


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


class DocumentTree:
    """The whole plaintext document: an ordered list of tabs."""

    def __init__(self, tabs: list[Tab] | None = None, *, clock: Clock = now_ms) -> None:
        self.tabs: list[Tab] = list(tabs or [])
        self._clock = clock

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentTree):
            return NotImplemented
        return self.tabs == other.tabs

    def __repr__(self) -> str:
        return f"DocumentTree(tabs={self.tabs!r})"

    # ------------------------------------------------------------------
    # Construction / wire form
    # ------------------------------------------------------------------

    @classmethod
    def initial(cls, *, clock: Clock = now_ms) -> "DocumentTree":
        """The starter document used when provisioning a new store."""
        welcome = TextPage(id="page-welcome", title="Welcome (Cloud)", body=WELCOME_TEXT, updated_at=clock())
        return cls([Tab(id="tab-ideas", name="Ideas", pages=[welcome])], clock=clock)

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, clock: Clock = now_ms) -> "DocumentTree":
        tabs = data.get("tabs")
        if not isinstance(tabs, list):
            raise ValueError("document has no 'tabs' list")
        return cls([Tab.from_dict(t) for t in tabs], clock=clock)

    def to_dict(self) -> dict[str, Any]:
        return {"tabs": [t.to_dict() for t in self.tabs]}

    def copy(self) -> "DocumentTree":
        """Deep copy through the wire form."""
        return DocumentTree.from_dict(self.to_dict(), clock=self._clock)

    @property
    def is_empty(self) -> bool:
        return not self.tabs

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_tab(self, tab_id: str) -> Tab | None:
        return next((t for t in self.tabs if t.id == tab_id), None)

    def tab_of_page(self, page_id: str) -> Tab | None:
        return next((t for t in self.tabs if any(p.id == page_id for p in t.pages)), None)

    def find_page(self, page_id: str) -> Page | None:
        for tab in self.tabs:
            for page in tab.pages:
                if page.id == page_id:
                    return page
        return None

    def _grid_page(self, page_id: str) -> GridPage | Outcome:
        page = self.find_page(page_id)
        if page is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no page {page_id!r}")
        if not isinstance(page, GridPage):
            return Outcome.rejected(Rejection.WRONG_MODE, f"page {page_id!r} is not a grid")
        return page

    # ------------------------------------------------------------------
    # Tabs
    # ------------------------------------------------------------------

    def add_tab(self, name: str) -> Tab:
        tab = Tab(id=new_id("tab"), name=name)
        self.tabs.append(tab)
        return tab

    def delete_tab(self, tab_id: str) -> Outcome:
        tab = self.find_tab(tab_id)
        if tab is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no tab {tab_id!r}")
        if len(self.tabs) <= 1:
            return Outcome.rejected(Rejection.LAST_TAB, "the last tab cannot be deleted")
        self.tabs.remove(tab)
        return Outcome.success(tab)

    def rename_tab(self, tab_id: str, name: str) -> Outcome:
        tab = self.find_tab(tab_id)
        if tab is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no tab {tab_id!r}")
        tab.name = name
        return Outcome.success(tab)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def add_page(self, tab_id: str) -> Outcome:
        tab = self.find_tab(tab_id)
        if tab is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no tab {tab_id!r}")
        page = TextPage(id=new_id("page"), updated_at=self._clock())
        tab.pages.append(page)
        return Outcome.success(page)

    def set_page_mode(self, page_id: str, mode: PageMode | str) -> Outcome:
        """Switch *page_id* to *mode*, discarding its content.

        Callers must confirm with the user first.  Requesting the current mode
        leaves the page untouched.
        """
        try:
            mode = PageMode(mode)
        except ValueError:
            return Outcome.rejected(Rejection.INVALID_MODE, f"unknown mode {mode!r}")
        tab = self.tab_of_page(page_id)
        if tab is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no page {page_id!r}")
        index = next(i for i, p in enumerate(tab.pages) if p.id == page_id)
        page = tab.pages[index]
        if page.mode is mode:
            return Outcome.success(page)
        cls = GridPage if mode is PageMode.GRID else TextPage
        replacement = cls(id=page.id, title=page.title, updated_at=self._clock())
        tab.pages[index] = replacement
        return Outcome.success(replacement)

    def update_page_field(self, page_id: str, field_name: str, value: str) -> Outcome:
        page = self.find_page(page_id)
        if page is None:
            return Outcome.rejected(Rejection.NOT_FOUND, f"no page {page_id!r}")
        if field_name == "title":
            page.title = value
        elif field_name == "content":
            if isinstance(page, GridPage):
                page.rows = parse_rows(value)
            else:
                page.body = value
        else:
            return Outcome.rejected(Rejection.INVALID_FIELD, f"unknown page field {field_name!r}")
        page.updated_at = self._clock()
        return Outcome.success(page)

    # ------------------------------------------------------------------
    # Grid rows
    # ------------------------------------------------------------------

    def add_row(self, page_id: str) -> Outcome:
        page = self._grid_page(page_id)
        if isinstance(page, Outcome):
            return page
        row = GridRow()
        page.rows.append(row)
        page.updated_at = self._clock()
        return Outcome.success(row)

    def delete_row(self, page_id: str, index: int) -> Outcome:
        page = self._grid_page(page_id)
        if isinstance(page, Outcome):
            return page
        if not 0 <= index < len(page.rows):
            return Outcome.rejected(Rejection.ROW_OUT_OF_RANGE, f"row {index} out of range")
        row = page.rows.pop(index)
        page.updated_at = self._clock()
        return Outcome.success(row)

    def update_cell(self, page_id: str, index: int, column: str, value: str) -> Outcome:
        page = self._grid_page(page_id)
        if isinstance(page, Outcome):
            return page
        if column not in COLUMNS:
            return Outcome.rejected(Rejection.INVALID_FIELD, f"unknown column {column!r}")
        if not 0 <= index < len(page.rows):
            return Outcome.rejected(Rejection.ROW_OUT_OF_RANGE, f"row {index} out of range")
        setattr(page.rows[index], column, value)
        page.updated_at = self._clock()
        return Outcome.success(page.rows[index])

    def bulk_insert_rows(self, page_id: str, rows: list[GridRow]) -> Outcome:
        """Append *rows* to a grid page in one step."""
        page = self._grid_page(page_id)
        if isinstance(page, Outcome):
            return page
        added = [replace(row) for row in rows]
        page.rows.extend(added)
        page.updated_at = self._clock()
        return Outcome.success(added)

    def paste_rows(self, page_id: str, text: str) -> Outcome:
        page = self._grid_page(page_id)
        if isinstance(page, Outcome):
            return page
        # single-cell pastes are ordinary edits, not row expansion
        if not is_tabular(text):
            return Outcome.rejected(Rejection.NOT_TABULAR, "pasted text has no tabs or line breaks")
        return self.bulk_insert_rows(page_id, parse_paste(text))
