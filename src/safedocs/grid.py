"""Grid page rows: the three-column record, its JSON form, and paste parsing.

A grid page persists its rows as a JSON array of ``{"c1", "c2", "c3"}``
objects.  Pasting spreadsheet-style text (tab-separated columns, one row per
line) expands into new rows::

    >>> parse_paste("a\\tb\\tc\\nd\\te\\tf")
    [GridRow(c1='a', c2='b', c3='c'), GridRow(c1='d', c2='e', c3='f')]
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from typing import Any

COLUMNS = ("c1", "c2", "c3")

_LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")


@dataclass
class GridRow:
    c1: str = ""
    c2: str = ""
    c3: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "GridRow":
        if not isinstance(data, dict):
            return cls()
        return cls(*(_cell(data.get(key)) for key in COLUMNS))

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def serialize_rows(rows: list[GridRow]) -> str:
    """Return the persisted JSON form of *rows*."""
    return json.dumps([row.to_dict() for row in rows], ensure_ascii=False, separators=(",", ":"))


def parse_rows(content: str | None) -> list[GridRow]:
    """Deserialize grid *content*.

    Absent, malformed, or non-list payloads yield a single empty row.  An
    empty list stays empty; it is the form a freshly switched grid page has.
    """
    if not content:
        return [GridRow()]
    try:
        data = json.loads(content)
    except (TypeError, ValueError):
        return [GridRow()]
    if not isinstance(data, list):
        return [GridRow()]
    return [GridRow.from_dict(item) for item in data]


def is_tabular(text: str) -> bool:
    return "\t" in text or "\n" in text or "\r" in text


def parse_paste(text: str) -> list[GridRow]:
    """Split pasted *text* into rows; blank lines are dropped.

    Only the first three tab-separated columns are kept; missing columns are
    left empty.
    """
    rows: list[GridRow] = []
    for line in _LINE_BREAK_RE.split(text):
        if not line.strip():
            continue
        cols = line.split("\t")
        rows.append(GridRow(*(cols[i] if i < len(cols) else "" for i in range(len(COLUMNS)))))
    return rows
