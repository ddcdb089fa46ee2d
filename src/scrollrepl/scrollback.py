# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
The scrollback buffer.

Owns the ordered entry list and the view state over it:
- dense 0-based indices, reassigned on every insert/remove
- selection cursor (always a live index, or None)
- scroll offset, auto-follow and manual-scroll tracking
- screen row -> entry index resolution for mouse clicks

The render surface only reads from here (visible_rows); entries are mutated
exclusively through push_line / insert_after / remove / clear.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

from .ansi import terminal_width
from .entries import LogEntry
from .errors import EntryNotFoundError


class Scrollback:
    def __init__(
        self,
        width: int | None = None,
        height: int = 24,
        scroll_down: bool = True,
    ) -> None:
        self._entries: list[LogEntry] = []
        self.selection: int | None = None

        self.width = width or terminal_width()
        self.height = max(1, height)

        # Top row of the window while not following the bottom
        self.offset = 0
        # Follow new output (config: console.scroll_down)
        self.scroll_down = scroll_down
        self.scrolled_manually = False

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    # ---------- mutation ----------

    def _reindex(self, start: int = 0) -> None:
        for i in range(start, len(self._entries)):
            self._entries[i].index = i

    def get(self, index: int) -> LogEntry:
        if not isinstance(index, int) or not 0 <= index < len(self._entries):
            raise EntryNotFoundError(index)
        return self._entries[index]

    def push_line(self, entry: LogEntry) -> int:
        """Append an entry and return its index."""
        self._entries.append(entry)
        entry.index = len(self._entries) - 1
        return entry.index

    def insert_after(self, entry: LogEntry, after_index: int) -> int:
        """Insert directly below the entry at ``after_index``.

        Raises:
            EntryNotFoundError: If ``after_index`` is not a live index
        """
        self.get(after_index)
        pos = after_index + 1
        self._entries.insert(pos, entry)
        self._reindex(pos)

        if self.selection is not None and self.selection >= pos:
            self.selection += 1
        return pos

    def remove(self, index: int) -> LogEntry:
        entry = self.get(index)
        del self._entries[index]
        entry.index = None
        self._reindex(index)

        if self.selection == index:
            self.selection = None
        elif self.selection is not None and self.selection > index:
            self.selection -= 1
        return entry

    def clear(self) -> None:
        """Drop every entry and reset selection + scroll state."""
        for entry in self._entries:
            entry.index = None
        self._entries = []
        self.selection = None
        self.offset = 0
        self.scrolled_manually = False

    # ---------- selection / expansion ----------

    def select(self, index: int | None) -> None:
        if index is not None:
            self.get(index)
        self.selection = index

    @property
    def selected(self) -> LogEntry | None:
        if self.selection is None:
            return None
        return self._entries[self.selection]

    def expand(self, index: int) -> list[LogEntry]:
        entry = self.get(index)
        if entry.expanded or not entry.expandable:
            return []
        children = entry.expand()
        pos = index
        for child in children:
            pos = self.insert_after(child, pos)
        entry.children = children
        return children

    def collapse(self, index: int) -> None:
        entry = self.get(index)
        for child in entry.children:
            if child.index is None:
                continue
            if child.children:
                self.collapse(child.index)
            self.remove(child.index)
        entry.children = []

    def click(self, index: int) -> LogEntry:
        """Select an entry and toggle the listing of its members."""
        entry = self.get(index)
        self.selection = index
        if entry.expanded:
            self.collapse(index)
        elif entry.expandable:
            self.expand(index)
        return entry

    def selection_json(self) -> str | None:
        """The selected value as JSON, for copying."""
        entry = self.selected
        if entry is None:
            return None
        value: Any = entry.value
        if callable(value):
            return repr(value)
        try:
            return json.dumps(value, indent=2, default=repr)
        except (TypeError, ValueError):
            return None

    # ---------- layout ----------

    def resize(self, width: int, height: int) -> None:
        self.width = max(1, width)
        self.height = max(1, height)

    def layout(self) -> list[tuple[int, str]]:
        """Every rendered row as (entry index, line)."""
        rows: list[tuple[int, str]] = []
        for entry in self._entries:
            for line in entry.render(self.width):
                rows.append((entry.index, line))
        return rows

    def total_rows(self) -> int:
        return sum(len(e.render(self.width)) for e in self._entries)

    def max_offset(self, height: int | None = None) -> int:
        return max(0, self.total_rows() - (height or self.height))

    @property
    def pinned(self) -> bool:
        """Whether the window follows the newest line."""
        return self.scroll_down and not self.scrolled_manually

    def window_top(self) -> int:
        max_offset = self.max_offset()
        if self.pinned:
            return max_offset
        return min(max(self.offset, 0), max_offset)

    def visible_rows(self) -> list[tuple[int, str]]:
        top = self.window_top()
        return self.layout()[top:top + self.height]

    # ---------- scrolling ----------

    def scroll_percent(self) -> int:
        max_offset = self.max_offset()
        if max_offset == 0:
            return 100
        return round(self.window_top() * 100 / max_offset)

    def scroll(self, delta: int) -> bool:
        """Move the window by ``delta`` rows.

        Returns:
            Whether the scroll percentage changed (False at a boundary)
        """
        before = self.scroll_percent()
        max_offset = self.max_offset()
        self.offset = min(max(self.window_top() + delta, 0), max_offset)
        if delta:
            self.scrolled_manually = self.offset < max_offset
        return self.scroll_percent() != before

    def scroll_along(self) -> None:
        """Keep the newest line on screen unless the user scrolled away."""
        if self.pinned:
            self.offset = self.max_offset()

    def scroll_to_bottom(self) -> None:
        self.scrolled_manually = False
        self.offset = self.max_offset()

    def resolve_coordinate(
        self,
        screen_row: int,
        viewport_top: int = 0,
        viewport_height: int | None = None,
        is_scrolled_up: bool | None = None,
    ) -> int | None:
        """Map a clicked screen row to the index of the entry drawn there.

        Args:
            screen_row: Row of the click on screen
            viewport_top: Screen row of the window's first line
            viewport_height: Rows in the window (defaults to self.height)
            is_scrolled_up: Whether the window was scrolled away from the
                bottom (defaults to the current state)

        Returns:
            The entry index, or None if no entry is drawn on that row
        """
        height = viewport_height or self.height
        if is_scrolled_up is None:
            is_scrolled_up = not self.pinned

        rows = self.layout()
        total = len(rows)

        if is_scrolled_up and total > height:
            top = min(max(self.offset, 0), total - height)
        else:
            top = max(0, total - height)

        rel = screen_row - viewport_top
        if rel < 0 or rel >= height:
            return None

        row = top + rel
        if row >= total:
            return None
        return rows[row][0]
