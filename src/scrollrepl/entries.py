# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Scrollback entry types.

Every entry renders to a list of finished, styled lines for a given width:
a header (``[kind] [file:line] `` for tagged entries, a marker for REPL
lines) followed by the body, laid out with wrap_and_indent. Rendered lines are
cached per width and dropped whenever the content changes.

Variants:
- PlainEntry: raw text
- ArgsEntry: console arguments (strings as-is, values pretty-printed)
- CommandEntry: echo of a submitted command
- EvalOutputEntry: result of an evaluation
- ErrorEntry: an exception with its frames
- PropertyEntry: one member of an expanded value
- StringEntry: a full string value
- OtherEntry: anything else
"""

from __future__ import annotations

import logging
import os
import traceback
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from .ansi import esc, strip_ansi, wrap_and_indent
from .caller import CallerInfo, parse_stack
from .errors import RenderFailure
from .pretty import MAX_ITEMS, inspect_value, is_expandable, members

logger = logging.getLogger(__name__)

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))

COMMAND_COLOR = "38;5;74"
INDENT = "  "


class LogEntry:
    """Base scrollback entry."""

    def __init__(
        self,
        args: Iterable[Any] = (),
        kind: str = "info",
        caller: CallerInfo | None = None,
        level: int = 5,
    ) -> None:
        self.index: int | None = None
        self.args: list[Any] = list(args)
        self.kind = kind
        self.caller = caller
        self.level = level
        self.timestamp: datetime = caller.time if caller else datetime.now()
        self.colors = True

        # entries inserted below this one by expand()
        self.children: list[LogEntry] = []
        self.depth = 0

        self._cache_key: tuple[int, bool] | None = None
        self._lines: list[str] = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} index={self.index} kind={self.kind}>"

    # ---------- content ----------

    def set(self, args: Iterable[Any]) -> None:
        self.args = list(args)
        self.invalidate()

    def invalidate(self) -> None:
        self._cache_key = None
        self._lines = []

    @property
    def value(self) -> Any:
        """The value selecting this entry refers to."""
        if len(self.args) == 1:
            return self.args[0]
        for arg in self.args:
            if not isinstance(arg, str) and is_expandable(arg):
                return arg
        return self.args[0] if self.args else None

    @property
    def expandable(self) -> bool:
        return is_expandable(self.value)

    @property
    def expanded(self) -> bool:
        return bool(self.children)

    def expand(self) -> list[LogEntry]:
        """Child entries listing the members of this entry's value."""
        value = self.value
        if isinstance(value, str):
            child: LogEntry = StringEntry(value)
            child.depth = self.depth + 1
            return [child]

        out: list[LogEntry] = []
        pairs = members(value)
        for label, member in pairs[:MAX_ITEMS]:
            out.append(PropertyEntry(label, member, depth=self.depth + 1))
        if len(pairs) > MAX_ITEMS:
            out.append(
                PlainEntry(
                    INDENT * (self.depth + 1)
                    + esc(90, f"... {len(pairs) - MAX_ITEMS} more")
                )
            )
        return out

    # ---------- rendering ----------

    def header(self) -> str:
        if self.caller is None:
            return ""
        return (
            esc(90, "[") + self.kind + esc(90, "] ")
            + esc(90, "[") + esc(1, self.caller.location) + esc(90, "] ")
        )

    def body(self) -> str:
        return " ".join(str(a) for a in self.args)

    def raw_text(self) -> str:
        return self.header() + self.body()

    def plain_text(self) -> str:
        """The entry without color codes (for copying)."""
        return strip_ansi(self.raw_text())

    def _layout(self, width: int) -> list[str]:
        try:
            prefix = self.header()
            text = wrap_and_indent(prefix + self.body(), prefix, width=width)
        except Exception as e:
            raise RenderFailure(
                f"Could not lay out {type(self).__name__}: {e}"
            ) from e
        return text.split("\n")

    def render(self, width: int) -> list[str]:
        """Finished lines for ``width`` columns (cached)."""
        key = (width, self.colors)
        if self._cache_key == key:
            return self._lines

        try:
            lines = self._layout(width)
        except RenderFailure as e:
            logger.warning("%s", e)
            try:
                lines = self.raw_text().split("\n")
            except Exception:
                lines = [f"<{type(self).__name__}>"]

        if not self.colors:
            lines = [strip_ansi(line) for line in lines]

        self._cache_key = key
        self._lines = lines
        return lines


class PlainEntry(LogEntry):
    """Text shown exactly as given."""

    def __init__(self, text: str = "", **kwargs: Any) -> None:
        super().__init__([text], **kwargs)

    def header(self) -> str:
        return ""

    @property
    def expandable(self) -> bool:
        return False


class ArgsEntry(LogEntry):
    """Arguments of a console call."""

    def body(self) -> str:
        parts = []
        for arg in self.args:
            if isinstance(arg, str):
                parts.append(arg)
            else:
                parts.append(inspect_value(arg, colors=True))
        return " ".join(parts)


class CommandEntry(LogEntry):
    """Echo of a command submitted to the REPL."""

    def __init__(self, command: str, **kwargs: Any) -> None:
        kwargs.setdefault("kind", "command")
        super().__init__([command], **kwargs)

    @property
    def command(self) -> str:
        return self.args[0] if self.args else ""

    def header(self) -> str:
        return esc(90, "> ")

    def body(self) -> str:
        return esc(COMMAND_COLOR, self.command)

    @property
    def expandable(self) -> bool:
        return False


class EvalOutputEntry(LogEntry):
    """Value produced by evaluating a command."""

    def __init__(self, result: Any, **kwargs: Any) -> None:
        kwargs.setdefault("kind", "result")
        super().__init__([result], **kwargs)

    @property
    def result(self) -> Any:
        return self.args[0] if self.args else None

    def header(self) -> str:
        return esc(90, "< ")

    def body(self) -> str:
        return inspect_value(self.result, colors=True)


class ErrorEntry(LogEntry):
    """An exception, with its frames innermost-first."""

    def __init__(self, error: BaseException, **kwargs: Any) -> None:
        kwargs.setdefault("kind", "error")
        super().__init__([error], **kwargs)

    @property
    def error(self) -> BaseException:
        return self.args[0]

    def header(self) -> str:
        if self.caller is not None:
            return super().header()
        return esc(31, "! ")

    def frames(self):
        text = "".join(traceback.format_tb(self.error.__traceback__))
        return [
            f for f in parse_stack(text)
            if not f.path.startswith(_PACKAGE_DIR)
        ]

    def body(self) -> str:
        err = self.error
        lines = [esc(31, f"{type(err).__name__}: {err}")]
        for frame in self.frames():
            lines.append(
                f"{INDENT}at {frame.name} "
                + esc(90, f"({frame.path}:")
                + esc(1, frame.line)
                + esc(90, ")")
            )
        return "\n".join(lines)


class PropertyEntry(LogEntry):
    """One member of an expanded value."""

    def __init__(
        self, label: str, value: Any, depth: int = 1, **kwargs: Any
    ) -> None:
        kwargs.setdefault("kind", "property")
        super().__init__([value], **kwargs)
        self.label = label
        self.depth = depth

    def header(self) -> str:
        return INDENT * self.depth + esc(1, self.label) + ": "

    def body(self) -> str:
        return inspect_value(self.value, colors=True, depth=0)


class StringEntry(LogEntry):
    """A complete string value, one scrollback entry per string."""

    def __init__(self, text: str, **kwargs: Any) -> None:
        kwargs.setdefault("kind", "string")
        super().__init__([text], **kwargs)

    def header(self) -> str:
        return INDENT * self.depth

    def body(self) -> str:
        return esc(32, str(self.value))

    @property
    def expandable(self) -> bool:
        return False


class OtherEntry(LogEntry):
    """Any value without a dedicated representation."""

    def body(self) -> str:
        return " ".join(repr(a) for a in self.args)
