# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Caller location extraction.

Turns a captured stack (live, from an exception, or as formatted text) into
Frame records, and picks the frame a log line should be tagged with.

Stack order everywhere in this module is innermost-first: frames[0] is the
most recent call.
"""

from __future__ import annotations

import copy
import logging
import re
import traceback
from dataclasses import dataclass, field
from datetime import datetime

UNKNOWN = "unknown"

# File "/path/mod.py", line 12, in func
_PY_FRAME_RE = re.compile(
    r'File "(?P<path>.*?)", line (?P<line>\d+)(?:, in (?P<name>.+))?'
)
# at func (/path/mod.js:12:5)
_AT_FRAME_RE = re.compile(
    r"^(?P<name>.*?) \((?P<path>.*?):(?P<line>\d*):(?P<col>\d*)\)"
)
# /path/mod.js:12:5
_BARE_FRAME_RE = re.compile(r"(?P<path>.*?):(?P<line>\d*):(?P<col>\d*)")


def _basename(path: str) -> str:
    return path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class Frame:
    name: str
    path: str
    file: str
    line: str
    column: str

    @classmethod
    def unknown(cls) -> Frame:
        return cls(UNKNOWN, UNKNOWN, UNKNOWN, UNKNOWN, UNKNOWN)

    @classmethod
    def from_summary(cls, fs: traceback.FrameSummary) -> Frame:
        colno = getattr(fs, "colno", None)
        return cls(
            name=fs.name,
            path=fs.filename,
            file=_basename(fs.filename),
            line=str(fs.lineno) if fs.lineno is not None else UNKNOWN,
            column=str(colno + 1) if colno is not None else UNKNOWN,
        )

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class CallerInfo:
    """Where a log call came from, plus the stack it was taken from."""

    name: str
    path: str
    file: str
    line: str
    column: str
    message: str = ""
    text: str = ""
    frames: list[Frame] = field(default_factory=list)
    error: BaseException | None = None
    time: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_frame(cls, frame: Frame, **kwargs) -> CallerInfo:
        return cls(
            name=frame.name,
            path=frame.path,
            file=frame.file,
            line=frame.line,
            column=frame.column,
            **kwargs,
        )

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"


def extract_frame(stack_line: str) -> Frame:
    """Parse one line of a stack trace into a Frame.

    Understands Python traceback lines (``File "p", line n, in f``) and the
    ``at name (path:line:col)`` form. Lines without a parenthesized location
    fall back to a bare ``path:line:col`` with the name ``anonymous``. Anything
    else gives a Frame whose fields are all ``"unknown"``.
    """
    m = _PY_FRAME_RE.search(stack_line)
    if m:
        path = m.group("path")
        return Frame(
            name=(m.group("name") or "").strip() or "anonymous",
            path=path,
            file=_basename(path),
            line=m.group("line"),
            column=UNKNOWN,
        )

    # Drop everything up to and including 'at '
    idx = stack_line.find("at ")
    clean = stack_line[idx + 3:] if idx >= 0 else stack_line.strip()

    m = _AT_FRAME_RE.match(clean)
    if m:
        path = m.group("path")
        return Frame(
            name=m.group("name"),
            path=path,
            file=_basename(path),
            line=m.group("line"),
            column=m.group("col"),
        )

    m = _BARE_FRAME_RE.search(clean)
    if m and m.group("path"):
        path = m.group("path").strip()
        return Frame(
            name="anonymous",
            path=path,
            file=_basename(path),
            line=m.group("line"),
            column=m.group("col"),
        )

    return Frame.unknown()


def is_frame_line(line: str) -> bool:
    stripped = line.strip()
    if _PY_FRAME_RE.match(stripped):
        return True
    return stripped.startswith("at ") and (
        _AT_FRAME_RE.match(stripped[3:]) is not None
        or _BARE_FRAME_RE.search(stripped[3:]) is not None
    )


def parse_stack(text: str) -> list[Frame]:
    """Parse every frame line of a formatted stack, innermost-first.

    Python tracebacks list the innermost call last, so their frames are
    reversed; ``at ...`` stacks are already innermost-first.
    """
    lines = [line for line in text.splitlines() if is_frame_line(line)]
    frames = [extract_frame(line) for line in lines]
    if lines and _PY_FRAME_RE.match(lines[0].strip()):
        frames.reverse()
    return frames


def _capture_stack(limit: int) -> list[traceback.FrameSummary]:
    # index 0 is this function, 1 its caller
    return traceback.extract_stack(limit=limit)[::-1]


def build_caller_info(
    skip_levels: int = 0,
    error: BaseException | CallerInfo | str | None = None,
) -> CallerInfo:
    """Build the CallerInfo for a log call.

    Args:
        skip_levels: Extra wrapper frames between the real call site and
            the function calling this one
        error: An exception to take the stack from, a message string, or an
            already built CallerInfo (returned as a shallow copy)

    Returns:
        A new CallerInfo
    """
    if isinstance(error, CallerInfo):
        return copy.copy(error)

    message = ""
    if isinstance(error, str):
        message = error
        error = None

    if error is not None and error.__traceback__ is not None:
        summaries = traceback.extract_tb(error.__traceback__)
        summaries.reverse()
        pick = skip_levels
    else:
        if error is not None:
            message = str(error)
        summaries = _capture_stack(skip_levels + 4)
        pick = skip_levels + 3

    if summaries:
        frames = [Frame.from_summary(fs) for fs in summaries]
    else:
        frames = [Frame.unknown()]

    primary = frames[pick] if pick < len(frames) else frames[-1]

    return CallerInfo.from_frame(
        primary,
        message=message,
        text="".join(traceback.format_list(list(reversed(summaries)))),
        frames=frames,
        error=error,
    )


def caller_from_record(record: logging.LogRecord) -> CallerInfo:
    """CallerInfo for a logging record (the record already knows its site)."""
    frame = Frame(
        name=record.funcName or "anonymous",
        path=record.pathname,
        file=_basename(record.pathname),
        line=str(record.lineno),
        column=UNKNOWN,
    )
    error = record.exc_info[1] if record.exc_info else None
    return CallerInfo.from_frame(
        frame,
        message=record.getMessage(),
        frames=[frame],
        error=error,
        time=datetime.fromtimestamp(record.created),
    )
