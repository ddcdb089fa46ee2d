# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
ANSI-aware text measurement and layout.

Handles:
- SGR escape construction (esc)
- visible width measurement and stripping of color codes
- safe splitting on visible columns (never inside an escape sequence)
- wrap + indent of prefixed, multi-line log output
"""

from __future__ import annotations

import re
import shutil

ESC = "\x1b["
RESET = f"{ESC}0m"

# ESC [ digits (;digits)* m
SGR_RE = re.compile(r"\x1b\[(\d+(?:;\d+)*)m")

# Textual forms left behind after repr()/JSON escaped the control byte
LITERAL_SGR_RE = re.compile(r"\\(?:x1[bB]|033|u001[bB])\[\d+(?:;\d+)*m")


def esc(code: int | str, text: str | None = None, end: int | str = 0) -> str:
    """Build an SGR escape for ``code``.

    If ``text`` is given, it is wrapped and followed by the ``end`` code
    (reset by default).
    """
    result = f"{ESC}{code}m"
    if text is not None:
        result += f"{text}{ESC}{end}m"
    return result


def strip_ansi(s: str, literal: bool = False) -> str:
    """Remove color escape sequences from ``s``.

    Args:
        s: String possibly containing SGR sequences
        literal: Also remove backslash-escaped representations of the
            same sequences (e.g. ``\\x1b[31m`` inside a repr)

    Returns:
        The string without color codes
    """
    result = SGR_RE.sub("", s)
    if literal:
        result = LITERAL_SGR_RE.sub("", result)
    return result


def visible_length(s: str) -> int:
    """Number of characters in ``s`` that are not part of an escape."""
    return len(SGR_RE.sub("", s))


def terminal_width(default: int = 80) -> int:
    return shutil.get_terminal_size((default, 24)).columns


def _active_codes(s: str) -> list[str]:
    """SGR sequences still in effect at the end of ``s``."""
    active: list[str] = []
    for m in SGR_RE.finditer(s):
        if m.group(1) in ("0", "00"):
            active = []
        else:
            active.append(m.group(0))
    return active


def split_visible(s: str, column: int) -> tuple[str, str]:
    """Split ``s`` after ``column`` visible characters.

    Escape sequences are kept whole; sequences directly following the last
    visible character stay with the head. Colors open at the split point are
    closed at the end of the head and re-opened at the start of the tail, so
    each half renders with the same color state as the original.
    """
    if column <= 0:
        return "", s

    count = 0
    pos = 0
    n = len(s)
    while pos < n:
        m = SGR_RE.match(s, pos)
        if m:
            pos = m.end()
            continue
        if count == column:
            break
        count += 1
        pos += 1

    head, tail = s[:pos], s[pos:]
    if not tail:
        return head, tail

    active = _active_codes(head)
    if active:
        head += RESET
        tail = "".join(active) + tail
    return head, tail


def _wrap_line(line: str, width: int, pad: str) -> list[str]:
    # continuation lines are indented only when that still leaves room
    indent = pad if len(pad) < width else ""
    pieces: list[str] = []
    while visible_length(line) > width:
        head, tail = split_visible(line, width)
        pieces.append(head)
        line = indent + tail
    pieces.append(line)
    return pieces


def wrap_and_indent(
    text: str,
    prefix: str,
    wrap_first_line: bool = True,
    width: int | None = None,
) -> str:
    """Indent continuation lines of ``text`` under ``prefix`` and wrap.

    ``text`` is expected to start with ``prefix`` (e.g. a ``[info] [f:1]``
    tag). Every line after the first is indented by the prefix's *visible*
    width (plain spaces, so its color is not repeated). Lines wider than the
    terminal are split on visible columns and continued on an indented line.
    Every produced line is self-contained: colors open at its end are reset
    there and re-opened on the next line.

    Args:
        text: The (possibly colored, multi-line) text
        prefix: The prefix the first line starts with
        wrap_first_line: If False, the first line is emitted unwrapped
        width: Terminal width (defaults to the current terminal's)

    Returns:
        The laid out text, lines joined with newlines
    """
    if width is None:
        width = terminal_width()
    width = max(1, width)

    pad = " " * visible_length(prefix)
    out: list[str] = []

    # colors still open at a line break are re-opened on the next line
    carry: list[str] = []
    for nr, line in enumerate(text.split("\n")):
        line = "".join(carry) + line
        carry = _active_codes(line)
        if carry:
            line += RESET
        if nr > 0:
            line = pad + line
        elif not wrap_first_line:
            out.append(line)
            continue
        out.extend(_wrap_line(line, width, pad))

    return "\n".join(out)
