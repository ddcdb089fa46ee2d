# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Exception taxonomy for ScrollREPL.

- ParseFailure: recovered locally with an "unknown" fallback
- EvaluationFailure: user code raised; shown as an error entry
- RenderFailure: layout failed; logged and the raw text is shown
- FatalHostFailure: the host cannot run the console (e.g. not a TTY)
"""

from __future__ import annotations


class ScrollReplError(Exception):
    """Base class for all ScrollREPL errors."""


class ParseFailure(ScrollReplError):
    """A stack line or completion path did not have the expected shape."""


class EvaluationFailure(ScrollReplError):
    """Evaluating a submitted command raised."""

    def __init__(self, source: str, error: BaseException):
        super().__init__(f"{type(error).__name__}: {error}")
        self.source = source
        self.error = error


class RenderFailure(ScrollReplError):
    """Wrapping or formatting an entry failed."""


class FatalHostFailure(ScrollReplError):
    """The console cannot start in this process."""


class EntryNotFoundError(ScrollReplError, KeyError):
    """An entry index was never assigned (or no longer exists)."""

    def __init__(self, index: int):
        super().__init__(index)
        self.index = index

    def __str__(self) -> str:
        return f"No entry at index {self.index}"
