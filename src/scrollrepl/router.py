# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Routing of log output into entries.

Every console call (info/warn/error/dir/log), every line written to a
redirected stdout/stderr and every `logging` record ends up in
ConsoleRouter.print, which tags it with the real call site and hands the
finished entry to the current LogSink.

Redirection is explicit and reversible:
- set_sink() swaps the destination (passthrough <-> scrollback)
- redirect() swaps sys.stdout/sys.stderr and attaches a logging handler
  for the duration of a with-block
- install_excepthook()/uninstall_excepthook() for uncaught exceptions
"""

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
import os
import sys
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Any, TextIO

from .ansi import terminal_width
from .caller import CallerInfo, build_caller_info, caller_from_record
from .entries import ArgsEntry, ErrorEntry, LogEntry
from .interfaces import LogSink
from .scrollback import Scrollback

LEVELS: dict[str, int] = {
    "FATAL": 0,
    "SEVERE": 1,
    "ERROR": 2,
    "WARNING": 3,
    "TODO": 4,
    "INFO": 5,
    "DEBUG": 6,
    "HIDEBUG": 7,
}


def color_supported(stream: TextIO | None, mode: str = "auto") -> bool:
    """Whether colors should be kept for ``stream``.

    mode: "always", "never" or "auto" (COLORTERM set, or a TTY)
    """
    if mode == "always":
        return True
    if mode == "never":
        return False
    if os.environ.get("COLORTERM"):
        return True
    try:
        return bool(stream is not None and stream.isatty())
    except (AttributeError, ValueError):
        return False


# ----------------------------
# Sinks
# ----------------------------


class PassthroughSink:
    """Writes rendered entries to a real stream (the default)."""

    def __init__(
        self,
        stream: TextIO | None = None,
        color: str = "auto",
        width: int | None = None,
    ) -> None:
        self.stream = stream if stream is not None else sys.__stdout__
        self.color = color
        self.width = width

    @property
    def supports_color(self) -> bool:
        return color_supported(self.stream, self.color)

    def write_entry(self, entry: LogEntry) -> None:
        if self.stream is None:
            return
        width = self.width or terminal_width()
        self.stream.write("\n".join(entry.render(width)) + "\n")
        self.stream.flush()


class ScrollbackSink:
    """Pushes entries into a Scrollback and asks for a redraw.

    Writes from a thread other than the one that created the sink are
    handed to ``loop`` (when set) instead of touching the scrollback.
    """

    def __init__(
        self,
        scrollback: Scrollback,
        on_change: Callable[[], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        color: bool = True,
    ) -> None:
        self.scrollback = scrollback
        self.on_change = on_change
        self.loop = loop
        self._color = color
        self._owner = threading.get_ident()

    @property
    def supports_color(self) -> bool:
        return self._color

    def write_entry(self, entry: LogEntry) -> None:
        if (
            self.loop is not None
            and threading.get_ident() != self._owner
            and not self.loop.is_closed()
        ):
            self.loop.call_soon_threadsafe(self._push, entry)
            return
        self._push(entry)

    def _push(self, entry: LogEntry) -> None:
        self.scrollback.push_line(entry)
        self.scrollback.scroll_along()
        if self.on_change is not None:
            self.on_change()


# ----------------------------
# Router
# ----------------------------


class ConsoleRouter:
    """Single entry point for everything that logs."""

    def __init__(
        self,
        sink: LogSink | None = None,
        verbosity: int = LEVELS["INFO"],
        shutdown_on_exception: bool = True,
    ) -> None:
        self.sink: LogSink = sink if sink is not None else PassthroughSink()
        self.verbosity = verbosity
        self.shutdown_on_exception = shutdown_on_exception
        self._original_excepthook: Callable[..., Any] | None = None

    def set_sink(self, sink: LogSink) -> LogSink:
        """Route to ``sink`` from now on; returns the previous sink."""
        previous, self.sink = self.sink, sink
        return previous

    def print(
        self,
        kind: str,
        args: Iterable[Any],
        level: int = 0,
        error: BaseException | CallerInfo | str | None = None,
        verbosity: int | None = None,
    ) -> LogEntry | None:
        """Turn one log call into an entry and hand it to the sink.

        Args:
            kind: Entry kind shown in the tag ("info", "warn", ...)
            args: The logged values
            level: Wrapper frames between the real call site and this call
            error: Exception or pre-built CallerInfo to take the location from
            verbosity: Level of the message (see LEVELS)

        Returns:
            The entry, or None if it was above the configured verbosity
        """
        if verbosity is None:
            verbosity = LEVELS["INFO"]
        if verbosity > self.verbosity:
            return None

        info = build_caller_info(level, error)
        args = list(args)

        entry: LogEntry
        if len(args) == 1 and isinstance(args[0], BaseException):
            entry = ErrorEntry(
                args[0], kind=kind, caller=info, level=verbosity
            )
        else:
            entry = ArgsEntry(args, kind=kind, caller=info, level=verbosity)

        entry.colors = self.sink.supports_color
        self.sink.write_entry(entry)
        return entry

    # ---------- console-style helpers ----------

    def log(self, *args: Any, level: int = 0) -> LogEntry | None:
        return self.print("info", args, level=level + 1)

    def info(self, *args: Any, level: int = 0) -> LogEntry | None:
        return self.print("info", args, level=level + 1)

    def warn(self, *args: Any, level: int = 0) -> LogEntry | None:
        return self.print(
            "warn", args, level=level + 1, verbosity=LEVELS["WARNING"]
        )

    def error(self, *args: Any, level: int = 0) -> LogEntry | None:
        return self.print(
            "error", args, level=level + 1, verbosity=LEVELS["ERROR"]
        )

    def debug(self, *args: Any, level: int = 0) -> LogEntry | None:
        return self.print(
            "debug", args, level=level + 1, verbosity=LEVELS["DEBUG"]
        )

    def dir(self, *args: Any, level: int = 0) -> LogEntry | None:
        return self.print("dir", args, level=level + 1)

    def write(
        self, text: str, stream: str = "stdout", level: int = 0
    ) -> LogEntry | None:
        """Raw stream output, one entry per write (newline dropped)."""
        text = text.rstrip("\n")
        if not text:
            return None
        if stream == "stderr":
            return self.print(
                "error", [text], level=level + 1, verbosity=LEVELS["ERROR"]
            )
        return self.print("info", [text], level=level + 1)

    # ---------- uncaught exceptions ----------

    def handle_uncaught(self, exc: BaseException) -> None:
        """Show an uncaught exception, then re-raise it if so configured."""
        self.print("error", [exc], error=exc, verbosity=LEVELS["FATAL"])
        if self.shutdown_on_exception:
            raise exc

    def install_excepthook(self) -> None:
        if self._original_excepthook is not None:
            return
        self._original_excepthook = sys.excepthook

        def _excepthook(exc_type, exc_value, exc_tb):
            try:
                self.handle_uncaught(exc_value)
            except BaseException:
                # Default termination behavior
                if self._original_excepthook is not None:
                    self._original_excepthook(exc_type, exc_value, exc_tb)
                else:
                    sys.__excepthook__(exc_type, exc_value, exc_tb)

        sys.excepthook = _excepthook

    def uninstall_excepthook(self) -> None:
        if self._original_excepthook is None:
            return
        sys.excepthook = self._original_excepthook
        self._original_excepthook = None

    # ---------- process-wide redirection ----------

    @contextlib.contextmanager
    def redirect(
        self,
        stdout: bool = True,
        stderr: bool = True,
        capture_logging: bool = True,
    ) -> Iterator[ConsoleRouter]:
        """Route stdout, stderr and logging through this router."""
        with contextlib.ExitStack() as stack:
            if stdout:
                out = StreamRedirect(self, "stdout")
                stack.enter_context(contextlib.redirect_stdout(out))
                stack.callback(out.flush)
            if stderr:
                err = StreamRedirect(self, "stderr")
                stack.enter_context(contextlib.redirect_stderr(err))
                stack.callback(err.flush)
            if capture_logging:
                handler = RouterLogHandler(self)
                root = logging.getLogger()
                root.addHandler(handler)
                stack.callback(root.removeHandler, handler)
            yield self


class StreamRedirect(io.TextIOBase):
    """File-like stand-in for stdout/stderr, one entry per line batch."""

    def __init__(self, router: ConsoleRouter, stream_name: str) -> None:
        super().__init__()
        self._router = router
        self.stream_name = stream_name
        self._buffer = ""
        self._lock = threading.Lock()

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return False

    def write(self, s: str) -> int:
        complete = None
        with self._lock:
            self._buffer += s
            if "\n" in self._buffer:
                complete, self._buffer = self._buffer.rsplit("\n", 1)
        # the sink may write to stdout again, so emit unlocked
        if complete is not None:
            self._emit(complete)
        return len(s)

    def flush(self) -> None:
        with self._lock:
            text, self._buffer = self._buffer, ""
        if text:
            self._emit(text)

    def _emit(self, text: str) -> None:
        # caller of write() is two frames above this one
        self._router.write(text, stream=self.stream_name, level=2)


def _record_level(levelno: int) -> tuple[str, int]:
    if levelno >= logging.CRITICAL:
        return "fatal", LEVELS["FATAL"]
    if levelno >= logging.ERROR:
        return "error", LEVELS["ERROR"]
    if levelno >= logging.WARNING:
        return "warn", LEVELS["WARNING"]
    if levelno >= logging.INFO:
        return "info", LEVELS["INFO"]
    return "debug", LEVELS["DEBUG"]


class RouterLogHandler(logging.Handler):
    """logging.Handler that turns records into entries."""

    def __init__(self, router: ConsoleRouter, level: int = logging.NOTSET):
        super().__init__(level)
        self.router = router

    def emit(self, record: logging.LogRecord) -> None:
        # our own diagnostics would feed back into the scrollback
        if record.name.split(".", 1)[0] == "scrollrepl":
            return
        try:
            kind, verbosity = _record_level(record.levelno)
            info = caller_from_record(record)
            self.router.print(
                kind, [record.getMessage()], error=info, verbosity=verbosity
            )
            if record.exc_info and record.exc_info[1] is not None:
                self.router.print(
                    "error", [record.exc_info[1]], error=info,
                    verbosity=verbosity,
                )
        except Exception:
            self.handleError(record)
