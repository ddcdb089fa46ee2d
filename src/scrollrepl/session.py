# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
ScrollREPL session.

The one object the host entry point builds and passes around:
- scrollback (entries + view state)
- repl (history, autocomplete, evaluation)
- router (log routing, sinks, uncaught exceptions)
- the evaluation namespace

Important boundary:
- Session does not load YAML or discover defaults.
- Session consumes the injected ConfigModel.
- Session never imports prompt_toolkit; surfaces attach through
  start(sink=...) and on_change.
"""

from __future__ import annotations

import logging
import sys
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

from . import config as cfg_module
from .config import UI_CLEAR
from .errors import FatalHostFailure
from .evaluator import Namespace
from .interfaces import ConfigModel, Evaluator, LogSink
from .repl import ReplSession, SubmitResult
from .router import LEVELS, ConsoleRouter, PassthroughSink
from .scrollback import Scrollback

logger = logging.getLogger(__name__)


def write_crash_log(
    error: Exception,
    command: str = "",
    data_root: Path | None = None,
) -> Path | None:
    """Append an entry to the crash log.

    Logs unhandled exceptions of the console itself.
    Only creates the log directory when actually needed.
    Appends to crash.log (never overwrites).

    Returns:
        The crash log path, or None if it could not be written
    """
    try:
        root = data_root or cfg_module.get_data_root()
        log_dir = cfg_module.logs_dir(root)
        log_dir.mkdir(parents=True, exist_ok=True)
        crash_log_path = log_dir / "crash.log"

        lines = [f"{datetime.now().isoformat()}"]
        if command:
            lines.append(f"command={command}")
        lines.append(f"error={type(error).__name__}: {error}")
        lines.append("traceback:")
        lines.append(
            "".join(traceback.format_exception(
                type(error), error, error.__traceback__
            ))
        )
        lines.append("----")

        with crash_log_path.open("a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        return crash_log_path

    except OSError as e:
        logger.warning("Could not write crash log: %s", e)
        return None


@dataclass
class Session:
    """ScrollREPL session engine."""

    config: ConfigModel
    evaluator: Evaluator | None = None
    data_root: Path | None = None

    running: bool = False
    exit_requested: bool = False

    # Called whenever the scrollback changed and the surface should redraw
    on_change: Callable[[], None] | None = None

    scrollback: Scrollback = field(init=False)
    repl: ReplSession = field(init=False)
    router: ConsoleRouter = field(init=False)
    namespace: Namespace = field(init=False)

    _previous_sink: LogSink | None = field(default=None, init=False)
    _title_has_been_set: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        console_cfg = self.config.console
        repl_cfg = self.config.repl

        self.scrollback = Scrollback(
            scroll_down=bool(console_cfg.get("scroll_down", True)),
        )
        self.router = ConsoleRouter(
            sink=PassthroughSink(color=str(console_cfg.get("color", "auto"))),
            verbosity=int(console_cfg.get("verbosity", LEVELS["INFO"])),
            shutdown_on_exception=bool(
                console_cfg.get("shutdown_on_exception", True)
            ),
        )
        self.namespace = self.build_namespace()

        reserved = repl_cfg.get("reserved")
        self.repl = ReplSession(
            self.scrollback,
            evaluator=self.evaluator,
            namespace=self.namespace,
            max_history=int(repl_cfg.get("max_history", 500)),
            reserved=reserved if isinstance(reserved, dict) else None,
            page_size=int(self.config.get_path("ui.page_size", 20)),
        )

    # -----------------------
    # Namespace
    # -----------------------

    def build_namespace(self) -> Namespace:
        """Curated bindings commands are evaluated against."""
        return Namespace(
            console=self.router,
            session=self,
            scrollback=self.scrollback,
            cls=self.clear,
            exit=self.request_exit,
        )

    def bind(self, **values: Any) -> None:
        """Expose extra names to the REPL."""
        self.namespace.update(values)

    # -----------------------
    # Lifecycle
    # -----------------------

    def history_file(self) -> Path | None:
        name = self.config.get_path("repl.history_file", "")
        if not name:
            return None
        root = self.data_root or cfg_module.get_data_root()
        return cfg_module.history_path(root, str(name))

    def start(
        self,
        sink: LogSink | None = None,
        stream: TextIO | None = None,
    ) -> None:
        """Start the session.

        Args:
            sink: Where routed output goes while running (default: keep the
                passthrough sink)
            stream: The terminal stream (default: the real stdout)

        Raises:
            FatalHostFailure: If ``stream`` is not an interactive terminal
        """
        if self.running:
            return

        stream = stream if stream is not None else sys.__stdout__
        if stream is None or not stream.isatty():
            raise FatalHostFailure(
                "Could not start ScrollREPL, not a valid TTY terminal"
            )

        if sink is not None:
            self._previous_sink = self.router.set_sink(sink)

        if self.config.get_path("console.catch_exceptions", True):
            self.router.install_excepthook()

        path = self.history_file()
        if path is not None:
            self.repl.load_history(path)

        self.running = True
        self.exit_requested = False

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False

        self.router.uninstall_excepthook()
        if self._previous_sink is not None:
            self.router.set_sink(self._previous_sink)
            self._previous_sink = None

        path = self.history_file()
        if path is not None:
            try:
                self.repl.save_history(path)
            except OSError as e:
                logger.warning("Could not save history to %s: %s", path, e)

        if self._title_has_been_set:
            self.set_title(None)

    def request_exit(self) -> None:
        self.exit_requested = True
        self.running = False

    def clear(self) -> None:
        self.scrollback.clear()
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # -----------------------
    # Terminal title
    # -----------------------

    def set_title(
        self, title: str | None, stream: TextIO | None = None
    ) -> str:
        """Set (or with None, revert) the terminal tab title."""
        if title is not None:
            seq = f"\x1b]0;{title}\x07"
            self._title_has_been_set = True
        else:
            seq = "\x1b]2;\x07"
            self._title_has_been_set = False

        out = stream if stream is not None else sys.__stdout__
        if out is not None:
            out.write(seq)
            out.flush()
        return seq

    # -----------------------
    # Command handling
    # -----------------------

    def submit(self, line: str) -> SubmitResult:
        """Submit one line and apply reserved-verb actions."""
        return self.apply(self.repl.submit(line))

    def apply(self, result: SubmitResult) -> SubmitResult:
        """Carry out what a submitted line asked for."""
        if result.action == "exit":
            self.request_exit()
        elif result.action == "help":
            self.router.print("info", [self._help()])
        elif result.action == "evaluated":
            self.scrollback.scroll_along()
        # "clear" is applied by the surface (after the key is handled)

        self._changed()
        return result

    def handle_command(self, line: str, width: int | None = None) -> str:
        """Line-mode command handling: returns the text to print."""
        result = self.submit(line)

        if result.action == "clear":
            self.scrollback.clear()
            return UI_CLEAR

        if result.action != "evaluated":
            return ""

        assert result.command_entry is not None
        assert result.output_entry is not None

        width = width or self.scrollback.width
        entry = result.output_entry
        entry.colors = self.router.sink.supports_color
        return "\n".join(entry.render(width))

    def _help(self) -> str:
        lines = ["Reserved commands:"]
        for verb, action in self.repl.reserved.items():
            lines.append(f"  {verb:<8} {action}")
        lines.append("")
        lines.append("Bindings:")
        for name in self.namespace:
            if not name.startswith("_"):
                lines.append(f"  {name}")
        return "\n".join(lines)
