# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
REPL session state machine.

Three concerns composed per keystroke:
- history navigation (most-recent-first, with a stash for the
  uncommitted input while browsing)
- autocomplete (dotted path resolved against the namespace, names from a
  NameEnumerator, own names before inherited ones)
- submission (reserved verbs, expression-first evaluation, output inserted
  directly below the echoed command)

The session pushes entries into a Scrollback it does not own.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .entries import CommandEntry, ErrorEntry, EvalOutputEntry, LogEntry
from .errors import EvaluationFailure, ParseFailure
from .evaluator import (
    Namespace,
    PythonEvaluator,
    PythonNameEnumerator,
    resolve_path,
)
from .interfaces import Evaluator, InputField, NameEnumerator
from .scrollback import Scrollback

logger = logging.getLogger(__name__)

DEFAULT_RESERVED: dict[str, str] = {
    "cls": "clear",
    "clear": "clear",
    "exit": "exit",
    "quit": "exit",
    "help": "help",
}

# Keys that accept the highlighted completion before being handled
ACCEPT_CHARS = (".", "(")


@dataclass(frozen=True)
class KeyPress:
    char: str = ""
    name: str = ""
    has_control_code: bool = False


@dataclass
class AutocompleteState:
    items: list[str] = field(default_factory=list)
    # dotted path in front of the segment being completed ("a.b.")
    prefix: str = ""
    selected: int = 0
    open: bool = False
    # screen column the popup is anchored at
    column: int = 0

    @property
    def current(self) -> str | None:
        if not self.open or not self.items:
            return None
        return self.items[self.selected]

    def close(self) -> None:
        self.items = []
        self.prefix = ""
        self.selected = 0
        self.open = False


@dataclass
class SubmitResult:
    """Outcome of submitting one line.

    action is one of: "noop" (empty input), "evaluated", or a reserved verb's
    action ("clear", "exit", "help").
    """

    command: str
    action: str
    command_entry: CommandEntry | None = None
    output_entry: LogEntry | None = None
    failure: EvaluationFailure | None = None


class ReplSession:
    def __init__(
        self,
        scrollback: Scrollback,
        evaluator: Evaluator | None = None,
        namespace: dict[str, Any] | None = None,
        enumerator: NameEnumerator | None = None,
        max_history: int = 500,
        reserved: dict[str, str] | None = None,
        page_size: int = 20,
    ) -> None:
        self.scrollback = scrollback
        self.evaluator: Evaluator = evaluator or PythonEvaluator()
        self.namespace: dict[str, Any] = (
            namespace if namespace is not None else Namespace()
        )
        self.enumerator: NameEnumerator = enumerator or PythonNameEnumerator()
        self.max_history = max(1, max_history)
        self.reserved = dict(
            DEFAULT_RESERVED if reserved is None else reserved
        )
        self.page_size = page_size

        self.history: list[str] = []
        self.history_index = -1
        self.stash = ""
        self.autocomplete_state = AutocompleteState()

    # -----------------------
    # History
    # -----------------------

    def history_older(self, current: str) -> str:
        """Step back in history; returns the text the input should show."""
        if self.history_index == -1:
            self.stash = current

        nxt = self.history_index + 1
        if nxt < len(self.history):
            self.history_index = nxt
            return self.history[nxt]
        return current

    def history_newer(self, current: str) -> str:
        """Step forward in history; -1 restores the stashed input."""
        nxt = self.history_index - 1
        if nxt == -1:
            self.history_index = -1
            return self.stash
        if nxt < -1:
            return current
        self.history_index = nxt
        return self.history[nxt]

    def _remember(self, command: str) -> None:
        if self.history and self.history[0] == command:
            return
        # an older copy moves to the front
        if command in self.history:
            self.history.remove(command)
        self.history.insert(0, command)
        del self.history[self.max_history:]

    def load_history(self, path: Path) -> None:
        """Load a most-recent-first JSON list of commands, if present."""
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable history file %s: %s", path, e)
            return
        if isinstance(data, list):
            self.history = [str(c) for c in data if str(c).strip()]
            del self.history[self.max_history:]

    def save_history(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.history, indent=0), encoding="utf-8")

    # -----------------------
    # Autocomplete
    # -----------------------

    def _candidates(self, target: Any, last: str) -> list[str]:
        show_private = last.startswith("_")
        return [
            name for name in self.enumerator.names(target)
            if name.startswith(last)
            and (show_private or not name.startswith("_"))
        ]

    def autocomplete(
        self, text: str, key: KeyPress | None = None
    ) -> AutocompleteState:
        """Recompute the completion popup for the current input.

        Empty input with no key closes the popup. The last ``.``-separated
        segment is matched against the names of whatever the dotted path
        before it resolves to. An unresolvable path just closes the popup.
        """
        state = self.autocomplete_state
        if not text and key is None:
            state.close()
            return state

        pieces = text.split(".")
        last = pieces.pop()
        prefix = ".".join(pieces) + "." if pieces else ""

        items: list[str] = []
        try:
            if pieces:
                target = resolve_path(self.namespace, pieces)
            else:
                target = self.namespace
        except ParseFailure as e:
            logger.debug("autocomplete: %s", e)
        else:
            items = self._candidates(target, last)

        # Nothing left to complete once the segment is a full name
        if items == [last]:
            items = []

        if text.strip() and items:
            state.items = items
            state.prefix = prefix
            state.selected = 0
            state.open = True
            state.column = 1 + len(text)
        else:
            state.close()
        return state

    def move_selection(self, delta: int) -> None:
        state = self.autocomplete_state
        if not state.open or not state.items:
            return
        state.selected = min(
            max(state.selected + delta, 0), len(state.items) - 1
        )

    def close_autocomplete(self) -> None:
        self.autocomplete_state.close()

    def select_completion(self) -> str | None:
        """Replace the trailing segment with the highlighted candidate.

        Returns:
            The new input text, or None if the popup is not open
        """
        state = self.autocomplete_state
        item = state.current
        if item is None:
            return None
        text = state.prefix + item
        self.autocomplete(text)
        return text

    # -----------------------
    # Submission
    # -----------------------

    def submit(self, text: str) -> SubmitResult:
        """Commit one line of input."""
        command = text.strip()

        self.history_index = -1
        self.stash = ""
        self.autocomplete_state.close()

        if not command:
            return SubmitResult(command, "noop")

        self._remember(command)

        action = self.reserved.get(command)
        if action:
            return SubmitResult(command, action)

        command_entry = CommandEntry(command)
        self.scrollback.push_line(command_entry)

        failure = None
        try:
            result = self.evaluator.evaluate(command, self.namespace)
        except Exception as e:
            failure = EvaluationFailure(command, e)
            output: LogEntry = ErrorEntry(e)
        else:
            if result is not None:
                self.namespace["_"] = result
            output = EvalOutputEntry(result)

        if command_entry.index is None:
            # the command cleared the scrollback while it ran
            self.scrollback.push_line(output)
        else:
            self.scrollback.insert_after(output, command_entry.index)
        return SubmitResult(
            command,
            "evaluated",
            command_entry=command_entry,
            output_entry=output,
            failure=failure,
        )

    # -----------------------
    # Keystrokes
    # -----------------------

    def _accept(self, field: InputField) -> None:
        text = self.select_completion()
        if text is not None:
            field.set_value(text)

    def keypress(
        self, key: KeyPress, field: InputField
    ) -> SubmitResult | None:
        """Handle one keystroke against ``field``.

        Returns:
            A SubmitResult when the key committed the input, else None
        """
        name = key.name
        state = self.autocomplete_state

        if name == "pagedown":
            self.scrollback.scroll(self.page_size)
            return None
        if name == "pageup":
            self.scrollback.scroll(-self.page_size)
            return None

        if name == "enter":
            if state.open:
                self._accept(field)
                return None
            text = field.get_value()
            field.clear_value()
            return self.submit(text)

        if name == "tab":
            if state.open:
                self._accept(field)
            else:
                self.autocomplete(field.get_value(), key)
            return None

        if key.char in ACCEPT_CHARS and state.open:
            self._accept(field)

        cmd = field.get_value()

        if key.has_control_code or name in ("escape", "up", "down"):
            if state.open:
                if name == "up":
                    self.move_selection(-1)
                elif name == "down":
                    self.move_selection(1)
                elif name == "escape":
                    self.close_autocomplete()
            elif name == "up":
                field.set_value(self.history_older(cmd))
            elif name == "down":
                field.set_value(self.history_newer(cmd))
            return None

        if name == "backspace":
            cmd = cmd[:-1]
        else:
            cmd += key.char
        field.set_value(cmd)
        self.autocomplete(cmd, key)
        return None
