# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
prompt_toolkit surface for a Session.

Layout (top to bottom):
  - scrollback window (mouse wheel scrolls, click selects / expands)
  - status line (scroll position, entry count, selection)
  - input line, with the autocomplete popup floating above it

The surface only reads the scrollback (visible_rows) and forwards keys to
the ReplSession state machine; it never mutates entries itself.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.filters import Condition
from prompt_toolkit.formatted_text import ANSI, to_formatted_text
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import (
    ConditionalContainer,
    Float,
    FloatContainer,
    HSplit,
    Layout,
    VSplit,
    Window,
)
from prompt_toolkit.layout.controls import (
    BufferControl,
    FormattedTextControl,
    UIContent,
    UIControl,
)
from prompt_toolkit.mouse_events import MouseEvent, MouseEventType
from prompt_toolkit.styles import Style

from .repl import KeyPress, SubmitResult
from .router import LEVELS, ScrollbackSink
from .session import Session, write_crash_log


# ----------------------------
# Config helpers (values come from the session's ConfigModel)
# ----------------------------


def _cfg_get_path(session: Session | None, path: str, default):
    if session is None:
        return default
    cfg = getattr(session, "config", None)
    if cfg is None or not hasattr(cfg, "get_path"):
        return default
    try:
        return cfg.get_path(path, default)
    except Exception:
        return default


def _cfg_int(session: Session | None, path: str, default: int) -> int:
    try:
        return int(_cfg_get_path(session, path, default))
    except (TypeError, ValueError):
        return default


def _cfg_dict(session: Session | None, path: str, default: dict) -> dict:
    val = _cfg_get_path(session, path, default)
    return val if isinstance(val, dict) else default


# ----------------------------
# Theme / Style
# ----------------------------


def _default_style_dict() -> dict[str, str]:
    return {
        "scrollrepl.output": "",
        "scrollrepl.status": "bg:#444444 #ffffff",
        "scrollrepl.input": "bg:#ffffff #0000aa",
        "scrollrepl.prompt": "bg:#ffffff #0000aa bold",
        "scrollrepl.popup": "bg:#0000aa #ffffff",
        "scrollrepl.popup.current": "bg:#ffffff #0000aa bold",
        "scrollrepl.selected": "reverse",
    }


def _build_style(session: Session | None) -> Style:
    base = _default_style_dict()
    overrides = _cfg_dict(session, "ui.theme.style", {})
    # only keep string->string
    for k, v in list(overrides.items()):
        if isinstance(k, str) and isinstance(v, str):
            base[k] = v
    return Style.from_dict(base)


# ----------------------------
# InputField adapter
# ----------------------------


class BufferField:
    """InputField protocol over a prompt_toolkit Buffer."""

    def __init__(self, buffer: Buffer) -> None:
        self.buffer = buffer
        # set while the REPL (not the user) changes the text
        self.programmatic = False

    def get_value(self) -> str:
        return self.buffer.text

    def set_value(self, value: str) -> None:
        self.programmatic = True
        try:
            self.buffer.text = value
            self.buffer.cursor_position = len(value)
        finally:
            self.programmatic = False

    def clear_value(self) -> None:
        self.set_value("")


# ----------------------------
# Scrollback window
# ----------------------------


class ScrollbackControl(UIControl):
    """Paints the visible window of the scrollback and handles the mouse."""

    def __init__(self, session: Session, wheel_step: int = 5) -> None:
        self.session = session
        self.wheel_step = wheel_step

    def is_focusable(self) -> bool:
        return False

    def create_content(self, width: int, height: int) -> UIContent:
        scrollback = self.session.scrollback
        scrollback.resize(width, height)
        scrollback.scroll_along()

        rows = scrollback.visible_rows()
        selection = scrollback.selection
        lines = []
        for index, line in rows:
            fragments = to_formatted_text(ANSI(line))
            if index is not None and index == selection:
                fragments = [
                    ("class:scrollrepl.selected " + style, text)
                    for style, text, *_ in fragments
                ]
            lines.append(fragments)

        def get_line(i: int):
            return lines[i] if i < len(lines) else []

        return UIContent(get_line=get_line, line_count=len(lines))

    def mouse_handler(self, mouse_event: MouseEvent):
        scrollback = self.session.scrollback
        kind = mouse_event.event_type

        if kind == MouseEventType.SCROLL_UP:
            scrollback.scroll(-self.wheel_step)
        elif kind == MouseEventType.SCROLL_DOWN:
            scrollback.scroll(self.wheel_step)
            if scrollback.scroll_percent() == 100:
                scrollback.scrolled_manually = False
        elif kind == MouseEventType.MOUSE_UP:
            index = scrollback.resolve_coordinate(
                mouse_event.position.y, 0, scrollback.height
            )
            if index is None:
                return NotImplemented
            scrollback.click(index)
        else:
            return NotImplemented
        return None


# ----------------------------
# Application
# ----------------------------


class ConsoleUI:
    """Full-screen prompt_toolkit application around a Session."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._style = _build_style(session)
        self._ready_callbacks: list[Callable[[], None]] = []
        self._rendered = False

        self.buffer = Buffer(
            multiline=False, on_text_changed=self._on_text_changed
        )
        self.field = BufferField(self.buffer)
        self.sink = ScrollbackSink(
            session.scrollback, on_change=self.invalidate
        )
        self.app: Application[Any] | None = None

    # ---------- layout ----------

    def _status_text(self):
        sb = self.session.scrollback
        parts = [f" {sb.scroll_percent():>3}%", f"{len(sb)} entries"]
        if sb.selection is not None:
            parts.append(f"selected #{sb.selection}")
        if not sb.pinned:
            parts.append("scrolled")
        return [("class:scrollrepl.status", "  ".join(parts))]

    def _popup_text(self):
        state = self.session.repl.autocomplete_state
        height = _cfg_int(self.session, "ui.popup_height", 6)
        start = max(0, min(state.selected - height + 1, len(state.items)))
        out = []
        for i, item in enumerate(state.items[start:start + height], start):
            style = (
                "class:scrollrepl.popup.current"
                if i == state.selected
                else "class:scrollrepl.popup"
            )
            out.append((style, f" {item} \n"))
        return out

    def build_layout(self) -> Layout:
        popup_open = Condition(
            lambda: self.session.repl.autocomplete_state.open
        )
        popup_height = _cfg_int(self.session, "ui.popup_height", 6)

        output = Window(
            ScrollbackControl(
                self.session,
                wheel_step=_cfg_int(self.session, "ui.wheel_step", 5),
            ),
            style="class:scrollrepl.output",
            wrap_lines=False,
        )
        status = Window(
            FormattedTextControl(self._status_text), height=1
        )
        input_line = VSplit([
            Window(
                FormattedTextControl([("class:scrollrepl.prompt", "▶ ")]),
                width=2,
                height=1,
            ),
            Window(
                BufferControl(buffer=self.buffer),
                height=1,
                style="class:scrollrepl.input",
            ),
        ])
        popup = ConditionalContainer(
            Window(
                FormattedTextControl(self._popup_text),
                height=popup_height,
                width=30,
                style="class:scrollrepl.popup",
            ),
            filter=popup_open,
        )

        body = FloatContainer(
            content=HSplit([output, status, input_line]),
            floats=[Float(content=popup, xcursor=True, ycursor=True)],
        )
        return Layout(body, focused_element=self.buffer)

    # ---------- keys ----------

    def _on_text_changed(self, buffer: Buffer) -> None:
        if self.field.programmatic:
            return
        self.session.repl.autocomplete(buffer.text, KeyPress(name="text"))

    def _guarded(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        """Log a failing key handler to the crash log and the scrollback."""

        def handler(event) -> None:
            try:
                fn(event)
            except Exception as e:
                write_crash_log(
                    e, command=self.buffer.text,
                    data_root=self.session.data_root,
                )
                self.session.router.print(
                    "error", [e], error=e, verbosity=LEVELS["FATAL"]
                )
            self.invalidate()

        return handler

    def _after_submit(self, result: SubmitResult | None, event) -> None:
        if result is None:
            return
        self.session.apply(result)
        if result.action == "clear":
            # after the current key press is fully handled
            asyncio.get_running_loop().call_soon(self._deferred_clear)
        elif result.action == "exit":
            event.app.exit()

    def _deferred_clear(self) -> None:
        self.session.clear()
        self.field.clear_value()
        self.invalidate()

    def _press(self, key: KeyPress, event) -> None:
        result = self.session.repl.keypress(key, self.field)
        self._after_submit(result, event)

    def build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()
        repl = self.session.repl

        def special(name: str) -> Callable[..., Any]:
            return self._guarded(
                lambda event: self._press(KeyPress(name=name), event)
            )

        kb.add("enter")(special("enter"))
        kb.add("tab")(special("tab"))
        kb.add("pageup")(special("pageup"))
        kb.add("pagedown")(special("pagedown"))
        kb.add("up")(special("up"))
        kb.add("down")(special("down"))
        kb.add("escape", eager=True)(special("escape"))

        for ch in (".", "("):

            @kb.add(ch)
            def _(event, ch=ch):
                def accept(event):
                    if repl.autocomplete_state.open:
                        self._press(KeyPress(char=ch, name=ch), event)
                    else:
                        event.current_buffer.insert_text(ch)

                self._guarded(accept)(event)

        @kb.add("c-c")
        def _(event):
            self.session.request_exit()
            event.app.exit()

        return kb

    # ---------- public API ----------

    def invalidate(self) -> None:
        if self.app is not None:
            self.app.invalidate()

    def on_ready(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` once the first frame has been drawn."""
        if self._rendered:
            callback()
        else:
            self._ready_callbacks.append(callback)

    def _after_render(self, _app) -> None:
        if self._rendered:
            return
        self._rendered = True
        callbacks, self._ready_callbacks = self._ready_callbacks, []
        for cb in callbacks:
            cb()

    def build_application(self) -> Application[Any]:
        self.app = Application(
            layout=self.build_layout(),
            key_bindings=self.build_key_bindings(),
            style=self._style,
            full_screen=True,
            mouse_support=True,
        )
        self.app.after_render += self._after_render
        return self.app

    def _pre_run(self) -> None:
        self.sink.loop = asyncio.get_running_loop()

    def run(self) -> None:
        """Run until exit; stdout/stderr/logging go to the scrollback."""
        app = self.app or self.build_application()
        self.session.on_change = self.invalidate

        self.session.start(sink=self.sink)
        try:
            # stop() reverts the title
            title = _cfg_get_path(self.session, "ui.title", "")
            if title:
                self.session.set_title(str(title))

            with self.session.router.redirect():
                app.run(pre_run=self._pre_run)
        finally:
            self.session.stop()
