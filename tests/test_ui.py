# tests/test_ui.py
from __future__ import annotations

import importlib
import io
import sys
from pathlib import Path

import pytest

prompt_toolkit = pytest.importorskip("prompt_toolkit")

from prompt_toolkit.application import create_app_session  # noqa: E402
from prompt_toolkit.data_structures import Point  # noqa: E402
from prompt_toolkit.input import DummyInput  # noqa: E402
from prompt_toolkit.mouse_events import (  # noqa: E402
    MouseButton,
    MouseEvent,
    MouseEventType,
)
from prompt_toolkit.output import DummyOutput  # noqa: E402

from scrollrepl import config  # noqa: E402
from scrollrepl.entries import ArgsEntry, ErrorEntry, PlainEntry  # noqa: E402
from scrollrepl.errors import FatalHostFailure  # noqa: E402
from scrollrepl.repl import KeyPress  # noqa: E402
from scrollrepl.session import Session  # noqa: E402

ui = importlib.import_module("scrollrepl.ui")


@pytest.fixture(autouse=True)
def app_session():
    with create_app_session(input=DummyInput(), output=DummyOutput()):
        yield


@pytest.fixture
def session(tmp_path: Path) -> Session:
    cfg = config.load_system_config(
        {"ui": {"theme": {"style": {"scrollrepl.status": "bg:#000000"}}}}
    )
    return Session(config=cfg, data_root=tmp_path)


@pytest.fixture
def console(session: Session):
    inst = ui.ConsoleUI(session)
    session.router.set_sink(inst.sink)
    return inst


class FakeApp:
    def __init__(self):
        self.exited = False

    def exit(self):
        self.exited = True


class FakeEvent:
    def __init__(self, buffer=None):
        self.app = FakeApp()
        self.current_buffer = buffer


def _line_text(fragments) -> str:
    return "".join(text for _style, text, *_ in fragments)


def _mouse(kind, y: int = 0) -> MouseEvent:
    return MouseEvent(
        position=Point(x=0, y=y),
        event_type=kind,
        button=MouseButton.LEFT,
        modifiers=frozenset(),
    )


# -------------------------------------------------------------------
# Style / config
# -------------------------------------------------------------------


def test_style_merges_theme_overrides(session: Session) -> None:
    style = ui._build_style(session)
    rules = dict(style.style_rules)
    assert rules["scrollrepl.status"] == "bg:#000000"
    assert "scrollrepl.popup" in rules


def test_cfg_helpers_fall_back_to_defaults() -> None:
    assert ui._cfg_get_path(None, "ui.page_size", 3) == 3
    assert ui._cfg_int(None, "ui.wheel_step", 5) == 5


# -------------------------------------------------------------------
# BufferField
# -------------------------------------------------------------------


def test_buffer_field_implements_input_field(console) -> None:
    field = console.field
    field.set_value("abc")
    assert field.get_value() == "abc"
    assert console.buffer.cursor_position == 3
    field.clear_value()
    assert field.get_value() == ""


def test_user_typing_drives_autocomplete(console, session: Session) -> None:
    console.buffer.insert_text("sess")
    assert session.repl.autocomplete_state.open
    assert session.repl.autocomplete_state.current == "session"


def test_programmatic_set_does_not_reopen_popup(console, session) -> None:
    console.field.set_value("sess")
    assert not session.repl.autocomplete_state.open


# -------------------------------------------------------------------
# Scrollback window
# -------------------------------------------------------------------


def test_create_content_paints_visible_rows(session: Session) -> None:
    for i in range(10):
        session.scrollback.push_line(PlainEntry(f"e{i}"))
    control = ui.ScrollbackControl(session)

    content = control.create_content(width=40, height=4)

    assert content.line_count == 4
    assert [_line_text(content.get_line(i)) for i in range(4)] == [
        "e6", "e7", "e8", "e9"
    ]
    assert session.scrollback.width == 40


def test_create_content_marks_selected_entry(session: Session) -> None:
    session.scrollback.push_line(PlainEntry("a"))
    session.scrollback.push_line(PlainEntry("b"))
    session.scrollback.select(1)

    content = ui.ScrollbackControl(session).create_content(40, 5)
    styles = [style for style, *_ in content.get_line(1)]
    assert all("scrollrepl.selected" in s for s in styles)


def test_mouse_wheel_scrolls(session: Session) -> None:
    for i in range(20):
        session.scrollback.push_line(PlainEntry(str(i)))
    control = ui.ScrollbackControl(session, wheel_step=3)
    control.create_content(40, 5)

    control.mouse_handler(_mouse(MouseEventType.SCROLL_UP))
    assert session.scrollback.window_top() == 12
    control.mouse_handler(_mouse(MouseEventType.SCROLL_DOWN))
    assert session.scrollback.pinned


def test_click_selects_and_expands(session: Session) -> None:
    session.scrollback.push_line(ArgsEntry([{"a": 1}]))
    control = ui.ScrollbackControl(session)
    control.create_content(40, 5)

    control.mouse_handler(_mouse(MouseEventType.MOUSE_UP, y=0))

    assert session.scrollback.selection == 0
    assert len(session.scrollback) == 2


def test_click_below_content_is_not_handled(session: Session) -> None:
    control = ui.ScrollbackControl(session)
    control.create_content(40, 5)
    result = control.mouse_handler(_mouse(MouseEventType.MOUSE_UP, y=3))
    assert result is NotImplemented


# -------------------------------------------------------------------
# Keys
# -------------------------------------------------------------------


def test_key_bindings_are_registered(console) -> None:
    kb = console.build_key_bindings()
    keys = set()
    for b in kb.bindings:
        for key in b.keys:
            keys.add(getattr(key, "value", key))

    for expected in ("c-c", "pageup", "pagedown", "up", "down", "escape"):
        assert expected in keys
    assert "." in keys and "(" in keys


def test_enter_submits_and_scrolls(console, session: Session) -> None:
    console.field.set_value("1 + 1")
    console._press(KeyPress(name="enter"), FakeEvent())

    kinds = [type(e).__name__ for e in session.scrollback]
    assert kinds == ["CommandEntry", "EvalOutputEntry"]
    assert console.field.get_value() == ""


def test_exit_verb_exits_app(console, session: Session) -> None:
    console.field.set_value("exit")
    event = FakeEvent()
    console._press(KeyPress(name="enter"), event)
    assert event.app.exited
    assert session.exit_requested


def test_help_verb_prints_into_scrollback(console, session: Session) -> None:
    console.field.set_value("help")
    console._press(KeyPress(name="enter"), FakeEvent())
    assert "Reserved commands" in session.scrollback.get(0).plain_text()


def test_deferred_clear_empties_scrollback(console, session: Session) -> None:
    session.scrollback.push_line(PlainEntry("x"))
    console.field.set_value("leftover")
    console._deferred_clear()
    assert len(session.scrollback) == 0
    assert console.field.get_value() == ""


def test_failing_key_handler_is_logged(console, session: Session) -> None:
    def explode(event):
        raise RuntimeError("handler broke")

    console._guarded(explode)(FakeEvent())

    entry = session.scrollback.get(len(session.scrollback) - 1)
    assert isinstance(entry, ErrorEntry)
    crash = session.data_root / "scrollrepl" / "logs" / "crash.log"
    assert "handler broke" in crash.read_text(encoding="utf-8")


# -------------------------------------------------------------------
# Chrome
# -------------------------------------------------------------------


def test_status_text_shows_scroll_position(console, session: Session) -> None:
    session.scrollback.push_line(PlainEntry("x"))
    session.scrollback.select(0)
    text = _line_text(console._status_text())
    assert "100%" in text
    assert "1 entries" in text
    assert "selected #0" in text


def test_popup_text_highlights_current(console, session: Session) -> None:
    session.repl.autocomplete("pro")
    session.repl.move_selection(1)
    fragments = console._popup_text()

    current = [t for s, t in fragments if s.endswith("popup.current")]
    assert len(current) == 1
    assert current[0].strip() == session.repl.autocomplete_state.current


def test_ready_callbacks_fire_once_after_first_render(console) -> None:
    calls = []
    console.on_ready(lambda: calls.append("a"))
    console._after_render(None)
    console._after_render(None)
    console.on_ready(lambda: calls.append("b"))
    assert calls == ["a", "b"]


def test_build_application(console) -> None:
    app = console.build_application()
    assert app.full_screen
    assert console.app is app
    assert app.layout.current_buffer is console.buffer


# -------------------------------------------------------------------
# Run
# -------------------------------------------------------------------


class FakeTTY(io.StringIO):
    def isatty(self) -> bool:
        return True


class FakeRunApp:
    def __init__(self):
        self.ran = False

    def run(self, pre_run=None):
        self.ran = True


@pytest.fixture
def titled(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    cfg = config.load_system_config({"ui": {"title": "Logs"}})
    inst = Session(config=cfg, data_root=tmp_path)

    titles = []
    set_title = inst.set_title

    def record(title, stream=None):
        titles.append(title)
        return set_title(title, stream=io.StringIO())

    monkeypatch.setattr(inst, "set_title", record)
    return inst, titles


def test_run_sets_and_reverts_title(titled, monkeypatch) -> None:
    session, titles = titled
    start = session.start
    monkeypatch.setattr(
        session, "start", lambda sink=None: start(sink=sink, stream=FakeTTY())
    )
    console = ui.ConsoleUI(session)
    console.app = FakeRunApp()

    console.run()

    assert console.app.ran
    assert titles == ["Logs", None]
    assert not session.running


def test_run_leaves_title_alone_when_start_fails(titled, monkeypatch) -> None:
    session, titles = titled

    def refuse(sink=None):
        raise FatalHostFailure("not a TTY")

    monkeypatch.setattr(session, "start", refuse)
    console = ui.ConsoleUI(session)
    console.app = FakeRunApp()

    with pytest.raises(FatalHostFailure):
        console.run()

    assert titles == []
    assert not console.app.ran
