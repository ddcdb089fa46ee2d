# tests/test_cli.py
from __future__ import annotations

from pathlib import Path

import pytest

import scrollrepl.cli as cli
from scrollrepl import config
from scrollrepl.config import UI_CLEAR
from scrollrepl.errors import FatalHostFailure
from scrollrepl.session import Session


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------


def make_session(tmp_path: Path) -> Session:
    cfg = config.load_system_config({"console": {"color": "never"}})
    return Session(config=cfg, data_root=tmp_path)


def feed(lines: list[str]):
    """input() stand-in that raises EOFError when exhausted."""
    prompts: list[str] = []

    def fake_input(prompt: str) -> str:
        prompts.append(prompt)
        if not lines:
            raise EOFError
        return lines.pop(0)

    return fake_input, prompts


# -------------------------------------------------------------------
# run_repl
# -------------------------------------------------------------------


def test_cli_loop_skips_blank_and_writes_response(tmp_path: Path) -> None:
    session = make_session(tmp_path)
    fake_input, prompts = feed(["", "   ", "1 + 1"])
    out: list[str] = []

    cli.run_repl(session, input_fn=fake_input, output_fn=out.append)

    assert prompts[0] == cli.PROMPT
    assert out[0] == "< 2"
    assert out[-1] == "\nBye!\n"


def test_cli_routes_clear_to_ansi(tmp_path: Path) -> None:
    session = make_session(tmp_path)
    fake_input, _ = feed(["cls"])
    out: list[str] = []

    cli.run_repl(session, input_fn=fake_input, output_fn=out.append)

    assert out[0] == "\033[2J\033[H"
    assert UI_CLEAR not in out


def test_cli_exit_stops_loop(tmp_path: Path) -> None:
    session = make_session(tmp_path)
    fake_input, prompts = feed(["exit", "1"])
    out: list[str] = []

    cli.run_repl(session, input_fn=fake_input, output_fn=out.append)

    assert len(prompts) == 1
    assert session.exit_requested


def test_cli_keyboard_interrupt_prints_bye(tmp_path: Path) -> None:
    session = make_session(tmp_path)

    def interrupted(prompt: str) -> str:
        raise KeyboardInterrupt

    out: list[str] = []
    cli.run_repl(session, input_fn=interrupted, output_fn=out.append)
    assert out == ["\nBye!\n"]


def test_cli_unhandled_exception_writes_crash_log_and_continues(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    session = make_session(tmp_path)

    def broken(line: str, width=None) -> str:
        raise RuntimeError("kaput")

    monkeypatch.setattr(session, "handle_command", broken)
    fake_input, prompts = feed(["first", "second"])
    out: list[str] = []

    cli.run_repl(session, input_fn=fake_input, output_fn=out.append)

    assert out[0] == "[ERROR] Unhandled exception: RuntimeError: kaput"
    assert len(prompts) == 3
    crash = tmp_path / "scrollrepl" / "logs" / "crash.log"
    assert "command=second" in crash.read_text(encoding="utf-8")


# -------------------------------------------------------------------
# main
# -------------------------------------------------------------------


def test_cli_main_runs_console_ui(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("SCROLLREPL_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("SCROLLREPL_LEGACY_UI", raising=False)

    ran: list[Session] = []

    class StubUI:
        def __init__(self, session: Session) -> None:
            self.session = session

        def run(self) -> None:
            ran.append(self.session)

    monkeypatch.setattr(cli, "ConsoleUI", StubUI, raising=True)

    cli.main()

    assert len(ran) == 1
    assert isinstance(ran[0], Session)


def test_cli_main_legacy_mode_runs_line_loop(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("SCROLLREPL_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("SCROLLREPL_LEGACY_UI", "1")

    calls: list[str] = []
    monkeypatch.setattr(Session, "start", lambda self: calls.append("start"))
    monkeypatch.setattr(Session, "stop", lambda self: calls.append("stop"))
    monkeypatch.setattr(
        cli, "run_repl", lambda session: calls.append("loop"), raising=True
    )

    cli.main()

    assert calls == ["start", "loop", "stop"]


def test_cli_main_reports_fatal_host_failure(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("SCROLLREPL_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("SCROLLREPL_LEGACY_UI", raising=False)

    class NoTTYUI:
        def __init__(self, session: Session) -> None:
            pass

        def run(self) -> None:
            raise FatalHostFailure("not a valid TTY terminal")

    monkeypatch.setattr(cli, "ConsoleUI", NoTTYUI, raising=True)

    with pytest.raises(SystemExit) as exc:
        cli.main()

    assert exc.value.code == 1
    assert "not a valid TTY terminal" in capsys.readouterr().err

