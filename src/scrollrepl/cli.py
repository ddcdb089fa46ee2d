# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
ScrollREPL CLI entry point and line-mode REPL loop.

Design:
- CLI owns process startup and config loading.
- Session is the engine (config injected).
- ConsoleUI is the full-screen prompt_toolkit surface; SCROLLREPL_LEGACY_UI=1
  falls back to a plain input()/print() loop.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable

from . import config
from .errors import FatalHostFailure
from .session import Session, write_crash_log
from .ui import ConsoleUI

PROMPT = "> "


def run_repl(
    session: Session,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> None:
    """Run the line-mode REPL loop until exit or EOF."""
    while not session.exit_requested:
        try:
            line = (input_fn(PROMPT) or "").strip()
            if not line:
                continue

            try:
                response = session.handle_command(line)

                if response == config.UI_CLEAR:
                    output_fn("\033[2J\033[H")
                    continue

                if response:
                    output_fn(response)

            except Exception as e:
                # Unhandled exception - write crash log
                write_crash_log(e, command=line, data_root=session.data_root)
                output_fn(
                    f"[ERROR] Unhandled exception: {type(e).__name__}: {e}"
                )
                # Continue session

        except (KeyboardInterrupt, EOFError):
            output_fn("\nBye!\n")
            break


def main() -> None:
    """Main entry point for the ScrollREPL console."""
    cfg = config.load_system_config()
    session = Session(config=cfg)

    try:
        # If user explicitly disables the full-screen UI:
        if os.environ.get("SCROLLREPL_LEGACY_UI") == "1":
            session.start()
            try:
                run_repl(session)
            finally:
                session.stop()
            return

        ConsoleUI(session).run()

    except FatalHostFailure as e:
        print(f"scrollrepl: {e}", file=sys.stderr)
        sys.exit(1)
