# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
ScrollREPL core package.

A scrollback log console with an embedded Python REPL. Build a Session from
``config.load_system_config()`` and run it through ``ui.ConsoleUI``.
"""
import logging

from .session import Session as Session  # noqa: F401 (re-export)

logging.getLogger(__name__).addHandler(logging.NullHandler())
