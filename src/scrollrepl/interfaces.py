# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Protocol definitions for dependency injection.

These interfaces keep the console core independent of the scripting
engine, the output destination and the terminal toolkit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .entries import LogEntry  # pragma: no cover


class Evaluator(Protocol):
    """Protocol for running submitted commands."""

    def evaluate(self, source: str, namespace: dict[str, Any]) -> Any:
        """Evaluate source against namespace and return the value.

        Raises whatever the evaluated code raises.
        """
        ...


class NameEnumerator(Protocol):
    """Protocol for listing member names (own first, then inherited)."""

    def names(self, value: Any) -> list[str]:
        """Ordered, de-duplicated member names of value."""
        ...


class LogSink(Protocol):
    """Protocol for the destination of routed log entries."""

    @property
    def supports_color(self) -> bool:
        """Whether color codes should be kept."""
        ...

    def write_entry(self, entry: LogEntry) -> None:
        """Accept one finished entry."""
        ...


class InputField(Protocol):
    """Protocol for the text entry the REPL edits."""

    def get_value(self) -> str:
        ...

    def set_value(self, value: str) -> None:
        ...

    def clear_value(self) -> None:
        ...


class ConfigModel(Protocol):
    """Protocol for configuration access."""

    @property
    def console(self) -> dict[str, Any]:
        """Console/router configuration."""
        ...

    @property
    def repl(self) -> dict[str, Any]:
        """REPL configuration."""
        ...

    @property
    def ui(self) -> dict[str, Any]:
        """Terminal surface configuration."""
        ...

    def get_path(self, path: str, default: Any = None) -> Any:
        """Nested lookup using a dot-separated path."""
        ...
