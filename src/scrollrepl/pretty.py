# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Colorized structural representation of Python values.

Used for log arguments, evaluation results and property inspection.
"""

from __future__ import annotations

import inspect
from typing import Any

from .ansi import esc

STRING_COLOR = 32  # green
NUMBER_COLOR = 33  # yellow
SPECIAL_COLOR = 1  # bold, None/True/False
TYPE_COLOR = 36  # cyan
DIM_COLOR = 90  # grey

MAX_ITEMS = 20
MAX_STRING = 200


def _paint(code: int, text: str, colors: bool) -> str:
    return esc(code, text) if colors else text


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple, set, frozenset))


def inspect_value(
    value: Any,
    colors: bool = True,
    depth: int = 2,
    max_items: int = MAX_ITEMS,
) -> str:
    """Return a one-line, optionally colored repr of ``value``.

    Containers nest up to ``depth`` levels and show at most ``max_items``
    members each; anything deeper is abbreviated to its type.
    """
    if value is None or isinstance(value, bool):
        return _paint(SPECIAL_COLOR, repr(value), colors)

    if isinstance(value, (int, float, complex)):
        return _paint(NUMBER_COLOR, repr(value), colors)

    if isinstance(value, str):
        text = value
        if len(value) > MAX_STRING:
            text = value[:MAX_STRING] + "..."
        return _paint(STRING_COLOR, repr(text), colors)

    if isinstance(value, bytes):
        return _paint(STRING_COLOR, repr(value[:MAX_STRING]), colors)

    if _is_container(value):
        if depth < 0:
            return _paint(TYPE_COLOR, f"[{type(value).__name__}]", colors)
        return _inspect_container(value, colors, depth, max_items)

    if inspect.isroutine(value) or inspect.isclass(value):
        kind = "class" if inspect.isclass(value) else "function"
        name = getattr(value, "__qualname__", getattr(value, "__name__", "?"))
        return _paint(TYPE_COLOR, f"[{kind} {name}]", colors)

    if inspect.ismodule(value):
        return _paint(TYPE_COLOR, f"[module {value.__name__}]", colors)

    try:
        text = repr(value)
    except Exception as e:
        text = f"<unrepresentable {type(value).__name__}: {e}>"
    return text


def _inspect_container(
    value: Any, colors: bool, depth: int, max_items: int
) -> str:
    if isinstance(value, dict):
        opener, closer = "{", "}"
        parts = [
            f"{inspect_value(k, colors, depth - 1, max_items)}: "
            f"{inspect_value(v, colors, depth - 1, max_items)}"
            for k, v in list(value.items())[:max_items]
        ]
    else:
        if isinstance(value, list):
            opener, closer = "[", "]"
        elif isinstance(value, tuple):
            opener, closer = "(", ",)" if len(value) == 1 else ")"
        else:
            opener, closer = "{", "}"
            if not value:
                return f"{type(value).__name__}()"
        parts = [
            inspect_value(v, colors, depth - 1, max_items)
            for v in list(value)[:max_items]
        ]

    if len(value) > max_items:
        more = f"... {len(value) - max_items} more"
        parts.append(_paint(DIM_COLOR, more, colors))

    return opener + ", ".join(parts) + closer


def is_expandable(value: Any) -> bool:
    """Whether clicking a value should list its members."""
    if value is None or isinstance(value, (bool, int, float, complex, bytes)):
        return False
    if isinstance(value, str):
        return len(value) > MAX_STRING or "\n" in value
    if _is_container(value):
        return len(value) > 0
    return bool(member_names(value))


def member_names(value: Any) -> list[str]:
    """Public attribute names of an object (own first, then inherited)."""
    names: list[str] = []
    own = getattr(value, "__dict__", None)
    if isinstance(own, dict):
        names.extend(k for k in own if not k.startswith("_"))
    for klass in type(value).__mro__:
        if klass is object:
            continue
        for k in vars(klass):
            if not k.startswith("_") and k not in names:
                names.append(k)
    return names


def members(value: Any) -> list[tuple[str, Any]]:
    """(label, member) pairs listed when ``value`` is expanded."""
    if isinstance(value, dict):
        return [(repr(k), v) for k, v in value.items()]
    if isinstance(value, (list, tuple)):
        return [(str(i), v) for i, v in enumerate(value)]
    if isinstance(value, (set, frozenset)):
        return [(str(i), v) for i, v in enumerate(value)]

    out: list[tuple[str, Any]] = []
    for name in member_names(value):
        try:
            out.append((name, getattr(value, name)))
        except Exception as e:
            out.append((name, e))
    return out
