# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Python implementations of the Evaluator and NameEnumerator protocols.

Evaluation runs against a Namespace: a plain dict of curated bindings whose
unresolved names fall through to builtins.
"""

from __future__ import annotations

import ast
import builtins
from typing import Any

from .errors import ParseFailure


class Namespace(dict):
    """The REPL binding context."""


class PythonEvaluator:
    """Evaluator protocol implementation backed by eval/exec."""

    def __init__(self, filename: str = "<console>") -> None:
        self.filename = filename

    def evaluate(self, source: str, namespace: dict[str, Any]) -> Any:
        """Evaluate ``source``, preferring the expression reading.

        The source is first compiled wrapped in parentheses, so input like
        ``{'a': 1}`` is a value. Only if that does not compile is the raw
        source run as statements; a trailing expression statement gives the
        result. Runtime errors propagate and the code is never run twice.
        """
        try:
            code = compile(f"({source})", self.filename, "eval")
        except SyntaxError:
            return self._run_statements(source, namespace)
        return eval(code, namespace)

    def _run_statements(self, source: str, namespace: dict[str, Any]) -> Any:
        tree = ast.parse(source, self.filename, "exec")

        tail = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            tail = ast.Expression(tree.body.pop().value)

        exec(compile(tree, self.filename, "exec"), namespace)
        if tail is None:
            return None
        return eval(compile(tail, self.filename, "eval"), namespace)


def _unique(names: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            out.append(name)
    return out


class PythonNameEnumerator:
    """NameEnumerator protocol implementation using Python reflection.

    Own names come first: a namespace's keys, or an object's ``__dict__``.
    Inherited names follow: builtins for a namespace, the class MRO for
    anything else (for a class, its own MRO).
    """

    def names(self, value: Any) -> list[str]:
        if isinstance(value, Namespace):
            keys = [k for k in value if k != "__builtins__"]
            return _unique(keys + dir(builtins))

        own: list[str] = []
        try:
            own = list(vars(value))
        except TypeError:
            pass

        mro = value.__mro__ if isinstance(value, type) else type(value).__mro__
        inherited: list[str] = []
        for klass in mro:
            inherited.extend(vars(klass))

        return _unique(own + inherited)


def resolve_path(namespace: dict[str, Any], pieces: list[str]) -> Any:
    """Resolve a dotted path (already split) against ``namespace``.

    Raises:
        ParseFailure: If a segment is empty or cannot be resolved
    """
    if not pieces or not pieces[0]:
        raise ParseFailure(f"Cannot resolve path {'.'.join(pieces)!r}")

    first = pieces[0]
    if first in namespace:
        target = namespace[first]
    elif hasattr(builtins, first):
        target = getattr(builtins, first)
    else:
        raise ParseFailure(f"Unknown name {first!r}")

    for piece in pieces[1:]:
        if not piece:
            raise ParseFailure(f"Empty segment in {'.'.join(pieces)!r}")
        try:
            target = getattr(target, piece)
        except Exception as e:
            raise ParseFailure(f"Cannot resolve {piece!r}: {e}") from e
    return target
