from __future__ import annotations

import os

import pytest

from scrollrepl.errors import ParseFailure
from scrollrepl.evaluator import (
    Namespace,
    PythonEvaluator,
    PythonNameEnumerator,
    resolve_path,
)


@pytest.fixture
def ev() -> PythonEvaluator:
    return PythonEvaluator()


def test_expression_value(ev):
    assert ev.evaluate("1 + 1", Namespace()) == 2


def test_braces_are_a_dict_not_a_block(ev):
    assert ev.evaluate("{'a': 1}", Namespace()) == {"a": 1}


def test_statements_then_trailing_expression(ev):
    ns = Namespace()
    assert ev.evaluate("x = 20\nx + 1", ns) == 21
    assert ns["x"] == 20


def test_statement_without_value_returns_none(ev):
    ns = Namespace()
    assert ev.evaluate("def f():\n    return 3", ns) is None
    assert ev.evaluate("f()", ns) == 3


def test_runtime_error_propagates_and_runs_once(ev):
    calls = []
    ns = Namespace(hit=lambda: calls.append(1) or 1 / 0)

    with pytest.raises(ZeroDivisionError):
        ev.evaluate("hit()", ns)
    assert calls == [1]


def test_raise_statement_propagates(ev):
    with pytest.raises(ValueError, match="x"):
        ev.evaluate("raise ValueError('x')", Namespace())


def test_syntax_error_propagates(ev):
    with pytest.raises(SyntaxError):
        ev.evaluate("1 +", Namespace())


def test_namespace_names_own_first_then_builtins():
    ns = Namespace(process=1, profile=2)
    names = PythonNameEnumerator().names(ns)

    assert names[:2] == ["process", "profile"]
    assert "property" in names
    assert names.index("property") > 1
    assert len(names) == len(set(names))


def test_object_names_own_then_inherited():
    class Base:
        def inherited(self):
            pass

    class Child(Base):
        def __init__(self):
            self.mine = 1

    names = PythonNameEnumerator().names(Child())
    assert names[0] == "mine"
    assert names.index("inherited") > 0
    assert "__init__" in names


def test_resolve_path():
    ns = Namespace(os=os)
    assert resolve_path(ns, ["os", "path"]) is os.path
    assert resolve_path(ns, ["len"]) is len


@pytest.mark.parametrize(
    "pieces", [["missing"], ["os", "nope"], ["os", ""], [""], []]
)
def test_resolve_path_failures(pieces):
    with pytest.raises(ParseFailure):
        resolve_path(Namespace(os=os), pieces)
