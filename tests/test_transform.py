"""Tests for choosing the replacement of a call's statement."""

import pytest

from errexpand_cli.config import Settings
from errexpand_cli.errors import NoAssignmentFound
from errexpand_cli.gotypes import Basic, Scope, Var
from errexpand_cli.models import (
    AssignStmt,
    BasicLit,
    BinaryExpr,
    CallRef,
    ExprStmt,
    Ident,
    IfStmt,
    RawStmt,
    ResultSlot,
    ReturnStmt,
    ScopeSnapshot,
    Signature,
    SourceExpr,
    VarDecl,
)
from errexpand_cli.position import find_call_site, node_path, resolve_position
from errexpand_cli.transform import TransformEngine
from errexpand_cli.zero_values import ZeroValueSynthesizer

SOURCE = '''package main

func caller() (int, error) {
    a()
    x := b()
    y, z := c()
    y = c()
    _ = c()
    v := (b())
    return 0, nil
}
'''

FAILED = BinaryExpr(Ident("err"), "!=", Ident("nil"))


def sig(*types, label="callee"):
    slots = []
    for i, text in enumerate(types):
        if text == "error":
            slots.append(ResultSlot(index=i, type_text=text, role="failure"))
        else:
            slots.append(ResultSlot(index=i, type_text=text, type=Basic(text, text)))
    return Signature(results=tuple(slots), label=label)


def empty_scope(position=0):
    return ScopeSnapshot(record=None, position=position)


@pytest.fixture
def plan(parse_go):
    source = parse_go(SOURCE)

    def make(needle, callee, caller=None, scope=None, **settings):
        # cursor on the opening parenthesis of the call
        offset = source.source.index(needle.encode("utf-8")) + len(needle) - 2
        call = find_call_site(resolve_position(source, offset), source, offset)
        engine = TransformEngine(Settings(**settings), ZeroValueSynthesizer())
        result = engine.plan(
            source, call, node_path(call.node), callee, caller or sig("int", "error"), scope or empty_scope(offset)
        )
        return source, call, result
    return make


def subject_text(source, result):
    return source.source[result.start:result.end].decode("utf-8")


def test_no_results_keeps_call(plan):
    source, call, result = plan("a()", sig())
    assert result.nodes == [ExprStmt(CallRef(call))]
    assert subject_text(source, result) == "a()"


def test_single_result_wraps_call(plan):
    source, call, result = plan("a()", sig("error"))
    assert result.nodes == [IfStmt(
        cond=FAILED,
        body=(ReturnStmt((BasicLit("0"), Ident("err"))),),
        init=AssignStmt((Ident("err"),), ":=", (CallRef(call),)),
    )]
    assert result.warnings == []


def test_single_result_replaces_assignment(plan):
    source, _, result = plan("b()", sig("error"))
    assert subject_text(source, result) == "x := b()"
    assert result.warnings == ["the assignment to x is replaced by the error check"]


def test_single_non_error_result_warns(plan):
    _, _, result = plan("a()", sig("bool", label="a"))
    assert result.warnings == ["a returns bool, not error; checking it as the failure value"]


def test_parenthesized_call_is_assigned(plan):
    source, _, result = plan("(b())", sig("error"))
    assert subject_text(source, result) == "v := (b())"


def test_multiple_results_need_assignment(plan):
    with pytest.raises(NoAssignmentFound):
        plan("a()", sig("int", "error"))


def test_short_declaration_keeps_assignment(plan):
    source, call, result = plan("c()", sig("int", "int", "error"))
    assert subject_text(source, result) == "y, z := c()"
    assert result.nodes == [
        AssignStmt((Ident("y"), Ident("z"), Ident("err")), ":=", (CallRef(call),)),
        IfStmt(cond=FAILED, body=(ReturnStmt((BasicLit("0"), Ident("err"))),)),
    ]


def test_assignment_declares_missing_err(plan):
    source, call, result = plan("y = c()", sig("int", "error"))
    assert subject_text(source, result) == "y = c()"
    assert result.nodes[0] == VarDecl("err", "error")
    assert result.nodes[1].init == AssignStmt((Ident("y"), Ident("err")), "=", (CallRef(call),))


def test_assignment_reuses_visible_err(plan):
    scope = Scope()
    scope.insert(Var(name="err"))
    _, _, result = plan("y = c()", sig("int", "error"), scope=ScopeSnapshot(record=scope, position=0))
    assert len(result.nodes) == 1
    assert isinstance(result.nodes[0], IfStmt)


def test_discarded_targets_use_short_declaration(plan):
    _, call, result = plan("_ = c()", sig("int", "error"))
    assert result.nodes == [IfStmt(
        cond=FAILED,
        body=(ReturnStmt((BasicLit("0"), Ident("err"))),),
        init=AssignStmt((Ident("_"), Ident("err")), ":=", (CallRef(call),)),
    )]


def test_error_callback_runs_first(plan):
    _, _, result = plan("a()", sig("error"), error_callback="log.Print(err)")
    assert result.nodes[0].body == (RawStmt("log.Print(err)"), ReturnStmt((BasicLit("0"), Ident("err"))))


def test_caller_without_error_panics(plan):
    _, _, result = plan("a()", sig("error"), caller=sig("int", label="caller"))
    assert result.nodes[0].body == (ExprStmt(SourceExpr("panic(err)")),)
    assert result.warnings == ["caller has no error result; the failure is passed to panic"]


def test_caller_without_error_uses_callback(plan):
    _, _, result = plan("a()", sig("error"), caller=sig("string", label="caller"), error_callback="log.Fatal(err)")
    assert result.nodes[0].body == (RawStmt("log.Fatal(err)"), ReturnStmt((BasicLit('""'),)))
