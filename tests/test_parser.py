"""Tests for the Tree-sitter Go parser wrapper and tree helpers."""

from pathlib import Path

import pytest

from errexpand_cli.errors import ParseError
from errexpand_cli.parser import (
    GoParser,
    assignment_operator,
    expression_list,
    statements,
    string_value,
    unparen,
    walk,
)

SOURCE = b'''package sample

import "fmt"

func greet(name string) (n int, err error) {
    // say hello
    n, err = fmt.Println((name))
    x := `raw`
    return
}
'''


@pytest.fixture
def parsed():
    return GoParser().parse_bytes(SOURCE, Path("sample.go"))


def first(source, kind):
    return next(n for n in walk(source.root) if n.type == kind)


def test_package_name(parsed):
    assert parsed.package_name == "sample"


def test_line_of(parsed):
    assert parsed.line_of(0) == 1
    assert parsed.line_of(SOURCE.index(b"func")) == 5


def test_parse_file(tmp_path):
    path = tmp_path / "main.go"
    path.write_bytes(b"package main\n")
    assert GoParser().parse_file(path).package_name == "main"


def test_syntax_error_has_location():
    with pytest.raises(ParseError) as excinfo:
        GoParser().parse_bytes(b"package main\n\nfunc f() {\n\tx := \n}\n", Path("bad.go"))
    assert excinfo.value.path == Path("bad.go")
    assert excinfo.value.line >= 3
    assert str(excinfo.value).startswith("bad.go:")


def test_lenient_parse():
    source = GoParser().parse_bytes(b"package main\n\nfunc f() {\n", Path("bad.go"), strict=False)
    assert source.package_name == "main"


def test_missing_file(tmp_path):
    with pytest.raises(ParseError):
        GoParser().parse_file(tmp_path / "absent.go")


def test_statements_skip_comments(parsed):
    body = first(parsed, "block")
    kinds = [stmt.type for stmt in statements(body)]
    assert kinds == ["assignment_statement", "short_var_declaration", "return_statement"]


def test_assignment_helpers(parsed):
    assign = first(parsed, "assignment_statement")
    short = first(parsed, "short_var_declaration")
    assert assignment_operator(assign) == "="
    assert assignment_operator(short) == ":="
    assert [parsed.text(n) for n in expression_list(assign.child_by_field_name("left"))] == ["n", "err"]


def test_unparen(parsed):
    paren = first(parsed, "parenthesized_expression")
    assert parsed.text(unparen(paren)) == "name"


def test_string_value(parsed):
    assert string_value(first(parsed, "interpreted_string_literal")) == "fmt"
    assert string_value(first(parsed, "raw_string_literal")) == "raw"
