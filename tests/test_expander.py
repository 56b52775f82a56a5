"""End-to-end tests: fixture Go files expanded at a cursor and compared."""

import shutil
from dataclasses import replace
from pathlib import Path

import pytest

from errexpand_cli.config import Settings
from errexpand_cli.errors import (
    AmbiguousSelection,
    BuiltinCallRejected,
    NoAssignmentFound,
    NoEnclosingFunction,
    NoReturnValues,
    PositionNotFound,
    UnknownSignature,
)
from errexpand_cli.expander import Expander
from errexpand_cli.formatter import BUILTIN_NOTICE
from errexpand_cli.parser import GoParser


EXPANSION_CASES = [
    ("singleerror", "os.Remove", 3),
    ("nocalleereturn", "os.Clearenv", 3),
    ("varanderror", "NewReader", 2),
    ("commentinline", "/*path*/)", len("/*path*/)")),
    ("functionliteral", "os.Remove", 0),
    ("underscore", "f.Write", 2),
    ("introduceerr", "f.Write", 2),
    ("scopereuse", "f.Write", 2),
    ("presentsingle", "os.Remove", 5),
    ("presentdouble", "ioutil.ReadAll", 7),
    ("customtypes", "os.Remove", 3),
    ("noerrreturn", "os.Remove", 1),
    ("embedded", "d.Save", 2),
]


def write_go(tmp_path: Path, text: str, name: str = "demo") -> Path:
    path = tmp_path / "src" / name / f"{name}.go"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize("name,needle,delta", EXPANSION_CASES)
def test_expand_fixture(go_case, make_expander, name, needle, delta):
    """Expanding at the cursor produces the expected file."""
    case = go_case(name)
    result = make_expander().expand(case.path, case.offset(needle, delta))

    assert result.formatted == case.want
    assert result.escalated is False


def test_expand_leaves_file_untouched(go_case, make_expander):
    """Expanding computes a result but never writes the request file."""
    case = go_case("singleerror")
    before = case.source

    make_expander().expand(case.path, case.offset("os.Remove"))

    assert case.source == before


def test_cursor_anywhere_in_call(go_case, make_expander):
    """Every offset inside the call, and just after it, selects the same call."""
    case = go_case("singleerror")
    start = case.offset('os.Remove("/tmp/foo")')
    end = start + len('os.Remove("/tmp/foo")')
    expander = make_expander()

    for offset in (start, start + 4, start + 12, end - 1, end):
        assert expander.expand(case.path, offset).formatted == case.want


def test_cursor_at_line_start_selects_statement(go_case, make_expander):
    """A cursor in the indentation before the call selects that statement."""
    case = go_case("singleerror")
    offset = case.offset("\tos.Remove")

    assert make_expander().expand(case.path, offset).formatted == case.want


def test_exact_selection(go_case, make_expander):
    case = go_case("singleerror")
    start = case.offset('os.Remove("/tmp/foo")')
    end = start + len('os.Remove("/tmp/foo")')

    result = make_expander().expand(case.path, start, end, exact=True)

    assert result.formatted == case.want


def test_exact_selection_ambiguous(go_case, make_expander):
    case = go_case("singleerror")
    start = case.offset("os.Remove", 1)

    with pytest.raises(AmbiguousSelection):
        make_expander().expand(case.path, start, start + 6, exact=True)


def test_expand_position_specifier(go_case, make_expander):
    case = go_case("singleerror")

    result = make_expander().expand_position(f"{case.path}:#{case.offset('os.Remove')}")

    assert result.formatted == case.want


def test_error_callback(go_case, make_expander):
    """The callback runs before the return; the caller has no error result."""
    case = go_case("returnerrcall")
    expander = make_expander(error_callback="log.Fatal(err.Error())")

    result = expander.expand(case.path, case.offset("ioutil.ReadAll"))

    assert result.formatted == case.want
    assert result.warnings == [BUILTIN_NOTICE]


def test_panic_when_caller_cannot_return_error(go_case, make_expander):
    case = go_case("noerrreturn")

    result = make_expander().expand(case.path, case.offset("os.Remove"))

    assert "panic(err)" in result.formatted
    assert any("panic" in w for w in result.warnings)


def test_escalates_to_package(go_case, make_expander):
    """An unknown callee is found in a sibling file of the same package."""
    case = go_case("pkg")

    result = make_expander().expand(case.path, case.offset("helper()"))

    assert result.escalated is True
    assert result.formatted == case.want


def test_escalation_is_deterministic(go_case, make_expander):
    case = go_case("pkg")
    expander = make_expander()
    offset = case.offset("helper()")

    first = expander.expand(case.path, offset)
    second = expander.expand(case.path, offset)

    assert first.formatted == second.formatted
    assert first.edit.to_dict() == second.edit.to_dict()


def test_import_from_gopath(go_case, make_expander):
    case = go_case("multipkg")

    result = make_expander(gopath=case.root).expand(case.path, case.offset("lib.Logic", 4))

    assert result.formatted == case.want


def test_structured_edit(go_case, make_expander):
    case = go_case("singleerror")

    edit = make_expander().expand(case.path, case.offset("os.Remove")).edit

    assert edit.to_dict() == {
        "start_line": 9,
        "end_line": 9,
        "replacement_lines": [
            '\tif err := os.Remove("/tmp/foo"); err != nil {',
            "\t\treturn 0, err",
            "\t}",
        ],
        "warnings": [BUILTIN_NOTICE],
    }


def test_structured_edit_multiline(go_case, make_expander):
    case = go_case("introduceerr")

    edit = make_expander().expand(case.path, case.offset("f.Write")).edit

    assert edit.start_line == edit.end_line == 11
    assert edit.replacement_lines == [
        "\tvar err error",
        '\tif n, err = f.Write([]byte("foo")); err != nil {',
        "\t\treturn 0, err",
        "\t}",
    ]


def test_no_callee_results_is_unchanged(go_case, make_expander):
    case = go_case("nocalleereturn")

    result = make_expander().expand(case.path, case.offset("os.Clearenv"))

    assert result.formatted == result.original
    assert result.edit.replacement_lines == ["\tos.Clearenv()"]


def test_function_value_is_unknown(go_case, make_expander):
    case = go_case("funcvalue")

    with pytest.raises(UnknownSignature, match="function value"):
        make_expander().expand(case.path, case.offset("boom()"))


def test_caller_without_results(go_case, make_expander):
    case = go_case("noreturncaller")

    with pytest.raises(NoReturnValues, match="logic returns no values"):
        make_expander().expand(case.path, case.offset("os.Remove"))


def test_builtin_rejected(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        "func size(s []int) (int, error) {\n"
        "\tn := len(s)\n"
        "\treturn n, nil\n"
        "}\n"
    ))
    offset = path.read_bytes().index(b"len(")

    with pytest.raises(BuiltinCallRejected, match="len"):
        make_expander().expand(path, offset)


def test_interface_method_is_unknown(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        'import "io"\n\n'
        "func send(w io.Writer) (int, error) {\n"
        "\tn := w.Write(nil)\n"
        "\treturn n, nil\n"
        "}\n"
    ))
    offset = path.read_bytes().index(b"w.Write")

    with pytest.raises(UnknownSignature, match="interface"):
        make_expander().expand(path, offset)


def test_multi_value_call_needs_assignment(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        'import "os"\n\n'
        "func touch() error {\n"
        '\tos.Create("/tmp/a")\n'
        "\treturn nil\n"
        "}\n"
    ))
    offset = path.read_bytes().index(b"os.Create")

    with pytest.raises(NoAssignmentFound, match="returns 2 values"):
        make_expander().expand(path, offset)


def test_package_level_call(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        'import "os"\n\n'
        'var home = os.Getenv("HOME")\n'
    ))
    offset = path.read_bytes().index(b"os.Getenv")

    with pytest.raises(NoEnclosingFunction):
        make_expander().expand(path, offset)


def test_offset_outside_file(go_case, make_expander):
    case = go_case("singleerror")

    with pytest.raises(PositionNotFound):
        make_expander().expand(case.path, len(case.source) + 10)


def test_offset_without_call(go_case, make_expander):
    case = go_case("singleerror")

    with pytest.raises(PositionNotFound):
        make_expander().expand(case.path, case.offset("package main", 9))


def test_err_declared_in_inner_block_is_not_reused(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        'import "os"\n\n'
        "func logic() (int, error) {\n"
        '\tf, _ := os.Create("/tmp/foo")\n'
        "\tif f != nil {\n"
        '\t\terr := os.Remove("/tmp/bar")\n'
        "\t\t_ = err\n"
        "\t}\n"
        "\tvar n int\n"
        '\tn = f.Write([]byte("foo"))\n'
        "\treturn n, nil\n"
        "}\n"
    ))
    offset = path.read_bytes().index(b"f.Write")

    result = make_expander().expand(path, offset)

    assert '\tvar err error\n\tif n, err = f.Write([]byte("foo")); err != nil {\n' in result.formatted


def test_named_error_result_is_reused(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        'import "os"\n\n'
        "func logic(f *os.File) (n int, err error) {\n"
        '\tn = f.Write([]byte("foo"))\n'
        "\treturn n, nil\n"
        "}\n"
    ))
    offset = path.read_bytes().index(b"f.Write")

    result = make_expander().expand(path, offset)

    assert "var err error" not in result.formatted
    assert '\tif n, err = f.Write([]byte("foo")); err != nil {\n\t\treturn 0, err\n\t}\n' in result.formatted


def test_unresolved_result_type_warns(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        'import "os"\n\n'
        "func logic() (Mystery, error) {\n"
        '\tos.Remove("/tmp/foo")\n'
        "\treturn nil, nil\n"
        "}\n"
    ))
    offset = path.read_bytes().index(b"os.Remove")

    result = make_expander().expand(path, offset)

    assert "\t\treturn nil, err\n" in result.formatted
    assert any("zero value of result 1 (Mystery)" in w for w in result.warnings)


def test_target_count_mismatch_warns(tmp_path, make_expander):
    path = write_go(tmp_path, (
        "package demo\n\n"
        'import "os"\n\n'
        "func logic() error {\n"
        '\ta, b, c := os.Create("/tmp/foo")\n'
        "\treturn nil\n"
        "}\n"
    ))
    offset = path.read_bytes().index(b"os.Create")

    result = make_expander().expand(path, offset)

    assert '\ta, b, c, err := os.Create("/tmp/foo")\n' in result.formatted
    assert any("returns 2 values but 4 targets" in w for w in result.warnings)


def test_custom_failure_identifier(go_case, make_expander):
    case = go_case("singleerror")

    result = make_expander(failure_ident="e").expand(case.path, case.offset("os.Remove"))

    assert '\tif e := os.Remove("/tmp/foo"); e != nil {\n\t\treturn 0, e\n\t}\n' in result.formatted


def write_platform_package(tmp_path: Path) -> Path:
    """A package whose helper differs between linux and windows builds."""
    path = write_go(tmp_path, (
        "package demo\n\n"
        "func run() (int, error) {\n"
        "\thelper()\n"
        "\treturn 0, nil\n"
        "}\n"
    ))
    (path.parent / "helper_linux.go").write_text("package demo\n\nfunc helper() error { return nil }\n")
    (path.parent / "helper_windows.go").write_text("package demo\n\nfunc helper() (int, error) { return 0, nil }\n")
    (path.parent / "helper_plan9.go").write_text(
        "//go:build linux\n\npackage demo\n\nfunc helper() (string, error) { return \"\", nil }\n"
    )
    (path.parent / "tagged.go").write_text(
        "//go:build windows\n\npackage demo\n\nfunc helper() (bool, error) { return false, nil }\n"
    )
    return path


def test_escalation_skips_files_of_other_platforms(tmp_path, make_expander):
    path = write_platform_package(tmp_path)

    result = make_expander().expand(path, path.read_bytes().index(b"helper()"))

    assert result.escalated is True
    assert "\tif err := helper(); err != nil {\n\t\treturn 0, err\n\t}\n" in result.formatted


def test_escalation_follows_build_context(tmp_path, build_context):
    path = write_platform_package(tmp_path)
    expander = Expander(settings=Settings(formatter="builtin"), build=replace(build_context, goos="windows"))

    with pytest.raises(NoAssignmentFound, match="returns 2 values"):
        expander.expand(path, path.read_bytes().index(b"helper()"))


def test_sibling_files_honor_build_constraints(tmp_path, make_expander):
    path = write_platform_package(tmp_path)
    source = GoParser().parse_file(path)

    names = [f.path.name for f in make_expander().sibling_files(source)]

    assert names == ["helper_linux.go"]


SPACED_CALL = (
    "package demo\n\n"
    'import "os"\n\n'
    "func run() error {\n"
    '\tos.Remove( "x" )\n'
    "\treturn nil\n"
    "}\n"
)


def test_builtin_formatter_reports_itself(tmp_path, make_expander):
    path = write_go(tmp_path, SPACED_CALL)

    result = make_expander().expand(path, path.read_bytes().index(b"os.Remove"))

    assert '\tif err := os.Remove( "x" ); err != nil {\n' in result.formatted
    assert result.warnings == [BUILTIN_NOTICE]


needs_gofmt = pytest.mark.skipif(shutil.which("gofmt") is None, reason="gofmt not installed")


@needs_gofmt
def test_gofmt_reformats_call_text(tmp_path, build_context):
    path = write_go(tmp_path, SPACED_CALL)
    expander = Expander(settings=Settings(formatter="gofmt"), build=build_context)

    result = expander.expand(path, path.read_bytes().index(b"os.Remove"))

    assert '\tif err := os.Remove("x"); err != nil {\n\t\treturn err\n\t}\n' in result.formatted
    assert result.warnings == []


@needs_gofmt
@pytest.mark.parametrize("name,needle,lines", [
    ("singleerror", "os.Remove", (9, 9)),
    ("introduceerr", "f.Write", (11, 11)),
])
def test_gofmt_fixture_expansion(go_case, build_context, name, needle, lines):
    case = go_case(name)
    expander = Expander(settings=Settings(formatter="gofmt"), build=build_context)

    result = expander.expand(case.path, case.offset(needle))

    assert result.formatted == case.want
    assert (result.edit.start_line, result.edit.end_line) == lines
    assert result.edit.warnings == []
    original = result.original.splitlines()
    spliced = original[:lines[0] - 1] + result.edit.replacement_lines + original[lines[1]:]
    assert spliced == case.want.splitlines()
