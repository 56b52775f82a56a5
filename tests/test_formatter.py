"""Tests for re-formatting the spliced buffer."""

import shutil

import pytest

from errexpand_cli.errors import ReformatError
from errexpand_cli.formatter import Formatter


def test_builtin_normalizes_whitespace():
    text = "package main\n\n\n\nfunc f() {   \n\tx := 1\t\n\n\n\t_ = x\n}\n\n\n"
    assert Formatter("builtin").format(text) == "package main\n\nfunc f() {\n\tx := 1\n\n\t_ = x\n}\n"


def test_builtin_keeps_raw_strings():
    text = "package main\n\nvar s = `a  \n\n\n\nb`\n"
    assert Formatter("builtin").format(text) == text


def test_builtin_rejects_invalid_source():
    text = "package main\n\nfunc f() {\n\tif x := ; {\n}\n"
    with pytest.raises(ReformatError) as excinfo:
        Formatter("builtin").format(text)
    assert excinfo.value.buffer == text


def test_backend_selection():
    assert Formatter("builtin").backend == "builtin"
    assert Formatter("gofmt", gofmt_path="/usr/bin/gofmt").backend == "gofmt"
    assert Formatter("auto", gofmt_path="/usr/bin/gofmt").backend == "gofmt"


def test_auto_without_gofmt(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)
    assert Formatter("auto").backend == "builtin"


def test_gofmt_missing(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)
    with pytest.raises(ReformatError, match="gofmt not found"):
        Formatter("gofmt").format("package main\n")


def test_unknown_mode():
    with pytest.raises(ValueError):
        Formatter("clang-format")


@pytest.mark.skipif(shutil.which("gofmt") is None, reason="gofmt not installed")
def test_gofmt_aligns():
    text = "package main\n\nfunc f() int {\nreturn   1\n}\n"
    assert Formatter("gofmt").format(text) == "package main\n\nfunc f() int {\n\treturn 1\n}\n"
