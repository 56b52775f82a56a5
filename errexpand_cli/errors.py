"""Exceptions raised while expanding an error check.

Every failure of a request surfaces as exactly one :class:`ExpandError`;
nothing is written to the output when one is raised.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class ExpandError(Exception):
    """Base class for all expansion failures."""


class ParseError(ExpandError):
    """The source file is not syntactically valid Go."""

    def __init__(self, path: Path, line: int, column: int, message: str):
        self.path = path
        self.line = line
        self.column = column
        super().__init__(f"{path}:{line}:{column}: {message}")


class PositionNotFound(ExpandError):
    """The requested offset does not identify a call expression."""


class AmbiguousSelection(ExpandError):
    """An exact selection was required but the interval matches no single node."""


class BuiltinCallRejected(ExpandError):
    """The call targets a builtin, which has no signature to inspect."""


class UnknownSignature(ExpandError):
    """The callee's signature cannot be determined statically.

    Recoverable once: the expander reloads the whole package and retries.
    """


class NoEnclosingFunction(ExpandError):
    """The call is not inside a function declaration or literal."""


class NoReturnValues(ExpandError):
    """The enclosing function returns nothing, so no error can be propagated."""


class NoAssignmentFound(ExpandError):
    """A multi-value call is not the right-hand side of an assignment."""


class _BufferedError(ExpandError):
    def __init__(self, message: str, buffer: Optional[str] = None):
        self.buffer = buffer
        if buffer is not None:
            message = f"{message}\nsource:\n{buffer}"
        super().__init__(message)


class RenderError(_BufferedError):
    """A synthesized node could not be turned into source text."""


class ReformatError(_BufferedError):
    """The spliced buffer could not be re-formatted."""
