"""Is the failure identifier already visible at the call site?"""

from __future__ import annotations

from typing import Any, Optional

from .checker import Checker, FileContext
from .models import NodePath, ScopeSnapshot


class ScopeInspector:
    def __init__(self, checker: Optional[Checker], ctx: Optional[FileContext]):
        self.checker = checker
        self.ctx = ctx

    def record_for(self, path: NodePath) -> Optional[Any]:
        """The first scope record found walking *path* outward."""
        if self.checker is None or self.ctx is None:
            return None
        for node in path:
            record = self.checker.scope_record(node, self.ctx)
            if record is not None:
                return record
        return None

    def snapshot(self, path: NodePath, position: int) -> ScopeSnapshot:
        return ScopeSnapshot(record=self.record_for(path), position=position)

    def in_scope(self, path: NodePath, name: str, position: int) -> bool:
        # no scope record anywhere counts as "not visible"
        return self.snapshot(path, position).contains(name)
