"""One expansion request, end to end.

parse -> position -> call site -> single-file check -> signatures
(escalating once to the whole package) -> zero values + scope ->
transform -> splice -> format -> structured edit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .checker import Checker
from .config import TEMP_PREFIX, BuildContext, Settings
from .diff_engine import DiffEngine
from .errors import ParseError, UnknownSignature
from .formatter import BUILTIN_NOTICE, Formatter
from .importer import Importer
from .models import ExpansionResult, SourceFile
from .parser import GoParser
from .position import find_call_site, node_path, parse_position, resolve_position
from .scope import ScopeInspector
from .signature import SignatureResolver, enclosing_signature
from .transform import TransformEngine
from .zero_values import ZeroValueSynthesizer

logger = logging.getLogger(__name__)


class Expander:
    """Expands the error check for one call per :meth:`expand` call.

    Nothing is shared between requests except the configuration; every
    request parses and checks from scratch.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        build: Optional[BuildContext] = None,
        formatter: Optional[Formatter] = None,
    ):
        self.settings = settings or Settings()
        self.build = build or BuildContext()
        self.formatter = formatter or Formatter(self.settings.formatter)
        self.diff_engine = DiffEngine()

    def expand_position(self, position: str, exact: bool = False) -> ExpansionResult:
        """Expand at a ``FILE:#START[,#END]`` position specifier."""
        path, start, end = parse_position(position)
        return self.expand(path, start, end, exact=exact)

    def expand(self, path: Path, start: int, end: Optional[int] = None, exact: bool = False) -> ExpansionResult:
        parser = GoParser()
        source = parser.parse_file(path)
        cursor = resolve_position(source, start, end, exact=exact)
        call = find_call_site(cursor, source, cursor.offset)
        call_path = node_path(call.node)
        logger.debug("call site %r at #%d", call.text, call.start)

        checker = Checker(self.build, failure_type=self.settings.failure_type)
        checker.check([source])
        ctx = checker.context_of(source)
        enclosing_signature(call_path, checker, ctx)

        escalated = False
        try:
            callee = SignatureResolver(checker, ctx).resolve(call)
        except UnknownSignature as exc:
            logger.info("%s; checking the whole package", exc)
            checker.check([source] + self.sibling_files(source, parser), primary=source)
            ctx = checker.context_of(source)
            # a second failure is final
            callee = SignatureResolver(checker, ctx).resolve(call)
            escalated = True

        _, caller = enclosing_signature(call_path, checker, ctx)
        synthesizer = ZeroValueSynthesizer(checker, self.settings.failure_ident, self.settings.failure_type)
        scope = ScopeInspector(checker, ctx).snapshot(call_path, call.start)
        plan = TransformEngine(self.settings, synthesizer).plan(source, call, call_path, callee, caller, scope)

        spliced = self.diff_engine.splice(source, plan)
        formatted = self.formatter.format(spliced)
        edit = self.diff_engine.structured_edit(source, plan, formatted)
        if self.formatter.backend == "builtin":
            edit.warnings.append(BUILTIN_NOTICE)
        return ExpansionResult(
            path=path,
            original=source.source.decode("utf-8"),
            formatted=formatted,
            plan=plan,
            edit=edit,
            escalated=escalated,
        )

    def sibling_files(self, source: SourceFile, parser: Optional[GoParser] = None) -> List[SourceFile]:
        """Other files of the request file's package, in name order.

        Scratch files (``errexpand*``), files excluded from the build by
        their name or their build constraints, files of another package and
        files that do not parse are left out.
        """
        parser = parser or GoParser()
        importer = Importer(self.build)
        directory = source.path.parent
        testing = source.path.name.endswith("_test.go")
        siblings = []
        for candidate in sorted(directory.glob("*.go")):
            name = candidate.name
            if name == source.path.name or name.startswith(TEMP_PREFIX):
                continue
            if name.endswith("_test.go") and not testing:
                continue
            if not importer.match_file_name(name):
                logger.debug("skipping %s: file name excludes %s/%s", candidate, self.build.goos, self.build.goarch)
                continue
            try:
                sibling = parser.parse_file(candidate)
            except ParseError as exc:
                logger.warning("skipping %s: %s", candidate, exc)
                continue
            if not importer.match_build_constraints(sibling.source):
                logger.debug("skipping %s: build constraints exclude it", candidate)
                continue
            if sibling.package_name != source.package_name:
                logger.debug("skipping %s: package %s", candidate, sibling.package_name)
                continue
            siblings.append(sibling)
        logger.debug("loaded %d sibling file(s) from %s", len(siblings), directory)
        return siblings
