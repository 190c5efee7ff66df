# unsafe_ast/codemap.py
"""
Source map over the files of one compilation unit.

``CodeMap`` answers the three questions the emitter asks about a span:

* how to display it (``file:line:col: line:col``),
* what literal source text it covers,
* which macro expansion, if any, produced it.

Spans written in display form inside tree dumps are parsed back with a small
PEG grammar (``SPAN_GRAMMAR``).  An optional ``@N`` suffix names the
expansion that produced the span::

    src/lib.rs:3:5: 3:17
    src/lib.rs:3:5: 3:17@4
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from unsafe_ast.errors import SnippetUnavailable, TreeLoadError, UastErrorCodes
from unsafe_ast.hir import ExpnFormat, ExpnInfo, Span

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  SPAN GRAMMAR (Parsimonious PEG)
# ═══════════════════════════════════════════════════════════════════

SPAN_GRAMMAR = Grammar(r'''
    span        = path ":" number ":" number ": " number ":" number expn?
    path        = ~r".+?(?=:\d+:\d+: \d+:\d+)"
    expn        = "@" number
    number      = ~r"\d+"
''')


class _SpanVisitor(NodeVisitor):
    """Turns a ``SPAN_GRAMMAR`` parse tree into a ``Span``."""

    def visit_span(self, node, visited_children):
        path, _, lo_line, _, lo_col, _, hi_line, _, hi_col, expn = visited_children
        expn_id = expn[0] if isinstance(expn, list) else None
        return Span(path, lo_line, lo_col, hi_line, hi_col, expn_id)

    def visit_path(self, node, visited_children):
        return node.text

    def visit_expn(self, node, visited_children):
        return visited_children[1]

    def visit_number(self, node, visited_children):
        return int(node.text)

    def generic_visit(self, node, visited_children):
        return visited_children or node


def parse_span(text: str) -> Span:
    """Parse a display-form span string."""
    try:
        return _SpanVisitor().visit(SPAN_GRAMMAR.parse(text.strip()))
    except (ParseError, VisitationError) as e:
        raise TreeLoadError(
            f"Malformed span {text!r}: {e}",
            code=UastErrorCodes.BAD_SPAN,
            cause=e,
        ) from e


# ═══════════════════════════════════════════════════════════════════
#  CODE MAP
# ═══════════════════════════════════════════════════════════════════

class CodeMap:
    """Display strings, snippets and expansion lookup for one crate."""

    def __init__(
        self,
        files: Optional[Mapping[str, str]] = None,
        expansions: Optional[Mapping[int, ExpnInfo]] = None,
    ) -> None:
        self._files: Dict[str, str] = dict(files or {})
        self._expansions: Dict[int, ExpnInfo] = dict(expansions or {})
        self._line_starts: Dict[str, List[int]] = {}

    @classmethod
    def for_crate(cls, krate) -> "CodeMap":
        return cls(krate.files, krate.expansions)

    def span_to_string(self, span: Span) -> str:
        return str(span)

    def span_to_snippet(self, span: Span) -> str:
        """
        Return the literal source text covered by *span*.

        Raises ``SnippetUnavailable`` when the file is not loaded or the
        span does not fall inside its text.
        """
        text = self._files.get(span.file)
        if text is None:
            raise SnippetUnavailable(str(span), f"file {span.file!r} not loaded")
        lo = self._offset(span.file, span.lo_line, span.lo_col)
        hi = self._offset(span.file, span.hi_line, span.hi_col)
        if lo is None or hi is None or lo > hi:
            raise SnippetUnavailable(str(span), "span outside of file text")
        return text[lo:hi]

    def expn_info(self, span: Span) -> Optional[ExpnInfo]:
        """Expansion metadata for *span*, or ``None`` outside any macro."""
        if span.expn_id is None:
            return None
        info = self._expansions.get(span.expn_id)
        if info is None:
            # Expanded, but the front-end left no record: nothing about the
            # macro can be resolved locally.
            logger.debug("No expansion record for id %d", span.expn_id)
            return ExpnInfo(span.expn_id, ExpnFormat.COMPILER)
        return info

    def _offset(self, file: str, line: int, col: int) -> Optional[int]:
        starts = self._line_starts.get(file)
        if starts is None:
            starts = self._line_starts[file] = _line_starts(self._files[file])
        if line < 1 or line > len(starts) or col < 1:
            return None
        line_end = (starts[line] - 1 if line < len(starts)
                    else len(self._files[file]))
        offset = starts[line - 1] + col - 1
        if offset > line_end:
            return None
        return offset


def _line_starts(text: str) -> List[int]:
    starts = [0]
    pos = text.find("\n")
    while pos != -1:
        starts.append(pos + 1)
        pos = text.find("\n", pos + 1)
    return starts
