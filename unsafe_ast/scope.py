# unsafe_ast/scope.py
"""
Scope tracking for the unsafe-AST emitter.

The tracker holds the state of the innermost block being visited: the
running statement index and the flagged items collected so far.  Entering a
block saves that pair as a *scope frame* on an explicit stack and starts
fresh; leaving it builds the finished ``Block`` and restores the parent's
frame.  The visitor never keeps block state of its own.

A function is tracked with one extra frame around its body block, so that
the body arrives as the single pending ``InnerBlock`` of that frame.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from unsafe_ast.codemap import CodeMap
from unsafe_ast.config import AnalysisConfig
from unsafe_ast.errors import InvariantViolation, SnippetUnavailable
from unsafe_ast.hir import Span
from unsafe_ast.nodes import Block, Indexed, InnerBlock, UASTNode, truncate_snippet
from unsafe_ast.provenance import ProvenanceClassifier

logger = logging.getLogger(__name__)

ScopeFrame = Tuple[int, List[Indexed]]


class ScopeTracker:

    def __init__(
        self,
        codemap: CodeMap,
        classifier: Optional[ProvenanceClassifier] = None,
        config: Optional[AnalysisConfig] = None,
    ) -> None:
        self.codemap = codemap
        self.config = config or AnalysisConfig()
        self.classifier = classifier or ProvenanceClassifier(codemap, self.config)
        self.index = 0
        self.contents: List[Indexed] = []
        self.stack: List[ScopeFrame] = []

    @property
    def depth(self) -> int:
        return len(self.stack)

    def enter_block(self) -> None:
        """Save the current frame and start an empty one."""
        self.stack.append((self.index, self.contents))
        self.index = 0
        self.contents = []

    def record(self, item: UASTNode, span: Span) -> Indexed:
        """Register *item* at the current statement index."""
        entry = Indexed(
            index=self.index,
            span=self.codemap.span_to_string(span),
            snippet=self.snippet(span),
            macro_origin=self.classifier.classify(span),
            item=item,
        )
        self.contents.append(entry)
        return entry

    def end_statement(self) -> None:
        self.index += 1

    def exit_block(self, unsafe: bool) -> Block:
        """Finish the current block and restore the enclosing frame."""
        if not self.stack:
            raise InvariantViolation("Block exit with an empty scope stack")
        block = Block(size=self.index, unsaf=unsafe, contents=tuple(self.contents))
        self.index, self.contents = self.stack.pop()
        return block

    def exit_fn(self, span: Optional[Span] = None) -> Block:
        """
        Pop the function frame and return its body.

        The frame must hold exactly one pending item, the ``InnerBlock``
        recorded for the body.
        """
        where = self.codemap.span_to_string(span) if span is not None else ""
        if len(self.contents) != 1:
            raise InvariantViolation(
                f"Expected one pending block under a fn, found {len(self.contents)}",
                span=where,
            )
        item = self.contents.pop().item
        if not isinstance(item, InnerBlock):
            raise InvariantViolation(
                f"Found something other than a block under a fn: {item!r}",
                span=where,
            )
        if not self.stack:
            raise InvariantViolation("Fn exit with an empty scope stack", span=where)
        self.index, self.contents = self.stack.pop()
        return item.block

    def snippet(self, span: Span) -> str:
        try:
            text = self.codemap.span_to_snippet(span)
        except SnippetUnavailable as exc:
            logger.debug("%s", exc)
            return ""
        return truncate_snippet(text, self.config.snippet_length,
                                self.config.truncation_marker)
