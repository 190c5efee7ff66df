# tests/test_scope.py
"""
Tests for ScopeTracker: frames, statement indexing and snippets.
"""

import pytest

from unsafe_ast.codemap import CodeMap
from unsafe_ast.config import AnalysisConfig
from unsafe_ast.errors import InvariantViolation
from unsafe_ast.nodes import Block, Deref, InlineASM, InnerBlock, MacroOrigin, truncate_snippet
from unsafe_ast.scope import ScopeTracker
from tests.conftest import SRC, sp


@pytest.fixture
def tracker(demo_codemap):
    return ScopeTracker(demo_codemap)


class TestIndexing:

    def test_starts_empty(self, tracker):
        assert tracker.index == 0
        assert tracker.contents == []
        assert tracker.depth == 0

    def test_record_uses_current_index(self, tracker):
        tracker.enter_block()
        tracker.end_statement()
        entry = tracker.record(Deref(), sp(3, 5, 3, 7))
        assert entry.index == 1
        assert entry.span == "src/lib.rs:3:5: 3:7"
        assert entry.snippet == "*p"
        assert entry.macro_origin is MacroOrigin.NOT_MACRO

    def test_same_statement_shares_index(self, tracker):
        tracker.enter_block()
        tracker.record(Deref(), sp(3, 5, 3, 7))
        tracker.record(InlineASM(), sp(3, 5, 3, 7))
        block = tracker.exit_block(unsafe=False)
        assert [c.index for c in block.contents] == [0, 0]

    def test_exit_block_restores_parent(self, tracker):
        tracker.enter_block()
        tracker.end_statement()
        tracker.end_statement()
        tracker.record(Deref(), sp(3, 5, 3, 7))
        tracker.enter_block()
        tracker.end_statement()
        inner = tracker.exit_block(unsafe=True)
        assert inner == Block(size=1, unsaf=True)
        assert tracker.index == 2
        assert len(tracker.contents) == 1
        assert tracker.depth == 1

    def test_exit_block_on_empty_stack(self, tracker):
        with pytest.raises(InvariantViolation):
            tracker.exit_block(unsafe=False)


class TestExitFn:

    def _fn_with_body(self, tracker):
        tracker.enter_block()          # fn frame
        tracker.enter_block()          # body
        tracker.end_statement()
        body = tracker.exit_block(unsafe=False)
        tracker.record(InnerBlock(body), sp(1, 23, 5, 2))
        return body

    def test_returns_body(self, tracker):
        body = self._fn_with_body(tracker)
        assert tracker.exit_fn() == body
        assert tracker.depth == 0
        assert tracker.contents == []

    def test_restores_enclosing_frame(self, tracker):
        tracker.enter_block()
        tracker.end_statement()
        self._fn_with_body(tracker)
        tracker.exit_fn()
        assert tracker.index == 1
        assert tracker.depth == 1

    def test_nothing_pending(self, tracker):
        tracker.enter_block()
        with pytest.raises(InvariantViolation) as exc:
            tracker.exit_fn(sp(1, 1, 5, 2))
        assert exc.value.span == "src/lib.rs:1:1: 5:2"
        assert exc.value.fatal

    def test_two_pending(self, tracker):
        self._fn_with_body(tracker)
        tracker.record(Deref(), sp(3, 5, 3, 7))
        with pytest.raises(InvariantViolation):
            tracker.exit_fn()

    def test_pending_item_not_a_block(self, tracker):
        tracker.enter_block()
        tracker.record(Deref(), sp(3, 5, 3, 7))
        with pytest.raises(InvariantViolation):
            tracker.exit_fn()


class TestSnippets:

    def test_truncated_to_marker(self):
        text = "x" * 60
        cm = CodeMap({SRC: text + "\n"})
        snippet = ScopeTracker(cm).snippet(sp(1, 1, 1, 61))
        assert len(snippet) == 40
        assert snippet == "x" * 39 + "#"

    def test_exact_length_untouched(self):
        text = "y" * 40
        cm = CodeMap({SRC: text + "\n"})
        assert ScopeTracker(cm).snippet(sp(1, 1, 1, 41)) == text

    def test_configured_length(self):
        cm = CodeMap({SRC: "abcdefghij\n"})
        config = AnalysisConfig(snippet_length=5, truncation_marker="~")
        assert ScopeTracker(cm, config=config).snippet(sp(1, 1, 1, 11)) == "abcd~"

    def test_unavailable_is_empty(self, tracker):
        assert tracker.snippet(sp(1, 1, 1, 4, file="missing.rs")) == ""

    def test_truncate_helper(self):
        assert truncate_snippet("short") == "short"
        assert truncate_snippet("a" * 41) == "a" * 39 + "#"
