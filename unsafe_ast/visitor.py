#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
unsafe_ast/visitor.py
=====================

Tree traversal for the input tree, and the visitor that produces the unsafe
AST.

Provides:
- ``HirVisitor``: depth-first walker with overridable ``visit_X`` hooks
- ``UnsafeASTEmitter``: builds a ``nodes.Crate`` from a ``hir.Crate``
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, List, Optional

from unsafe_ast import hir
from unsafe_ast.codemap import CodeMap
from unsafe_ast.config import AnalysisConfig
from unsafe_ast.errors import InvariantViolation
from unsafe_ast.hir import ExprKind, FnKind, StmtKind
from unsafe_ast.nodes import (
    FFI,
    Block,
    Call,
    Closure,
    Crate,
    Deref,
    FnDecl,
    InlineASM,
    InnerBlock,
    MutStatic,
    UASTNode,
    Unsafe,
    is_unsafe,
)
from unsafe_ast.provenance import ProvenanceClassifier
from unsafe_ast.scope import ScopeTracker

__all__ = [
    "HirVisitor",
    "UnsafeASTEmitter",
]

logger = logging.getLogger(__name__)


class HirVisitor:
    """Depth-first walker over a ``hir.Crate``.

    Each ``visit_X`` defaults to the matching ``walk_X``, which visits the
    node's children.  Subclasses override the hooks they care about and call
    ``walk_X`` themselves to keep descending.  Items nested inside function
    bodies are handed to ``visit_nested_item`` and are not walked in place.
    """

    def visit_crate(self, krate: hir.Crate) -> Any:
        for item in krate.items:
            self.visit_item(item)

    def visit_item(self, item: hir.Item) -> Any:
        if isinstance(item, hir.FnItem):
            return self.visit_fn(item.kind, item.body, item.span, item)
        for child in item.items:
            self.visit_item(child)

    def visit_nested_item(self, item: hir.Item) -> Any:
        return None

    def visit_fn(
        self,
        kind: FnKind,
        body: hir.Block,
        span: hir.Span,
        item: Optional[hir.FnItem] = None,
    ) -> Any:
        self.visit_block(body)

    def visit_block(self, block: hir.Block) -> Any:
        self.walk_block(block)

    def walk_block(self, block: hir.Block) -> None:
        for stmt in block.stmts:
            self.visit_stmt(stmt)
        if block.expr is not None:
            self.visit_expr(block.expr)

    def visit_stmt(self, stmt: hir.Stmt) -> Any:
        self.walk_stmt(stmt)

    def walk_stmt(self, stmt: hir.Stmt) -> None:
        if stmt.kind is StmtKind.ITEM:
            if stmt.item is not None:
                self.visit_nested_item(stmt.item)
        elif stmt.expr is not None:
            self.visit_expr(stmt.expr)

    def visit_expr(self, expr: hir.Expr) -> Any:
        self.walk_expr(expr)

    def walk_expr(self, expr: hir.Expr) -> None:
        if expr.kind is ExprKind.CLOSURE:
            self.visit_fn(FnKind.CLOSURE, expr.body, expr.span)
            return
        for operand in expr.operands:
            if isinstance(operand, hir.Block):
                self.visit_block(operand)
            else:
                self.visit_expr(operand)


class UnsafeASTEmitter(HirVisitor):
    """Visitor which produces the unsafe AST of one crate.

    Usage::

        emitter = UnsafeASTEmitter(CodeMap.for_crate(krate), krate.name,
                                   krate.crate_type)
        emitter.visit_crate(krate)
        uast = emitter.into_uast()

    Raises ``InvariantViolation`` if the scope stack is ever inconsistent;
    the partially built crate must then be discarded.
    """

    def __init__(
        self,
        codemap: CodeMap,
        crate_name: str,
        crate_type: str,
        config: Optional[AnalysisConfig] = None,
    ) -> None:
        self.codemap = codemap
        self.config = config or AnalysisConfig()
        self.classifier = ProvenanceClassifier(codemap, self.config)
        self.scope = ScopeTracker(codemap, self.classifier, self.config)
        self.crate_name = crate_name
        self.crate_type = crate_type
        self.functions: List[FnDecl] = []
        self._nested: Deque[hir.Item] = deque()

    def into_uast(self) -> Crate:
        """Produces the crate so far."""
        return Crate(self.crate_name, self.crate_type, tuple(self.functions))

    def register_point(self, item: UASTNode, span: hir.Span) -> None:
        """Store *item* as a flagged site of the current block."""
        self.scope.record(item, span)

    def register_function(
        self,
        block: Block,
        unsafety: hir.Unsafety,
        name: str,
        span: hir.Span,
    ) -> None:
        """Register the unsafe AST of a completed function/method."""
        self.functions.append(FnDecl(
            name=name,
            unsaf=is_unsafe(unsafety),
            span=self.codemap.span_to_string(span),
            macro_origin=self.classifier.classify(span),
            block=block,
        ))

    # -- traversal -------------------------------------------------------

    def visit_crate(self, krate: hir.Crate) -> None:
        for item in krate.items:
            self.visit_item(item)
            # Items declared inside fn bodies are visited after the fn that
            # contains them, once the scope stack is empty again.
            while self._nested:
                self.visit_item(self._nested.popleft())

    def visit_nested_item(self, item: hir.Item) -> None:
        self._nested.append(item)

    def visit_fn(
        self,
        kind: FnKind,
        body: hir.Block,
        span: hir.Span,
        item: Optional[hir.FnItem] = None,
    ) -> None:
        top_level = kind is not FnKind.CLOSURE
        if top_level and self.scope.depth != 0:
            raise InvariantViolation(
                f"Scope stack not empty entering fn (depth {self.scope.depth})",
                span=self.codemap.span_to_string(span),
            )
        self.scope.enter_block()
        self.visit_block(body)
        block = self.scope.exit_fn(span)
        if top_level:
            if item is None:
                raise InvariantViolation(
                    "Named fn visited without its item",
                    span=self.codemap.span_to_string(span),
                )
            logger.debug("fn %s: %d item(s)", item.display_name, len(block.contents))
            self.register_function(block, item.sig.unsafety, item.display_name, span)
            if self.scope.depth != 0:
                raise InvariantViolation(
                    f"Scope stack not empty leaving fn (depth {self.scope.depth})",
                    span=self.codemap.span_to_string(span),
                )
        else:
            self.register_point(Closure(block), span)

    def visit_block(self, block: hir.Block) -> None:
        self.scope.enter_block()
        self.walk_block(block)
        if block.expr is not None:
            self.scope.end_statement()
        inner = self.scope.exit_block(Block.unsafety_of(block.rules, block.unsafe_source))
        self.register_point(InnerBlock(inner), block.span)

    def visit_stmt(self, stmt: hir.Stmt) -> None:
        self.walk_stmt(stmt)
        self.scope.end_statement()

    def visit_expr(self, expr: hir.Expr) -> None:
        kind = expr.kind
        if kind is ExprKind.CALL or kind is ExprKind.METHOD_CALL:
            fn_safety = Unsafe.from_fn_sig(expr.sig)
            fn_ffi = FFI.from_fn_sig(expr.sig, self.config.foreign_abis)
            if fn_safety.unsaf or fn_ffi.is_ffi or self.config.record_safe_calls:
                self.register_point(Call(fn_safety, fn_ffi), expr.span)
        elif expr.is_raw_deref:
            self.register_point(Deref(), expr.span)
        elif kind is ExprKind.INLINE_ASM:
            self.register_point(InlineASM(), expr.span)
        elif kind is ExprKind.PATH:
            if expr.res is not None and expr.res.is_mut_static:
                self.register_point(MutStatic(), expr.span)
        self.walk_expr(expr)
