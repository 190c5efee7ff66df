# unsafe_ast/hir.py
"""
Input tree model.

The front-end (parser + type checker) materializes one compilation unit as an
owned, immutable tree of the dataclasses below and hands it over together with
the source text of every file and the macro-expansion table.  Nothing in this
package mutates the tree.

Every node carries a ``Span`` for diagnostics and snippet extraction.  Type
facts the emitter needs are pre-computed by the front-end and stored on the
nodes that need them:

    call / method_call   ``sig``         resolved callee signature
    unary (deref)        ``operand_ty``  kind of the dereferenced operand type
    path                 ``res``         what the path resolves to
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Mapping, Optional, Tuple, Union


# ── Source Location ──────────────────────────────────────────────

@dataclass(frozen=True)
class Span:
    """A source range.  Lines and columns are 1-based; ``hi`` is exclusive."""
    file: str = "<unknown>"
    lo_line: int = 0
    lo_col: int = 0
    hi_line: int = 0
    hi_col: int = 0
    expn_id: Optional[int] = None

    def __str__(self):
        return (f"{self.file}:{self.lo_line}:{self.lo_col}: "
                f"{self.hi_line}:{self.hi_col}")


DUMMY_SPAN = Span()


# ── Enums ────────────────────────────────────────────────────────

class ExpnFormat(Enum):
    BANG = "bang"              # name!(...)
    ATTRIBUTE = "attribute"    # #[name] / #[derive(...)]
    COMPILER = "compiler"      # desugaring, no user-visible macro


class Unsafety(Enum):
    NORMAL = "normal"
    UNSAFE = "unsafe"


class BlockRules(Enum):
    DEFAULT = "default"
    UNSAFE = "unsafe"
    PUSH_UNSAFE = "push_unsafe"
    POP_UNSAFE = "pop_unsafe"


class UnsafeSource(Enum):
    USER = "user"
    COMPILER = "compiler"


class StmtKind(Enum):
    LOCAL = "local"
    EXPR = "expr"
    SEMI = "semi"
    ITEM = "item"


class ExprKind(Enum):
    CALL = "call"
    METHOD_CALL = "method_call"
    UNARY = "unary"
    INLINE_ASM = "inline_asm"
    PATH = "path"
    BLOCK = "block"
    CLOSURE = "closure"
    OTHER = "other"


class FnKind(Enum):
    ITEM_FN = "fn"
    METHOD = "method"
    CLOSURE = "closure"


UNOP_DEREF = "deref"
TY_RAW_PTR = "raw_ptr"
RES_STATIC = "static"


# ── Expansion metadata ──────────────────────────────────────────

@dataclass(frozen=True)
class ExpnInfo:
    """One macro expansion: where it was invoked and where it is defined."""
    id: int
    format: ExpnFormat = ExpnFormat.BANG
    call_site: Optional[Span] = None
    def_site: Optional[Span] = None
    name: str = ""


# ── Type facts ──────────────────────────────────────────────────

@dataclass(frozen=True)
class FnSig:
    unsafety: Unsafety = Unsafety.NORMAL
    abi: str = "Rust"


@dataclass(frozen=True)
class Res:
    kind: str
    mutable: bool = False

    @property
    def is_mut_static(self) -> bool:
        return self.kind == RES_STATIC and self.mutable


# ── Expressions, statements, blocks ─────────────────────────────

@dataclass(frozen=True)
class Expr:
    """
    A generic expression node.

    ``operands`` holds the sub-expressions and sub-blocks in source order;
    for calls the callee comes first, for method calls the receiver.
    ``tag`` keeps the front-end's own kind name for kinds folded into
    ``ExprKind.OTHER``.
    """
    kind: ExprKind
    span: Span = DUMMY_SPAN
    operands: Tuple[Union["Expr", "Block"], ...] = ()
    tag: str = ""
    op: Optional[str] = None
    sig: Optional[FnSig] = None
    operand_ty: Optional[str] = None
    res: Optional[Res] = None

    @property
    def body(self) -> Optional["Block"]:
        """First block operand (closure and block expressions)."""
        for operand in self.operands:
            if isinstance(operand, Block):
                return operand
        return None

    @property
    def is_raw_deref(self) -> bool:
        return (self.kind is ExprKind.UNARY and self.op == UNOP_DEREF
                and self.operand_ty == TY_RAW_PTR)


@dataclass(frozen=True)
class Stmt:
    kind: StmtKind
    span: Span = DUMMY_SPAN
    expr: Optional[Expr] = None
    item: Optional["Item"] = None


@dataclass(frozen=True)
class Block:
    stmts: Tuple[Stmt, ...] = ()
    expr: Optional[Expr] = None
    rules: BlockRules = BlockRules.DEFAULT
    unsafe_source: UnsafeSource = UnsafeSource.USER
    span: Span = DUMMY_SPAN


# ── Items ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FnItem:
    name: str
    body: Block
    sig: FnSig = FnSig()
    kind: FnKind = FnKind.ITEM_FN
    path: str = ""
    span: Span = DUMMY_SPAN

    @property
    def display_name(self) -> str:
        return self.path or self.name


@dataclass(frozen=True)
class ContainerItem:
    """``mod`` / ``impl`` / ``trait`` or any item holding other items."""
    kind: str
    name: str = ""
    items: Tuple["Item", ...] = ()
    span: Span = DUMMY_SPAN


Item = Union[FnItem, ContainerItem]


@dataclass(frozen=True)
class Crate:
    name: str
    crate_type: str = "????"
    items: Tuple[Item, ...] = ()
    files: Mapping[str, str] = field(default_factory=dict)
    expansions: Mapping[int, ExpnInfo] = field(default_factory=dict)


def iter_fn_items(items: Tuple[Item, ...]) -> Iterator[FnItem]:
    """Yield every function reachable through container items, in order."""
    for item in items:
        if isinstance(item, FnItem):
            yield item
        else:
            yield from iter_fn_items(item.items)
