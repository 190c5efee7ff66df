# tests/conftest.py
"""
Shared builders for unsafe_ast tests.

Trees are built directly from ``unsafe_ast.hir`` dataclasses; spans point
into small source files so snippets and macro provenance can be checked.
"""

import json

import pytest

from unsafe_ast import hir
from unsafe_ast.codemap import CodeMap
from unsafe_ast.hir import (
    Block,
    BlockRules,
    Crate,
    ExpnFormat,
    ExpnInfo,
    Expr,
    ExprKind,
    FnItem,
    FnKind,
    FnSig,
    Res,
    Span,
    Stmt,
    StmtKind,
    Unsafety,
)

SRC = "src/lib.rs"

# Ordinary statement, raw-pointer deref, foreign call.
DEMO_SRC = (
    "fn demo(p: *const u8) {\n"     # 1
    "    let x = 1;\n"              # 2
    "    *p;\n"                     # 3
    "    puts(p);\n"                # 4
    "}\n"                           # 5
)

# A closure holding an unsafe block.
CLOSURE_SRC = (
    "fn run() {\n"                            # 1
    "    let f = || unsafe { *COUNTER };\n"   # 2
    "    f();\n"                              # 3
    "}\n"                                     # 4
)

MACRO_SRC = (
    "macro_rules! deref { ($p:expr) => { *$p }; }\n"   # 1
    "#[derive(Clone)]\n"                               # 2
    "struct S;\n"                                      # 3
    "fn g() { deref!(P); }\n"                          # 4
)


def sp(lo_line, lo_col, hi_line, hi_col, file=SRC, expn=None):
    return Span(file, lo_line, lo_col, hi_line, hi_col, expn)


def path(span, mut_static=False, kind="local"):
    res = Res("static", mutable=True) if mut_static else Res(kind)
    return Expr(ExprKind.PATH, span, res=res)


def call(span, callee=None, args=(), unsafety="normal", abi="Rust", sig=True):
    fn_sig = FnSig(Unsafety(unsafety), abi) if sig else None
    operands = ((callee or path(span, kind="fn")),) + tuple(args)
    return Expr(ExprKind.CALL, span, operands=operands, sig=fn_sig)


def method_call(span, receiver, unsafety="normal", abi="Rust"):
    return Expr(ExprKind.METHOD_CALL, span, operands=(receiver,),
                sig=FnSig(Unsafety(unsafety), abi))


def deref(span, operand=None, raw=True):
    return Expr(ExprKind.UNARY, span, operands=(operand or path(span),),
                op="deref", operand_ty="raw_ptr" if raw else "ref")


def asm(span):
    return Expr(ExprKind.INLINE_ASM, span)


def closure(span, body):
    return Expr(ExprKind.CLOSURE, span, operands=(body,))


def block_expr(body):
    return Expr(ExprKind.BLOCK, body.span, operands=(body,))


def other(tag, span, *operands):
    return Expr(ExprKind.OTHER, span, operands=tuple(operands), tag=tag)


def semi(expr, span=None):
    return Stmt(StmtKind.SEMI, span or expr.span, expr=expr)


def local(expr=None, span=None):
    return Stmt(StmtKind.LOCAL, span or (expr.span if expr else sp(0, 0, 0, 0)), expr=expr)


def item_stmt(item):
    return Stmt(StmtKind.ITEM, item.span, item=item)


def block(*stmts, expr=None, unsafe=False, span=None, source="user"):
    return Block(
        stmts=tuple(stmts),
        expr=expr,
        rules=BlockRules.UNSAFE if unsafe else BlockRules.DEFAULT,
        unsafe_source=hir.UnsafeSource(source),
        span=span or sp(0, 0, 0, 0),
    )


def fn(name, body, unsafe=False, span=None, kind=FnKind.ITEM_FN, abi="Rust", path=""):
    return FnItem(
        name=name,
        body=body,
        sig=FnSig(Unsafety.UNSAFE if unsafe else Unsafety.NORMAL, abi),
        kind=kind,
        path=path,
        span=span or sp(0, 0, 0, 0),
    )


def make_crate(items, files=None, expansions=None, name="demo", crate_type="Executable"):
    return Crate(
        name=name,
        crate_type=crate_type,
        items=tuple(items),
        files=dict(files if files is not None else {SRC: DEMO_SRC}),
        expansions={e.id: e for e in (expansions or ())},
    )


def demo_crate(name="demo"):
    """``fn demo`` from DEMO_SRC: ordinary stmt, raw deref, foreign call."""
    body = block(
        local(other("lit", sp(2, 13, 2, 14)), span=sp(2, 5, 2, 15)),
        semi(deref(sp(3, 5, 3, 7), path(sp(3, 6, 3, 7))), span=sp(3, 5, 3, 8)),
        semi(call(sp(4, 5, 4, 12), args=(path(sp(4, 10, 4, 11)),),
                  unsafety="unsafe", abi="C"), span=sp(4, 5, 4, 13)),
        span=sp(1, 23, 5, 2),
    )
    return make_crate([fn("demo", body, span=sp(1, 1, 5, 2), path="demo")], name=name)


def closure_crate():
    """``fn run`` from CLOSURE_SRC."""
    inner = block(expr=deref(sp(2, 25, 2, 33), path(sp(2, 26, 2, 33), mut_static=True)),
                  unsafe=True, span=sp(2, 16, 2, 35))
    body = block(expr=block_expr(inner), span=sp(2, 16, 2, 35))
    run_body = block(
        local(closure(sp(2, 13, 2, 35), body), span=sp(2, 5, 2, 36)),
        semi(call(sp(3, 5, 3, 8), sig=False), span=sp(3, 5, 3, 9)),
        span=sp(1, 10, 4, 2),
    )
    return make_crate([fn("run", run_body, span=sp(1, 1, 4, 2), path="run")],
                      files={SRC: CLOSURE_SRC})


def demo_dump_dict():
    """JSON dump equivalent of ``demo_crate``."""
    return {
        "name": "demo",
        "crate_type": "Executable",
        "files": {SRC: DEMO_SRC},
        "items": [{
            "kind": "fn",
            "name": "demo",
            "path": "demo",
            "sig": {"unsafety": "normal", "abi": "Rust"},
            "span": "src/lib.rs:1:1: 5:2",
            "body": {
                "stmts": [
                    {"kind": "local", "span": "src/lib.rs:2:5: 2:15",
                     "expr": {"kind": "lit", "span": "src/lib.rs:2:13: 2:14"}},
                    {"kind": "semi", "span": "src/lib.rs:3:5: 3:8",
                     "expr": {"kind": "unary", "op": "deref", "operand_ty": "raw_ptr",
                              "span": "src/lib.rs:3:5: 3:7",
                              "operands": [{"kind": "path", "span": "src/lib.rs:3:6: 3:7",
                                            "res": {"kind": "local"}}]}},
                    {"kind": "semi", "span": "src/lib.rs:4:5: 4:13",
                     "expr": {"kind": "call", "span": "src/lib.rs:4:5: 4:12",
                              "sig": {"unsafety": "unsafe", "abi": "C"},
                              "operands": [
                                  {"kind": "path", "span": "src/lib.rs:4:5: 4:9",
                                   "res": {"kind": "fn"}},
                                  {"kind": "path", "span": "src/lib.rs:4:10: 4:11",
                                   "res": {"kind": "local"}}]}},
                ],
                "expr": None,
                "rules": "default",
                "span": "src/lib.rs:1:23: 5:2",
            },
        }],
    }


def write_dump(tmp_path, data, name="demo.tree.json"):
    p = tmp_path / name
    p.write_text(json.dumps(data), encoding="utf-8")
    return p


@pytest.fixture
def demo_codemap():
    return CodeMap({SRC: DEMO_SRC})


@pytest.fixture
def macro_codemap():
    expansions = {
        # local macro_rules! expansion
        1: ExpnInfo(1, ExpnFormat.BANG, call_site=sp(4, 10, 4, 19),
                    def_site=sp(1, 1, 1, 45)),
        # #[derive(Clone)]
        2: ExpnInfo(2, ExpnFormat.ATTRIBUTE, call_site=sp(2, 1, 2, 17)),
        # bang macro from another crate
        3: ExpnInfo(3, ExpnFormat.BANG, call_site=sp(4, 10, 4, 19)),
        # bang macro whose definition text was not loaded
        4: ExpnInfo(4, ExpnFormat.BANG, call_site=sp(4, 10, 4, 19),
                    def_site=sp(1, 1, 1, 10, file="/rustc/src/libcore/macros.rs")),
    }
    return CodeMap({SRC: MACRO_SRC}, expansions)

