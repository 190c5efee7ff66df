"""
loader.py: Reading front-end tree dumps
=======================================

The front-end writes one dump per compilation unit, either as JSON or as an
S-expression.  Both encode the same structure; the S-expression form is
read with ``sexpdata`` and normalised to the JSON shape before the tree is
built.

JSON shape (abridged)::

    {"name": "demo", "crate_type": "Executable",
     "files": {"src/main.rs": "..."},
     "expansions": [{"id": 1, "format": "bang",
                     "call_site": "src/main.rs:9:5: 9:20",
                     "def_site": "src/main.rs:1:1: 5:2"}],
     "items": [{"kind": "fn", "name": "main", "path": "main",
                "sig": {"unsafety": "normal", "abi": "Rust"},
                "span": "src/main.rs:7:1: 12:2",
                "body": {"stmts": [...], "expr": null, "rules": "default",
                         "span": "src/main.rs:7:11: 12:2"}}]}

S-expression shape: every record is ``(head :key value ...)``; the head
becomes the ``kind`` key, ``nil`` stands for null and ``;`` starts a
comment::

    (crate :name "demo" :crate_type "Executable"
           :files ((file :path "src/main.rs" :text "..."))
           :items ((fn :name "main" :body (block :stmts () :expr nil ...))))

Depends on:
    - sexpdata          (S-expression reader)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

import sexpdata
from sexpdata import Symbol

from unsafe_ast import hir
from unsafe_ast.codemap import parse_span
from unsafe_ast.errors import TreeLoadError, UastErrorCodes

logger = logging.getLogger(__name__)

E = TypeVar("E")

SEXP_SUFFIXES = frozenset({".sexp", ".lisp", ".el"})


# ===================================================================
#  PART 1: S-EXPRESSION PARSING LAYER
# ===================================================================

_CONSTANTS = {"nil": None, "true": True, "t": True, "false": False}


def _parse_sexp(text: str) -> Any:
    """Parse an S-expression dump into plain dicts, lists and atoms.

    ``sexpdata.loads`` does the reading; ``nil``/``t`` are left as symbols so
    that ``_normalise`` maps them the same way as ``true``/``false``.
    """
    try:
        parsed = sexpdata.loads(text, nil=None, true=None, false=None)
    except Exception as e:
        raise TreeLoadError(f"Failed to parse S-expression: {e}", cause=e) from e
    return _normalise(parsed)


def _is_keyword(obj: Any) -> bool:
    return isinstance(obj, Symbol) and obj.value().startswith(":")


def _is_record(obj: list) -> bool:
    if not obj or not isinstance(obj[0], Symbol) or _is_keyword(obj[0]):
        return False
    rest = obj[1:]
    return len(rest) % 2 == 0 and all(_is_keyword(k) for k in rest[::2])


def _normalise(obj: Any) -> Any:
    """Recursively normalise sexpdata output.

    ``(head :k v ...)`` → ``{"kind": "head", "k": v, ...}``; other lists stay
    lists; symbols become plain strings.
    """
    if isinstance(obj, list):
        if _is_record(obj):
            record: Dict[str, Any] = {"kind": obj[0].value()}
            for key, value in zip(obj[1::2], obj[2::2]):
                record[key.value()[1:]] = _normalise(value)
            return record
        return [_normalise(x) for x in obj]
    if isinstance(obj, Symbol):
        name = obj.value()
        return _CONSTANTS[name] if name in _CONSTANTS else name
    return obj


# ===================================================================
#  PART 2: TREE BUILDING
# ===================================================================

def _require(data: Mapping[str, Any], key: str, what: str) -> Any:
    try:
        return data[key]
    except (KeyError, TypeError):
        raise TreeLoadError(f"{what} is missing required field {key!r}") from None


def _enum(cls: Type[E], value: Any, what: str) -> E:
    try:
        return cls(value)  # type: ignore[call-arg]
    except ValueError:
        raise TreeLoadError(
            f"Unknown {what} {value!r}",
            code=UastErrorCodes.UNKNOWN_NODE_KIND,
        ) from None


def _span(value: Any) -> hir.Span:
    if value is None:
        return hir.DUMMY_SPAN
    if isinstance(value, str):
        return parse_span(value)
    if isinstance(value, Mapping):
        try:
            return hir.Span(
                file=value["file"],
                lo_line=int(value["lo_line"]),
                lo_col=int(value["lo_col"]),
                hi_line=int(value["hi_line"]),
                hi_col=int(value["hi_col"]),
                expn_id=(int(value["expn_id"])
                         if value.get("expn_id") is not None else None),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TreeLoadError(
                f"Malformed span {value!r}", code=UastErrorCodes.BAD_SPAN, cause=e,
            ) from e
    raise TreeLoadError(f"Malformed span {value!r}", code=UastErrorCodes.BAD_SPAN)


def _sig(value: Optional[Mapping[str, Any]]) -> Optional[hir.FnSig]:
    if value is None:
        return None
    return hir.FnSig(
        unsafety=_enum(hir.Unsafety, value.get("unsafety", "normal"), "unsafety"),
        abi=str(value.get("abi", "Rust")),
    )


def _res(value: Optional[Mapping[str, Any]]) -> Optional[hir.Res]:
    if value is None:
        return None
    return hir.Res(kind=str(_require(value, "kind", "res")),
                   mutable=bool(value.get("mutable", False)))


def _is_block(data: Any) -> bool:
    return isinstance(data, Mapping) and "stmts" in data


def _block(data: Mapping[str, Any]) -> hir.Block:
    stmts = _require(data, "stmts", "block")
    expr = data.get("expr")
    return hir.Block(
        stmts=tuple(_stmt(s) for s in stmts),
        expr=_expr(expr) if expr is not None else None,
        rules=_enum(hir.BlockRules, data.get("rules", "default"), "block rules"),
        unsafe_source=_enum(hir.UnsafeSource, data.get("unsafe_source", "user"),
                            "unsafe source"),
        span=_span(data.get("span")),
    )


def _stmt(data: Mapping[str, Any]) -> hir.Stmt:
    kind = _enum(hir.StmtKind, _require(data, "kind", "statement"), "statement kind")
    if kind is hir.StmtKind.ITEM:
        return hir.Stmt(kind, _span(data.get("span")),
                        item=_item(_require(data, "item", "item statement")))
    expr = data.get("expr")
    return hir.Stmt(kind, _span(data.get("span")),
                    expr=_expr(expr) if expr is not None else None)


def _operand(data: Any) -> Union[hir.Expr, hir.Block]:
    return _block(data) if _is_block(data) else _expr(data)


def _expr(data: Mapping[str, Any]) -> hir.Expr:
    tag = str(_require(data, "kind", "expression"))
    try:
        kind = hir.ExprKind(tag)
    except ValueError:
        kind = hir.ExprKind.OTHER
    operands = [_operand(o) for o in data.get("operands") or ()]
    if data.get("body") is not None:
        operands.append(_block(data["body"]))
    expr = hir.Expr(
        kind=kind,
        span=_span(data.get("span")),
        operands=tuple(operands),
        tag=tag,
        op=data.get("op"),
        sig=_sig(data.get("sig")),
        operand_ty=data.get("operand_ty"),
        res=_res(data.get("res")),
    )
    if kind in (hir.ExprKind.CLOSURE, hir.ExprKind.BLOCK) and expr.body is None:
        raise TreeLoadError(f"{tag} expression at {expr.span} has no body block")
    return expr


def _item(data: Mapping[str, Any]) -> hir.Item:
    kind = str(_require(data, "kind", "item"))
    span = _span(data.get("span"))
    name = str(data.get("name") or "")
    if kind in (hir.FnKind.ITEM_FN.value, hir.FnKind.METHOD.value):
        return hir.FnItem(
            name=name,
            body=_block(_require(data, "body", f"fn {name}")),
            sig=_sig(data.get("sig")) or hir.FnSig(),
            kind=hir.FnKind(kind),
            path=str(data.get("path") or ""),
            span=span,
        )
    return hir.ContainerItem(
        kind=kind,
        name=name,
        items=tuple(_item(i) for i in data.get("items") or ()),
        span=span,
    )


def _files(value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    return {str(_require(f, "path", "file")): str(_require(f, "text", "file"))
            for f in value}


def _expansions(value: Any) -> Dict[int, hir.ExpnInfo]:
    if value is None:
        return {}
    entries = value.values() if isinstance(value, Mapping) else value
    table: Dict[int, hir.ExpnInfo] = {}
    for entry in entries:
        info = hir.ExpnInfo(
            id=int(_require(entry, "id", "expansion")),
            format=_enum(hir.ExpnFormat, entry.get("format", "bang"), "expansion format"),
            call_site=_span(entry["call_site"]) if entry.get("call_site") else None,
            def_site=_span(entry["def_site"]) if entry.get("def_site") else None,
            name=str(entry.get("name") or ""),
        )
        table[info.id] = info
    return table


def crate_from_dict(data: Mapping[str, Any]) -> hir.Crate:
    """Build a ``hir.Crate`` from a decoded dump."""
    if not isinstance(data, Mapping):
        raise TreeLoadError(f"Dump root must be a record, not {type(data).__name__}")
    try:
        krate = hir.Crate(
            name=str(_require(data, "name", "crate")),
            crate_type=str(data.get("crate_type") or data.get("ty") or "????"),
            items=tuple(_item(i) for i in data.get("items") or ()),
            files=_files(data.get("files")),
            expansions=_expansions(data.get("expansions")),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise TreeLoadError(f"Malformed tree dump: {e}", cause=e) from e
    logger.debug("Loaded crate %s: %d top-level item(s), %d file(s)",
                 krate.name, len(krate.items), len(krate.files))
    return krate


def load_json(text: str) -> hir.Crate:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TreeLoadError(f"Invalid JSON tree dump: {e}", cause=e) from e
    return crate_from_dict(data)


def load_sexp(text: str) -> hir.Crate:
    return crate_from_dict(_parse_sexp(text))


def load_path(path: Union[str, Path], fmt: Optional[str] = None) -> hir.Crate:
    """Load a dump file; *fmt* is ``"json"`` or ``"sexp"`` (default: by suffix)."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TreeLoadError(f"Cannot read tree dump {p}: {e}", cause=e) from e
    if fmt is None:
        fmt = "sexp" if p.suffix in SEXP_SUFFIXES else "json"
    if fmt == "sexp":
        return load_sexp(text)
    return load_json(text)
