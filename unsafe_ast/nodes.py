# unsafe_ast/nodes.py
"""
The unsafe AST: a summary of the parts of a crate related to ``unsafe``.

Shape of one record::

    Crate      {name, ty, functions: [FnDecl]}
    FnDecl     {name, unsaf, span, macro_origin, block: Block}
    Block      {size, unsaf, contents: [Indexed<UASTNode>]}
    Indexed    {index, span, snippet, macro_origin, item: UASTNode}

``UASTNode`` is a closed set of variants.  Marker variants encode as their
bare name (``"Deref"``); variants with payloads encode as
``{"variant": name, "fields": [...]}``.  ``Closure`` and ``InnerBlock`` own a
``Block`` each, so a record mirrors the lexical nesting of the source.

All classes are frozen; a record is never modified once built.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, Optional, Tuple, Type

from unsafe_ast import hir
from unsafe_ast.config import FOREIGN_ABIS, SNIPPET_LENGTH, TRUNCATION_MARKER


# ── Enums ────────────────────────────────────────────────────────

class MacroOrigin(Enum):
    NOT_MACRO = "NotMacro"
    LOCAL_MACRO = "LocalMacro"
    EXTERNAL_MACRO = "ExternalMacro"
    DERIVE_MACRO = "DeriveMacro"


# ── Call facts ───────────────────────────────────────────────────

@dataclass(frozen=True)
class Unsafe:
    unsaf: bool

    @classmethod
    def from_fn_sig(cls, sig: Optional[hir.FnSig]) -> "Unsafe":
        if sig is None:
            return cls(False)
        return cls(is_unsafe(sig.unsafety))


@dataclass(frozen=True)
class FFI:
    is_ffi: bool

    @classmethod
    def from_abi(cls, abi: str, foreign_abis=FOREIGN_ABIS) -> "FFI":
        return cls(abi in foreign_abis)

    @classmethod
    def from_fn_sig(cls, sig: Optional[hir.FnSig], foreign_abis=FOREIGN_ABIS) -> "FFI":
        if sig is None:
            return cls(False)
        return cls.from_abi(sig.abi, foreign_abis)


def is_unsafe(unsafety: hir.Unsafety) -> bool:
    return unsafety is hir.Unsafety.UNSAFE


# ── Nodes ────────────────────────────────────────────────────────

_VARIANTS: Dict[str, Type["UASTNode"]] = {}


class UASTNode:
    """Base of the closed node variant set."""

    variant: ClassVar[str] = ""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _VARIANTS[cls.variant] = cls

    def fields_json(self) -> Optional[list]:
        """Payload fields, or ``None`` for a bare marker."""
        return None

    def to_json(self) -> Any:
        fields = self.fields_json()
        if fields is None:
            return self.variant
        return {"variant": self.variant, "fields": fields}

    @classmethod
    def from_fields(cls, fields: list) -> "UASTNode":
        return cls()

    @staticmethod
    def from_json(data: Any) -> "UASTNode":
        if isinstance(data, str):
            name, fields = data, None
        else:
            name, fields = data["variant"], data.get("fields", [])
        try:
            cls = _VARIANTS[name]
        except KeyError:
            raise ValueError(f"Unknown UAST node variant {name!r}") from None
        if fields is None:
            return cls()
        return cls.from_fields(fields)


@dataclass(frozen=True)
class Deref(UASTNode):
    variant: ClassVar[str] = "Deref"


@dataclass(frozen=True)
class MutStatic(UASTNode):
    variant: ClassVar[str] = "MutStatic"


@dataclass(frozen=True)
class InlineASM(UASTNode):
    variant: ClassVar[str] = "InlineASM"


@dataclass(frozen=True)
class Call(UASTNode):
    variant: ClassVar[str] = "Call"
    unsafe: Unsafe
    ffi: FFI

    @property
    def is_restricted(self) -> bool:
        return self.unsafe.unsaf

    @property
    def is_foreign(self) -> bool:
        return self.ffi.is_ffi

    def fields_json(self) -> Optional[list]:
        return [{"unsaf": self.unsafe.unsaf}, {"is_ffi": self.ffi.is_ffi}]

    @classmethod
    def from_fields(cls, fields: list) -> "Call":
        unsafe, ffi = fields
        return cls(Unsafe(unsafe["unsaf"]), FFI(ffi["is_ffi"]))


@dataclass(frozen=True)
class Closure(UASTNode):
    variant: ClassVar[str] = "Closure"
    block: "Block"

    def fields_json(self) -> Optional[list]:
        return [self.block.to_json()]

    @classmethod
    def from_fields(cls, fields: list) -> "Closure":
        return cls(Block.from_json(fields[0]))


@dataclass(frozen=True)
class InnerBlock(UASTNode):
    variant: ClassVar[str] = "InnerBlock"
    block: "Block"

    def fields_json(self) -> Optional[list]:
        return [self.block.to_json()]

    @classmethod
    def from_fields(cls, fields: list) -> "InnerBlock":
        return cls(Block.from_json(fields[0]))


# ── Containers ───────────────────────────────────────────────────

def truncate_snippet(
    snippet: str,
    length: int = SNIPPET_LENGTH,
    marker: str = TRUNCATION_MARKER,
) -> str:
    if len(snippet) > length:
        return snippet[:length - len(marker)] + marker
    return snippet


@dataclass(frozen=True)
class Indexed:
    """
    A flagged site.

    ``index`` is the statement number, in the enclosing block, of the
    statement the site belongs to.
    """
    index: int
    span: str
    snippet: str
    macro_origin: MacroOrigin
    item: UASTNode

    def to_json(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "span": self.span,
            "snippet": self.snippet,
            "macro_origin": self.macro_origin.value,
            "item": self.item.to_json(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Indexed":
        return cls(
            index=data["index"],
            span=data["span"],
            snippet=data["snippet"],
            macro_origin=MacroOrigin(data["macro_origin"]),
            item=UASTNode.from_json(data["item"]),
        )


@dataclass(frozen=True)
class Block:
    size: int
    unsaf: bool
    contents: Tuple[Indexed, ...] = ()

    @staticmethod
    def unsafety_of(rules: hir.BlockRules, source: hir.UnsafeSource) -> bool:
        """Only an unsafe (or push/pop-unsafe) block the user wrote counts."""
        return rules is not hir.BlockRules.DEFAULT and source is hir.UnsafeSource.USER

    def to_json(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "unsaf": self.unsaf,
            "contents": [c.to_json() for c in self.contents],
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Block":
        return cls(
            size=data["size"],
            unsaf=data["unsaf"],
            contents=tuple(Indexed.from_json(c) for c in data["contents"]),
        )


@dataclass(frozen=True)
class FnDecl:
    name: str
    unsaf: bool
    span: str
    macro_origin: MacroOrigin
    block: Block

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "unsaf": self.unsaf,
            "span": self.span,
            "macro_origin": self.macro_origin.value,
            "block": self.block.to_json(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "FnDecl":
        return cls(
            name=data["name"],
            unsaf=data["unsaf"],
            span=data["span"],
            macro_origin=MacroOrigin(data["macro_origin"]),
            block=Block.from_json(data["block"]),
        )


@dataclass(frozen=True)
class Crate:
    name: str
    ty: str
    functions: Tuple[FnDecl, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ty": self.ty,
            "functions": [f.to_json() for f in self.functions],
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Crate":
        return cls(
            name=data["name"],
            ty=data["ty"],
            functions=tuple(FnDecl.from_json(f) for f in data["functions"]),
        )


def walk_items(block: Block) -> Iterator[Indexed]:
    """Pre-order walk over every ``Indexed`` under *block*, nested ones included."""
    for entry in block.contents:
        yield entry
        if isinstance(entry.item, (Closure, InnerBlock)):
            yield from walk_items(entry.item.block)
