"""
unsafe_ast: Unsafe-operation summaries of type-checked crates
=============================================================

Walks the type-annotated syntax tree of one compilation unit and produces a
nested record of every operation that needs an ``unsafe`` annotation:
raw-pointer dereferences, unsafe and foreign calls, inline assembly, mutable
statics, and the unsafe blocks and closures that contain them.

Core modules
------------
hir
    The input tree handed over by the front-end (owned, immutable).
codemap
    Span display, snippet extraction and macro-expansion lookup.
loader
    JSON / S-expression tree dump loading.
nodes
    The unsafe AST itself (``Crate``, ``FnDecl``, ``Block``, ``Indexed``).
provenance
    Macro-origin classification of spans.
scope
    Scope-frame stack and statement indexing.
visitor
    ``UnsafeASTEmitter``, the traversal that builds the record.
serializer
    Compact JSON encoding, decoding and emission.
driver
    Host integration and batch runs.

Quick start
-----------
>>> from unsafe_ast import load_json, build_unsafe_ast, encode
>>> krate = load_json(open("demo.tree.json").read())      # doctest: +SKIP
>>> print(encode(build_unsafe_ast(krate)))                # doctest: +SKIP
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__all__: List[str] = []          # populated below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_re-export)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "UastError",
        "TreeLoadError",
        "SnippetUnavailable",
        "EmitError",
        "InternalError",
        "InvariantViolation",
    ],
    "config": [
        "AnalysisConfig",
        "DERIVE_NAMES",
    ],
    "codemap": [
        "CodeMap",
        "parse_span",
    ],
    "nodes": [
        "Crate",
        "FnDecl",
        "Block",
        "Indexed",
        "MacroOrigin",
        "Deref",
        "MutStatic",
        "InlineASM",
        "Call",
        "Closure",
        "InnerBlock",
    ],
    "provenance": [
        "ProvenanceClassifier",
    ],
    "scope": [
        "ScopeTracker",
    ],
    "visitor": [
        "UnsafeASTEmitter",
    ],
    "serializer": [
        "encode",
        "decode",
        "emit",
        "summarize",
    ],
    "loader": [
        "load_json",
        "load_sexp",
        "load_path",
    ],
    "driver": [
        "AnalyzeUnsafe",
        "analyze_crate",
        "build_unsafe_ast",
        "emit_unsafe_ast",
        "run_batch",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"unsafe_ast: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(f"unsafe_ast.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, obj)
        __all__.append(name)
    _log.debug("Loaded %s", fq_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names

__all__ += ["__version__"]

if TYPE_CHECKING:
    from .errors import (
        UastError as UastError,
        TreeLoadError as TreeLoadError,
        SnippetUnavailable as SnippetUnavailable,
        EmitError as EmitError,
        InternalError as InternalError,
        InvariantViolation as InvariantViolation,
    )
    from .config import AnalysisConfig as AnalysisConfig, DERIVE_NAMES as DERIVE_NAMES
    from .codemap import CodeMap as CodeMap, parse_span as parse_span
    from .nodes import (
        Crate as Crate,
        FnDecl as FnDecl,
        Block as Block,
        Indexed as Indexed,
        MacroOrigin as MacroOrigin,
        Deref as Deref,
        MutStatic as MutStatic,
        InlineASM as InlineASM,
        Call as Call,
        Closure as Closure,
        InnerBlock as InnerBlock,
    )
    from .provenance import ProvenanceClassifier as ProvenanceClassifier
    from .scope import ScopeTracker as ScopeTracker
    from .visitor import UnsafeASTEmitter as UnsafeASTEmitter
    from .serializer import (
        encode as encode,
        decode as decode,
        emit as emit,
        summarize as summarize,
    )
    from .loader import load_json as load_json, load_sexp as load_sexp, load_path as load_path
    from .driver import (
        AnalyzeUnsafe as AnalyzeUnsafe,
        analyze_crate as analyze_crate,
        build_unsafe_ast as build_unsafe_ast,
        emit_unsafe_ast as emit_unsafe_ast,
        run_batch as run_batch,
    )
