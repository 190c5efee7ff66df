# unsafe_ast/serializer.py
"""
Encoding and emission of finished unsafe-AST records.

One crate becomes one line of compact JSON.  Records go to stderr by default
so they never mix with the build artifacts a host writes to stdout.

``encode`` and ``decode`` are inverses: decoding an emitted record and
encoding it again yields the same bytes.
"""

from __future__ import annotations

import json
import logging
import sys
from collections import Counter
from typing import Any, Dict, Optional, TextIO

from unsafe_ast.config import AnalysisConfig
from unsafe_ast.errors import EmitError, UastErrorCodes
from unsafe_ast.nodes import Call, Closure, Crate, InnerBlock, walk_items

logger = logging.getLogger(__name__)

_SEPARATORS = (",", ":")


def encode(krate: Crate) -> str:
    try:
        return json.dumps(krate.to_json(), separators=_SEPARATORS, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise EmitError(
            f"Cannot encode crate {krate.name!r}: {e}",
            code=UastErrorCodes.ENCODE_FAILURE,
            cause=e,
        ) from e


def decode(text: str) -> Crate:
    """Rebuild a ``Crate`` from an emitted record."""
    return Crate.from_json(json.loads(text))


def should_emit(
    crate_name: str,
    config: Optional[AnalysisConfig] = None,
    suppress: bool = False,
) -> bool:
    """False for reserved dependency-build crates or when the host suppresses."""
    config = config or AnalysisConfig()
    if suppress:
        return False
    return crate_name not in config.reserved_crate_names


def emit(
    krate: Crate,
    sink: Optional[TextIO] = None,
    config: Optional[AnalysisConfig] = None,
    suppress: bool = False,
) -> bool:
    """
    Write *krate* to *sink* (stderr by default) in a single write.

    Returns ``False`` without writing anything when emission is suppressed.
    Raises ``EmitError`` if the record cannot be encoded or written.
    """
    if not should_emit(krate.name, config, suppress):
        logger.info("Not emitting unsafe AST for crate %s", krate.name)
        return False
    record = encode(krate) + "\n"
    sink = sink if sink is not None else sys.stderr
    try:
        sink.write(record)
        sink.flush()
    except OSError as e:
        raise EmitError(
            f"Failed writing unsafe AST for crate {krate.name!r}: {e}",
            cause=e,
        ) from e
    return True


def summarize(krate: Crate) -> Dict[str, Any]:
    """Per-function counts of each node kind, plus crate totals."""
    functions = []
    totals: Counter = Counter()
    for fn in krate.functions:
        counts: Counter = Counter()
        for entry in walk_items(fn.block):
            item = entry.item
            counts[item.variant] += 1
            if isinstance(item, Call) and item.is_foreign:
                counts["ffi_calls"] += 1
            if isinstance(item, (InnerBlock, Closure)) and item.block.unsaf:
                counts["unsafe_blocks"] += 1
        totals.update(counts)
        functions.append({
            "name": fn.name,
            "unsaf": fn.unsaf,
            "macro_origin": fn.macro_origin.value,
            "counts": dict(sorted(counts.items())),
        })
    return {
        "name": krate.name,
        "ty": krate.ty,
        "functions": functions,
        "totals": dict(sorted(totals.items())),
    }
