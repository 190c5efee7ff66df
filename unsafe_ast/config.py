# unsafe_ast/config.py
"""Tuning knobs for one emitter run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Tuple

# Trait names the compiler leaves as the snippet of code generated by
# ``#[derive(...)]``.  Derive-like macros outside this list are reported as
# external macros.
DERIVE_NAMES: FrozenSet[str] = frozenset({
    "Clone",
    "Copy",
    "Hash",
    "PartialEq",
    "Eq",
    "PartialOrd",
    "Ord",
    "Debug",
    "Default",
    "Send",
    "Sync",
    "Encodable",
    "Decodable",
    "RustcEncodable",
    "RustcDecodable",
})

MACRO_DEF_KEYWORDS: Tuple[str, ...] = ("macro_rules",)

# Cargo names build scripts of dependencies like this.
RESERVED_CRATE_NAMES: FrozenSet[str] = frozenset({"build_script_build"})

FOREIGN_ABIS: FrozenSet[str] = frozenset({"C", "system"})

SNIPPET_LENGTH: int = 40
TRUNCATION_MARKER: str = "#"


@dataclass(frozen=True)
class AnalysisConfig:
    """Tuning knobs for the unsafe-AST emitter."""
    snippet_length: int = SNIPPET_LENGTH
    truncation_marker: str = TRUNCATION_MARKER
    derive_names: FrozenSet[str] = DERIVE_NAMES
    macro_def_keywords: Tuple[str, ...] = MACRO_DEF_KEYWORDS
    reserved_crate_names: FrozenSet[str] = RESERVED_CRATE_NAMES
    dependency_dir_name: str = "deps"
    foreign_abis: FrozenSet[str] = FOREIGN_ABIS
    record_safe_calls: bool = False
    extra_derive_names: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def all_derive_names(self) -> FrozenSet[str]:
        return self.derive_names | self.extra_derive_names

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.snippet_length <= len(self.truncation_marker):
            warnings.append("snippet_length must exceed the truncation marker length")
        if not self.truncation_marker:
            warnings.append("truncation_marker is empty; truncated snippets are unmarked")
        if not self.macro_def_keywords:
            warnings.append("no macro_def_keywords: every macro is classified external")
        return warnings
