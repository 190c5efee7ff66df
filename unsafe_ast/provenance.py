# unsafe_ast/provenance.py
"""
Macro provenance of a span.

``ProvenanceClassifier.classify`` maps every span to exactly one
``MacroOrigin``:

    NotMacro        the span carries no expansion metadata
    LocalMacro      expanded by a ``macro_rules!`` defined in this crate
    DeriveMacro     external expansion whose site text is a derivable trait
    ExternalMacro   any other expansion

The derive test is a heuristic.  When the compiler expands
``#[derive(Clone)]`` the generated code keeps ``Clone`` as its snippet, so a
snippet equal to a known trait name is taken to mean derive-generated code.
Derive-like macros outside ``AnalysisConfig.derive_names`` come out as
``ExternalMacro``.
"""

from __future__ import annotations

import logging
from typing import Optional

from unsafe_ast.codemap import CodeMap
from unsafe_ast.config import AnalysisConfig
from unsafe_ast.errors import SnippetUnavailable
from unsafe_ast.hir import ExpnFormat, ExpnInfo, Span
from unsafe_ast.nodes import MacroOrigin

logger = logging.getLogger(__name__)


class ProvenanceClassifier:

    def __init__(self, codemap: CodeMap, config: Optional[AnalysisConfig] = None) -> None:
        self.codemap = codemap
        self.config = config or AnalysisConfig()

    def in_macro(self, span: Span) -> bool:
        """True if *span* was produced by any macro expansion."""
        return self.codemap.expn_info(span) is not None

    def in_external_macro(self, span: Span) -> bool:
        """
        True if the macro that expanded *span* is not defined in the current
        crate, or is an attribute macro (always a plugin).
        """
        info = self.codemap.expn_info(span)
        if info is None:
            return False
        return self._is_external(info)

    def _is_external(self, info: ExpnInfo) -> bool:
        if info.format is not ExpnFormat.BANG:
            return True
        # no span for the definition = external macro
        if info.def_site is None:
            return True
        try:
            code = self.codemap.span_to_snippet(info.def_site)
        except SnippetUnavailable:
            # no snippet = external macro or compiler-builtin expansion
            logger.debug("Definition of expansion %d has no source text", info.id)
            return True
        return not code.startswith(tuple(self.config.macro_def_keywords))

    def _site_text(self, span: Span, info: ExpnInfo) -> str:
        for site in (span, info.call_site):
            if site is None:
                continue
            try:
                return self.codemap.span_to_snippet(site)
            except SnippetUnavailable:
                continue
        return ""

    def classify(self, span: Span) -> MacroOrigin:
        info = self.codemap.expn_info(span)
        if info is None:
            return MacroOrigin.NOT_MACRO
        if not self._is_external(info):
            return MacroOrigin.LOCAL_MACRO
        if self._site_text(span, info) in self.config.all_derive_names:
            return MacroOrigin.DERIVE_MACRO
        return MacroOrigin.EXTERNAL_MACRO
