# unsafe_ast/driver.py
"""
Host integration.

``AnalyzeUnsafe`` mirrors how a compiler driver runs the emitter: the host
reports where it writes its outputs (``late_callback``) and calls
``after_analysis`` once the crate is type-checked.  Builds whose output
directory is ``deps`` only produce dependency artifacts; they are analysed
by nobody and emit nothing.

``run_batch`` analyses several tree dumps one after the other.  A fatal
invariant violation or an unreadable dump aborts that unit only.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, TextIO, Union

from unsafe_ast import hir
from unsafe_ast.codemap import CodeMap
from unsafe_ast.config import AnalysisConfig
from unsafe_ast.errors import InternalError, TreeLoadError, UastError
from unsafe_ast.loader import load_path
from unsafe_ast.nodes import Crate
from unsafe_ast.serializer import emit, should_emit
from unsafe_ast.visitor import UnsafeASTEmitter

logger = logging.getLogger(__name__)

AfterAnalysisCallback = Callable[[hir.Crate], None]


def build_unsafe_ast(
    krate: hir.Crate,
    config: Optional[AnalysisConfig] = None,
    codemap: Optional[CodeMap] = None,
) -> Crate:
    """Visit *krate* and return its unsafe AST (raises ``InvariantViolation``)."""
    config = config or AnalysisConfig()
    codemap = codemap or CodeMap.for_crate(krate)
    logger.debug("Visiting crate %s (%d fn item(s))", krate.name,
                 sum(1 for _ in hir.iter_fn_items(krate.items)))
    emitter = UnsafeASTEmitter(codemap, krate.name, krate.crate_type, config)
    emitter.visit_crate(krate)
    return emitter.into_uast()


def emit_unsafe_ast(
    krate: hir.Crate,
    sink: Optional[TextIO] = None,
    config: Optional[AnalysisConfig] = None,
    suppress: bool = False,
    codemap: Optional[CodeMap] = None,
) -> Optional[Crate]:
    """Build and emit the unsafe AST of *krate*.

    Returns the emitted record, or ``None`` when emission is suppressed.
    Dependency build scripts are skipped before any traversal happens.
    """
    config = config or AnalysisConfig()
    if not should_emit(krate.name, config, suppress):
        logger.info("Skipping crate %s", krate.name)
        return None
    uast = build_unsafe_ast(krate, config, codemap)
    emit(uast, sink, config)
    return uast


def analyze_crate(
    path: Union[str, os.PathLike],
    sink: Optional[TextIO] = None,
    config: Optional[AnalysisConfig] = None,
    fmt: Optional[str] = None,
) -> Optional[Crate]:
    """Load one tree dump, then build and emit its unsafe AST."""
    return emit_unsafe_ast(load_path(path, fmt), sink, config)


class AnalyzeUnsafe:
    """Runs the emitter as part of a host build.

    Usage::

        calls = AnalyzeUnsafe(sink=sys.stderr)
        calls.late_callback(output_dir)
        ...
        calls.after_analysis(krate)
    """

    def __init__(
        self,
        sink: Optional[TextIO] = None,
        config: Optional[AnalysisConfig] = None,
        after_analysis_callback: Optional[AfterAnalysisCallback] = None,
    ) -> None:
        self.sink = sink
        self.config = config or AnalysisConfig()
        self.do_analysis = True
        self.after_analysis_callback = after_analysis_callback
        for warning in self.config.validate():
            logger.warning("AnalysisConfig: %s", warning)

    def late_callback(self, output_dir: Optional[Union[str, os.PathLike]]) -> None:
        """Turn analysis off for dependency-only builds."""
        if output_dir is None:
            return
        if Path(output_dir).name == self.config.dependency_dir_name:
            logger.debug("Output dir %s is a dependency dir; analysis off", output_dir)
            self.do_analysis = False

    def after_analysis(
        self,
        krate: hir.Crate,
        codemap: Optional[CodeMap] = None,
    ) -> Optional[Crate]:
        if not self.do_analysis:
            return None
        uast = emit_unsafe_ast(krate, self.sink, self.config, codemap=codemap)
        if self.after_analysis_callback is not None:
            self.after_analysis_callback(krate)
        return uast


# ===================================================================== #
#  Batch runs                                                            #
# ===================================================================== #

@dataclass
class UnitFailure:
    path: str
    error: UastError

    @property
    def fatal(self) -> bool:
        return self.error.fatal


@dataclass
class BatchResult:
    emitted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: List[UnitFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def run_batch(
    paths: Iterable[Union[str, os.PathLike]],
    sink: Optional[TextIO] = None,
    config: Optional[AnalysisConfig] = None,
    fmt: Optional[str] = None,
    output_dir: Optional[Union[str, os.PathLike]] = None,
) -> BatchResult:
    """Analyse each dump in *paths* in order.

    Load errors and invariant violations are logged and recorded against the
    failing unit; the remaining units still run.  Emission errors propagate.
    """
    result = BatchResult()
    for path in paths:
        calls = AnalyzeUnsafe(sink=sink, config=config)
        calls.late_callback(output_dir)
        try:
            krate = load_path(path, fmt)
            uast = calls.after_analysis(krate)
        except TreeLoadError as e:
            logger.error("Cannot load %s: %s", path, e)
            result.failures.append(UnitFailure(str(path), e))
            continue
        except InternalError as e:
            logger.error("Aborted analysis of %s: %s", path, e)
            result.failures.append(UnitFailure(str(path), e))
            continue
        if uast is None:
            result.skipped.append(krate.name)
        else:
            result.emitted.append(uast.name)
    return result
