# unsafe_ast/errors.py
"""
Unsafe-AST Error Types

Error handling infrastructure for the unsafe-AST emitter.  Every failure the
emitter can produce is one of a small number of structured exceptions, each
carrying an error code and (where known) the span it concerns.

Error Hierarchy:
────────────────
┌─────────────────────────────────────────────────────────────────────┐
│  UastError (base)                                                   │
│  ├── TreeLoadError        - Malformed or unreadable tree dump       │
│  ├── SnippetUnavailable   - Source text missing for a span          │
│  ├── EmitError            - Writing a record to its sink failed     │
│  └── InternalError        - Emitter bugs (should never happen)      │
│      └── InvariantViolation - Scope stack / block structure broken  │
└─────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Codes follow the pattern UAST-NNNN:
  - 0001-0999: Tree loading errors
  - 1000-1999: Traversal errors
  - 2000-2999: Emission errors
  - 9000-9999: Internal errors

Only ``InvariantViolation`` is fatal: it aborts analysis of the current
crate.  A batch driver checks ``exc.fatal`` (or catches ``InternalError``)
to skip the unit and carry on with the next one.

Example Usage:
──────────────
    from unsafe_ast.errors import InvariantViolation, UastErrorCodes

    try:
        krate = emitter.into_uast()
    except InvariantViolation as exc:
        log.error("%s", exc)
"""

from __future__ import annotations

from enum import Enum, auto, unique
from typing import Any, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR SEVERITY AND CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorSeverity(Enum):
    """Severity levels for emitter errors."""

    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"

    def is_error(self) -> bool:
        return self in (ErrorSeverity.FATAL, ErrorSeverity.ERROR)


@unique
class ErrorPhase(Enum):
    """Stage of a run where the error occurred."""

    LOAD = "load"
    TRAVERSAL = "traversal"
    EMIT = "emit"
    INTERNAL = "internal"


@unique
class ErrorCategory(Enum):
    MALFORMED_DUMP = auto()
    UNKNOWN_NODE_KIND = auto()
    BAD_SPAN = auto()
    MISSING_SOURCE = auto()
    WRITE_FAILURE = auto()
    ENCODE_FAILURE = auto()
    INVARIANT_BROKEN = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorCode:
    """Structured error code of the form ``UAST-NNNN``."""

    __slots__ = ("prefix", "number", "category", "phase", "default_severity")

    def __init__(
        self,
        prefix: str,
        number: int,
        category: ErrorCategory,
        phase: ErrorPhase,
        default_severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.category = category
        self.phase = phase
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.category.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class UastErrorCodes:
    """Predefined error codes."""

    # LOAD (0001-0999)
    MALFORMED_DUMP = ErrorCode(
        "UAST", 1, ErrorCategory.MALFORMED_DUMP, ErrorPhase.LOAD
    )
    UNKNOWN_NODE_KIND = ErrorCode(
        "UAST", 2, ErrorCategory.UNKNOWN_NODE_KIND, ErrorPhase.LOAD
    )
    BAD_SPAN = ErrorCode(
        "UAST", 3, ErrorCategory.BAD_SPAN, ErrorPhase.LOAD
    )

    # TRAVERSAL (1000-1999)
    MISSING_SOURCE = ErrorCode(
        "UAST", 1000, ErrorCategory.MISSING_SOURCE, ErrorPhase.TRAVERSAL,
        ErrorSeverity.WARNING,
    )

    # EMIT (2000-2999)
    WRITE_FAILURE = ErrorCode(
        "UAST", 2000, ErrorCategory.WRITE_FAILURE, ErrorPhase.EMIT
    )
    ENCODE_FAILURE = ErrorCode(
        "UAST", 2001, ErrorCategory.ENCODE_FAILURE, ErrorPhase.EMIT
    )

    # INTERNAL (9000-9999)
    INVARIANT_BROKEN = ErrorCode(
        "UAST", 9000, ErrorCategory.INVARIANT_BROKEN, ErrorPhase.INTERNAL,
        ErrorSeverity.FATAL,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class UastError(Exception):
    """
    Base exception for all emitter errors.

    Carries an ``ErrorCode`` and an optional display span (``file:l:c: l:c``).
    """

    fatal: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or UastErrorCodes.INVARIANT_BROKEN
        self.span = span
        self.cause = cause

    @property
    def severity(self) -> ErrorSeverity:
        return self.code.default_severity

    def __str__(self) -> str:
        where = f"{self.span}: " if self.span else ""
        return f"{where}{self.severity.value}[{self.code}]: {self.message}"


class TreeLoadError(UastError):
    """The front-end tree dump could not be read."""

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=code or UastErrorCodes.MALFORMED_DUMP,
            **kwargs,
        )


class SnippetUnavailable(UastError):
    """No source text backs a span; callers fall back to an empty snippet."""

    def __init__(self, span: str = "", reason: str = "", **kwargs: Any) -> None:
        msg = "Source text unavailable"
        if reason:
            msg += f": {reason}"
        super().__init__(
            message=msg,
            code=UastErrorCodes.MISSING_SOURCE,
            span=span,
            **kwargs,
        )


class EmitError(UastError):
    """A finished record could not be written to its sink."""

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=code or UastErrorCodes.WRITE_FAILURE,
            **kwargs,
        )


class InternalError(UastError):
    """Emitter bug.  Never recoverable."""

    fatal = True


class InvariantViolation(InternalError):
    """
    The traversal state is inconsistent, e.g. a function body did not leave
    exactly one pending ``InnerBlock`` behind.  Analysis of the current crate
    must stop; no partial record is produced.
    """

    def __init__(self, message: str, span: str = "", **kwargs: Any) -> None:
        super().__init__(
            message=message,
            code=UastErrorCodes.INVARIANT_BROKEN,
            span=span,
            **kwargs,
        )
