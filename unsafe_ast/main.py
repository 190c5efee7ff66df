#!/usr/bin/env python3
"""unsafe_ast/main.py: CLI entry-point for the unsafe-AST emitter.

Usage examples
--------------
    # Emit the unsafe AST of one or more front-end tree dumps (to stderr)
    python -m unsafe_ast analyze target/debug/demo.tree.json

    # S-expression dumps, records written to a file
    python -m unsafe_ast analyze demo.tree.sexp --format sexp -o uast.jsonl

    # Dependency-only build: nothing is emitted
    python -m unsafe_ast analyze dep.tree.json --out-dir target/debug/deps

    # Summarise previously emitted records
    python -m unsafe_ast decode uast.jsonl

Exit codes
----------
    0   Success.
    1   At least one unit was aborted (unreadable dump or invariant
        violation); the other units were still analysed.
    2   Infrastructure failure (bad arguments, unwritable output, etc.).

The module doubles as ``python -m unsafe_ast`` via the companion
``unsafe_ast/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence, TextIO

from unsafe_ast import __version__
from unsafe_ast.config import AnalysisConfig
from unsafe_ast.driver import run_batch
from unsafe_ast.errors import EmitError
from unsafe_ast.serializer import decode, summarize

_log = logging.getLogger("unsafe_ast")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the root ``unsafe_ast`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("unsafe_ast")
    root.setLevel(level)
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` → ``sys.stderr``; ``"-"`` → ``sys.stdout``; otherwise
    open the path for appending (creating parent directories as needed).
    """
    if dest is None:
        return sys.stderr
    if dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "a", encoding="utf-8")


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_analyze(args: argparse.Namespace) -> int:
    """Emit one unsafe-AST record per tree dump."""
    config = AnalysisConfig()
    if args.snippet_length is not None:
        config = replace(config, snippet_length=args.snippet_length)
    if args.record_all_calls:
        config = replace(config, record_safe_calls=True)
    if args.derive:
        config = replace(config, extra_derive_names=frozenset(args.derive))

    try:
        out = _open_output(args.output)
    except OSError as exc:
        _log.error("Cannot open output %s: %s", args.output, exc)
        return EXIT_INFRA
    try:
        result = run_batch(
            args.dumps,
            sink=out,
            config=config,
            fmt=args.format,
            output_dir=args.out_dir,
        )
    except EmitError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    finally:
        if out not in (sys.stdout, sys.stderr):
            out.close()

    _log.info("%d emitted, %d skipped, %d failed",
              len(result.emitted), len(result.skipped), len(result.failures))
    return EXIT_OK if result.ok else EXIT_ERROR


def cmd_decode(args: argparse.Namespace) -> int:
    """Summarise emitted records, one JSON summary per line."""
    try:
        text = Path(args.records).read_text(encoding="utf-8")
    except OSError as exc:
        _log.error("Cannot read %s: %s", args.records, exc)
        return EXIT_INFRA
    status = EXIT_OK
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            krate = decode(line)
        except (ValueError, KeyError, TypeError) as exc:
            _log.error("%s:%d: not an unsafe-AST record: %s", args.records, lineno, exc)
            status = EXIT_ERROR
            continue
        sys.stdout.write(json.dumps(summarize(krate), indent=args.indent) + "\n")
    return status


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="unsafe-ast",
        description=(
            "Summarise every unsafe operation of a type-checked crate as a\n"
            "nested JSON record, for corpus-wide auditing."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              unsafe-ast analyze demo.tree.json
              unsafe-ast analyze demo.tree.sexp --format sexp -o uast.jsonl
              unsafe-ast decode uast.jsonl
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    p = subparsers.add_parser("analyze", help="Emit unsafe ASTs for tree dumps.")
    p.add_argument("dumps", nargs="+", metavar="DUMP", help="Front-end tree dump(s).")
    p.add_argument(
        "-f", "--format",
        choices=["json", "sexp"],
        default=None,
        help="Dump format (default: by file suffix).",
    )
    p.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Record sink (omit for stderr, "-" for stdout).',
    )
    p.add_argument(
        "--out-dir",
        default=None,
        metavar="DIR",
        help="The host build's output directory; 'deps' suppresses emission.",
    )
    p.add_argument(
        "--snippet-length",
        type=int,
        default=None,
        metavar="N",
        help="Maximum snippet length (default: 40).",
    )
    p.add_argument(
        "--record-all-calls",
        action="store_true",
        help="Record every call site, not only unsafe or foreign ones.",
    )
    p.add_argument(
        "--derive",
        action="append",
        default=[],
        metavar="NAME",
        help="Additional derivable trait name (repeatable).",
    )
    p.set_defaults(func=cmd_analyze)

    p = subparsers.add_parser("decode", help="Summarise emitted records.")
    p.add_argument("records", metavar="RECORDS", help="File of emitted records.")
    p.add_argument("--indent", type=int, default=None, help="JSON indent.")
    p.set_defaults(func=cmd_decode)

    return parser


# ===========================================================================
# Entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the unsafe-AST CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
