"""CLI entry-point for go_audit.

Usage:
    python -m go_audit <analyzer> <root> [--pattern P] [--name N] [--include-tests]
                       [--threshold F] [--format json|markdown]
                       [--comment-type todo|undocumented|all] [--filter REGEX]
                       [--include-context] [--config FILE] [--verbose]
    python -m go_audit list
    python -m go_audit --version
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from go_audit import __version__
from go_audit.analyzers.comments import COMMENT_TYPES
from go_audit.api import get_analyzer, list_analyzers, run_analyzer
from go_audit.core.config import AuditConfig, load_config
from go_audit.errors import NotFoundError, TraversalError, UnknownAnalyzerError
from go_audit.utils.exit_codes import ExitCode
from go_audit.utils.json_norm import stable_json_dumps


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="go-audit",
        description="Structural analyzers for Go source trees.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    p.add_argument(
        "analyzer",
        help="Analyzer to run, or 'list' to print the registered analyzers.",
    )
    p.add_argument(
        "root",
        nargs="?",
        default=None,
        help="Go module directory or single .go file to analyze.",
    )

    # ── analyzer parameters ─────────────────────────────────────────
    params = p.add_argument_group("analyzer parameters")
    params.add_argument("--pattern", default=None, help="Symbol name pattern (find_symbols).")
    params.add_argument(
        "--name",
        default=None,
        help="Type, symbol, function, struct or interface name for lookup analyzers.",
    )
    params.add_argument(
        "--include-tests",
        action="store_true",
        default=None,
        help="Include _test packages (list_packages).",
    )
    params.add_argument("--threshold", type=float, default=None, help="Similarity threshold (find_duplicates).")
    params.add_argument(
        "--format",
        choices=["json", "markdown"],
        default=None,
        help="Documentation format (generate_docs).",
    )
    params.add_argument(
        "--comment-type",
        choices=list(COMMENT_TYPES),
        default=None,
        help="Comment category (find_comments).",
    )
    params.add_argument("--filter", default=None, help="Comment text regex (find_comments).")
    params.add_argument(
        "--include-context",
        action="store_true",
        default=None,
        help="Attach surrounding lines to comments (find_comments).",
    )

    # ── runtime ─────────────────────────────────────────────────────
    p.add_argument(
        "--config",
        default=None,
        help="YAML config file (default: .go-audit.yaml when present).",
    )
    p.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging on stderr.",
    )
    return p


def _analyzer_params(args: argparse.Namespace) -> dict[str, Any]:
    """Collect the parameters given on the command line for *args.analyzer*."""
    params: dict[str, Any] = {}
    for flag in ("pattern", "include_tests", "threshold", "format", "comment_type", "filter", "include_context"):
        value = getattr(args, flag)
        if value is not None:
            params[flag] = value

    if args.name is not None:
        name_param = get_analyzer(args.analyzer).name_param
        if not name_param:
            raise ValueError(f"{args.analyzer} does not accept --name")
        params[name_param] = args.name
    return params


def _configure_logging(verbose: bool, config: AuditConfig) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    """Entry-point; returns an exit code (0 = ok, 1 = not found, 2 = error)."""
    args = _build_parser().parse_args(argv)

    # ── list ────────────────────────────────────────────────────────
    if args.analyzer == "list":
        for name in list_analyzers():
            print(f"{name:<28} {get_analyzer(name).summary}")
        return ExitCode.SUCCESS

    if args.root is None:
        print(f"error: {args.analyzer} needs a root directory", file=sys.stderr)
        return ExitCode.ERROR

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.ERROR
    _configure_logging(args.verbose, config)

    # ── run ─────────────────────────────────────────────────────────
    try:
        params = _analyzer_params(args)
        envelope = run_analyzer(args.analyzer, args.root, config=config, **params)
    except NotFoundError as e:
        print(f"not found: {e}", file=sys.stderr)
        return ExitCode.NOT_FOUND
    except (UnknownAnalyzerError, TraversalError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.ERROR

    if isinstance(envelope["result"], str):
        sys.stdout.write(envelope["result"])
    else:
        sys.stdout.write(stable_json_dumps(envelope))
    return ExitCode.SUCCESS


if __name__ == "__main__":
    raise SystemExit(main())
