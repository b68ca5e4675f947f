"""
go_audit.api
============

Programmatic entrypoint: run any registered analyzer by name and get back
a JSON-friendly, schema-validated result envelope.

Goals:
  - No argparse / CLI dependencies
  - One envelope shape for every analyzer
  - Skipped files reported alongside the result, never raised

Usage::

    from go_audit.api import list_analyzers, run_analyzer

    envelope = run_analyzer("find_symbols", "path/to/module", pattern="Handler")
    for symbol in envelope["result"]:
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from go_audit.analyzers.api_surface import extract_api, generate_docs
from go_audit.analyzers.calls import find_function_calls, find_struct_usage
from go_audit.analyzers.comments import find_comments, find_deprecated
from go_audit.analyzers.concurrency import analyze_channels, analyze_defer_patterns, analyze_goroutines
from go_audit.analyzers.dead_code import find_dead_code
from go_audit.analyzers.declarations import find_init_functions, find_method_receivers
from go_audit.analyzers.duplication import find_duplicates
from go_audit.analyzers.dynamic import find_reflection_usage, find_type_assertions
from go_audit.analyzers.empty_blocks import find_empty_blocks
from go_audit.analyzers.error_handling import find_errors
from go_audit.analyzers.idioms import (
    analyze_go_idioms,
    analyze_naming_conventions,
    find_context_usage,
    find_patterns,
)
from go_audit.analyzers.inefficiencies import analyze_memory_allocations, find_inefficiencies
from go_audit.analyzers.interfaces import analyze_embedding, extract_interfaces, find_generics
from go_audit.analyzers.packages import (
    analyze_architecture,
    analyze_coupling,
    analyze_dependencies,
    find_imports,
    list_packages,
)
from go_audit.analyzers.panics import find_panic_recover
from go_audit.analyzers.symbols import find_references, find_symbols, get_type_info
from go_audit.analyzers.test_quality import analyze_test_quality, analyze_tests, find_missing_tests
from go_audit.contracts.load import validate_instance
from go_audit.core.config import AuditConfig
from go_audit.core.walker import WalkSession
from go_audit.errors import UnknownAnalyzerError
from go_audit.utils.json_norm import to_builtin

_logger = logging.getLogger(__name__)

SCHEMA_VERSION = "analysis_result_v1"
RESULT_SCHEMA = "analysis_result.schema.json"


@dataclass(frozen=True)
class AnalyzerSpec:
    """A registered analyzer and the keyword parameters it accepts."""

    name: str
    func: Callable[..., Any]
    summary: str
    params: tuple[str, ...] = ()
    required: tuple[str, ...] = ()
    name_param: str = ""    # parameter the CLI's --name maps to


_SPECS = (
    AnalyzerSpec("find_symbols", find_symbols, "Functions, types, constants and variables", ("pattern",)),
    AnalyzerSpec(
        "get_type_info", get_type_info, "Fields, methods and embedding of one type",
        ("type_name",), ("type_name",), "type_name",
    ),
    AnalyzerSpec(
        "find_references", find_references, "Every reference to an identifier",
        ("symbol",), ("symbol",), "symbol",
    ),
    AnalyzerSpec("list_packages", list_packages, "Packages with their files and imports", ("include_tests",)),
    AnalyzerSpec("find_imports", find_imports, "Imports per file with used symbols and unused imports"),
    AnalyzerSpec("analyze_dependencies", analyze_dependencies, "Internal package graph and import cycles"),
    AnalyzerSpec("analyze_coupling", analyze_coupling, "Afferent/efferent coupling and instability"),
    AnalyzerSpec("analyze_architecture", analyze_architecture, "Layer assignment and layering violations"),
    AnalyzerSpec(
        "find_function_calls", find_function_calls, "Call sites of a function",
        ("function_name",), ("function_name",), "function_name",
    ),
    AnalyzerSpec(
        "find_struct_usage", find_struct_usage, "Literals, field accesses and type uses of a struct",
        ("struct_name",), ("struct_name",), "struct_name",
    ),
    AnalyzerSpec(
        "extract_interfaces", extract_interfaces, "Interfaces and (for one name) their implementations",
        ("interface_name",), (), "interface_name",
    ),
    AnalyzerSpec("analyze_embedding", analyze_embedding, "Struct and interface embedding"),
    AnalyzerSpec("find_generics", find_generics, "Generic types and functions with instantiations"),
    AnalyzerSpec("find_errors", find_errors, "Unchecked errors, error checks and error returns"),
    AnalyzerSpec("find_dead_code", find_dead_code, "Unused variables, unreachable code, dead branches"),
    AnalyzerSpec("find_duplicates", find_duplicates, "Structurally duplicated function bodies", ("threshold",)),
    AnalyzerSpec("find_inefficiencies", find_inefficiencies, "String building, conversions and allocations in loops"),
    AnalyzerSpec("analyze_memory_allocations", analyze_memory_allocations, "Heap allocations, flagged inside loops"),
    AnalyzerSpec("extract_api", extract_api, "Exported API surface per file"),
    AnalyzerSpec("generate_docs", generate_docs, "Package documentation (json or markdown)", ("format",)),
    AnalyzerSpec(
        "find_comments", find_comments, "TODO-style comments and undocumented exported symbols",
        ("comment_type", "filter", "include_context"),
    ),
    AnalyzerSpec("find_deprecated", find_deprecated, "Deprecated declarations and their uses"),
    AnalyzerSpec("analyze_tests", analyze_tests, "Test inventory and exported-function coverage"),
    AnalyzerSpec("analyze_test_quality", analyze_test_quality, "Per-file test metrics and weak tests"),
    AnalyzerSpec("find_missing_tests", find_missing_tests, "Exported functions without tests"),
    AnalyzerSpec("analyze_goroutines", analyze_goroutines, "Goroutine launches and synchronization"),
    AnalyzerSpec("analyze_defer_patterns", analyze_defer_patterns, "defer usage and misuse"),
    AnalyzerSpec("analyze_channels", analyze_channels, "Channel creation and operations"),
    AnalyzerSpec("find_panic_recover", find_panic_recover, "panic/recover usage"),
    AnalyzerSpec("find_empty_blocks", find_empty_blocks, "Empty blocks and bodies"),
    AnalyzerSpec("find_type_assertions", find_type_assertions, "Type assertions and type switches"),
    AnalyzerSpec("find_reflection_usage", find_reflection_usage, "reflect package usage and its cost"),
    AnalyzerSpec("find_method_receivers", find_method_receivers, "Method receivers and receiver consistency"),
    AnalyzerSpec("find_init_functions", find_init_functions, "init functions, startup hazards and init order"),
    AnalyzerSpec("analyze_go_idioms", analyze_go_idioms, "Non-idiomatic Go constructs"),
    AnalyzerSpec("find_context_usage", find_context_usage, "context.Context parameters and propagation"),
    AnalyzerSpec("find_patterns", find_patterns, "Factory, singleton, builder and option patterns"),
    AnalyzerSpec("analyze_naming_conventions", analyze_naming_conventions, "Naming-convention violations"),
)

REGISTRY: dict[str, AnalyzerSpec] = {spec.name: spec for spec in _SPECS}


def list_analyzers() -> list[str]:
    """Registered analyzer names, sorted."""
    return sorted(REGISTRY)


def get_analyzer(name: str) -> AnalyzerSpec:
    """Look up *name*; raises :class:`UnknownAnalyzerError` if unregistered."""
    try:
        return REGISTRY[name]
    except KeyError:
        raise UnknownAnalyzerError(name) from None


def _check_params(spec: AnalyzerSpec, params: dict[str, Any]) -> None:
    unexpected = sorted(set(params) - set(spec.params))
    if unexpected:
        raise ValueError(f"{spec.name} does not accept parameter(s): {', '.join(unexpected)}")
    missing = [p for p in spec.required if not params.get(p)]
    if missing:
        raise ValueError(f"{spec.name} requires parameter(s): {', '.join(missing)}")


def run_analyzer(
    name: str,
    root: str | Path,
    *,
    config: AuditConfig | None = None,
    **params: Any,
) -> dict[str, Any]:
    """Run one analyzer and wrap its result in the versioned envelope.

    Parameters
    ----------
    name:
        Registered analyzer name (see :func:`list_analyzers`).
    root:
        Directory (or single ``.go`` file) to analyze.
    config:
        Discovery / context configuration.  Default: :class:`AuditConfig`.
    params:
        Analyzer-specific keyword parameters.

    Returns
    -------
    ``{"schema_version", "analyzer", "root", "result", "skipped_files"}``,
    validated against ``analysis_result.schema.json``.

    Raises
    ------
    UnknownAnalyzerError
        *name* is not registered.
    ValueError
        A parameter is unknown, missing or invalid.
    NotFoundError
        A lookup analyzer found no match.
    TraversalError
        *root* could not be enumerated.
    """
    spec = get_analyzer(name)
    _check_params(spec, params)

    session = WalkSession(config=config or AuditConfig())
    _logger.info("running %s on %s", name, root)
    result = spec.func(root, session=session, **params)
    _logger.info(
        "%s finished: %d files visited, %d skipped",
        name,
        session.files_visited,
        len(session.skipped),
    )

    envelope = {
        "schema_version": SCHEMA_VERSION,
        "analyzer": name,
        "root": Path(root).as_posix(),
        "result": to_builtin(result),
        "skipped_files": [{"path": s.path, "reason": s.reason} for s in session.skipped],
    }
    validate_instance(envelope, RESULT_SCHEMA)
    return envelope
