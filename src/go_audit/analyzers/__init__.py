"""Analyzers produce structured findings from Go source trees.

Every analyzer is a plain function with the same calling convention::

    analyze(root, <params>, *, session=None) -> result

``root`` is a directory (or a single ``.go`` file); ``session`` is an
optional :class:`~go_audit.core.walker.WalkSession` whose ``skipped``
list records files that could not be read or parsed.  Collection
analyzers return possibly-empty lists; lookup analyzers raise
:class:`~go_audit.errors.NotFoundError`.

Modules:
    - symbols: symbols, type info, references
    - packages: packages, imports, dependencies, coupling, architecture
    - calls: call sites and struct usage
    - interfaces: interfaces, embedding, generics
    - error_handling, dead_code, duplication, inefficiencies
    - api_surface: exported API and generated docs
    - comments: TODOs, undocumented symbols, deprecations
    - test_quality: test inventory, quality, missing tests
    - concurrency: goroutines, defer, channels
    - panics, empty_blocks
    - dynamic: type assertions, reflection
    - declarations: method receivers, init functions
    - idioms: idioms, context usage, patterns, naming

The analyzer functions are also reachable as attributes of this package
(``go_audit.analyzers.find_symbols``), imported on first access.
"""

from __future__ import annotations

from importlib import import_module
from pathlib import Path
from typing import Any, Protocol

from go_audit.core.walker import WalkSession

_MODULES = {
    "find_symbols": "symbols",
    "get_type_info": "symbols",
    "find_references": "symbols",
    "list_packages": "packages",
    "find_imports": "packages",
    "analyze_dependencies": "packages",
    "analyze_coupling": "packages",
    "analyze_architecture": "packages",
    "find_function_calls": "calls",
    "find_struct_usage": "calls",
    "extract_interfaces": "interfaces",
    "analyze_embedding": "interfaces",
    "find_generics": "interfaces",
    "find_errors": "error_handling",
    "find_dead_code": "dead_code",
    "find_duplicates": "duplication",
    "find_inefficiencies": "inefficiencies",
    "analyze_memory_allocations": "inefficiencies",
    "extract_api": "api_surface",
    "generate_docs": "api_surface",
    "find_comments": "comments",
    "find_deprecated": "comments",
    "analyze_tests": "test_quality",
    "analyze_test_quality": "test_quality",
    "find_missing_tests": "test_quality",
    "analyze_goroutines": "concurrency",
    "analyze_defer_patterns": "concurrency",
    "analyze_channels": "concurrency",
    "find_panic_recover": "panics",
    "find_empty_blocks": "empty_blocks",
    "find_type_assertions": "dynamic",
    "find_reflection_usage": "dynamic",
    "find_method_receivers": "declarations",
    "find_init_functions": "declarations",
    "analyze_go_idioms": "idioms",
    "find_context_usage": "idioms",
    "find_patterns": "idioms",
    "analyze_naming_conventions": "idioms",
}


class Analyzer(Protocol):
    """Shape shared by every analyzer function."""

    def __call__(self, root: Path | str, *args: Any, session: WalkSession | None = None, **kwargs: Any) -> Any:
        ...


def __getattr__(name: str):
    module = _MODULES.get(name)
    if module is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(f"{__name__}.{module}"), name)
