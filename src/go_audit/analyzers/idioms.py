"""Go idiom checks — idiomatic-style violations, context.Context use, common
design patterns and naming conventions.

Every check here is a small name- or shape-based heuristic; none of them
resolve types.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.discover import is_test_file
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import stringify
from go_audit.core.query import call_arguments, is_exported, selector_parts
from go_audit.core.syntax import (
    FUNCTION_DECLS,
    INTERFACE_METHODS,
    STRING_LITERALS,
    block_statements,
    child,
    children,
    children_of_type,
    decl_specs,
    function_name,
    iter_descendants,
    package_name,
    receiver_field,
    receiver_type_name,
    string_value,
    text,
    type_specs,
)
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

CONTEXT_TYPE = "context.Context"
_CONTEXT_HINTS = ("get", "fetch", "load", "save")
_FRESH_CONTEXTS = frozenset({"Background", "TODO"})
_ERROR_CONSTRUCTORS = {("errors", "New"), ("fmt", "Errorf")}

_SPECIAL_FUNCTIONS = frozenset({"init", "main", "String", "Error", "MarshalJSON", "UnmarshalJSON"})
_WELL_KNOWN_INTERFACES = frozenset({"Interface", "Handler", "ResponseWriter", "Context", "Value"})
_COMMON_SINGLE_LETTERS = frozenset("ijknmxyzsbrwt")
_WORD_SPLIT = re.compile(r"[_\-]+")


# ── analyze_go_idioms ────────────────────────────────────────────────


@dataclass
class IdiomsInfo:
    file: str
    violations: list[Finding] = field(default_factory=list)
    suggestions: list[Finding] = field(default_factory=list)


def is_short_receiver(name: str) -> bool:
    return len(name) <= 2 and name.lower() == name


def _ends_with_return(block: Node | None) -> bool:
    stmts = block_statements(block)
    return bool(stmts) and stmts[-1].type == "return_statement"


def _is_bool_literal(node: Node | None) -> bool:
    return node is not None and node.type in ("true", "false")


def _is_err_nil_test(cond: Node | None) -> bool:
    """``err == nil``."""
    if cond is None or cond.type != "binary_expression":
        return False
    op, left, right = child(cond, "operator"), child(cond, "left"), child(cond, "right")
    return (
        op is not None and op.type == "=="
        and text(left) == "err"
        and right is not None and right.type == "nil"
    )


def error_string_problem(message: str) -> str:
    """Why an error string breaks Go conventions, or ``""``."""
    words = message.split()
    if not words:
        return ""
    # acronyms such as "HTTP" may lead
    if message[0].isupper() and not words[0].isupper():
        return "Error strings should not be capitalized"
    if message.endswith("\\n") or message[-1] in ".!:":
        return "Error strings should not end with punctuation or newlines"
    return ""


def param_types(params: Node | None) -> list[str]:
    """One type per declared parameter (``a, b int`` gives two)."""
    types: list[str] = []
    for decl in children_of_type(params, "parameter_declaration", "variadic_parameter_declaration"):
        type_str = stringify(child(decl, "type"))
        if decl.type == "variadic_parameter_declaration":
            type_str = "..." + type_str
        types.extend([type_str] * max(len(children(decl, "name")), 1))
    return types


def _result_types(fn: Node) -> list[str]:
    result = child(fn, "result")
    if result is None:
        return []
    if result.type == "parameter_list":
        return param_types(result)
    return [stringify(result)]


def analyze_go_idioms(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[IdiomsInfo]:
    """Per-file idiom violations (must fix) and suggestions (style)."""
    result: list[IdiomsInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        info = IdiomsInfo(file=path)

        def add(
            bucket: list[Finding],
            kind: str,
            node: Node,
            description: str,
            suggestion: str,
            severity: Severity = Severity.LOW,
        ) -> None:
            bucket.append(
                Finding(
                    kind=kind,
                    description=description,
                    position=resolver.position_of(node),
                    severity=severity,
                    metadata={"suggestion": suggestion},
                )
            )

        for node in iter_descendants(tree.root_node):
            if node.type == "method_declaration":
                recv = receiver_field(node)
                names = children(recv, "name")
                if names and not is_short_receiver(text(names[0])):
                    add(
                        info.violations,
                        "receiver_naming",
                        recv,
                        "Receiver name should be short abbreviation",
                        "Use 1-2 character receiver names",
                    )
            if node.type in FUNCTION_DECLS:
                results = _result_types(node)
                if "error" in results and results[-1] != "error":
                    add(
                        info.violations,
                        "error_not_last",
                        node,
                        "error should be the last return value",
                        "Move error to the last result position",
                        Severity.MEDIUM,
                    )

            elif node.type == "if_statement":
                consequence, alternative = child(node, "consequence"), child(node, "alternative")
                if _is_err_nil_test(child(node, "condition")) and alternative is not None:
                    add(
                        info.suggestions,
                        "error_handling",
                        node,
                        "Happy path nested under 'if err == nil'",
                        "Use 'if err != nil' and return early",
                    )
                elif alternative is not None and alternative.type == "block" and _ends_with_return(consequence):
                    add(
                        info.suggestions,
                        "else_after_return",
                        alternative,
                        "else block after a return is redundant",
                        "Drop the else and outdent its block",
                    )

            elif node.type == "binary_expression":
                op = child(node, "operator")
                if op is not None and op.type in ("==", "!=") and (
                    _is_bool_literal(child(node, "left")) or _is_bool_literal(child(node, "right"))
                ):
                    add(
                        info.suggestions,
                        "bool_comparison",
                        node,
                        "Comparison with a boolean literal",
                        "Use the boolean expression directly",
                    )

            elif node.type == "call_expression":
                if selector_parts(child(node, "function")) not in _ERROR_CONSTRUCTORS:
                    continue
                args = call_arguments(node)
                if not args or args[0].type not in STRING_LITERALS:
                    continue
                problem = error_string_problem(string_value(args[0]))
                if problem:
                    add(
                        info.violations,
                        "error_string_format",
                        node,
                        problem,
                        "Start error strings lowercase and omit trailing punctuation",
                    )

        if info.violations or info.suggestions:
            result.append(info)

    session_or_default(session).walk(root, visit)
    return result


# ── find_context_usage ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ContextUsage:
    function: str
    type: str
    description: str
    position: SourcePosition


@dataclass
class ContextInfo:
    file: str
    missing_context: list[ContextUsage] = field(default_factory=list)
    proper_usage: list[ContextUsage] = field(default_factory=list)
    improper_usage: list[ContextUsage] = field(default_factory=list)


def should_have_context(name: str) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in _CONTEXT_HINTS)


def find_context_usage(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[ContextInfo]:
    """How functions take and pass ``context.Context``.

    * proper — context is the first parameter
    * improper — context later in the parameter list, a fresh
      ``context.Background()``/``TODO()`` where one was passed in, or a
      context stored in a struct field
    * missing — I/O-sounding functions (get/fetch/load/save) without one
    """
    result: list[ContextInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        info = ContextInfo(file=path)

        def add(bucket: list[ContextUsage], function: str, kind: str, description: str, node: Node) -> None:
            bucket.append(
                ContextUsage(function=function, type=kind, description=description, position=resolver.position_of(node))
            )

        for node in iter_descendants(tree.root_node):
            if node.type in FUNCTION_DECLS:
                name = function_name(node)
                types = param_types(child(node, "parameters"))
                if CONTEXT_TYPE not in types:
                    if should_have_context(name):
                        add(info.missing_context, name, "missing", "Function should accept context.Context", node)
                    continue
                if types[0] == CONTEXT_TYPE:
                    add(info.proper_usage, name, "first_param", "Accepts context.Context as first parameter", node)
                else:
                    add(
                        info.improper_usage,
                        name,
                        "not_first_param",
                        "context.Context should be the first parameter",
                        node,
                    )
                for call in iter_descendants(child(node, "body")):
                    if call.type != "call_expression":
                        continue
                    operand, method = selector_parts(child(call, "function"))
                    if operand == "context" and method in _FRESH_CONTEXTS:
                        add(
                            info.improper_usage,
                            name,
                            "context_not_propagated",
                            f"context.{method}() used although a context was passed in",
                            call,
                        )

            elif node.type == "field_declaration" and stringify(child(node, "type")) == CONTEXT_TYPE:
                spec = node.parent
                while spec is not None and spec.type != "type_spec":
                    spec = spec.parent
                add(
                    info.improper_usage,
                    text(child(spec, "name")),
                    "stored_in_struct",
                    "context.Context should be passed explicitly, not stored in a struct",
                    node,
                )

        if info.missing_context or info.proper_usage or info.improper_usage:
            result.append(info)

    session_or_default(session).walk(root, visit)
    return result


# ── find_patterns ────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PatternOccurrence:
    file: str
    description: str
    quality: str       # good | review
    position: SourcePosition


@dataclass
class PatternInfo:
    pattern: str
    occurrences: list[PatternOccurrence] = field(default_factory=list)


PATTERNS = ("singleton", "factory", "builder", "functional_options")


def _is_once_do(call: Node) -> bool:
    """``once.Do(...)`` / ``s.initOnce.Do(...)``."""
    fn = child(call, "function")
    if fn is None or fn.type != "selector_expression" or text(child(fn, "field")) != "Do":
        return False
    return "once" in text(child(fn, "operand")).lower()


def _returns_own_receiver(method: Node) -> bool:
    base = receiver_type_name(method)
    results = _result_types(method)
    return bool(base) and len(results) == 1 and results[0].lstrip("*") == base


def _is_option_func(spec: Node) -> bool:
    """``type Option func(*T)``."""
    fn_type = child(spec, "type")
    if fn_type is None or fn_type.type != "function_type" or child(fn_type, "result") is not None:
        return False
    params = param_types(child(fn_type, "parameters"))
    return len(params) == 1 and params[0].startswith("*")


def find_patterns(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[PatternInfo]:
    """Occurrences of common construction patterns, one entry per pattern found."""
    found: dict[str, PatternInfo] = {name: PatternInfo(pattern=name) for name in PATTERNS}

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        def add(pattern: str, description: str, quality: str, node: Node) -> None:
            found[pattern].occurrences.append(
                PatternOccurrence(file=path, description=description, quality=quality, position=resolver.position_of(node))
            )

        for node in iter_descendants(tree.root_node):
            if node.type in FUNCTION_DECLS:
                name = function_name(node)
                lowered = name.lower()
                if node.type == "function_declaration" and lowered.startswith(("new", "create")):
                    add("factory", f"Factory function: {name}", "good", node)
                if "instance" in lowered and child(node, "result") is not None:
                    add("singleton", f"Potential singleton: {name}", "review", node)
                if node.type == "method_declaration" and name.startswith(("With", "Set")) and _returns_own_receiver(node):
                    add("builder", f"Builder method: {receiver_type_name(node)}.{name}", "good", node)
            elif node.type == "call_expression" and _is_once_do(node):
                add("singleton", f"sync.Once initialization: {text(child(node, 'function'))}", "good", node)
            elif node.type == "type_spec" and _is_option_func(node):
                add("functional_options", f"Option type: {text(child(node, 'name'))}", "good", node)

    session_or_default(session).walk(root, visit)
    return [info for info in found.values() if info.occurrences]


# ── analyze_naming_conventions ───────────────────────────────────────


@dataclass(frozen=True, slots=True)
class NamingViolation:
    name: str
    type: str      # package | function | receiver | type | constant | variable
    issue: str
    position: SourcePosition
    suggestion: str = ""


@dataclass
class NamingStats:
    total_symbols: int = 0
    exported_symbols: int = 0
    unexported_symbols: int = 0
    violation_count: int = 0


@dataclass
class NamingAnalysis:
    violations: list[NamingViolation] = field(default_factory=list)
    statistics: NamingStats = field(default_factory=NamingStats)


def to_mixed_caps(name: str, exported: bool | None = None) -> str:
    """``MAX_SIZE`` -> ``MaxSize``, ``max_size`` -> ``maxSize``."""
    if exported is None:
        exported = is_exported(name)
    words = [w for w in _WORD_SPLIT.split(name) if w]
    if not words:
        return name
    parts = [w[:1].upper() + w[1:].lower() for w in words]
    if not exported:
        parts[0] = parts[0].lower()
    return "".join(parts)


def stutters(package: str, name: str) -> bool:
    """``http.HTTPServer``-style repetition of the package name."""
    if not package or package == "main" or len(name) <= len(package):
        return False
    return name.lower().startswith(package.lower()) and name[len(package)].isupper()


def _single_method(iface: Node | None) -> Node | None:
    """The only member of an interface made of exactly one method."""
    if iface is None or iface.type != "interface_type":
        return None
    members = [c for c in iface.named_children if c.type != "comment"]
    if len(members) == 1 and members[0].type in INTERFACE_METHODS:
        return members[0]
    return None


def _is_lowercase(name: str) -> bool:
    return all(not c.isalpha() or c.islower() for c in name)


def analyze_naming_conventions(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> NamingAnalysis:
    """Naming-convention violations and symbol counts across the tree."""
    analysis = NamingAnalysis()
    stats = analysis.statistics

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        pkg = package_name(tree)
        test_file = is_test_file(path)

        def violation(name: str, kind: str, issue: str, node: Node, suggestion: str = "") -> None:
            analysis.violations.append(
                NamingViolation(
                    name=name,
                    type=kind,
                    issue=issue,
                    position=resolver.position_of(node),
                    suggestion=suggestion,
                )
            )

        def count(name: str) -> None:
            stats.total_symbols += 1
            if is_exported(name):
                stats.exported_symbols += 1
            else:
                stats.unexported_symbols += 1

        def check_stutter(name: str, kind: str, node: Node) -> None:
            if is_exported(name) and stutters(pkg, name):
                violation(name, kind, f"Name stutters with package name: {pkg}.{name}", node, name[len(pkg):])

        clause = [c for c in tree.root_node.named_children if c.type == "package_clause"]
        if clause:
            pkg_node = clause[0]
            if not _is_lowercase(pkg):
                violation(pkg, "package", "Package name should be lowercase", pkg_node, pkg.lower())
            if "_" in pkg.removesuffix("_test"):
                violation(pkg, "package", "Package name should not contain underscores", pkg_node, pkg.replace("_", ""))

        for node in iter_descendants(tree.root_node):
            if node.type in FUNCTION_DECLS:
                name = function_name(node)
                name_node = child(node, "name")
                count(name)
                if "_" in name and name not in _SPECIAL_FUNCTIONS and not (
                    test_file and name.startswith(("Test", "Benchmark", "Example", "Fuzz"))
                ):
                    violation(name, "function", "Function name should be in MixedCaps", name_node, to_mixed_caps(name))
                if node.type == "method_declaration":
                    recv = receiver_field(node)
                    for recv_name in children(recv, "name"):
                        rname = text(recv_name)
                        hint = receiver_type_name(node)[:1].lower()
                        if rname in ("self", "this"):
                            violation(rname, "receiver", "Avoid 'self' or 'this' for receiver names", recv_name, hint)
                        elif len(rname) > 3:
                            violation(
                                rname,
                                "receiver",
                                "Receiver name should be a short, typically one-letter abbreviation",
                                recv_name,
                                hint,
                            )
                    if name.startswith("Get") and len(name) > 3 and "error" not in _result_types(node):
                        violation(name, "function", "Getter methods should not use Get prefix", name_node, name[3:])
                else:
                    check_stutter(name, "function", name_node)

            elif node.type == "type_declaration":
                for spec in type_specs(node):
                    name_node = child(spec, "name")
                    name = text(name_node)
                    count(name)
                    if "_" in name:
                        violation(name, "type", "Type name should be in MixedCaps", name_node, to_mixed_caps(name))
                    check_stutter(name, "type", name_node)
                    method = _single_method(child(spec, "type"))
                    if method is None or not is_exported(name):
                        continue
                    if not name.endswith("er") and name not in _WELL_KNOWN_INTERFACES:
                        violation(
                            name,
                            "type",
                            "Single-method interface should end with 'er'",
                            name_node,
                            text(child(method, "name")) + "er",
                        )

            elif node.type in ("const_declaration", "var_declaration"):
                is_const = node.type == "const_declaration"
                for spec in decl_specs(node, "const_spec" if is_const else "var_spec"):
                    for name_node in children(spec, "name"):
                        name = text(name_node)
                        if name == "_":
                            continue
                        count(name)
                        kind = "constant" if is_const else "variable"
                        if "_" in name:
                            issue = (
                                "Constant should use MixedCaps, not ALL_CAPS or underscores"
                                if is_const else "Variable name should be in camelCase"
                            )
                            violation(name, kind, issue, name_node, to_mixed_caps(name))
                        elif not is_const and len(name) == 1 and name not in _COMMON_SINGLE_LETTERS:
                            violation(
                                name,
                                kind,
                                "Single letter variable names should be avoided except for common cases",
                                name_node,
                            )
                        if node.parent is not None and node.parent.type == "source_file":
                            check_stutter(name, kind, name_node)

    session_or_default(session).walk(root, visit)
    stats.violation_count = len(analysis.violations)
    return analysis
