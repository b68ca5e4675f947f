"""Package-level analyzers — package listing, imports, dependency graph,
coupling metrics and layering.

All of them key packages by their directory relative to the analyzed
root (``"."`` for the root itself), which doubles as the internal import
path suffix used to resolve imports between packages.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Tree

from go_audit.core.discover import is_test_file
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.syntax import (
    child,
    imports,
    iter_descendants,
    package_name,
    text,
    top_level,
)
from go_audit.core.walker import WalkSession, session_or_default


@dataclass
class PackageInfo:
    import_path: str
    name: str
    dir: str
    position: SourcePosition
    go_files: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    # first import spec per path, for reporting
    import_positions: dict[str, SourcePosition] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict:
        return {
            "import_path": self.import_path,
            "name": self.name,
            "dir": self.dir,
            "position": self.position.to_dict(),
            "go_files": list(self.go_files),
            "imports": list(self.imports),
        }


@dataclass
class ImportDetail:
    path: str
    position: SourcePosition
    alias: str = ""
    used_symbols: list[str] = field(default_factory=list)


@dataclass
class ImportInfo:
    package: str
    file: str
    position: SourcePosition
    imports: list[ImportDetail] = field(default_factory=list)
    unused_imports: list[str] = field(default_factory=list)


@dataclass
class DependencyInfo:
    package: str
    import_path: str
    dir: str
    position: SourcePosition
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)


@dataclass
class CouplingInfo:
    package: str
    import_path: str
    position: SourcePosition
    afferent: int
    efferent: int
    instability: float
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class LayerInfo:
    name: str
    packages: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LayerViolation:
    from_package: str
    to_package: str
    violation: str
    position: SourcePosition


@dataclass
class ArchitectureInfo:
    layers: list[LayerInfo] = field(default_factory=list)
    violations: list[LayerViolation] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


# ── package collection ───────────────────────────────────────────────


def _relative_dir(root: Path | str, pkg_dir: str) -> str:
    root_path = Path(root)
    if root_path.is_file():
        root_path = root_path.parent
    rel = os.path.relpath(pkg_dir, root_path)
    return "." if rel in (".", "") else Path(rel).as_posix()


def collect_packages(
    root: Path | str,
    include_tests: bool,
    session: WalkSession,
) -> list[PackageInfo]:
    """One :class:`PackageInfo` per directory holding Go files, in walk order."""
    packages: dict[str, PackageInfo] = {}

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        if not include_tests and is_test_file(path):
            return
        pkg_dir = os.path.dirname(path)
        pkg = packages.get(pkg_dir)
        if pkg is None:
            clause = top_level(tree, "package_clause")
            pkg = PackageInfo(
                import_path=_relative_dir(root, pkg_dir),
                name=package_name(tree),
                dir=pkg_dir,
                position=resolver.position_of(clause[0] if clause else tree.root_node),
            )
            packages[pkg_dir] = pkg
        pkg.go_files.append(os.path.basename(path))
        for spec, import_path, _alias in imports(tree):
            if import_path not in pkg.import_positions:
                pkg.imports.append(import_path)
                pkg.import_positions[import_path] = resolver.position_of(spec)

    session.walk(root, visit)
    return list(packages.values())


def resolves_to(import_path: str, pkg: PackageInfo) -> bool:
    """Does *import_path* name the internal package *pkg*?"""
    if pkg.import_path != "." and (
        import_path == pkg.import_path or import_path.endswith("/" + pkg.import_path)
    ):
        return True
    return bool(pkg.name) and import_path.rsplit("/", 1)[-1] == pkg.name


def internal_graph(packages: list[PackageInfo]) -> dict[str, list[str]]:
    """import_path → internal import_paths it depends on (self-edges dropped)."""
    graph: dict[str, list[str]] = {}
    for pkg in packages:
        targets: list[str] = []
        for imp in pkg.imports:
            for other in packages:
                if other is pkg or other.import_path in targets:
                    continue
                if resolves_to(imp, other):
                    targets.append(other.import_path)
        graph[pkg.import_path] = targets
    return graph


def find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """Elementary cycles, each once, starting at its smallest member."""
    cycles: list[list[str]] = []
    for start in sorted(graph):
        stack: list[tuple[str, list[str]]] = [(start, [start])]
        while stack:
            node, path = stack.pop()
            for nxt in sorted(graph.get(node, []), reverse=True):
                if nxt == start:
                    cycles.append(list(path))
                elif nxt > start and nxt not in path:
                    stack.append((nxt, path + [nxt]))
    cycles.sort()
    return cycles


# ── list_packages ────────────────────────────────────────────────────


def list_packages(
    root: Path | str,
    include_tests: bool = False,
    *,
    session: WalkSession | None = None,
) -> list[PackageInfo]:
    """Every package directory under *root* with its files and imports."""
    return collect_packages(root, include_tests, session_or_default(session))


# ── find_imports ─────────────────────────────────────────────────────

_VERSION_SUFFIX = re.compile(r"^v\d+$")


def import_name(import_path: str, alias: str = "") -> str:
    """Identifier a file uses to refer to an import."""
    if alias:
        return alias
    parts = import_path.split("/")
    name = parts[-1]
    if _VERSION_SUFFIX.match(name) and len(parts) > 1:
        name = parts[-2]
    if name.startswith("go-"):
        name = name[3:]
    return name.replace("-", "_").split(".")[0]


def _qualified_uses(tree: Tree) -> list[tuple[str, str]]:
    """``(qualifier, symbol)`` for every ``x.Sym`` expression or type."""
    uses: list[tuple[str, str]] = []
    for node in iter_descendants(tree.root_node, skip=("import_declaration",)):
        if node.type == "selector_expression":
            operand = child(node, "operand")
            if operand is not None and operand.type == "identifier":
                uses.append((text(operand), text(child(node, "field"))))
        elif node.type == "qualified_type":
            uses.append((text(child(node, "package")), text(child(node, "name"))))
    return uses


def find_imports(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[ImportInfo]:
    """Imports per file, the symbols used from each, and unused imports.

    Blank (``_``) and dot imports are never reported as unused.
    """
    result: list[ImportInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        specs = imports(tree)
        if not specs:
            return
        clause = top_level(tree, "package_clause")
        info = ImportInfo(
            package=package_name(tree),
            file=path,
            position=resolver.position_of(clause[0] if clause else tree.root_node),
        )
        uses = _qualified_uses(tree)
        for spec, import_path, alias in specs:
            detail = ImportDetail(path=import_path, alias=alias, position=resolver.position_of(spec))
            qualifier = import_name(import_path, alias)
            for q, symbol in uses:
                if q == qualifier and symbol not in detail.used_symbols:
                    detail.used_symbols.append(symbol)
            detail.used_symbols.sort()
            info.imports.append(detail)
            if not detail.used_symbols and alias not in ("_", "."):
                info.unused_imports.append(import_path)
        result.append(info)

    session_or_default(session).walk(root, visit)
    return result


# ── analyze_dependencies ─────────────────────────────────────────────


def analyze_dependencies(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[DependencyInfo]:
    """Per-package imports, internal dependents and import cycles.

    Each cycle is attached to the package it starts at (its smallest
    member), so it appears exactly once in the result.
    """
    packages = collect_packages(root, True, session_or_default(session))
    graph = internal_graph(packages)
    by_path = {p.import_path: p for p in packages}

    deps: dict[str, DependencyInfo] = {
        p.import_path: DependencyInfo(
            package=p.name,
            import_path=p.import_path,
            dir=p.dir,
            position=p.position,
            dependencies=list(p.imports),
        )
        for p in packages
    }
    for src_path, targets in graph.items():
        for target in targets:
            deps[target].dependents.append(by_path[src_path].import_path)
    for cycle in find_cycles(graph):
        deps[cycle[0]].cycles.append(cycle)
    return list(deps.values())


# ── analyze_coupling ─────────────────────────────────────────────────

HIGH_EFFERENT = 10
UNSTABLE = 0.8


def analyze_coupling(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[CouplingInfo]:
    """Afferent (Ca), efferent (Ce) coupling and instability Ce/(Ca+Ce)."""
    packages = list_packages(root, False, session=session)
    graph = internal_graph(packages)
    dependents: dict[str, list[str]] = {p.import_path: [] for p in packages}
    for src_path, targets in graph.items():
        for target in targets:
            dependents[target].append(src_path)

    result: list[CouplingInfo] = []
    for pkg in packages:
        ca = len(dependents[pkg.import_path])
        ce = len(pkg.imports)
        instability = ce / (ca + ce) if ca + ce else 0.0
        info = CouplingInfo(
            package=pkg.name,
            import_path=pkg.import_path,
            position=pkg.position,
            afferent=ca,
            efferent=ce,
            instability=round(instability, 3),
            dependencies=list(pkg.imports),
            dependents=dependents[pkg.import_path],
        )
        if ce > HIGH_EFFERENT:
            info.suggestions.append(
                f"Package imports {ce} packages; consider splitting responsibilities"
            )
        if ca > 0 and instability > UNSTABLE:
            info.suggestions.append(
                "Package is depended upon but highly unstable; depend on interfaces instead"
            )
        result.append(info)
    return result


# ── analyze_architecture ─────────────────────────────────────────────

# Layers from outermost to innermost; a package may only import layers
# further down this list.
LAYERS: tuple[tuple[str, frozenset[str]], ...] = (
    ("entrypoint", frozenset({"cmd", "main"})),
    ("transport", frozenset({"api", "handler", "handlers", "http", "server", "transport", "web", "grpc", "rest"})),
    ("service", frozenset({"service", "services", "usecase", "usecases", "app", "application"})),
    ("storage", frozenset({"repository", "repositories", "repo", "store", "storage", "db", "database", "persistence"})),
    ("domain", frozenset({"domain", "model", "models", "entity", "entities"})),
)
_LAYER_RANK = {name: rank for rank, (name, _) in enumerate(LAYERS)}
SHARED_LAYER = "shared"


def classify_layer(pkg: PackageInfo) -> str:
    """Layer of *pkg* from its name or any of its directory segments."""
    candidates = [pkg.name] + list(reversed(pkg.import_path.split("/")))
    for segment in candidates:
        for layer, words in LAYERS:
            if segment.lower() in words:
                return layer
    return SHARED_LAYER


def analyze_architecture(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> ArchitectureInfo:
    """Group packages into conventional layers and flag inward-pointing imports."""
    packages = list_packages(root, False, session=session)
    graph = internal_graph(packages)
    by_path = {p.import_path: p for p in packages}
    layer_of = {p.import_path: classify_layer(p) for p in packages}

    arch = ArchitectureInfo()
    layers: dict[str, LayerInfo] = {}
    for pkg in packages:
        layer = layers.setdefault(layer_of[pkg.import_path], LayerInfo(name=layer_of[pkg.import_path]))
        layer.packages.append(pkg.import_path)

    for src_path, targets in graph.items():
        src_layer = layer_of[src_path]
        for target in targets:
            dst_layer = layer_of[target]
            if dst_layer != src_layer and dst_layer not in layers[src_layer].dependencies:
                layers[src_layer].dependencies.append(dst_layer)
            src_rank = _LAYER_RANK.get(src_layer)
            dst_rank = _LAYER_RANK.get(dst_layer)
            if src_rank is None or dst_rank is None or dst_rank >= src_rank:
                continue
            src_pkg = by_path[src_path]
            position = next(
                (pos for imp, pos in src_pkg.import_positions.items() if resolves_to(imp, by_path[target])),
                src_pkg.position,
            )
            arch.violations.append(
                LayerViolation(
                    from_package=src_path,
                    to_package=target,
                    violation=f"{src_layer} layer depends on outer {dst_layer} layer",
                    position=position,
                )
            )

    ordered = [name for name, _ in LAYERS] + [SHARED_LAYER]
    arch.layers = [layers[name] for name in ordered if name in layers]

    if packages and list(layers) == [SHARED_LAYER]:
        arch.suggestions.append(
            "No conventional layering detected; consider cmd/, internal/service, internal/storage style packages"
        )
    if arch.violations:
        arch.suggestions.append(
            "Invert dependencies pointing outward by introducing interfaces in the inner layer"
        )
    return arch
