"""Dependency graph construction, cycle detection and health scoring."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from repo_index.dependencies.models import (
    CircularDependency,
    DependencyEdge,
    DependencyGraph,
    DependencyHealth,
    DependencyNode,
    ExternalDependency,
    ModuleDependency,
    ModuleFacts,
)
from repo_index.dependencies.resolution import (
    ModuleResolver,
    external_package_name,
    is_dev_dependency,
)

STRONG_IMPORT_COUNT = 1
STRONG_SYMBOL_COUNT = 3
MAX_HEALTHY_EXTERNALS = 50


@dataclass(slots=True, frozen=True)
class FileDependencies:
    """Resolved outgoing dependencies of one file."""

    edges: tuple[DependencyEdge, ...]
    externals: tuple[str, ...]


class DependencyAnalyzer:
    """Build the inter-file dependency graph for a set of analyzed files."""

    def __init__(self, contents: Iterable[ModuleFacts], root_alias: str = "@/") -> None:
        self._contents: dict[str, ModuleFacts] = {}
        for item in contents:
            self._contents[item.path] = item
        self._resolver = ModuleResolver(self._contents.keys(), root_alias)

    @property
    def resolver(self) -> ModuleResolver:
        return self._resolver

    def build_dependency_graph(self) -> DependencyGraph:
        per_file = {
            path: file_dependencies(facts, self._resolver)
            for path, facts in sorted(self._contents.items())
        }
        nodes = tuple(build_node(facts) for _, facts in sorted(self._contents.items()))
        edges = [edge for path in sorted(per_file) for edge in per_file[path].edges]
        cycles = detect_cycles(sorted(self._contents), edges)
        return assemble_graph(nodes, per_file, cycles)

    def analyze_dependency_health(self) -> DependencyHealth:
        return dependency_health(self.build_dependency_graph())

    def get_module_dependencies(self) -> list[ModuleDependency]:
        output: list[ModuleDependency] = []
        for path, facts in sorted(self._contents.items()):
            for item in facts.imports:
                if item.is_dynamic:
                    kind = "dynamic"
                elif item.kind == "require":
                    kind = "require"
                else:
                    kind = "import"
                output.append(
                    ModuleDependency(
                        source_file=path,
                        target_module=item.module,
                        is_internal=self._resolver.is_internal(path, item.module, facts.language),
                        type=kind,
                    )
                )
        return output

    def find_importers(self, path: str) -> list[str]:
        """Files with at least one import resolving to ``path``."""
        importers: list[str] = []
        for source, facts in sorted(self._contents.items()):
            if source == path:
                continue
            if any(target == path for target in _import_targets(facts, self._resolver)):
                importers.append(source)
        return importers

    def find_dependencies(self, path: str) -> list[str]:
        """Indexed files imported by ``path``, in import order without duplicates."""
        facts = self._contents.get(path)
        if facts is None:
            return []
        output: list[str] = []
        for target in _import_targets(facts, self._resolver):
            if target not in output:
                output.append(target)
        return output


def build_node(facts: ModuleFacts) -> DependencyNode:
    return DependencyNode(
        path=facts.path,
        name=posixpath.basename(facts.path),
        language=facts.language,
        exports=tuple(item.name for item in facts.exports),
        imports=tuple(item.module for item in facts.imports),
    )


def file_dependencies(facts: ModuleFacts, resolver: ModuleResolver) -> FileDependencies:
    """Resolve one file's imports into internal edges and external package names.

    Unresolvable relative or aliased imports are dropped.
    """
    counts: dict[str, int] = {}
    symbols: dict[str, list[str]] = {}
    externals: list[str] = []
    for item in facts.imports:
        resolved = resolver.resolve_import(facts.path, item.module, facts.language, item.items)
        for target, names in resolved:
            counts[target] = counts.get(target, 0) + 1
            bucket = symbols.setdefault(target, [])
            for name in names:
                if name != "*" and name not in bucket:
                    bucket.append(name)
        if resolved:
            continue
        if resolver.is_relative(item.module, facts.language) or resolver.is_aliased(item.module):
            continue
        name = external_package_name(item.module, facts.language)
        if name is not None and name not in externals:
            externals.append(name)

    edges = tuple(
        DependencyEdge(
            from_path=facts.path,
            to_path=target,
            type="internal",
            strength=edge_strength(count, len(symbols[target])),
            import_count=count,
            symbols=tuple(symbols[target]),
        )
        for target, count in counts.items()
    )
    return FileDependencies(edges=edges, externals=tuple(externals))


def _import_targets(facts: ModuleFacts, resolver: ModuleResolver) -> list[str]:
    return [
        target
        for item in facts.imports
        for target, _ in resolver.resolve_import(
            facts.path, item.module, facts.language, item.items
        )
    ]


def edge_strength(import_count: int, symbol_count: int) -> str:
    if import_count > STRONG_IMPORT_COUNT or symbol_count > STRONG_SYMBOL_COUNT:
        return "strong"
    return "weak"


def detect_cycles(
    nodes: Sequence[str], edges: Iterable[DependencyEdge]
) -> tuple[CircularDependency, ...]:
    """Iterative DFS over internal edges; every back edge records one cycle."""
    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        if edge.type != "internal":
            continue
        adjacency.setdefault(edge.from_path, []).append(edge.to_path)

    visited: set[str] = set()
    cycles: list[CircularDependency] = []
    for start in nodes:
        if start in visited or start not in adjacency:
            continue
        visited.add(start)
        path = [start]
        position = {start: 0}
        stack = [(start, iter(adjacency.get(start, ())))]
        while stack:
            node, neighbors = stack[-1]
            neighbor = next(neighbors, None)
            if neighbor is None:
                stack.pop()
                path.pop()
                del position[node]
                continue
            if neighbor in position:
                members = path[position[neighbor] :]
                cycles.append(
                    CircularDependency(paths=(*members, neighbor), length=len(members))
                )
            elif neighbor not in visited:
                visited.add(neighbor)
                position[neighbor] = len(path)
                path.append(neighbor)
                stack.append((neighbor, iter(adjacency.get(neighbor, ()))))
    return tuple(sorted(cycles, key=lambda cycle: cycle.paths))


def assemble_graph(
    nodes: tuple[DependencyNode, ...],
    per_file: Mapping[str, FileDependencies],
    cycles: tuple[CircularDependency, ...],
) -> DependencyGraph:
    edges: list[DependencyEdge] = []
    used_in: dict[str, list[str]] = {}
    for path in sorted(per_file):
        deps = per_file[path]
        edges.extend(deps.edges)
        for name in deps.externals:
            used_in.setdefault(name, []).append(path)
    externals = tuple(
        ExternalDependency(
            name=name,
            used_in=tuple(paths),
            is_dev_dependency=is_dev_dependency(name),
        )
        for name, paths in sorted(used_in.items())
    )
    return DependencyGraph(
        nodes=nodes,
        edges=tuple(edges),
        circular_dependencies=cycles,
        external_dependencies=externals,
    )


def dependency_health(graph: DependencyGraph) -> DependencyHealth:
    """Score 100, minus 10 per cycle, 20 for too many externals, 5 per duplicate package."""
    issues: list[str] = []
    recommendations: list[str] = []
    score = 100

    cycle_count = len(graph.circular_dependencies)
    if cycle_count:
        issues.append(f"{cycle_count} circular dependencies detected")
        recommendations.append("Refactor to eliminate circular dependencies")
        score -= cycle_count * 10

    external_count = len(graph.external_dependencies)
    if external_count > MAX_HEALTHY_EXTERNALS:
        issues.append(f"Too many external dependencies ({external_count})")
        recommendations.append("Consider consolidating or removing unused dependencies")
        score -= 20

    duplicates = duplicate_packages(item.name for item in graph.external_dependencies)
    if duplicates:
        issues.append(f"{len(duplicates)} duplicate dependencies detected")
        recommendations.append("Use a single spelling per package and deduplicate imports")
        score -= len(duplicates) * 5

    return DependencyHealth(
        score=max(0, score),
        issues=tuple(issues),
        recommendations=tuple(recommendations),
    )


def duplicate_packages(names: Iterable[str]) -> list[tuple[str, ...]]:
    """Groups of distinct package names that collide after normalization."""
    groups: dict[str, list[str]] = {}
    for name in names:
        key = name.lower().replace("_", "-").replace(".", "-")
        bucket = groups.setdefault(key, [])
        if name not in bucket:
            bucket.append(name)
    return [tuple(sorted(bucket)) for _, bucket in sorted(groups.items()) if len(bucket) > 1]
