"""Typed models for the inter-file dependency graph."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from repo_index.adapters.base import ExportInfo, ImportInfo


class ModuleFacts(Protocol):
    """Anything carrying a repo-relative path with its imports and exports."""

    @property
    def path(self) -> str: ...

    @property
    def language(self) -> str: ...

    @property
    def imports(self) -> Sequence[ImportInfo]: ...

    @property
    def exports(self) -> Sequence[ExportInfo]: ...


@dataclass(slots=True, frozen=True)
class DependencyNode:
    path: str
    name: str
    language: str
    exports: tuple[str, ...]
    imports: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class DependencyEdge:
    """One edge per (from, to) pair; ``to_path`` is a package name when external."""

    from_path: str
    to_path: str
    type: str
    strength: str
    import_count: int = 1
    symbols: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class CircularDependency:
    """Cycle path with the start node repeated at the end; ``length`` counts distinct nodes."""

    paths: tuple[str, ...]
    length: int


@dataclass(slots=True, frozen=True)
class ExternalDependency:
    name: str
    used_in: tuple[str, ...]
    is_dev_dependency: bool


@dataclass(slots=True, frozen=True)
class ModuleDependency:
    source_file: str
    target_module: str
    is_internal: bool
    type: str


@dataclass(slots=True, frozen=True)
class DependencyHealth:
    score: int
    issues: tuple[str, ...]
    recommendations: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class DependencyGraph:
    """Nodes, internal edges, cycles and external packages of one project."""

    nodes: tuple[DependencyNode, ...]
    edges: tuple[DependencyEdge, ...]
    circular_dependencies: tuple[CircularDependency, ...]
    external_dependencies: tuple[ExternalDependency, ...]

    def internal_edges(self) -> tuple[DependencyEdge, ...]:
        return tuple(edge for edge in self.edges if edge.type == "internal")

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable representation."""
        return {
            "nodes": [
                {
                    "path": node.path,
                    "name": node.name,
                    "language": node.language,
                    "exports": list(node.exports),
                    "imports": list(node.imports),
                }
                for node in self.nodes
            ],
            "edges": [
                {
                    "from": edge.from_path,
                    "to": edge.to_path,
                    "type": edge.type,
                    "strength": edge.strength,
                    "import_count": edge.import_count,
                    "symbols": list(edge.symbols),
                }
                for edge in self.edges
            ],
            "circular_dependencies": [
                {"paths": list(cycle.paths), "length": cycle.length}
                for cycle in self.circular_dependencies
            ],
            "external_dependencies": [
                {
                    "name": dependency.name,
                    "used_in": list(dependency.used_in),
                    "is_dev_dependency": dependency.is_dev_dependency,
                }
                for dependency in self.external_dependencies
            ],
        }
