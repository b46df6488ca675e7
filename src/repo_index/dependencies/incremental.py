"""Per-project dependency graph cache with incremental recomputation."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from repo_index.dependencies.analyzer import (
    FileDependencies,
    assemble_graph,
    build_node,
    detect_cycles,
    file_dependencies,
)
from repo_index.dependencies.models import (
    CircularDependency,
    DependencyEdge,
    DependencyGraph,
    DependencyNode,
    ModuleFacts,
)
from repo_index.dependencies.resolution import ModuleResolver


@dataclass(slots=True, frozen=True)
class GraphUpdate:
    """Graph plus what the cache had to recompute to produce it."""

    graph: DependencyGraph
    mode: str
    recomputed_files: tuple[str, ...]
    recomputed_nodes: int


@dataclass(slots=True)
class _Snapshot:
    hashes: dict[str, str]
    per_file: dict[str, FileDependencies]
    graph: DependencyGraph


class DependencyGraphCache:
    """Keep the last graph per project and recompute only what changed.

    With an unchanged file set, only changed files are re-resolved and cycle
    detection reruns only inside weakly connected components that contain a
    changed file or one of its old or new targets. Any added or removed file
    triggers a full rebuild because resolution depends on the whole set.
    """

    def __init__(self, root_alias: str = "@/") -> None:
        self._root_alias = root_alias
        self._snapshots: dict[str, _Snapshot] = {}
        self._lock = threading.Lock()

    def invalidate(self, project_id: str | None = None) -> None:
        with self._lock:
            if project_id is None:
                self._snapshots.clear()
            else:
                self._snapshots.pop(project_id, None)

    def update(
        self,
        project_id: str,
        contents: Iterable[ModuleFacts],
        hashes: Mapping[str, str],
    ) -> GraphUpdate:
        facts_by_path = {item.path: item for item in contents}
        current_hashes = {path: hashes.get(path, "") for path in facts_by_path}
        with self._lock:
            previous = self._snapshots.get(project_id)
            if previous is None or set(previous.hashes) != set(current_hashes):
                update = self._full_build(facts_by_path)
            else:
                update = self._incremental(previous, facts_by_path, current_hashes)
            self._snapshots[project_id] = _Snapshot(
                hashes=current_hashes,
                per_file=update[1],
                graph=update[0].graph,
            )
        return update[0]

    def graph_for(
        self,
        project_id: str,
        contents: Iterable[ModuleFacts],
        hashes: Mapping[str, str],
    ) -> DependencyGraph:
        return self.update(project_id, contents, hashes).graph

    def _full_build(
        self, facts_by_path: dict[str, ModuleFacts]
    ) -> tuple[GraphUpdate, dict[str, FileDependencies]]:
        resolver = ModuleResolver(facts_by_path.keys(), self._root_alias)
        ordered = sorted(facts_by_path)
        per_file = {path: file_dependencies(facts_by_path[path], resolver) for path in ordered}
        edges = [edge for path in ordered for edge in per_file[path].edges]
        graph = assemble_graph(
            tuple(build_node(facts_by_path[path]) for path in ordered),
            per_file,
            detect_cycles(ordered, edges),
        )
        update = GraphUpdate(
            graph=graph,
            mode="full",
            recomputed_files=tuple(ordered),
            recomputed_nodes=len(ordered),
        )
        return update, per_file

    def _incremental(
        self,
        previous: _Snapshot,
        facts_by_path: dict[str, ModuleFacts],
        current_hashes: dict[str, str],
    ) -> tuple[GraphUpdate, dict[str, FileDependencies]]:
        changed = sorted(
            path for path, digest in current_hashes.items() if previous.hashes[path] != digest
        )
        if not changed:
            update = GraphUpdate(
                graph=previous.graph, mode="cached", recomputed_files=(), recomputed_nodes=0
            )
            return update, previous.per_file

        resolver = ModuleResolver(facts_by_path.keys(), self._root_alias)
        per_file = dict(previous.per_file)
        touched: set[str] = set(changed)
        for path in changed:
            touched.update(edge.to_path for edge in previous.per_file[path].edges)
            per_file[path] = file_dependencies(facts_by_path[path], resolver)
            touched.update(edge.to_path for edge in per_file[path].edges)

        ordered = sorted(facts_by_path)
        edges = [edge for path in ordered for edge in per_file[path].edges]
        component_of = _weak_components(ordered, edges)
        affected_ids = {component_of[path] for path in touched if path in component_of}
        affected = [path for path in ordered if component_of[path] in affected_ids]
        affected_set = set(affected)

        kept: list[CircularDependency] = [
            cycle
            for cycle in previous.graph.circular_dependencies
            if not affected_set.intersection(cycle.paths)
        ]
        local_edges = [edge for edge in edges if edge.from_path in affected_set]
        cycles = tuple(
            sorted(
                [*kept, *detect_cycles(affected, local_edges)],
                key=lambda cycle: cycle.paths,
            )
        )
        nodes = tuple(
            build_node(facts_by_path[path]) if path in changed else node
            for path, node in zip(
                ordered,
                _nodes_by_path(previous.graph, ordered),
                strict=True,
            )
        )
        graph = assemble_graph(nodes, per_file, cycles)
        update = GraphUpdate(
            graph=graph,
            mode="incremental",
            recomputed_files=tuple(changed),
            recomputed_nodes=len(affected),
        )
        return update, per_file


def _nodes_by_path(graph: DependencyGraph, ordered: list[str]) -> list[DependencyNode]:
    by_path = {node.path: node for node in graph.nodes}
    return [by_path[path] for path in ordered]


def _weak_components(nodes: list[str], edges: Iterable[DependencyEdge]) -> dict[str, int]:
    """Label each node with the id of its weakly connected component."""
    parent = {node: node for node in nodes}

    def find(node: str) -> str:
        while parent[node] != node:
            parent[node] = parent[parent[node]]
            node = parent[node]
        return node

    for edge in edges:
        if edge.from_path not in parent or edge.to_path not in parent:
            continue
        left, right = find(edge.from_path), find(edge.to_path)
        if left != right:
            parent[max(left, right)] = min(left, right)

    labels: dict[str, int] = {}
    output: dict[str, int] = {}
    for node in nodes:
        root = find(node)
        output[node] = labels.setdefault(root, len(labels))
    return output
