from __future__ import annotations

from dataclasses import dataclass

from repo_index.adapters import ExportInfo, ImportInfo
from repo_index.dependencies import DependencyAnalyzer, DependencyEdge, detect_cycles


@dataclass(slots=True, frozen=True)
class Facts:
    path: str
    language: str
    imports: tuple[ImportInfo, ...]
    exports: tuple[ExportInfo, ...] = ()


def _ts(path: str, *modules: str) -> Facts:
    return Facts(
        path=path,
        language="TypeScript",
        imports=tuple(
            ImportInfo(module=module, items=("x",), line=index + 1, kind="named")
            for index, module in enumerate(modules)
        ),
    )


def _edge(source: str, target: str) -> DependencyEdge:
    return DependencyEdge(from_path=source, to_path=target, type="internal", strength="weak")


def test_three_node_ring_reports_exactly_one_cycle() -> None:
    analyzer = DependencyAnalyzer(
        [_ts("a.ts", "./b"), _ts("b.ts", "./c"), _ts("c.ts", "./a")]
    )

    graph = analyzer.build_dependency_graph()

    assert len(graph.circular_dependencies) == 1
    cycle = graph.circular_dependencies[0]
    assert cycle.paths == ("a.ts", "b.ts", "c.ts", "a.ts")
    assert cycle.length == 3
    assert set(cycle.paths) == {"a.ts", "b.ts", "c.ts"}


def test_acyclic_graph_reports_no_cycles() -> None:
    analyzer = DependencyAnalyzer(
        [_ts("a.ts", "./b", "./c"), _ts("b.ts", "./c"), _ts("c.ts")]
    )

    graph = analyzer.build_dependency_graph()

    assert graph.circular_dependencies == ()
    assert [(edge.from_path, edge.to_path) for edge in graph.edges] == [
        ("a.ts", "b.ts"),
        ("a.ts", "c.ts"),
        ("b.ts", "c.ts"),
    ]


def test_self_import_and_two_disjoint_cycles() -> None:
    edges = [_edge("a", "a"), _edge("b", "c"), _edge("c", "b"), _edge("d", "b")]

    cycles = detect_cycles(["a", "b", "c", "d"], edges)

    assert [(cycle.paths, cycle.length) for cycle in cycles] == [
        (("a", "a"), 1),
        (("b", "c", "b"), 2),
    ]


def test_external_edges_are_ignored_by_cycle_detection() -> None:
    edges = [
        DependencyEdge(from_path="a", to_path="react", type="external", strength="weak"),
        _edge("a", "b"),
    ]

    assert detect_cycles(["a", "b"], edges) == ()
