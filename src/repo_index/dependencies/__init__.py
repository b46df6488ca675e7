"""Inter-file dependency analysis."""

from .analyzer import (
    DependencyAnalyzer,
    FileDependencies,
    dependency_health,
    detect_cycles,
    duplicate_packages,
    edge_strength,
)
from .incremental import DependencyGraphCache, GraphUpdate
from .models import (
    CircularDependency,
    DependencyEdge,
    DependencyGraph,
    DependencyHealth,
    DependencyNode,
    ExternalDependency,
    ModuleDependency,
    ModuleFacts,
)
from .resolution import ModuleResolver, external_package_name, is_dev_dependency

__all__ = [
    "CircularDependency",
    "DependencyAnalyzer",
    "DependencyEdge",
    "DependencyGraph",
    "DependencyGraphCache",
    "DependencyHealth",
    "DependencyNode",
    "ExternalDependency",
    "FileDependencies",
    "GraphUpdate",
    "ModuleDependency",
    "ModuleFacts",
    "ModuleResolver",
    "dependency_health",
    "detect_cycles",
    "duplicate_packages",
    "edge_strength",
    "external_package_name",
    "is_dev_dependency",
]
