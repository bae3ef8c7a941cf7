"""Table dependency ordering."""

from schema_reconciler.graph.dependency_graph import (
    build_table_graph,
    creation_order,
    dependents_of,
    detect_cycles,
    topological_sort,
    validate_references,
)

__all__ = [
    "build_table_graph",
    "creation_order",
    "dependents_of",
    "detect_cycles",
    "topological_sort",
    "validate_references",
]
