"""Table dependency graph using NetworkX.

Builds a directed graph from declared :class:`TableSpec` objects where an
edge ``referenced -> table`` means the referenced table must exist before
``table`` is created.  Edges come from foreign keys and from the
ordering-only ``depends_on`` list.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable

import networkx as nx

from schema_reconciler.errors import DependencyCycleError, UnknownReferenceError
from schema_reconciler.models.schema import TableSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_references(tables: Iterable[TableSpec]) -> None:
    """Ensure every referenced table is itself declared.

    Raises
    ------
    UnknownReferenceError
        For the first (alphabetically) undeclared reference found.
    """
    specs = list(tables)
    declared = {t.name for t in specs}
    for spec in sorted(specs, key=lambda t: t.name):
        for ref in sorted(spec.referenced_tables()):
            if ref not in declared:
                raise UnknownReferenceError(spec.name, ref)


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------


def build_table_graph(tables: Iterable[TableSpec]) -> nx.DiGraph:
    """Build the creation-order graph for *tables*.

    Each table becomes a node keyed by name with the spec stored under
    ``"table"``.  References are validated first, so every edge points at a
    declared node.

    Parameters
    ----------
    tables:
        Declared tables to include.

    Returns
    -------
    nx.DiGraph
        Directed graph with ``dependency -> dependent`` edges.

    Raises
    ------
    UnknownReferenceError
        If a table references a table that is not declared.
    """
    specs = list(tables)
    validate_references(specs)

    graph = nx.DiGraph()
    for spec in specs:
        graph.add_node(spec.name, table=spec)
    for spec in specs:
        for ref in spec.referenced_tables():
            graph.add_edge(ref, spec.name)
    return graph


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _lexicographic_topological_sort(graph: nx.DiGraph) -> list[str]:
    """Kahn's algorithm with a min-heap so unconstrained tables come out
    alphabetically."""
    in_degree = dict(graph.in_degree())
    heap = sorted(n for n, d in in_degree.items() if d == 0)
    heapq.heapify(heap)
    result: list[str] = []
    while heap:
        node = heapq.heappop(heap)
        result.append(node)
        for successor in sorted(graph.successors(node)):
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                heapq.heappush(heap, successor)
    if len(result) != len(graph):
        raise nx.NetworkXUnfeasible("Graph contains a cycle")
    return result


def topological_sort(graph: nx.DiGraph) -> list[str]:
    """Return a deterministic creation order for the tables in *graph*.

    Raises
    ------
    DependencyCycleError
        If the graph contains one or more cycles.
    """
    try:
        return _lexicographic_topological_sort(graph)
    except nx.NetworkXUnfeasible:
        detect_cycles(graph)
        raise


def sorted_cycle(cycle: list[str]) -> list[str]:
    """Rotate *cycle* so it starts at its smallest member."""
    start = cycle.index(min(cycle))
    return cycle[start:] + cycle[:start]


def detect_cycles(graph: nx.DiGraph) -> list[list[str]]:
    """Raise :class:`DependencyCycleError` if *graph* has cycles.

    Returns an empty list when the graph is acyclic.
    """
    cycles = sorted(sorted_cycle(c) for c in nx.simple_cycles(graph))
    if cycles:
        raise DependencyCycleError(cycles)
    return cycles


def creation_order(tables: Iterable[TableSpec]) -> list[str]:
    """Validate *tables* and return their names in creation order."""
    graph = build_table_graph(tables)
    order = topological_sort(graph)
    logger.debug("Table creation order: %s", ", ".join(order))
    return order


def dependents_of(graph: nx.DiGraph, table: str) -> set[str]:
    """Every table that transitively depends on *table*."""
    if table not in graph:
        return set()
    return set(nx.descendants(graph, table))
