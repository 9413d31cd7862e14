"""
Dependency Topology
===================

Structural analysis of the action dependency graph.

Edges point from a dependency to its dependent (v → u when u depends
on v), so a topological order is an execution order.

ALLOWED:
- Graph construction from actions
- Cycle detection
- Deterministic topological ordering
- Generations (batches of mutually independent actions)
- Reachability (descendants of a failed action)
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Set, Tuple
import networkx as nx

from ..contracts.actions import Action


class DependencyTopology:
    """
    Wraps NetworkX for the operations the engine needs.

    Node order is the declaration order; every ordering operation
    breaks ties by it so identical inputs always yield identical output.
    """

    def __init__(self):
        self._graph = nx.DiGraph()
        self._position: Dict[str, int] = {}

    def build_graph(self, actions: Iterable[Action]) -> None:
        """
        Build graph from actions.

        Replaces internal graph state. Edges to unknown ids are skipped;
        reference checking is the caller's concern.
        """
        actions = tuple(actions)
        self._graph = nx.DiGraph()
        self._position = {}

        for position, action in enumerate(actions):
            self._graph.add_node(action.action_id)
            self._position[action.action_id] = position

        for action in actions:
            for dependency in sorted(action.dependencies()):
                if dependency in self._position:
                    self._graph.add_edge(dependency, action.action_id)

    def find_cycle(self) -> Optional[List[str]]:
        """Return one cycle as a node list in dependency order, or None."""
        try:
            edges = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            return None
        return [source for source, _ in edges]

    def topological_order(self) -> Tuple[str, ...]:
        """
        Deterministic total order.

        Raises nx.NetworkXUnfeasible if the graph has a cycle.
        """
        return tuple(
            nx.lexicographical_topological_sort(self._graph, key=self._position.__getitem__)
        )

    def generations(self) -> Tuple[Tuple[str, ...], ...]:
        return tuple(
            tuple(sorted(generation, key=self._position.__getitem__))
            for generation in nx.topological_generations(self._graph)
        )

    def dependencies_of(self, action_id: str) -> Tuple[str, ...]:
        return tuple(sorted(self._graph.predecessors(action_id), key=self._position.__getitem__))

    def dependents_of(self, action_id: str) -> Tuple[str, ...]:
        return tuple(sorted(self._graph.successors(action_id), key=self._position.__getitem__))

    def descendants(self, action_id: str) -> Set[str]:
        return set(nx.descendants(self._graph, action_id))

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()
