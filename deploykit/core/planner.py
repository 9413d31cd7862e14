"""
Planner
=======

Deterministic total order over a module's actions.

INVARIANT: plan(module) is a PURE FUNCTION.
Same Module → identical ExecutionPlan. Idempotent resume depends on it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple
import networkx as nx

from ..contracts.actions import Module
from ..contracts.errors import CyclicDependencyError
from .topology import DependencyTopology


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Immutable execution plan.

    order respects every dependency edge; ties follow declaration order.
    batches are the topological generations, for display.
    """
    module_name: str
    order: Tuple[str, ...]
    batches: Tuple[Tuple[str, ...], ...]
    dependencies: Tuple[Tuple[str, FrozenSet[str]], ...]
    dependents: Tuple[Tuple[str, FrozenSet[str]], ...]

    def dependencies_of(self, action_id: str) -> FrozenSet[str]:
        return dict(self.dependencies)[action_id]

    def dependents_of(self, action_id: str) -> FrozenSet[str]:
        return dict(self.dependents)[action_id]

    def dependency_map(self) -> Dict[str, FrozenSet[str]]:
        return dict(self.dependencies)

    def dependent_map(self) -> Dict[str, FrozenSet[str]]:
        return dict(self.dependents)

    def __len__(self) -> int:
        return len(self.order)


class Planner:
    """Topologically orders a Module's actions."""

    def plan(self, module: Module) -> ExecutionPlan:
        topology = DependencyTopology()
        topology.build_graph(module.actions)

        try:
            order = topology.topological_order()
        except nx.NetworkXUnfeasible:
            raise CyclicDependencyError(topology.find_cycle() or ())

        return ExecutionPlan(
            module_name=module.name,
            order=order,
            batches=topology.generations(),
            dependencies=tuple(
                (action_id, frozenset(topology.dependencies_of(action_id)))
                for action_id in order
            ),
            dependents=tuple(
                (action_id, frozenset(topology.dependents_of(action_id)))
                for action_id in order
            ),
        )
