"""
Deployer Orchestration Module

Unified entry point that wires the layers together for one network.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. The deployer opens journals and builds plans; it never executes itself
3. All transitions are traceable through observability
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
import logging
import os

from .contracts.actions import Module
from .contracts.errors import ExistingJournalError
from .contracts.events import RunResult
from .core.planner import ExecutionPlan, Planner
from .execution.cancellation import CancellationToken
from .execution.engine import ExecutionConfig, ExecutionEngine
from .execution.executor import Executor, SimulatedExecutor
from .execution.parameters import ParameterSource, resolve_parameters
from .journal.journal import ExecutionJournal
from .journal.store import JournalConfig
from .observability import ObservabilityConfig, ObservabilityEngine, TransitionCollector

logger = logging.getLogger(__name__)

STATE_DIR_ENV = "DEPLOYKIT_STATE_DIR"
DEFAULT_STATE_DIR = "./deployments"


@dataclass
class DeployerConfig:
    """Unified configuration for a deployer."""
    journal: JournalConfig = None
    execution: ExecutionConfig = None
    observability: ObservabilityConfig = None
    network: str = "default"

    def __post_init__(self):
        self.journal = self.journal or JournalConfig()
        self.execution = self.execution or ExecutionConfig()
        self.observability = self.observability or ObservabilityConfig()

    @staticmethod
    def from_env(state_dir: Optional[str] = None, network: str = "default", **kwargs) -> DeployerConfig:
        """
        File-backed configuration.

        Journals live under <state_dir>/<network>/. The state directory
        falls back to DEPLOYKIT_STATE_DIR, then ./deployments.
        """
        root = state_dir or os.environ.get(STATE_DIR_ENV, DEFAULT_STATE_DIR)
        return DeployerConfig(
            journal=JournalConfig(
                backend_type="file",
                storage_dir=os.path.join(root, network)
            ),
            network=network,
            **kwargs
        )


class Deployer:
    """
    Deploys modules against one executor and one network.

    FLOW:
    =====
    1. Planner: Module → ExecutionPlan (cycles rejected here)
    2. Journal: opened and verified for (network, module)
    3. Engine: plan + journal + parameters → RunResult
    4. Observability: every state transition reaches the sink

    The deployer holds no per-run state; each deploy() reopens the
    journal from its store.
    """

    def __init__(self, executor: Optional[Executor] = None, config: Optional[DeployerConfig] = None):
        self._config = config or DeployerConfig()
        self._executor = executor or SimulatedExecutor()
        self._planner = Planner()
        self._observability = ObservabilityEngine(self._config.observability)
        self._engine = ExecutionEngine(
            self._executor,
            self._config.execution,
            sink=self._observability.sink
        )

    @property
    def config(self) -> DeployerConfig:
        return self._config

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def transitions(self) -> TransitionCollector:
        return self._observability.collector

    def open_journal(self, module_name: str) -> ExecutionJournal:
        """Open (and verify) the journal for a module on this network."""
        return ExecutionJournal(module_name, self._config.journal.create_store(module_name))

    def plan(self, module: Module) -> ExecutionPlan:
        return self._planner.plan(module)

    def deploy(
        self,
        module: Module,
        parameters: Union[ParameterSource, Mapping[str, Any], None] = None,
        resume: bool = True,
        cancellation: Optional[CancellationToken] = None,
        journal: Optional[ExecutionJournal] = None,
    ) -> RunResult:
        """
        Deploy a module, resuming from its journal.

        With resume=False an existing non-empty journal is refused
        (ExistingJournalError) rather than silently continued.
        """
        plan = self.plan(module)

        if not isinstance(parameters, ParameterSource):
            parameters = ParameterSource.from_mapping(parameters or {}, module.name)
        resolved = resolve_parameters(module, parameters)

        if journal is None:
            journal = self.open_journal(module.name)
        if not resume and len(journal) > 0:
            raise ExistingJournalError(module.name, journal.location)

        logger.info(
            f"Deploying {module.name} on {self._config.network} "
            f"({len(journal)} journaled records at {journal.location})"
        )

        return self._engine.run(
            module,
            journal,
            parameters=resolved,
            plan=plan,
            cancellation=cancellation,
        )
