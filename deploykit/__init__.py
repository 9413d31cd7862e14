"""
DeployKit

Declarative, resumable deployment orchestration. A deployment is declared
as a Module of Actions whose arguments may be Futures of earlier actions;
the engine executes the resulting graph against an Executor and records
every outcome in an append-only journal so a later run resumes exactly
where the previous one stopped.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Responsibility: Immutable data shared by every layer
   - Outputs: Action, Module, ResolvedAction, ExecutionRecord, RunResult
   - MUST NOT: Perform I/O or hold mutable state

2. CORE GRAPH (core/)
   - Responsibility: Module construction, validation, planning
   - Allowed inputs: Declarations made through ModuleBuilder
   - Outputs: Module, ExecutionPlan
   - MUST NOT: Call executors, touch the journal

3. JOURNAL (journal/)
   - Responsibility: Hash-chained, append-only execution history
   - Allowed inputs: ExecutionRecord from the execution layer
   - Outputs: Verified records, binding table
   - MUST NOT: Rewrite or drop an entry, interpret action content

4. EXECUTION (execution/)
   - Responsibility: Resolve, schedule and execute actions; resume
   - Allowed inputs: Module, ExecutionPlan, ExecutionJournal, parameters
   - Outputs: RunResult, appended records, transition events
   - MUST NOT: Re-execute journaled successes, guess across drift

5. OBSERVABILITY (observability/)
   - Responsibility: Collect and log per-action state transitions
   - MUST NOT: Alter control flow, even when a sink fails

CONSTRAINTS ENFORCED:
=====================
- Immutability-first: declarations, records and results are frozen
- Append-only: journal entries are never rewritten
- Deterministic: identical inputs yield identical content hashes and order
- Explicit errors: fail-fast conditions raise before any side effect
"""

from .contracts import (
    ActionKind, ActionStatus, DeploymentError, Error, ErrorCode, FailurePolicy,
    Module, ResolvedAction, Result, RunResult, RunStatus,
)
from .core import ModuleBuilder, build_module
from .engine import Deployer, DeployerConfig
from .execution import (
    CancellationToken, ExecutionConfig, ExecutionEngine, Executor,
    ParameterSource, SimulatedExecutor,
)
from .journal import ExecutionJournal, JournalConfig

__version__ = "0.1.0"

__all__ = [
    'ActionKind', 'ActionStatus', 'DeploymentError', 'Error', 'ErrorCode',
    'FailurePolicy', 'Module', 'ResolvedAction', 'Result', 'RunResult', 'RunStatus',
    'ModuleBuilder', 'build_module',
    'Deployer', 'DeployerConfig',
    'CancellationToken', 'ExecutionConfig', 'ExecutionEngine', 'Executor',
    'ParameterSource', 'SimulatedExecutor',
    'ExecutionJournal', 'JournalConfig',
]
