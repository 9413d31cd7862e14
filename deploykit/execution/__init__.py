"""
Execution Layer

RESPONSIBILITY: Drive a plan through an executor, consulting the journal
ALLOWED INPUTS: Module, ExecutionPlan, ExecutionJournal, parameters
OUTPUTS: RunResult, appended journal records, transition events

WHAT THIS LAYER MUST NOT DO:
============================
- Re-execute an action whose SUCCESS is journaled
- Guess between a journaled and a re-declared version of an action
- Abort an executor call mid-flight
"""

from .cancellation import CancellationToken
from .engine import ExecutionConfig, ExecutionEngine
from .executor import Executor, SimulatedExecutor
from .parameters import ParameterSource, resolve_parameters
from .resolver import BindingTable, resolve_action

__all__ = [
    'CancellationToken',
    'ExecutionConfig',
    'ExecutionEngine',
    'Executor',
    'SimulatedExecutor',
    'ParameterSource',
    'resolve_parameters',
    'BindingTable',
    'resolve_action',
]
