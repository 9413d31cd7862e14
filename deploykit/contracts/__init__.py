"""
Contracts Package

Immutable data types shared by every layer. Layers communicate ONLY
through these types.
"""

from .base import Error, ErrorCode, Result, Timestamp
from .values import Future, Parameter
from .actions import Action, ActionKind, FutureHandle, Module, ResolvedAction
from .journal import ExecutionRecord, ExecutionStatus, JournalEntry, JournalSequence
from .events import (
    ActionOutcome, ActionStatus, FailurePolicy, RunResult, RunStatus, TransitionEvent
)
from .errors import (
    ActionTimeoutError, CancellationError, CyclicDependencyError,
    DefinitionDriftError, DefinitionError, DeploymentError, DuplicateActionError,
    ExistingJournalError,
    ExecutionError, JournalCorruptionError, MissingParameterError, ParameterError,
    UnresolvedFutureError,
)

__all__ = [
    'Error', 'ErrorCode', 'Result', 'Timestamp',
    'Future', 'Parameter',
    'Action', 'ActionKind', 'FutureHandle', 'Module', 'ResolvedAction',
    'ExecutionRecord', 'ExecutionStatus', 'JournalEntry', 'JournalSequence',
    'ActionOutcome', 'ActionStatus', 'FailurePolicy', 'RunResult', 'RunStatus',
    'TransitionEvent',
    'ActionTimeoutError', 'CancellationError', 'CyclicDependencyError',
    'DefinitionDriftError', 'DefinitionError', 'DeploymentError',
    'DuplicateActionError', 'ExecutionError', 'ExistingJournalError',
    'JournalCorruptionError',
    'MissingParameterError', 'ParameterError', 'UnresolvedFutureError',
]
