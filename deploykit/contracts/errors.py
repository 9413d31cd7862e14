"""
Deployment Error Taxonomy
=========================

Fail-fast conditions are exceptions; per-action executor failures are
data (see base.Error) and only surface here when wrapped for reporting.

TAXONOMY:
- DefinitionError        build time, zero side effects
- ParameterError         before any Executor call
- ExecutionError         one action; contained to its dependents
- DefinitionDriftError   resumed action no longer matches its record
- JournalCorruptionError journal cannot be trusted; operator must intervene
- CancellationError      clean, resumable stop
"""

from __future__ import annotations
from typing import Iterable, Optional, Tuple


class DeploymentError(Exception):
    """Root of every error raised by the engine."""

    def __init__(self, message: str, action_ids: Iterable[str] = ()):
        super().__init__(message)
        self.message = message
        self.action_ids: Tuple[str, ...] = tuple(action_ids)


# =============================================================================
# DEFINITION ERRORS
# =============================================================================

class DefinitionError(DeploymentError):
    """Structural problem in a module declaration."""


class DuplicateActionError(DefinitionError):
    def __init__(self, action_id: str):
        super().__init__(
            f"Action '{action_id}' declared twice with different content",
            (action_id,)
        )


class CyclicDependencyError(DefinitionError):
    def __init__(self, cycle: Iterable[str]):
        self.cycle = tuple(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Dependency cycle detected: {path}", self.cycle)


class UnresolvedFutureError(DefinitionError):
    def __init__(self, action_id: str, reference: str, reason: str):
        self.reference = reference
        super().__init__(
            f"Action '{action_id}' references '{reference}': {reason}",
            (action_id, reference)
        )


# =============================================================================
# PARAMETER ERRORS
# =============================================================================

class ParameterError(DeploymentError):
    """Parameter resolution failed before execution."""


class MissingParameterError(ParameterError):
    def __init__(self, names: Iterable[str], module_name: Optional[str] = None):
        self.names = tuple(names)
        scope = f" for module '{module_name}'" if module_name else ""
        super().__init__(
            f"Unresolved parameter(s){scope} with no default: {', '.join(self.names)}"
        )


# =============================================================================
# EXECUTION ERRORS
# =============================================================================

class ExecutionError(DeploymentError):
    """An Executor failure for a single action."""

    def __init__(self, action_id: str, message: str):
        super().__init__(f"Action '{action_id}' failed: {message}", (action_id,))


class ActionTimeoutError(ExecutionError):
    def __init__(self, action_id: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(action_id, f"timed out after {timeout_seconds}s")


# =============================================================================
# RESUME ERRORS
# =============================================================================

class DefinitionDriftError(DeploymentError):
    """A journaled action no longer matches its declaration."""

    def __init__(self, drifted: Iterable[Tuple[str, str]]):
        self.drifted = tuple(drifted)
        details = "; ".join(f"{action_id}: {reason}" for action_id, reason in self.drifted)
        super().__init__(
            f"Definition drift against journal: {details}",
            (action_id for action_id, _ in self.drifted)
        )


class JournalCorruptionError(DeploymentError):
    """The journal is unreadable or structurally inconsistent."""

    def __init__(self, message: str, sequence: Optional[int] = None, action_ids: Iterable[str] = ()):
        self.sequence = sequence
        where = f" (entry {sequence})" if sequence is not None else ""
        super().__init__(f"Journal corrupted{where}: {message}", action_ids)


class CancellationError(DeploymentError):
    """Run stopped by a cancellation request. Resumable."""


class ExistingJournalError(DeploymentError):
    """A fresh run was requested over a journal that already has records."""

    def __init__(self, module_name: str, location: str):
        super().__init__(
            f"Journal for '{module_name}' already has records at {location}; "
            f"resume it or choose another state directory"
        )
