"""
Run and Transition Contracts
============================

Per-action state, transition events sent to observability sinks,
and the immutable result of a run.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .base import Error, Timestamp


class ActionStatus(Enum):
    """
    Per-action lifecycle.

    PENDING → EXECUTING → {SUCCESS, FAILED}
    PENDING → BLOCKED when an ancestor is FAILED (derived, never journaled)
    """
    PENDING = "pending"
    EXECUTING = "executing"
    SUCCESS = "success"
    FAILED = "failed"
    BLOCKED = "blocked"


class RunStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FailurePolicy(Enum):
    """What happens to independent branches after a failure."""
    CONTINUE = "continue"
    HALT = "halt"


@dataclass(frozen=True)
class TransitionEvent:
    """Structured state change, purely informational."""
    module_name: str
    action_id: str
    from_status: ActionStatus
    to_status: ActionStatus
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    detail: str = ""


@dataclass(frozen=True)
class ActionOutcome:
    """Final state of one action after a run."""
    action_id: str
    status: ActionStatus
    result_value: Any = None
    error: Optional[Error] = None
    replayed: bool = False  # satisfied from the journal, no executor call
    blocked_by: Tuple[str, ...] = ()

    @property
    def detail(self) -> str:
        if self.status is ActionStatus.SUCCESS:
            return "journaled" if self.replayed else "executed"
        if self.status is ActionStatus.FAILED and self.error:
            return f"{self.error.code.name}: {self.error.message}"
        if self.status is ActionStatus.BLOCKED and self.blocked_by:
            return f"blocked by {', '.join(self.blocked_by)}"
        return ""


@dataclass(frozen=True)
class RunResult:
    """
    Immutable result of one engine run.

    Outcomes are listed in plan order so independent successes stay
    visible even when the run as a whole failed.
    """
    module_name: str
    status: RunStatus
    outcomes: Tuple[ActionOutcome, ...]
    executed_count: int
    started_at: Timestamp
    finished_at: Timestamp

    @property
    def already_complete(self) -> bool:
        return self.status is RunStatus.SUCCESS and self.executed_count == 0

    def outcome(self, action_id: str) -> ActionOutcome:
        for outcome in self.outcomes:
            if outcome.action_id == action_id:
                return outcome
        raise KeyError(action_id)

    def bindings(self) -> Dict[str, Any]:
        return {
            o.action_id: o.result_value
            for o in self.outcomes if o.status is ActionStatus.SUCCESS
        }

    def counts(self) -> Dict[ActionStatus, int]:
        totals = {status: 0 for status in ActionStatus}
        for outcome in self.outcomes:
            totals[outcome.status] += 1
        return totals

    def status_table(self) -> List[Tuple[str, str, str]]:
        return [(o.action_id, o.status.value, o.detail) for o in self.outcomes]
