"""
Action State Machine
====================

Per-action lifecycle, derived from the journal and advanced by the engine.

    PENDING ──► EXECUTING ──► SUCCESS
       │                 └──► FAILED
       ├──► SUCCESS / FAILED   (restored from the journal)
       └──► BLOCKED            (an ancestor is FAILED)

INVARIANT: derive_statuses(plan, journal) is a PURE FUNCTION.
BLOCKED is never stored; it is recomputed from SUCCESS/FAILED history.
"""

from __future__ import annotations
from typing import Callable, Dict, FrozenSet, Iterable, Optional
import logging
import threading

from ..contracts.events import ActionStatus, TransitionEvent
from ..contracts.journal import ExecutionStatus
from ..core.planner import ExecutionPlan
from .journal import ExecutionJournal

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[ActionStatus, FrozenSet[ActionStatus]] = {
    ActionStatus.PENDING: frozenset({
        ActionStatus.EXECUTING,
        ActionStatus.SUCCESS,
        ActionStatus.FAILED,
        ActionStatus.BLOCKED,
    }),
    ActionStatus.EXECUTING: frozenset({ActionStatus.SUCCESS, ActionStatus.FAILED}),
    ActionStatus.SUCCESS: frozenset(),
    ActionStatus.FAILED: frozenset(),
    ActionStatus.BLOCKED: frozenset(),
}


class InvalidTransitionError(ValueError):
    pass


def derive_statuses(
    plan: ExecutionPlan,
    journal: ExecutionJournal,
    retry_failed: bool = False
) -> Dict[str, ActionStatus]:
    """
    Starting status of every action before a run.

    SUCCESS/FAILED come from the journal; descendants of FAILED are
    BLOCKED; everything else is PENDING. With retry_failed, FAILED
    records are treated as PENDING so they execute again.
    """
    statuses: Dict[str, ActionStatus] = {}
    dependencies = plan.dependency_map()

    for action_id in plan.order:
        record = journal.get(action_id)
        if record is not None and record.status is ExecutionStatus.SUCCESS:
            statuses[action_id] = ActionStatus.SUCCESS
        elif record is not None and not retry_failed:
            statuses[action_id] = ActionStatus.FAILED
        elif any(
            statuses[dep] in (ActionStatus.FAILED, ActionStatus.BLOCKED)
            for dep in dependencies[action_id]
        ):
            statuses[action_id] = ActionStatus.BLOCKED
        else:
            statuses[action_id] = ActionStatus.PENDING

    return statuses


class ActionStateTracker:
    """
    Holds live per-action status during a run.

    Every accepted transition is forwarded to the sink. Sink failures
    are logged and never change the outcome of a transition.
    """

    def __init__(
        self,
        module_name: str,
        action_ids: Iterable[str],
        sink: Optional[Callable[[TransitionEvent], None]] = None
    ):
        self._module_name = module_name
        self._statuses: Dict[str, ActionStatus] = {
            action_id: ActionStatus.PENDING for action_id in action_ids
        }
        self._sink = sink
        self._lock = threading.Lock()

    def status(self, action_id: str) -> ActionStatus:
        with self._lock:
            return self._statuses[action_id]

    def snapshot(self) -> Dict[str, ActionStatus]:
        with self._lock:
            return dict(self._statuses)

    def transition(self, action_id: str, to_status: ActionStatus, detail: str = "") -> TransitionEvent:
        with self._lock:
            from_status = self._statuses[action_id]
            if to_status not in ALLOWED_TRANSITIONS[from_status]:
                raise InvalidTransitionError(
                    f"{action_id}: {from_status.value} → {to_status.value} not allowed"
                )
            self._statuses[action_id] = to_status

        event = TransitionEvent(
            module_name=self._module_name,
            action_id=action_id,
            from_status=from_status,
            to_status=to_status,
            detail=detail,
        )
        if self._sink is not None:
            try:
                self._sink(event)
            except Exception:
                logger.warning("Observability sink failed for %s", action_id, exc_info=True)
        return event
