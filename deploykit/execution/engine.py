"""
Execution Engine
================

Drives an ExecutionPlan through an Executor, consulting and extending
the journal.

PER-ACTION ALGORITHM (plan order):
1. Resolve args from the binding table and compute the content hash
2. Journal SUCCESS with the same hash → skip and bind (idempotent resume)
   Journal FAILED with the same hash → FAILED, unless retry-on-resume
   Hash mismatch → DefinitionDriftError, before any executor call
3. A FAILED/BLOCKED dependency → BLOCKED, nothing journaled
4. Otherwise execute; append SUCCESS or FAILED; block dependents on failure

CONCURRENCY:
- Bounded ThreadPoolExecutor; an action is submitted once every
  dependency is SUCCESS
- The only suspension point is the executor call
- Journal appends and bindings happen on the scheduling thread, in
  completion order, behind the journal's single-writer lock
- Cancellation stops submissions; in-flight calls finish and are journaled
- A timed-out call is recorded FAILED; its late result is discarded
"""

from __future__ import annotations
from concurrent.futures import FIRST_COMPLETED, Future as PoolFuture, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple
import logging
import time

from ..contracts.actions import Module, ResolvedAction
from ..contracts.base import Error, ErrorCode, Result, Timestamp
from ..contracts.codec import canonical_json
from ..contracts.errors import (
    ActionTimeoutError, DefinitionDriftError, JournalCorruptionError
)
from ..contracts.events import (
    ActionOutcome, ActionStatus, FailurePolicy, RunResult, RunStatus
)
from ..contracts.journal import ExecutionRecord, ExecutionStatus
from ..core.planner import ExecutionPlan, Planner
from ..journal.journal import ExecutionJournal
from ..journal.state_machine import ActionStateTracker, derive_statuses
from .cancellation import CancellationToken
from .executor import Executor
from .parameters import ParameterSource, resolve_parameters
from .resolver import BindingTable, UnboundReferenceError, resolve_action

logger = logging.getLogger(__name__)


@dataclass
class ExecutionConfig:
    """Configuration for the execution engine."""
    max_workers: int = 4
    action_timeout_seconds: Optional[float] = None
    failure_policy: FailurePolicy = FailurePolicy.CONTINUE
    retry_failed_on_resume: bool = False
    poll_interval_seconds: float = 0.05

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.action_timeout_seconds is not None and self.action_timeout_seconds <= 0:
            raise ValueError("action_timeout_seconds must be positive")


@dataclass
class _InFlight:
    resolved: ResolvedAction
    deadline: Optional[float]


class _Run:
    """Mutable bookkeeping for one run. Lives on the scheduling thread."""

    def __init__(self, module: Module, plan: ExecutionPlan, tracker: ActionStateTracker):
        self.module = module
        self.plan = plan
        self.tracker = tracker
        self.dependencies = plan.dependency_map()
        self.dependents = plan.dependent_map()
        self.pending: List[str] = []
        self.attempts: Dict[str, int] = {}
        self.errors: Dict[str, Error] = {}
        self.blocked_by: Dict[str, Tuple[str, ...]] = {}
        self.replayed: Set[str] = set()
        self.executed = 0
        self.halted = False
        self.cancelled = False


class ExecutionEngine:
    """
    Runs modules against an executor.

    GUARANTEES:
    ===========
    1. No executor call before drift and journal checks pass
    2. At most one executor call per (action id, content hash) per run
    3. Journal order is a topological extension of the dependency graph
    4. Independent branches proceed after a failure (CONTINUE policy)
    """

    def __init__(
        self,
        executor: Executor,
        config: Optional[ExecutionConfig] = None,
        sink=None
    ):
        self._executor = executor
        self._config = config or ExecutionConfig()
        self._sink = sink
        self._planner = Planner()

    @property
    def config(self) -> ExecutionConfig:
        return self._config

    def run(
        self,
        module: Module,
        journal: ExecutionJournal,
        parameters: Optional[Mapping[str, Any]] = None,
        plan: Optional[ExecutionPlan] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> RunResult:
        """
        Drive a module to completion (or cancellation).

        Raises MissingParameterError, DefinitionDriftError and
        JournalCorruptionError before any executor call.
        """
        if journal.module_name != module.name:
            raise ValueError(
                f"Journal belongs to '{journal.module_name}', not '{module.name}'"
            )

        started_at = Timestamp.now()
        if plan is None:
            plan = self._planner.plan(module)
        resolved_parameters = resolve_parameters(module, ParameterSource(parameters))
        bindings = BindingTable(journal.bindings())

        self._check_journal(module, plan, journal, bindings, resolved_parameters)

        tracker = ActionStateTracker(module.name, plan.order, sink=self._sink)
        run = _Run(module, plan, tracker)
        self._restore(run, journal)

        logger.info(
            f"Running {module.name}: {len(plan)} actions, "
            f"{len(run.replayed)} from journal, {len(run.pending)} pending"
        )

        self._schedule(run, journal, bindings, resolved_parameters, cancellation)

        return self._result(run, bindings, started_at)

    # =========================================================================
    # PRE-FLIGHT
    # =========================================================================

    def _check_journal(
        self,
        module: Module,
        plan: ExecutionPlan,
        journal: ExecutionJournal,
        bindings: BindingTable,
        parameters: Mapping[str, Any],
    ) -> None:
        """Compare every journaled action against its current declaration."""
        drifted: List[Tuple[str, str]] = []

        for action_id in plan.order:
            record = journal.get(action_id)
            if record is None:
                continue

            action = module.get(action_id)
            current_dependencies = tuple(sorted(action.dependencies()))
            if tuple(record.dependencies) != current_dependencies:
                drifted.append((action_id, "dependencies changed"))
                continue

            unsatisfied = [
                dep for dep in current_dependencies
                if (journal.get(dep) is None or not journal.get(dep).is_success)
            ]
            if unsatisfied:
                raise JournalCorruptionError(
                    f"{action_id} recorded {record.status.value} before "
                    f"dependencies {', '.join(unsatisfied)} succeeded",
                    action_ids=(action_id,)
                )

            try:
                resolved = resolve_action(module.name, action, bindings, parameters)
            except UnboundReferenceError as e:
                drifted.append((action_id, f"cannot resolve {e.future}"))
                continue

            if resolved.content_hash != record.content_hash:
                drifted.append((action_id, "content hash changed"))

        if drifted:
            raise DefinitionDriftError(drifted)

    def _restore(self, run: _Run, journal: ExecutionJournal) -> None:
        """Apply journaled outcomes and derived BLOCKED statuses."""
        retry = self._config.retry_failed_on_resume
        statuses = derive_statuses(run.plan, journal, retry_failed=retry)

        for action_id in run.plan.order:
            status = statuses[action_id]
            record = journal.get(action_id)

            if status is ActionStatus.SUCCESS:
                run.replayed.add(action_id)
                run.tracker.transition(action_id, ActionStatus.SUCCESS, "journaled")
            elif status is ActionStatus.FAILED:
                run.replayed.add(action_id)
                if record.error:
                    run.errors[action_id] = record.error
                if self._config.failure_policy is FailurePolicy.HALT:
                    run.halted = True
                run.tracker.transition(action_id, ActionStatus.FAILED, "journaled")
            elif status is ActionStatus.BLOCKED:
                run.blocked_by[action_id] = self._failed_roots(run, action_id, statuses)
                run.tracker.transition(
                    action_id, ActionStatus.BLOCKED,
                    f"blocked by {', '.join(run.blocked_by[action_id])}"
                )
            else:
                run.attempts[action_id] = record.attempt + 1 if record else 1
                run.pending.append(action_id)

    def _failed_roots(
        self,
        run: _Run,
        action_id: str,
        statuses: Mapping[str, ActionStatus]
    ) -> Tuple[str, ...]:
        roots: List[str] = []
        for dep in sorted(run.dependencies[action_id], key=run.module.position):
            if statuses[dep] is ActionStatus.FAILED:
                roots.append(dep)
            elif statuses[dep] is ActionStatus.BLOCKED:
                roots.extend(run.blocked_by.get(dep, ()))
        return tuple(dict.fromkeys(roots))

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def _schedule(
        self,
        run: _Run,
        journal: ExecutionJournal,
        bindings: BindingTable,
        parameters: Mapping[str, Any],
        cancellation: Optional[CancellationToken],
    ) -> None:
        config = self._config
        in_flight: Dict[PoolFuture, _InFlight] = {}
        abandoned = False

        pool = ThreadPoolExecutor(
            max_workers=config.max_workers, thread_name_prefix="deploykit"
        )
        try:
            while True:
                if cancellation is not None and cancellation.is_cancelled and not run.cancelled:
                    run.cancelled = True
                    logger.info(f"Cancellation requested: {cancellation.reason}")

                if not run.cancelled and not run.halted:
                    self._submit_ready(run, pool, in_flight, bindings, parameters)

                if not in_flight:
                    break

                done, _ = wait(
                    list(in_flight),
                    timeout=self._wait_timeout(in_flight),
                    return_when=FIRST_COMPLETED,
                )
                for pool_future in sorted(
                    done, key=lambda f: run.module.position(in_flight[f].resolved.action_id)
                ):
                    entry = in_flight.pop(pool_future)
                    self._complete(run, journal, bindings, entry.resolved, self._outcome_of(pool_future))

                now = time.monotonic()
                for pool_future, entry in list(in_flight.items()):
                    if entry.deadline is not None and now >= entry.deadline and not pool_future.done():
                        in_flight.pop(pool_future)
                        abandoned = True
                        timeout = ActionTimeoutError(
                            entry.resolved.action_id, config.action_timeout_seconds
                        )
                        logger.warning(timeout.message)
                        self._complete(run, journal, bindings, entry.resolved, Result.failure(
                            Error.create(ErrorCode.ACTION_TIMEOUT, timeout.message)
                        ))
        finally:
            # A timed-out call may never return; do not wait for it
            pool.shutdown(wait=not abandoned, cancel_futures=True)

        for action_id in list(run.pending):
            if not run.cancelled:
                run.pending.remove(action_id)
                run.tracker.transition(action_id, ActionStatus.BLOCKED, "halted after failure")

    def _wait_timeout(self, in_flight: Mapping[PoolFuture, _InFlight]) -> float:
        timeout = self._config.poll_interval_seconds
        deadlines = [e.deadline for e in in_flight.values() if e.deadline is not None]
        if deadlines:
            timeout = min(timeout, max(0.0, min(deadlines) - time.monotonic()))
        return timeout

    def _submit_ready(
        self,
        run: _Run,
        pool: ThreadPoolExecutor,
        in_flight: Dict[PoolFuture, _InFlight],
        bindings: BindingTable,
        parameters: Mapping[str, Any],
    ) -> None:
        for action_id in list(run.pending):
            if run.halted:
                return
            dependency_statuses = [run.tracker.status(dep) for dep in run.dependencies[action_id]]
            if not all(status is ActionStatus.SUCCESS for status in dependency_statuses):
                continue

            run.pending.remove(action_id)
            action = run.module.get(action_id)
            try:
                resolved = resolve_action(
                    run.module.name, action, bindings, parameters,
                    attempt=run.attempts[action_id],
                )
            except UnboundReferenceError as e:
                # Source succeeded but lacks the requested output slot
                error = Error.create(ErrorCode.OUTPUT_UNRESOLVABLE, str(e), action_id=action_id)
                run.errors[action_id] = error
                run.tracker.transition(action_id, ActionStatus.EXECUTING)
                run.tracker.transition(action_id, ActionStatus.FAILED, f"{error.code.name}: {error.message}")
                self._block_dependents(run, action_id)
                continue

            run.tracker.transition(action_id, ActionStatus.EXECUTING, f"attempt {resolved.attempt}")
            run.executed += 1
            deadline = None
            if self._config.action_timeout_seconds is not None:
                deadline = time.monotonic() + self._config.action_timeout_seconds
            in_flight[pool.submit(self._executor.execute, resolved)] = _InFlight(resolved, deadline)

    def _outcome_of(self, pool_future: PoolFuture) -> Result:
        try:
            result = pool_future.result()
        except Exception as e:
            logger.warning("Executor raised", exc_info=True)
            return Result.failure(Error.create(
                ErrorCode.EXECUTOR_RAISED, f"{type(e).__name__}: {e}"
            ))
        if not isinstance(result, Result):
            return Result.failure(Error.create(
                ErrorCode.INVALID_RESPONSE,
                f"executor returned {type(result).__name__}, expected Result"
            ))
        if result.is_success:
            try:
                canonical_json(result.value)
            except (TypeError, ValueError) as e:
                return Result.failure(Error.create(
                    ErrorCode.INVALID_RESPONSE, f"unserializable output: {e}"
                ))
        return result

    def _complete(
        self,
        run: _Run,
        journal: ExecutionJournal,
        bindings: BindingTable,
        resolved: ResolvedAction,
        result: Result,
    ) -> None:
        action_id = resolved.action_id
        record = ExecutionRecord(
            module_name=run.module.name,
            action_id=action_id,
            content_hash=resolved.content_hash,
            status=ExecutionStatus.SUCCESS if result.is_success else ExecutionStatus.FAILED,
            dependencies=resolved.dependencies,
            result_value=result.value if result.is_success else None,
            error=result.error,
            attempt=resolved.attempt,
        )
        journal.append(record)

        if result.is_success:
            bindings.bind(action_id, result.value)
            run.tracker.transition(action_id, ActionStatus.SUCCESS)
            return

        run.errors[action_id] = result.error
        run.tracker.transition(
            action_id, ActionStatus.FAILED,
            f"{result.error.code.name}: {result.error.message}"
        )
        self._block_dependents(run, action_id)

    def _block_dependents(self, run: _Run, failed_id: str) -> None:
        """Mark every pending transitive dependent BLOCKED."""
        if self._config.failure_policy is FailurePolicy.HALT:
            run.halted = True

        frontier = list(run.dependents[failed_id])
        seen: Set[str] = set()
        while frontier:
            action_id = frontier.pop()
            if action_id in seen:
                continue
            seen.add(action_id)
            frontier.extend(run.dependents[action_id])

        for action_id in sorted(seen, key=run.module.position):
            if run.tracker.status(action_id) is not ActionStatus.PENDING:
                continue
            run.pending.remove(action_id)
            run.blocked_by[action_id] = run.blocked_by.get(action_id, ()) + (failed_id,)
            run.tracker.transition(action_id, ActionStatus.BLOCKED, f"blocked by {failed_id}")

    # =========================================================================
    # RESULT
    # =========================================================================

    def _result(self, run: _Run, bindings: BindingTable, started_at: Timestamp) -> RunResult:
        statuses = run.tracker.snapshot()
        values = bindings.snapshot()

        outcomes = tuple(
            ActionOutcome(
                action_id=action_id,
                status=statuses[action_id],
                result_value=values.get(action_id) if statuses[action_id] is ActionStatus.SUCCESS else None,
                error=run.errors.get(action_id),
                replayed=action_id in run.replayed,
                blocked_by=run.blocked_by.get(action_id, ()),
            )
            for action_id in run.plan.order
        )

        if run.cancelled:
            status = RunStatus.CANCELLED
        elif all(o.status is ActionStatus.SUCCESS for o in outcomes):
            status = RunStatus.SUCCESS
        else:
            status = RunStatus.FAILED

        logger.info(f"Run of {run.module.name} finished: {status.value}, {run.executed} executed")

        return RunResult(
            module_name=run.module.name,
            status=status,
            outcomes=outcomes,
            executed_count=run.executed,
            started_at=started_at,
            finished_at=Timestamp.now(),
        )
