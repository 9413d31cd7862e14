"""
Executor Abstraction Layer
==========================

Abstract interface for whatever performs the real side effect of an
action (chain RPC, signing, broadcasting).

BOUNDARY ENFORCEMENT:
- Executors are stateless from the engine's point of view
- Failures are explicit Result.failure values
- Chain-side deduplication is the executor's concern; the engine only
  guarantees at most one call per (action id, content hash) per run
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
import hashlib
import threading
import time

from ..contracts.actions import ActionKind, ResolvedAction
from ..contracts.base import Error, ErrorCode, Result


class Executor(ABC):
    """
    Performs the chain interaction for one resolved action.

    EXPLICIT FAILURE STATES:
    - TRANSACTION_REVERTED: the chain rejected the transaction
    - TRANSACTION_DROPPED: never mined
    - RPC_UNREACHABLE: transport failure
    - INSUFFICIENT_FUNDS: sender cannot pay
    - INVALID_RESPONSE: output could not be interpreted
    """

    @abstractmethod
    def execute(self, action: ResolvedAction) -> Result:
        """
        Execute one action.

        SHOULD return Result, never raise. A raised exception is still
        recorded, as EXECUTOR_RAISED.
        """


def _hex_digest(*parts: str) -> str:
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class SimulatedExecutor(Executor):
    """
    Deterministic in-process chain for local runs and tests.

    Addresses and transaction hashes are derived from the content hash,
    so the same action always produces the same output.
    """

    def __init__(
        self,
        latency_ms: float = 0.0,
        fail_actions: Iterable[str] = (),
        failure_code: ErrorCode = ErrorCode.TRANSACTION_REVERTED,
        static_results: Optional[Mapping[str, Any]] = None,
        events: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None,
    ):
        """
        Args:
            latency_ms: Simulated latency per call
            fail_actions: Action ids that always fail
            failure_code: Error code used for those failures
            static_results: Return values for STATIC_CALL actions, by action id
            events: Logs emitted by transactions, by action id
        """
        self._latency_ms = latency_ms
        self._fail_actions = frozenset(fail_actions)
        self._failure_code = failure_code
        self._static_results = dict(static_results or {})
        self._events = {key: list(value) for key, value in (events or {}).items()}
        self._calls: List[ResolvedAction] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> List[ResolvedAction]:
        with self._lock:
            return list(self._calls)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)

    def called_ids(self) -> List[str]:
        return [action.action_id for action in self.calls]

    def execute(self, action: ResolvedAction) -> Result:
        with self._lock:
            self._calls.append(action)

        if self._latency_ms:
            time.sleep(self._latency_ms / 1000.0)

        if action.action_id in self._fail_actions:
            return Result.failure(Error.create(
                self._failure_code,
                f"simulated failure for {action.target}",
                action_id=action.action_id,
            ))

        handler = {
            ActionKind.DEPLOY_CONTRACT: self._deploy,
            ActionKind.CONTRACT_AT: self._contract_at,
            ActionKind.CALL: self._transaction,
            ActionKind.SEND_VALUE: self._transaction,
            ActionKind.STATIC_CALL: self._static_call,
            ActionKind.READ_EVENT_ARGUMENT: self._read_event_argument,
        }[action.kind]
        return handler(action)

    def _receipt(self, action: ResolvedAction) -> Dict[str, Any]:
        return {
            "tx_hash": "0x" + _hex_digest("tx", action.content_hash),
            "logs": list(self._events.get(action.action_id, ())),
        }

    def _deploy(self, action: ResolvedAction) -> Result:
        receipt = self._receipt(action)
        receipt["address"] = "0x" + _hex_digest("address", action.content_hash)[:40]
        return Result.success(receipt)

    def _contract_at(self, action: ResolvedAction) -> Result:
        return Result.success({"address": action.option("address")})

    def _transaction(self, action: ResolvedAction) -> Result:
        return Result.success(self._receipt(action))

    def _static_call(self, action: ResolvedAction) -> Result:
        value = self._static_results.get(action.action_id)
        output = action.option("output")
        if output is not None:
            if not isinstance(value, Mapping) or output not in value:
                return Result.failure(Error.create(
                    ErrorCode.INVALID_RESPONSE,
                    f"static call result has no output '{output}'",
                    action_id=action.action_id,
                ))
            value = value[output]
        return Result.success(value)

    def _read_event_argument(self, action: ResolvedAction) -> Result:
        receipt = action.option("receipt") or {}
        matching = [
            log for log in receipt.get("logs", ())
            if log.get("event") == action.target
        ]
        index = action.option("event_index", 0)
        argument = action.option("argument")
        try:
            return Result.success(matching[index]["args"][argument])
        except (IndexError, KeyError, TypeError):
            return Result.failure(Error.create(
                ErrorCode.INVALID_RESPONSE,
                f"event {action.target}[{index}] has no argument {argument!r}",
                action_id=action.action_id,
            ))
