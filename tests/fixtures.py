"""
Deployment Fixtures

Explicit modules and executors shared by the test suites.

RULES:
======
1. Every module is declared, never generated at random
2. Executors are deterministic apart from the timing they simulate
3. Each scripted executor documents the behaviour it injects
"""

from __future__ import annotations
from typing import Any, Callable, Iterable, Mapping, Optional
import os
import signal
import threading
import time

from deploykit.contracts.actions import Module, ResolvedAction
from deploykit.contracts.base import Result
from deploykit.core.builder import build_module
from deploykit.execution.executor import SimulatedExecutor


# =============================================================================
# MODULES
# =============================================================================

def chain_module(name: str = "Chain", seed: int = 1) -> Module:
    """A → B → C, plus an independent D."""
    def declare(m):
        a = m.contract("A", [seed])
        b = m.contract("B", [a])
        c = m.contract("C", [b])
        d = m.contract("D")
        return {"a": a, "b": b, "c": c, "d": d}
    return build_module(name, declare)


def token_vault_module(name: str = "TokenVault", supply: Any = 1000) -> Module:
    """Vault takes the Token address; Token then authorizes the Vault."""
    def declare(m):
        token = m.contract("Token", ["Token", "TKN", supply])
        vault = m.contract("Vault", [token])
        m.call(token, "setMinter", [vault, True])
        return {"token": token, "vault": vault}
    return build_module(name, declare)


def independent_module(name: str = "Trio", count: int = 3) -> Module:
    def declare(m):
        return {f"c{i}": m.contract(f"C{i}") for i in range(count)}
    return build_module(name, declare)


# =============================================================================
# SCRIPTED EXECUTORS
# =============================================================================

class ScriptedExecutor(SimulatedExecutor):
    """
    SimulatedExecutor with per-action hooks.

    delays: seconds to sleep before executing, by action id
    hooks: callables run before executing, by action id
    """

    def __init__(
        self,
        delays: Optional[Mapping[str, float]] = None,
        hooks: Optional[Mapping[str, Callable[[ResolvedAction], None]]] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self._delays = dict(delays or {})
        self._hooks = dict(hooks or {})

    def execute(self, action: ResolvedAction) -> Result:
        hook = self._hooks.get(action.action_id)
        if hook is not None:
            hook(action)
        delay = self._delays.get(action.action_id)
        if delay:
            time.sleep(delay)
        return super().execute(action)


class BarrierExecutor(SimulatedExecutor):
    """
    Every call waits until `parties` calls are in flight at once.

    Serial execution breaks the barrier and surfaces as EXECUTOR_RAISED.
    """

    def __init__(self, parties: int, timeout: float = 5.0, **kwargs):
        super().__init__(**kwargs)
        self._barrier = threading.Barrier(parties, timeout=timeout)

    def execute(self, action: ResolvedAction) -> Result:
        self._barrier.wait()
        return super().execute(action)


class HangingExecutor(SimulatedExecutor):
    """Calls for `hang_ids` block until release() (or a safety timeout)."""

    def __init__(self, hang_ids: Iterable[str], safety_timeout: float = 10.0, **kwargs):
        super().__init__(**kwargs)
        self._hang_ids = frozenset(hang_ids)
        self._release = threading.Event()
        self._safety_timeout = safety_timeout

    def release(self) -> None:
        self._release.set()

    def execute(self, action: ResolvedAction) -> Result:
        if action.action_id in self._hang_ids:
            self._release.wait(self._safety_timeout)
        return super().execute(action)


class RaisingExecutor(SimulatedExecutor):
    """Raises instead of returning a Result for `raise_ids`."""

    def __init__(self, raise_ids: Iterable[str], **kwargs):
        super().__init__(**kwargs)
        self._raise_ids = frozenset(raise_ids)

    def execute(self, action: ResolvedAction) -> Result:
        if action.action_id in self._raise_ids:
            raise RuntimeError(f"rpc exploded on {action.action_id}")
        return super().execute(action)


class BadOutputExecutor(SimulatedExecutor):
    """Returns a plain dict (not a Result) for every call."""

    def execute(self, action: ResolvedAction):
        return {"address": "0x0"}


class FixedOutputExecutor(SimulatedExecutor):
    """Records the call, then succeeds with the same output for every action."""

    def __init__(self, output: Any, **kwargs):
        super().__init__(**kwargs)
        self._output = output

    def execute(self, action: ResolvedAction) -> Result:
        super().execute(action)
        return Result.success(self._output)


# =============================================================================
# CLI EXECUTOR FACTORIES
# =============================================================================

def failing_vault_executor() -> SimulatedExecutor:
    return SimulatedExecutor(fail_actions={"TokenVaultModule#Vault"})


def interrupting_executor() -> SimulatedExecutor:
    """Sends SIGINT to this process while deploying the Token."""
    def interrupt(action: ResolvedAction) -> None:
        os.kill(os.getpid(), signal.SIGINT)
        time.sleep(0.2)
    return ScriptedExecutor(hooks={"TokenVaultModule#Token": interrupt})


def not_an_executor():
    return object()
