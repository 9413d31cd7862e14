"""
Cooperative cancellation.

Cancelling stops new scheduling only; in-flight executor calls run to
completion and are journaled.
"""

from __future__ import annotations
from typing import Optional
import threading

from ..contracts.errors import CancellationError


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancellation requested") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """For executors that poll the token between steps of a long call."""
        if self.is_cancelled:
            raise CancellationError(self._reason or "cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def __call__(self) -> bool:
        return self.is_cancelled
