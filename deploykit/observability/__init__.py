"""
Observability Layer

RESPONSIBILITY: Record action state transitions
ALLOWED INPUTS: TransitionEvent from the execution engine
OUTPUTS: Collected events, log lines

WHAT THIS LAYER MUST NOT DO:
============================
- Modify engine behavior
- Filter or interpret events (only record them)
- Block or delay execution
- Receive events from module construction (the builder emits none)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import logging
import threading

from ..contracts.events import ActionStatus, TransitionEvent


class ObservabilitySink:
    """
    Base sink interface.

    A sink is a callable taking one TransitionEvent.
    """

    def emit(self, event: TransitionEvent) -> None:
        raise NotImplementedError

    def __call__(self, event: TransitionEvent) -> None:
        self.emit(event)


class TransitionCollector(ObservabilitySink):
    """
    Append-only in-process collector.

    Workers emit concurrently, so collection is guarded by a lock.
    """

    def __init__(self):
        self._events: List[TransitionEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: TransitionEvent) -> None:
        with self._lock:
            self._events.append(event)

    def get_events(
        self,
        action_id: Optional[str] = None,
        to_status: Optional[ActionStatus] = None
    ) -> List[TransitionEvent]:
        """Get events, optionally filtered."""
        with self._lock:
            events = list(self._events)

        if action_id:
            events = [e for e in events if e.action_id == action_id]

        if to_status:
            events = [e for e in events if e.to_status == to_status]

        return events

    def history(self, action_id: str) -> List[ActionStatus]:
        """Status path of one action, starting with its first from_status."""
        events = self.get_events(action_id=action_id)
        if not events:
            return []
        return [events[0].from_status] + [e.to_status for e in events]

    def counts(self) -> Dict[ActionStatus, int]:
        totals: Dict[ActionStatus, int] = {}
        for event in self.get_events():
            totals[event.to_status] = totals.get(event.to_status, 0) + 1
        return totals

    @property
    def event_count(self) -> int:
        with self._lock:
            return len(self._events)


class LoggingSink(ObservabilitySink):
    """Forward transitions to the standard logging module."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("deploykit.transitions")

    def emit(self, event: TransitionEvent) -> None:
        level = logging.WARNING if event.to_status in (
            ActionStatus.FAILED, ActionStatus.BLOCKED
        ) else logging.INFO
        self._logger.log(
            level,
            "%s: %s -> %s%s",
            event.action_id,
            event.from_status.value,
            event.to_status.value,
            f" ({event.detail})" if event.detail else "",
        )


class CompositeSink(ObservabilitySink):
    """Fan one event out to several sinks."""

    def __init__(self, sinks: Sequence[ObservabilitySink]):
        self._sinks = tuple(sinks)

    def emit(self, event: TransitionEvent) -> None:
        for sink in self._sinks:
            sink.emit(event)


@dataclass
class ObservabilityConfig:
    """Configuration for observability."""
    collect_transitions: bool = True
    log_transitions: bool = False


class ObservabilityEngine:
    """Builds the sink the execution engine reports to."""

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()
        self._collector = TransitionCollector()
        sinks: List[ObservabilitySink] = []
        if self._config.collect_transitions:
            sinks.append(self._collector)
        if self._config.log_transitions:
            sinks.append(LoggingSink())
        self._sink = CompositeSink(sinks)

    @property
    def sink(self) -> ObservabilitySink:
        return self._sink

    @property
    def collector(self) -> TransitionCollector:
        return self._collector


__all__ = [
    'ObservabilitySink',
    'TransitionCollector',
    'LoggingSink',
    'CompositeSink',
    'ObservabilityConfig',
    'ObservabilityEngine',
]
