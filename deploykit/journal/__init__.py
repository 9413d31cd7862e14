"""
Journal Layer
=============

Durable, append-only execution history.

INVARIANTS:
- Records are appended in completion order, never rewritten
- The binding table is derived from the journal on every resume
- A journal that fails verification is never used

Modules:
- store: memory and JSONL file backends
- journal: hash-chained ExecutionJournal
- state_machine: per-action lifecycle and derived statuses
"""

from .store import FileJournalStore, InMemoryJournalStore, JournalConfig, JournalStore
from .journal import ExecutionJournal, JournalState
from .state_machine import ActionStateTracker, InvalidTransitionError, derive_statuses

__all__ = [
    'FileJournalStore',
    'InMemoryJournalStore',
    'JournalConfig',
    'JournalStore',
    'ExecutionJournal',
    'JournalState',
    'ActionStateTracker',
    'InvalidTransitionError',
    'derive_statuses',
]
