"""
Execution Journal
=================

Append-only record of per-action outcomes for one module.

INVARIANTS:
- No updates or deletes - append only
- Every entry has a monotonic sequence number
- Hash chain for integrity verification
- At most one SUCCESS per action id, and nothing after it
- A FAILED record may only be followed by a later attempt of the
  same action (retry-on-resume policy)

This is the SOURCE OF TRUTH for resume. The binding table
(action id → result) is DERIVED from it, never stored separately.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple
import threading

from ..contracts.errors import JournalCorruptionError
from ..contracts.journal import (
    ExecutionRecord, ExecutionStatus, JournalEntry, JournalSequence, compute_entry_hash
)
from .store import InMemoryJournalStore, JournalStore


@dataclass(frozen=True)
class JournalState:
    """Immutable snapshot of journal state."""
    head_sequence: JournalSequence
    head_hash: str
    entry_count: int

    @staticmethod
    def empty() -> JournalState:
        return JournalState(
            head_sequence=JournalSequence(0),
            head_hash="",
            entry_count=0
        )


class ExecutionJournal:
    """
    Hash-chained journal with a single-writer discipline.

    GUARANTEES:
    ===========
    1. NO updates - entries are immutable once written
    2. NO reordering - entries appear in append (completion) order
    3. Verifiable - every entry is checked on load
    4. Refuses to open over a corrupted store (JournalCorruptionError)
    """

    def __init__(self, module_name: str, store: Optional[JournalStore] = None):
        self._module_name = module_name
        self._store = store or InMemoryJournalStore()
        self._lock = threading.Lock()

        self._entries: List[JournalEntry] = []
        self._sequence = JournalSequence(0)
        self._head_hash = ""

        # Latest record per action (derived, not authoritative)
        self._latest: Dict[str, ExecutionRecord] = {}

        for entry in self._store.read_entries():
            self.load_verified_entry(entry)

    @property
    def module_name(self) -> str:
        return self._module_name

    @property
    def location(self) -> str:
        return self._store.location

    @property
    def state(self) -> JournalState:
        """Get current journal state (immutable snapshot)."""
        with self._lock:
            return JournalState(
                head_sequence=self._sequence,
                head_hash=self._head_hash,
                entry_count=len(self._entries)
            )

    def __len__(self) -> int:
        return len(self._entries)

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def append(self, record: ExecutionRecord) -> JournalEntry:
        """
        Append a record.

        This is the ONLY write operation. The store write happens before
        in-memory state changes, so a failed write leaves both unchanged.
        """
        with self._lock:
            problem = self._check_record(record)
            if problem:
                raise ValueError(f"Refusing to append {record.action_id}: {problem}")

            entry = JournalEntry.create(
                sequence=self._sequence.next(),
                record=record,
                previous_hash=self._head_hash
            )
            self._store.write_entry(entry)
            self._accept(entry)
            return entry

    def load_verified_entry(self, entry: JournalEntry) -> None:
        """
        Load an existing entry from storage.

        VERIFIES:
        1. Sequence is monotonic (next in line)
        2. Previous hash matches current head
        3. Entry hash is valid for its content
        4. Record belongs to this module and respects per-action rules
        """
        with self._lock:
            expected = self._sequence.next()
            if entry.sequence.value != expected.value:
                raise JournalCorruptionError(
                    f"expected sequence {expected.value}, got {entry.sequence.value}",
                    sequence=entry.sequence.value
                )
            if entry.previous_hash != self._head_hash:
                raise JournalCorruptionError(
                    "broken hash chain", sequence=entry.sequence.value
                )
            computed = compute_entry_hash(entry.sequence, entry.record, entry.previous_hash)
            if computed != entry.entry_hash:
                raise JournalCorruptionError(
                    "entry hash mismatch", sequence=entry.sequence.value,
                    action_ids=(entry.record.action_id,)
                )
            problem = self._check_record(entry.record)
            if problem:
                raise JournalCorruptionError(
                    problem, sequence=entry.sequence.value,
                    action_ids=(entry.record.action_id,)
                )
            self._accept(entry)

    def _check_record(self, record: ExecutionRecord) -> Optional[str]:
        if record.module_name != self._module_name:
            return f"record for module '{record.module_name}' in journal of '{self._module_name}'"
        previous = self._latest.get(record.action_id)
        if previous is None:
            if record.attempt != 1:
                return f"first record for {record.action_id} has attempt {record.attempt}"
            return None
        if previous.status is ExecutionStatus.SUCCESS:
            return f"{record.action_id} already succeeded"
        if record.attempt != previous.attempt + 1:
            return (
                f"{record.action_id} attempt {record.attempt} "
                f"does not follow attempt {previous.attempt}"
            )
        return None

    def _accept(self, entry: JournalEntry) -> None:
        self._entries.append(entry)
        self._sequence = entry.sequence
        self._head_hash = entry.entry_hash
        self._latest[entry.record.action_id] = entry.record

    # =========================================================================
    # READ PATH
    # =========================================================================

    def replay(self) -> Iterator[JournalEntry]:
        """Entries in sequence order."""
        with self._lock:
            entries = list(self._entries)
        yield from entries

    def records(self) -> Tuple[ExecutionRecord, ...]:
        return tuple(entry.record for entry in self.replay())

    def get(self, action_id: str) -> Optional[ExecutionRecord]:
        """Latest record for an action, if any."""
        with self._lock:
            return self._latest.get(action_id)

    def action_ids(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._latest)

    def bindings(self) -> Dict[str, Any]:
        """Reconstruct the binding table from SUCCESS records."""
        return {
            record.action_id: record.result_value
            for record in self.records()
            if record.status is ExecutionStatus.SUCCESS
        }

    def verify_integrity(self) -> Tuple[bool, Optional[str]]:
        """Re-walk the hash chain. Returns (is_valid, error message)."""
        previous_hash = ""
        for index, entry in enumerate(self.replay(), start=1):
            if entry.sequence.value != index:
                return False, f"Sequence gap at entry {index}"
            if entry.previous_hash != previous_hash:
                return False, f"Broken hash chain at {entry.sequence.value}"
            if compute_entry_hash(entry.sequence, entry.record, entry.previous_hash) != entry.entry_hash:
                return False, f"Corrupt entry at {entry.sequence.value}: Hash mismatch"
            previous_hash = entry.entry_hash
        return True, None
