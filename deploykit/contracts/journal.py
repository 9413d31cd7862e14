"""
Journal Contracts
=================

Records persisted per action outcome, and the hash-chained entry that
wraps each of them.

INVARIANTS:
- Once written, never modified
- Only SUCCESS and FAILED are persisted; BLOCKED is always derived
- Entries form a hash chain for integrity verification
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple
import hashlib

from .base import Error, Timestamp
from .codec import decode, dumps, encode


class ExecutionStatus(Enum):
    """Terminal outcomes that are journaled."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class JournalSequence:
    """Immutable sequence position in the journal."""
    value: int

    def next(self) -> JournalSequence:
        return JournalSequence(self.value + 1)

    def __lt__(self, other: JournalSequence) -> bool:
        return self.value < other.value

    def __le__(self, other: JournalSequence) -> bool:
        return self.value <= other.value


@dataclass(frozen=True)
class ExecutionRecord:
    """Outcome of one executor call for one action."""
    module_name: str
    action_id: str
    content_hash: str
    status: ExecutionStatus
    dependencies: Tuple[str, ...] = ()
    result_value: Any = None
    error: Optional[Error] = None
    attempt: int = 1
    recorded_at: Timestamp = field(default_factory=Timestamp.now)

    @property
    def is_success(self) -> bool:
        return self.status is ExecutionStatus.SUCCESS

    def to_dict(self) -> dict:
        return {
            "module": self.module_name,
            "action_id": self.action_id,
            "content_hash": self.content_hash,
            "status": self.status.value,
            "dependencies": list(self.dependencies),
            "result_value": encode(self.result_value),
            "error": self.error.to_dict() if self.error else None,
            "attempt": self.attempt,
            "recorded_at": self.recorded_at.to_iso(),
        }

    @staticmethod
    def from_dict(data: dict) -> ExecutionRecord:
        """Rebuild a record. Raises KeyError/ValueError on malformed input."""
        return ExecutionRecord(
            module_name=data["module"],
            action_id=data["action_id"],
            content_hash=data["content_hash"],
            status=ExecutionStatus(data["status"]),
            dependencies=tuple(data.get("dependencies", ())),
            result_value=decode(data.get("result_value")),
            error=Error.from_dict(data["error"]) if data.get("error") else None,
            attempt=int(data.get("attempt", 1)),
            recorded_at=Timestamp.from_iso(data["recorded_at"]),
        )


def compute_entry_hash(sequence: JournalSequence, record: ExecutionRecord, previous_hash: str) -> str:
    hash_content = (
        f"{sequence.value}|"
        f"{dumps(record.to_dict())}|"
        f"{previous_hash}"
    )
    return hashlib.sha256(hash_content.encode()).hexdigest()


@dataclass(frozen=True)
class JournalEntry:
    """
    Immutable journal entry.
    INVARIANTS:
    - Once written, never modified.
    - entry_hash covers sequence, record and previous_hash.
    """
    sequence: JournalSequence
    record: ExecutionRecord
    previous_hash: str
    entry_hash: str

    @staticmethod
    def create(
        sequence: JournalSequence,
        record: ExecutionRecord,
        previous_hash: str
    ) -> JournalEntry:
        """Factory for deterministic entry creation."""
        return JournalEntry(
            sequence=sequence,
            record=record,
            previous_hash=previous_hash,
            entry_hash=compute_entry_hash(sequence, record, previous_hash)
        )

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence.value,
            "record": self.record.to_dict(),
            "previous_hash": self.previous_hash,
            "entry_hash": self.entry_hash,
        }

    @staticmethod
    def from_dict(data: dict) -> JournalEntry:
        return JournalEntry(
            sequence=JournalSequence(int(data["sequence"])),
            record=ExecutionRecord.from_dict(data["record"]),
            previous_hash=data["previous_hash"],
            entry_hash=data["entry_hash"],
        )
