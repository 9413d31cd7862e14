"""
Journal Stores
==============

Durable backing for the execution journal.

BOUNDARY ENFORCEMENT:
- Stores ONLY append and read back entries
- NEVER rewrite, reorder or drop an entry
- A store that cannot be read back faithfully raises
  JournalCorruptionError; it never skips lines
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List, Optional
import json
import os
import re

from ..contracts.errors import JournalCorruptionError
from ..contracts.journal import JournalEntry


class JournalStore:
    """
    Abstract journal store interface.

    Implementations must be append-only.
    """

    def read_entries(self) -> Iterator[JournalEntry]:
        raise NotImplementedError

    def write_entry(self, entry: JournalEntry) -> None:
        raise NotImplementedError

    @property
    def location(self) -> str:
        raise NotImplementedError


class InMemoryJournalStore(JournalStore):
    """Process-local store. Entries live as long as the object."""

    def __init__(self, entries: Optional[List[JournalEntry]] = None):
        self._entries: List[JournalEntry] = list(entries or [])

    def read_entries(self) -> Iterator[JournalEntry]:
        return iter(list(self._entries))

    def write_entry(self, entry: JournalEntry) -> None:
        self._entries.append(entry)

    @property
    def location(self) -> str:
        return "memory"


class FileJournalStore(JournalStore):
    """
    Append-only JSONL file, one entry per line.

    Each append is flushed (and fsynced when enabled) before returning,
    so an entry that was reported written survives a crash.
    """

    def __init__(self, path: str, fsync: bool = True):
        self._path = path
        self._fsync = fsync
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    @property
    def location(self) -> str:
        return self._path

    def read_entries(self) -> Iterator[JournalEntry]:
        if not os.path.exists(self._path):
            return

        with open(self._path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.endswith("\n"):
                    raise JournalCorruptionError(
                        f"truncated line {line_number} in {self._path}"
                    )
                try:
                    data = json.loads(line)
                    yield JournalEntry.from_dict(data)
                except (ValueError, KeyError, TypeError, AttributeError) as e:
                    raise JournalCorruptionError(
                        f"unreadable line {line_number} in {self._path}: {e}"
                    ) from e

    def write_entry(self, entry: JournalEntry) -> None:
        line = json.dumps(entry.to_dict(), sort_keys=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
            f.flush()
            if self._fsync:
                os.fsync(f.fileno())


# =============================================================================
# CONFIGURATION
# =============================================================================

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


def journal_filename(module_name: str) -> str:
    return _UNSAFE.sub("_", module_name) + ".jsonl"


@dataclass
class JournalConfig:
    """Configuration for journal persistence."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None
    fsync: bool = True

    def location_for(self, module_name: str) -> Optional[str]:
        """Journal file path for a module, or None for memory journals."""
        if self.backend_type != "file":
            return None
        if not self.storage_dir:
            raise ValueError("File journal requires storage_dir")
        return os.path.join(self.storage_dir, journal_filename(module_name))

    def exists(self, module_name: str) -> bool:
        """True when a persisted journal exists. Creates nothing."""
        path = self.location_for(module_name)
        return path is not None and os.path.exists(path)

    def create_store(self, module_name: str) -> JournalStore:
        """Create the store for one module based on configuration."""
        if self.backend_type == "file":
            return FileJournalStore(self.location_for(module_name), fsync=self.fsync)
        if self.backend_type != "memory":
            raise ValueError(f"Unknown journal backend: {self.backend_type}")
        return InMemoryJournalStore()
