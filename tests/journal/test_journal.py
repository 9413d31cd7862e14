"""
Journal Integrity Tests
=======================

INVARIANTS TESTED:
1. Append-only, hash-chained, sequence-ordered
2. Reopening a store reproduces the same journal
3. Any tampering or truncation is JournalCorruptionError, never skipped
4. Per-action record rules (attempt numbering, nothing after SUCCESS)
"""

import json

import pytest

from deploykit.contracts.base import Error, ErrorCode
from deploykit.contracts.errors import JournalCorruptionError
from deploykit.contracts.journal import ExecutionRecord, ExecutionStatus
from deploykit.journal.journal import ExecutionJournal
from deploykit.journal.store import FileJournalStore, InMemoryJournalStore, JournalConfig


def success(action_id, value=None, attempt=1, module="M", dependencies=()):
    return ExecutionRecord(
        module_name=module,
        action_id=action_id,
        content_hash=f"hash-{action_id}",
        status=ExecutionStatus.SUCCESS,
        dependencies=tuple(dependencies),
        result_value=value,
        attempt=attempt,
    )


def failure(action_id, attempt=1, module="M"):
    return ExecutionRecord(
        module_name=module,
        action_id=action_id,
        content_hash=f"hash-{action_id}",
        status=ExecutionStatus.FAILED,
        error=Error.create(ErrorCode.TRANSACTION_REVERTED, "reverted"),
        attempt=attempt,
    )


@pytest.fixture
def journal_path(tmp_path):
    return str(tmp_path / "net" / "M.jsonl")


class TestAppendOnly:

    def test_sequence_and_chain(self):
        journal = ExecutionJournal("M")
        first = journal.append(success("M#A", {"address": "0x1"}))
        second = journal.append(success("M#B", {"address": "0x2"}, dependencies=["M#A"]))

        assert first.sequence.value == 1
        assert second.sequence.value == 2
        assert first.previous_hash == ""
        assert second.previous_hash == first.entry_hash
        assert journal.state.head_hash == second.entry_hash
        assert journal.verify_integrity() == (True, None)

    def test_bindings_from_success_only(self):
        journal = ExecutionJournal("M")
        journal.append(success("M#A", {"address": "0x1"}))
        journal.append(failure("M#B"))
        assert journal.bindings() == {"M#A": {"address": "0x1"}}

    def test_get_returns_latest_attempt(self):
        journal = ExecutionJournal("M")
        journal.append(failure("M#A"))
        journal.append(success("M#A", attempt=2))
        assert journal.get("M#A").attempt == 2
        assert journal.get("M#A").is_success
        assert len(journal) == 2

    def test_nothing_after_success(self):
        journal = ExecutionJournal("M")
        journal.append(success("M#A"))
        with pytest.raises(ValueError, match="already succeeded"):
            journal.append(success("M#A", attempt=2))
        assert len(journal) == 1

    def test_attempts_must_follow(self):
        journal = ExecutionJournal("M")
        with pytest.raises(ValueError):
            journal.append(failure("M#A", attempt=2))
        journal.append(failure("M#A"))
        with pytest.raises(ValueError):
            journal.append(failure("M#A", attempt=3))

    def test_foreign_module_rejected(self):
        journal = ExecutionJournal("M")
        with pytest.raises(ValueError):
            journal.append(success("Other#A", module="Other"))

    def test_store_failure_leaves_journal_unchanged(self):
        class BrokenStore(InMemoryJournalStore):
            def write_entry(self, entry):
                raise OSError("disk full")

        journal = ExecutionJournal("M", BrokenStore())
        with pytest.raises(OSError):
            journal.append(success("M#A"))
        assert len(journal) == 0
        assert journal.get("M#A") is None


class TestFilePersistence:

    def test_reopen_reproduces_journal(self, journal_path):
        journal = ExecutionJournal("M", FileJournalStore(journal_path))
        journal.append(success("M#A", {"address": "0x1", "raw": b"\x01"}))
        journal.append(failure("M#B"))

        reopened = ExecutionJournal("M", FileJournalStore(journal_path))
        assert reopened.state == journal.state
        assert reopened.get("M#A").result_value == {"address": "0x1", "raw": b"\x01"}
        assert reopened.get("M#B").error.code is ErrorCode.TRANSACTION_REVERTED

    def test_tampered_result_detected(self, journal_path):
        journal = ExecutionJournal("M", FileJournalStore(journal_path))
        journal.append(success("M#A", {"address": "0x1"}))
        journal.append(success("M#B", {"address": "0x2"}))

        with open(journal_path) as f:
            lines = f.readlines()
        row = json.loads(lines[0])
        row["record"]["result_value"]["address"] = "0xevil"
        lines[0] = json.dumps(row) + "\n"
        with open(journal_path, "w") as f:
            f.writelines(lines)

        with pytest.raises(JournalCorruptionError) as excinfo:
            ExecutionJournal("M", FileJournalStore(journal_path))
        assert excinfo.value.sequence == 1

    def test_removed_entry_detected(self, journal_path):
        journal = ExecutionJournal("M", FileJournalStore(journal_path))
        for name in ("A", "B", "C"):
            journal.append(success(f"M#{name}"))

        with open(journal_path) as f:
            lines = f.readlines()
        with open(journal_path, "w") as f:
            f.writelines([lines[0], lines[2]])

        with pytest.raises(JournalCorruptionError):
            ExecutionJournal("M", FileJournalStore(journal_path))

    def test_truncated_last_line_detected(self, journal_path):
        journal = ExecutionJournal("M", FileJournalStore(journal_path))
        journal.append(success("M#A"))
        journal.append(success("M#B"))

        with open(journal_path) as f:
            content = f.read()
        with open(journal_path, "w") as f:
            f.write(content[:-20])

        with pytest.raises(JournalCorruptionError, match="truncated"):
            ExecutionJournal("M", FileJournalStore(journal_path))

    def test_garbage_line_detected(self, journal_path):
        journal = ExecutionJournal("M", FileJournalStore(journal_path))
        journal.append(success("M#A"))
        with open(journal_path, "a") as f:
            f.write("not json\n")

        with pytest.raises(JournalCorruptionError, match="unreadable"):
            ExecutionJournal("M", FileJournalStore(journal_path))

    def test_journal_of_other_module_rejected(self, journal_path):
        journal = ExecutionJournal("M", FileJournalStore(journal_path))
        journal.append(success("M#A"))
        with pytest.raises(JournalCorruptionError):
            ExecutionJournal("Other", FileJournalStore(journal_path))


class TestJournalConfig:

    def test_file_location(self, tmp_path):
        config = JournalConfig(backend_type="file", storage_dir=str(tmp_path))
        assert config.location_for("My Module") == str(tmp_path / "My_Module.jsonl")
        assert config.exists("My Module") is False

    def test_memory_has_no_location(self):
        config = JournalConfig()
        assert config.location_for("M") is None
        assert isinstance(config.create_store("M"), InMemoryJournalStore)

    def test_file_requires_directory(self):
        with pytest.raises(ValueError):
            JournalConfig(backend_type="file").create_store("M")

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            JournalConfig(backend_type="s3").create_store("M")
