"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior, no side effects, no dependencies.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for executor outcomes.
    No silent fallbacks - every error state is enumerated.
    """
    # Transport errors (reported by executors)
    TRANSACTION_REVERTED = auto()
    TRANSACTION_DROPPED = auto()
    RPC_UNREACHABLE = auto()
    INSUFFICIENT_FUNDS = auto()
    INVALID_RESPONSE = auto()

    # Engine-side errors
    EXECUTOR_RAISED = auto()
    ACTION_TIMEOUT = auto()
    OUTPUT_UNRESOLVABLE = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: str) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=Timestamp.now().value,
            context=tuple(sorted((k, str(v)) for k, v in context.items()))
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code.name,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "context": [list(pair) for pair in self.context],
        }

    @staticmethod
    def from_dict(data: dict) -> Error:
        return Error(
            code=ErrorCode[data["code"]],
            message=data["message"],
            timestamp=Timestamp.from_iso(data["timestamp"]).value,
            context=tuple((k, v) for k, v in data.get("context", ())),
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @staticmethod
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return Timestamp(value=dt)

    def to_iso(self) -> str:
        return self.value.isoformat()
