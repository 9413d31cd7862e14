"""
Argument Value Contracts
========================

Explicit tagged placeholders for values unknown at declaration time.

WHY TAGGED, NOT STAND-IN OBJECTS:
A Future is plain data naming (source action, output slot). It is
resolved through a binding table, never mutated in place, so a
declaration stays inspectable and serializable for the journal.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional, Union


@dataclass(frozen=True)
class Future:
    """Placeholder for an output of another action."""
    source_action_id: str
    output_slot: Optional[str] = None  # None = whole output

    def __str__(self) -> str:
        if self.output_slot is None:
            return self.source_action_id
        return f"{self.source_action_id}.{self.output_slot}"


MISSING = object()


@dataclass(frozen=True)
class Parameter:
    """Named external input resolved at run start."""
    name: str
    default: Any = None
    has_default: bool = False

    @staticmethod
    def create(name: str, default: Any = MISSING) -> Parameter:
        if default is MISSING:
            return Parameter(name=name)
        return Parameter(name=name, default=default, has_default=True)


Reference = Union[Future, Parameter]


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Future and Parameter embedded in a value, depth first."""
    if isinstance(value, (Future, Parameter)):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)
    elif isinstance(value, Mapping):
        for key in sorted(value):
            yield from iter_references(value[key])


def substitute(value: Any, resolve: Callable[[Reference], Any]) -> Any:
    """
    Replace every reference in a value with resolve(reference).

    Containers are rebuilt, never mutated. Tuples stay tuples.
    """
    if isinstance(value, (Future, Parameter)):
        return resolve(value)
    if isinstance(value, tuple):
        return tuple(substitute(item, resolve) for item in value)
    if isinstance(value, list):
        return [substitute(item, resolve) for item in value]
    if isinstance(value, Mapping):
        return {key: substitute(item, resolve) for key, item in value.items()}
    return value


def select_output(value: Any, slot: Optional[str]) -> Any:
    """
    Read one output slot from an action result.

    Raises KeyError when a named slot is not present.
    """
    if slot is None:
        return value
    if isinstance(value, Mapping) and slot in value:
        return value[slot]
    raise KeyError(slot)
