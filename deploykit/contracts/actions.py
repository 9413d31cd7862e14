"""
Action and Module Contracts
===========================

The immutable deployment graph produced by declaration.

INVARIANTS:
- An Action never changes after construction
- content_hash is a pure function of kind + target + args + options + dependencies
- A Module is built once and never mutated
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, Optional, Tuple

from .codec import digest
from .values import Future, Parameter, Reference, iter_references


class ActionKind(Enum):
    """Every kind of deployment-graph node."""
    DEPLOY_CONTRACT = "DeployContract"
    CALL = "Call"
    STATIC_CALL = "StaticCall"
    SEND_VALUE = "SendValue"
    READ_EVENT_ARGUMENT = "ReadEventArgument"
    CONTRACT_AT = "ContractAt"

    @property
    def yields_contract(self) -> bool:
        """Whether the output carries a contract address."""
        return self in (ActionKind.DEPLOY_CONTRACT, ActionKind.CONTRACT_AT)


def content_hash(
    kind: ActionKind,
    target: str,
    args: Any,
    options: Any,
    dependencies: Any
) -> str:
    """
    Hash identifying what an action does.

    Used both before resolution (references in tagged form) and after
    (references substituted with concrete values).
    """
    return digest({
        "kind": kind.value,
        "target": target,
        "args": list(args),
        "options": [[name, value] for name, value in options],
        "dependencies": sorted(dependencies),
    })


@dataclass(frozen=True)
class Action:
    """
    One node in the deployment graph.

    args and option values may embed Futures and Parameters at any depth.
    """
    action_id: str
    kind: ActionKind
    target: str
    args: Tuple[Any, ...] = ()
    options: Tuple[Tuple[str, Any], ...] = ()
    depends_on: FrozenSet[str] = frozenset()

    def references(self) -> Iterator[Reference]:
        yield from iter_references(self.args)
        for _, value in self.options:
            yield from iter_references(value)

    def future_dependencies(self) -> FrozenSet[str]:
        return frozenset(
            ref.source_action_id for ref in self.references()
            if isinstance(ref, Future)
        )

    def parameters(self) -> Tuple[Parameter, ...]:
        return tuple(ref for ref in self.references() if isinstance(ref, Parameter))

    def dependencies(self) -> FrozenSet[str]:
        """Explicit plus future-induced dependencies."""
        return self.depends_on | self.future_dependencies()

    def declaration_hash(self) -> str:
        return content_hash(
            self.kind, self.target, self.args, self.options, self.dependencies()
        )


@dataclass(frozen=True)
class FutureHandle:
    """What a declaration call returns; a factory for Futures on one action."""
    action_id: str
    kind: ActionKind

    @property
    def id(self) -> str:
        return self.action_id

    @property
    def address(self) -> Future:
        return Future(self.action_id, "address")

    @property
    def result(self) -> Future:
        return Future(self.action_id, None)

    def output(self, slot: str) -> Future:
        return Future(self.action_id, slot)

    def as_argument(self) -> Future:
        """The Future a bare handle stands for when passed as an argument."""
        return self.address if self.kind.yields_contract else self.result


@dataclass(frozen=True)
class Module:
    """Immutable, named graph of actions in declaration order."""
    name: str
    actions: Tuple[Action, ...]
    results: Tuple[Tuple[str, FutureHandle], ...] = ()

    _index: Dict[str, int] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, '_index',
            {action.action_id: position for position, action in enumerate(self.actions)}
        )

    @property
    def action_ids(self) -> Tuple[str, ...]:
        return tuple(action.action_id for action in self.actions)

    def __contains__(self, action_id: str) -> bool:
        return action_id in self._index

    def __len__(self) -> int:
        return len(self.actions)

    def get(self, action_id: str) -> Action:
        return self.actions[self._index[action_id]]

    def position(self, action_id: str) -> int:
        return self._index[action_id]

    def parameters(self) -> Tuple[Parameter, ...]:
        """Unique parameters by name, first declaration wins."""
        seen: Dict[str, Parameter] = {}
        for action in self.actions:
            for parameter in action.parameters():
                seen.setdefault(parameter.name, parameter)
        return tuple(seen.values())

    def result(self, name: str) -> FutureHandle:
        for result_name, handle in self.results:
            if result_name == name:
                return handle
        raise KeyError(name)


@dataclass(frozen=True)
class ResolvedAction:
    """An action with every reference replaced by a concrete value."""
    module_name: str
    action_id: str
    kind: ActionKind
    target: str
    args: Tuple[Any, ...]
    options: Tuple[Tuple[str, Any], ...]
    dependencies: Tuple[str, ...]
    content_hash: str
    attempt: int = 1

    def option(self, name: str, default: Optional[Any] = None) -> Any:
        for option_name, value in self.options:
            if option_name == name:
                return value
        return default
