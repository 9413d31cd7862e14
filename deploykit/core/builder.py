"""
Graph Builder
=============

Turns declared actions into an immutable Module.

TWO PURE PASSES:
1. Declaration: ModuleBuilder accumulates immutable Action descriptors.
   No I/O, no logging, no observability events.
2. Validation: validate_module checks the descriptor list and produces
   the Module, or raises a DefinitionError.

IDEMPOTENCE:
Declaring an id again with identical content returns the existing
handle. Different content under the same id is a DuplicateActionError.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..contracts.actions import Action, ActionKind, FutureHandle, Module
from ..contracts.codec import encode
from ..contracts.errors import (
    CyclicDependencyError, DuplicateActionError, UnresolvedFutureError
)
from ..contracts.values import MISSING, Parameter
from .topology import DependencyTopology


Dependency = Union[FutureHandle, str]


def _normalize(value: Any) -> Any:
    """Replace bare handles by the Future they stand for, recursively."""
    if isinstance(value, FutureHandle):
        return value.as_argument()
    if isinstance(value, tuple):
        return tuple(_normalize(item) for item in value)
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _normalize(item) for key, item in value.items()}
    return value


def _local_name(action_id: str) -> str:
    return action_id.split("#", 1)[-1]


class ModuleBuilder:
    """
    Declaration surface for one module.

    Every helper funnels into declare(); ids default to
    '<Module>#<name>' and can be overridden with id=.
    """

    def __init__(self, name: str):
        if not name or "#" in name:
            raise ValueError("Module name must be non-empty and must not contain '#'")
        self._name = name
        self._actions: List[Action] = []
        self._handles: Dict[str, FutureHandle] = {}
        self._hashes: Dict[str, str] = {}

    @property
    def name(self) -> str:
        return self._name

    def _action_id(self, local_name: str) -> str:
        return f"{self._name}#{local_name}"

    def _dependency_id(self, dep: Dependency) -> str:
        # Bare names are local to this module; "Other#X" ids are taken as given
        if isinstance(dep, FutureHandle):
            return dep.action_id
        return dep if "#" in dep else self._action_id(dep)

    # =========================================================================
    # GENERIC DECLARATION
    # =========================================================================

    def declare(
        self,
        kind: ActionKind,
        target: str,
        args: Sequence[Any] = (),
        *,
        id: Optional[str] = None,
        after: Iterable[Dependency] = (),
        options: Optional[Mapping[str, Any]] = None,
    ) -> FutureHandle:
        """Record one action descriptor and return its handle."""
        action_id = self._action_id(id or target)

        normalized_args = tuple(_normalize(list(args)))
        normalized_options = tuple(
            (key, _normalize(value))
            for key, value in sorted((options or {}).items())
            if value is not None
        )
        # Fail at declaration time on values the journal could never store
        encode(normalized_args)
        encode([value for _, value in normalized_options])

        action = Action(
            action_id=action_id,
            kind=kind,
            target=target,
            args=normalized_args,
            options=normalized_options,
            depends_on=frozenset(self._dependency_id(dep) for dep in after),
        )
        return self._record(action)

    def _record(self, action: Action) -> FutureHandle:
        declaration_hash = action.declaration_hash()
        existing = self._hashes.get(action.action_id)
        if existing is not None:
            if existing != declaration_hash:
                raise DuplicateActionError(action.action_id)
            return self._handles[action.action_id]

        handle = FutureHandle(action_id=action.action_id, kind=action.kind)
        self._actions.append(action)
        self._hashes[action.action_id] = declaration_hash
        self._handles[action.action_id] = handle
        return handle

    # =========================================================================
    # DECLARATION HELPERS
    # =========================================================================

    def contract(
        self,
        contract_name: str,
        args: Sequence[Any] = (),
        *,
        id: Optional[str] = None,
        after: Iterable[Dependency] = (),
        value: Any = None,
        sender: Any = None,
    ) -> FutureHandle:
        """Deploy a contract. Output: {"address": ..., ...}."""
        return self.declare(
            ActionKind.DEPLOY_CONTRACT, contract_name, args,
            id=id, after=after, options={"value": value, "from": sender},
        )

    def contract_at(
        self,
        contract_name: str,
        address: Any,
        *,
        id: Optional[str] = None,
        after: Iterable[Dependency] = (),
    ) -> FutureHandle:
        """Attach to an already deployed contract."""
        return self.declare(
            ActionKind.CONTRACT_AT, contract_name, (),
            id=id, after=after, options={"address": address},
        )

    def call(
        self,
        contract: FutureHandle,
        function_name: str,
        args: Sequence[Any] = (),
        *,
        id: Optional[str] = None,
        after: Iterable[Dependency] = (),
        value: Any = None,
        sender: Any = None,
    ) -> FutureHandle:
        """Send a state-changing call to a contract."""
        return self.declare(
            ActionKind.CALL, function_name, args,
            id=id or f"{_local_name(contract.action_id)}.{function_name}",
            after=after,
            options={"contract": contract.address, "value": value, "from": sender},
        )

    def static_call(
        self,
        contract: FutureHandle,
        function_name: str,
        args: Sequence[Any] = (),
        *,
        id: Optional[str] = None,
        after: Iterable[Dependency] = (),
        output: Any = None,
        sender: Any = None,
    ) -> FutureHandle:
        """Read-only call; its result can feed later actions."""
        return self.declare(
            ActionKind.STATIC_CALL, function_name, args,
            id=id or f"{_local_name(contract.action_id)}.{function_name}",
            after=after,
            options={"contract": contract.address, "output": output, "from": sender},
        )

    def send_value(
        self,
        to: Any,
        value: Any,
        *,
        id: Optional[str] = None,
        after: Iterable[Dependency] = (),
        data: Any = None,
        sender: Any = None,
    ) -> FutureHandle:
        """Transfer native value to an address."""
        return self.declare(
            ActionKind.SEND_VALUE, "send", (),
            id=id or "SendValue",
            after=after,
            options={"to": to, "value": value, "data": data, "from": sender},
        )

    def read_event_argument(
        self,
        emitter: FutureHandle,
        event_name: str,
        argument: Union[str, int],
        *,
        id: Optional[str] = None,
        after: Iterable[Dependency] = (),
        event_index: int = 0,
    ) -> FutureHandle:
        """Read one argument of an event emitted by a previous action."""
        return self.declare(
            ActionKind.READ_EVENT_ARGUMENT, event_name, (),
            id=id or f"{_local_name(emitter.action_id)}.{event_name}.{argument}.{event_index}",
            after=after,
            options={
                "receipt": emitter.result,
                "argument": argument,
                "event_index": event_index,
            },
        )

    def get_parameter(self, name: str, default: Any = MISSING) -> Parameter:
        return Parameter.create(name, default)

    def use_module(self, module: Module) -> Dict[str, FutureHandle]:
        """
        Include another module's actions.

        Memoized: using the same module twice adds nothing.
        """
        for action in module.actions:
            self._record(action)
        return dict(module.results)

    # =========================================================================
    # VALIDATION PASS
    # =========================================================================

    @property
    def declarations(self) -> Tuple[Action, ...]:
        return tuple(self._actions)

    def build(self, results: Optional[Mapping[str, FutureHandle]] = None) -> Module:
        return validate_module(self._name, self.declarations, results)


def validate_module(
    name: str,
    actions: Sequence[Action],
    results: Optional[Mapping[str, FutureHandle]] = None
) -> Module:
    """
    Validate a declaration list and produce the Module.

    Order of checks: duplicates, cycles, references. Cycles come before
    reference order so a future-induced cycle is reported as a cycle.
    """
    unique: List[Action] = []
    hashes: Dict[str, str] = {}
    for action in actions:
        declaration_hash = action.declaration_hash()
        existing = hashes.get(action.action_id)
        if existing is None:
            hashes[action.action_id] = declaration_hash
            unique.append(action)
        elif existing != declaration_hash:
            raise DuplicateActionError(action.action_id)

    topology = DependencyTopology()
    topology.build_graph(unique)
    cycle = topology.find_cycle()
    if cycle:
        raise CyclicDependencyError(cycle)

    position = {action.action_id: index for index, action in enumerate(unique)}
    for index, action in enumerate(unique):
        for dependency in sorted(action.depends_on):
            if dependency not in position:
                raise UnresolvedFutureError(action.action_id, dependency, "no such action")
        for source in sorted(action.future_dependencies()):
            if source not in position:
                raise UnresolvedFutureError(action.action_id, source, "no such action")
            if position[source] >= index:
                raise UnresolvedFutureError(action.action_id, source, "declared later")

    for result_name, handle in (results or {}).items():
        if handle.action_id not in position:
            raise UnresolvedFutureError(f"{name}#{result_name}", handle.action_id, "no such action")

    return Module(
        name=name,
        actions=tuple(unique),
        results=tuple((results or {}).items()),
    )


def build_module(
    name: str,
    declare: Callable[[ModuleBuilder], Optional[Mapping[str, FutureHandle]]]
) -> Module:
    """Run a declaration callback and validate its output."""
    builder = ModuleBuilder(name)
    results = declare(builder)
    return builder.build(results)
