"""
Reference Resolution
====================

Substitutes futures and parameters with concrete values and computes
the content hash of the result.
"""

from __future__ import annotations
from typing import Any, Dict, Mapping
import threading

from ..contracts.actions import Action, ResolvedAction, content_hash
from ..contracts.values import Future, Parameter, Reference, select_output, substitute


class UnboundReferenceError(LookupError):
    """A future whose source has no usable output yet."""

    def __init__(self, future: Future):
        self.future = future
        super().__init__(f"no bound output for {future}")


class BindingTable:
    """Action id → output, guarded for concurrent readers and one writer."""

    def __init__(self, initial: Mapping[str, Any] = None):
        self._values: Dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def bind(self, action_id: str, value: Any) -> None:
        with self._lock:
            self._values[action_id] = value

    def __contains__(self, action_id: str) -> bool:
        with self._lock:
            return action_id in self._values

    def get(self, action_id: str) -> Any:
        with self._lock:
            return self._values[action_id]

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)


def resolve_action(
    module_name: str,
    action: Action,
    bindings: BindingTable,
    parameters: Mapping[str, Any],
    attempt: int = 1
) -> ResolvedAction:
    """
    Build the ResolvedAction for one action.

    Raises UnboundReferenceError when a future cannot be resolved and
    KeyError when a parameter was never resolved.
    """
    def lookup(reference: Reference) -> Any:
        if isinstance(reference, Parameter):
            return parameters[reference.name]
        if reference.source_action_id not in bindings:
            raise UnboundReferenceError(reference)
        try:
            return select_output(bindings.get(reference.source_action_id), reference.output_slot)
        except KeyError:
            raise UnboundReferenceError(reference)

    args = tuple(substitute(list(action.args), lookup))
    options = tuple((name, substitute(value, lookup)) for name, value in action.options)
    dependencies = tuple(sorted(action.dependencies()))

    return ResolvedAction(
        module_name=module_name,
        action_id=action.action_id,
        kind=action.kind,
        target=action.target,
        args=args,
        options=options,
        dependencies=dependencies,
        content_hash=content_hash(action.kind, action.target, args, options, dependencies),
        attempt=attempt,
    )
