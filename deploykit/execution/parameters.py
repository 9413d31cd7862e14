"""
Parameter Resolution
====================

Parameters are resolved once, before any executor call. A run with an
unresolved parameter and no default never starts.
"""

from __future__ import annotations
from typing import Any, Dict, Mapping, Optional
import json

from ..contracts.actions import Module
from ..contracts.errors import MissingParameterError
from ..contracts.values import MISSING


class ParameterSource:
    """Named external inputs for one module."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})

    def resolve(self, name: str, default: Any = MISSING) -> Any:
        """Value for name, else default, else MissingParameterError."""
        if name in self._values:
            return self._values[name]
        if default is not MISSING:
            return default
        raise MissingParameterError((name,))

    @staticmethod
    def from_mapping(data: Mapping[str, Any], module_name: Optional[str] = None) -> ParameterSource:
        """
        Build a source from a parameters document.

        A section keyed by the module name takes precedence over
        top-level keys, so one file can serve several modules.
        """
        values = {
            key: value for key, value in data.items()
            if not (isinstance(value, Mapping) and key == module_name)
        }
        if module_name and isinstance(data.get(module_name), Mapping):
            values.update(data[module_name])
        return ParameterSource(values)

    @staticmethod
    def from_file(path: str, module_name: Optional[str] = None) -> ParameterSource:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Parameters file {path} must contain a JSON object")
        return ParameterSource.from_mapping(data, module_name)


def resolve_parameters(module: Module, source: Optional[ParameterSource] = None) -> Dict[str, Any]:
    """
    Resolve every parameter a module uses.

    Reports all missing names at once rather than the first one.
    """
    source = source or ParameterSource()
    resolved: Dict[str, Any] = {}
    missing = []

    for parameter in module.parameters():
        default = parameter.default if parameter.has_default else MISSING
        try:
            resolved[parameter.name] = source.resolve(parameter.name, default)
        except MissingParameterError:
            missing.append(parameter.name)

    if missing:
        raise MissingParameterError(missing, module.name)
    return resolved
