"""
Parameter Resolution Tests
"""

import json

import pytest

from deploykit.contracts.errors import MissingParameterError, ParameterError
from deploykit.core.builder import build_module
from deploykit.execution.engine import ExecutionEngine
from deploykit.execution.executor import SimulatedExecutor
from deploykit.execution.parameters import ParameterSource, resolve_parameters
from deploykit.journal.journal import ExecutionJournal


def parameterized_module():
    def declare(m):
        m.contract("Token", [m.get_parameter("name"), m.get_parameter("supply", 100)])
        m.contract("Vault", [m.get_parameter("owner")])
        return {}
    return build_module("Params", declare)


class TestResolution:

    def test_defaults_apply(self):
        resolved = resolve_parameters(
            parameterized_module(), ParameterSource({"name": "T", "owner": "0x1"})
        )
        assert resolved == {"name": "T", "supply": 100, "owner": "0x1"}

    def test_all_missing_names_reported(self):
        with pytest.raises(MissingParameterError) as excinfo:
            resolve_parameters(parameterized_module(), ParameterSource())
        assert excinfo.value.names == ("name", "owner")
        assert isinstance(excinfo.value, ParameterError)

    def test_module_section_overrides_top_level(self):
        source = ParameterSource.from_mapping(
            {"owner": "0xtop", "name": "Top", "Params": {"owner": "0xmodule"}},
            "Params",
        )
        assert source.resolve("owner") == "0xmodule"
        assert source.resolve("name") == "Top"
        with pytest.raises(MissingParameterError):
            source.resolve("Other")

    def test_from_file(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"Params": {"name": "T", "owner": "0x1", "supply": 5}}))
        source = ParameterSource.from_file(str(path), "Params")
        assert resolve_parameters(parameterized_module(), source)["supply"] == 5

    def test_file_must_hold_object(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            ParameterSource.from_file(str(path))


class TestEngineParameters:

    def test_missing_parameter_prevents_any_call(self):
        executor = SimulatedExecutor()
        with pytest.raises(MissingParameterError):
            ExecutionEngine(executor).run(
                parameterized_module(), ExecutionJournal("Params"), parameters={"name": "T"}
            )
        assert executor.call_count == 0

    def test_parameter_values_reach_executor(self):
        executor = SimulatedExecutor()
        ExecutionEngine(executor).run(
            parameterized_module(), ExecutionJournal("Params"),
            parameters={"name": "T", "owner": "0x1"},
        )
        calls = {action.action_id: action for action in executor.calls}
        assert calls["Params#Token"].args == ("T", 100)
        assert calls["Params#Vault"].args == ("0x1",)
