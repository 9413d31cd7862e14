"""
Deployer Integration Tests

Full flow: plan → journal → engine → observability, on disk.
"""

import os

import pytest

from deploykit.contracts.actions import Action, ActionKind, Module
from deploykit.contracts.errors import CyclicDependencyError, ExistingJournalError
from deploykit.contracts.events import ActionStatus, RunStatus
from deploykit.engine import Deployer, DeployerConfig
from deploykit.execution.executor import SimulatedExecutor
from deploykit.journal.journal import ExecutionJournal

from .fixtures import chain_module, token_vault_module


@pytest.fixture
def config(tmp_path):
    return DeployerConfig.from_env(state_dir=str(tmp_path), network="localnet")


class TestDeployerConfig:

    def test_defaults(self):
        config = DeployerConfig()
        assert config.journal.backend_type == "memory"
        assert config.execution.max_workers == 4
        assert config.network == "default"

    def test_state_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEPLOYKIT_STATE_DIR", str(tmp_path))
        config = DeployerConfig.from_env(network="sepolia")
        assert config.journal.storage_dir == os.path.join(str(tmp_path), "sepolia")
        assert config.journal.location_for("M") == os.path.join(str(tmp_path), "sepolia", "M.jsonl")

    def test_explicit_state_dir_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEPLOYKIT_STATE_DIR", "/nowhere")
        config = DeployerConfig.from_env(state_dir=str(tmp_path))
        assert config.journal.storage_dir.startswith(str(tmp_path))


class TestDeployer:

    def test_deploy_then_resume(self, config):
        module = token_vault_module()
        first = Deployer(SimulatedExecutor(), config).deploy(module)
        assert first.status is RunStatus.SUCCESS
        assert config.journal.exists(module.name)

        executor = SimulatedExecutor()
        second = Deployer(executor, config).deploy(module)
        assert second.already_complete
        assert executor.call_count == 0

    def test_fresh_run_refuses_existing_journal(self, config):
        module = chain_module()
        Deployer(SimulatedExecutor(), config).deploy(module)

        executor = SimulatedExecutor()
        with pytest.raises(ExistingJournalError):
            Deployer(executor, config).deploy(module, resume=False)
        assert executor.call_count == 0

    def test_networks_are_isolated(self, tmp_path):
        module = chain_module()
        Deployer(SimulatedExecutor(), DeployerConfig.from_env(str(tmp_path), "a")).deploy(module)

        executor = SimulatedExecutor()
        Deployer(executor, DeployerConfig.from_env(str(tmp_path), "b")).deploy(module, resume=False)
        assert executor.call_count == len(module)

    def test_parameters_mapping_with_module_section(self):
        from deploykit.core.builder import build_module

        module = build_module("Owned", lambda m: {"c": m.contract("C", [m.get_parameter("owner")])})
        executor = SimulatedExecutor()
        Deployer(executor).deploy(module, {"owner": "0xtop", "Owned": {"owner": "0xmine"}})
        assert executor.calls[0].args == ("0xmine",)

    def test_cycle_fails_with_zero_calls(self, config):
        module = Module(name="Loop", actions=(
            Action("Loop#A", ActionKind.DEPLOY_CONTRACT, "A", depends_on=frozenset({"Loop#B"})),
            Action("Loop#B", ActionKind.DEPLOY_CONTRACT, "B", depends_on=frozenset({"Loop#A"})),
        ))
        executor = SimulatedExecutor()
        with pytest.raises(CyclicDependencyError):
            Deployer(executor, config).deploy(module)
        assert executor.call_count == 0
        assert not config.journal.exists("Loop")

    def test_supplied_empty_journal_receives_records(self, config):
        module = chain_module()
        journal = ExecutionJournal("Chain")

        Deployer(SimulatedExecutor(), config).deploy(module, journal=journal)
        assert len(journal) == len(module)
        assert not config.journal.exists("Chain")

        executor = SimulatedExecutor()
        second = Deployer(executor, config).deploy(module, journal=journal)
        assert second.already_complete
        assert executor.call_count == 0

    def test_transitions_collected(self):
        deployer = Deployer(SimulatedExecutor(fail_actions={"Chain#A"}))
        deployer.deploy(chain_module(), journal=ExecutionJournal("Chain"))
        blocked = deployer.transitions.get_events(to_status=ActionStatus.BLOCKED)
        assert [e.action_id for e in blocked] == ["Chain#B", "Chain#C"]
