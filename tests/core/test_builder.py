"""
Graph Builder Tests
===================

Tests for declaration and validation.

INVARIANTS TESTED:
1. Ids are '<Module>#<name>' and unique
2. Identical re-declaration is memoized, conflicting content is rejected
3. Cycles and dangling references fail before anything runs
4. Futures record dependencies implicitly
"""

import pytest

from deploykit.contracts.actions import Action, ActionKind, FutureHandle, Module
from deploykit.contracts.errors import (
    CyclicDependencyError, DefinitionError, DuplicateActionError, UnresolvedFutureError
)
from deploykit.contracts.values import Future, Parameter
from deploykit.core.builder import ModuleBuilder, build_module, validate_module


class TestDeclaration:

    def test_default_ids(self):
        m = ModuleBuilder("Token")
        token = m.contract("Token", ["T", "TKN"])
        minter = m.call(token, "setMinter", ["0x1"])
        event = m.read_event_argument(minter, "MinterSet", "account")

        assert token.id == "Token#Token"
        assert minter.id == "Token#Token.setMinter"
        assert event.id == "Token#Token.setMinter.MinterSet.account.0"

    def test_explicit_id(self):
        m = ModuleBuilder("M")
        handle = m.contract("Token", id="Token2")
        assert handle.id == "M#Token2"

    def test_invalid_module_name(self):
        with pytest.raises(ValueError):
            ModuleBuilder("")
        with pytest.raises(ValueError):
            ModuleBuilder("A#B")

    def test_handle_argument_becomes_address_future(self):
        m = ModuleBuilder("M")
        token = m.contract("Token")
        vault = m.contract("Vault", [token])
        module = m.build()

        action = module.get(vault.id)
        assert action.args == (Future("M#Token", "address"),)
        assert action.dependencies() == frozenset({"M#Token"})

    def test_call_handle_argument_is_whole_result(self):
        m = ModuleBuilder("M")
        token = m.contract("Token")
        call = m.call(token, "mint", [1])
        reader = m.contract("Reader", [call])
        assert m.build().get(reader.id).args == (Future(call.id, None),)

    def test_call_depends_on_contract(self):
        m = ModuleBuilder("M")
        token = m.contract("Token")
        call = m.call(token, "mint", [1])
        action = m.build().get(call.id)
        assert dict(action.options)["contract"] == Future("M#Token", "address")
        assert action.dependencies() == frozenset({"M#Token"})

    def test_none_options_are_dropped(self):
        m = ModuleBuilder("M")
        handle = m.contract("Token")
        assert m.build().get(handle.id).options == ()

    def test_unserializable_argument_rejected_at_declaration(self):
        m = ModuleBuilder("M")
        with pytest.raises(TypeError):
            m.contract("Token", [object()])

    def test_parameters_collected_once(self):
        m = ModuleBuilder("M")
        owner = m.get_parameter("owner")
        m.contract("A", [owner])
        m.contract("B", [owner, m.get_parameter("fee", 3)])
        names = [p.name for p in m.build().parameters()]
        assert names == ["owner", "fee"]

    def test_nested_futures_found(self):
        m = ModuleBuilder("M")
        a = m.contract("A")
        b = m.contract("B", [{"config": [a.address, 1]}])
        assert m.build().get(b.id).future_dependencies() == frozenset({"M#A"})


class TestMemoization:

    def test_identical_redeclaration_returns_same_handle(self):
        m = ModuleBuilder("M")
        first = m.contract("Token", [1])
        second = m.contract("Token", [1])
        assert first == second
        assert len(m.build()) == 1

    def test_conflicting_redeclaration_rejected(self):
        m = ModuleBuilder("M")
        m.contract("Token", [1])
        with pytest.raises(DuplicateActionError) as excinfo:
            m.contract("Token", [2])
        assert excinfo.value.action_ids == ("M#Token",)

    def test_use_module_twice_adds_nothing(self):
        shared = build_module("Shared", lambda m: {"token": m.contract("Token")})

        def declare(m):
            first = m.use_module(shared)
            second = m.use_module(shared)
            assert first == second
            return {"vault": m.contract("Vault", [first["token"]])}

        module = build_module("App", declare)
        assert module.action_ids == ("Shared#Token", "App#Vault")
        assert module.get("App#Vault").dependencies() == frozenset({"Shared#Token"})


class TestValidation:

    def test_cycle_through_explicit_after(self):
        def declare(m):
            a = m.contract("A", after=["Cyclic#B"])
            m.contract("B", after=[a])
            return {}

        with pytest.raises(CyclicDependencyError) as excinfo:
            build_module("Cyclic", declare)
        assert set(excinfo.value.cycle) == {"Cyclic#A", "Cyclic#B"}

    def test_self_dependency_is_a_cycle(self):
        m = ModuleBuilder("M")
        m.contract("A", after=["M#A"])
        with pytest.raises(CyclicDependencyError):
            m.build()

    def test_after_accepts_local_names(self):
        m = ModuleBuilder("M")
        m.contract("A")
        m.contract("Registry", id="Reg")
        m.contract("B", after=["A", "Reg"])
        module = m.build()
        assert module.get("M#B").depends_on == frozenset({"M#A", "M#Reg"})

    def test_after_keeps_qualified_ids(self):
        def declare(m):
            m.use_module(build_module("Shared", lambda s: {"t": s.contract("Token")}))
            return {"v": m.contract("Vault", after=["Shared#Token"])}

        module = build_module("App", declare)
        assert module.get("App#Vault").depends_on == frozenset({"Shared#Token"})

    def test_after_unknown_local_name(self):
        m = ModuleBuilder("M")
        m.contract("B", after=["A"])
        with pytest.raises(UnresolvedFutureError) as excinfo:
            m.build()
        assert excinfo.value.reference == "M#A"

    def test_after_unknown_action(self):
        m = ModuleBuilder("M")
        m.contract("A", after=["M#Nope"])
        with pytest.raises(UnresolvedFutureError):
            m.build()

    def test_future_to_unknown_action(self):
        actions = [
            Action("M#A", ActionKind.DEPLOY_CONTRACT, "A", args=(Future("M#Ghost", "address"),)),
        ]
        with pytest.raises(UnresolvedFutureError) as excinfo:
            validate_module("M", actions)
        assert excinfo.value.reference == "M#Ghost"

    def test_future_declared_later(self):
        actions = [
            Action("M#A", ActionKind.DEPLOY_CONTRACT, "A", args=(Future("M#B", "address"),)),
            Action("M#B", ActionKind.DEPLOY_CONTRACT, "B"),
        ]
        with pytest.raises(UnresolvedFutureError, match="declared later"):
            validate_module("M", actions)

    def test_result_must_exist(self):
        m = ModuleBuilder("M")
        with pytest.raises(UnresolvedFutureError):
            m.build({"ghost": FutureHandle("M#Ghost", ActionKind.DEPLOY_CONTRACT)})

    def test_errors_share_root(self):
        assert issubclass(CyclicDependencyError, DefinitionError)
        assert issubclass(UnresolvedFutureError, DefinitionError)
        assert issubclass(DuplicateActionError, DefinitionError)

    def test_module_results(self):
        module = build_module("M", lambda m: {"token": m.contract("Token")})
        assert isinstance(module, Module)
        assert module.result("token").id == "M#Token"
        with pytest.raises(KeyError):
            module.result("vault")

    def test_parameter_default_recorded(self):
        m = ModuleBuilder("M")
        parameter = m.get_parameter("owner", "0xabc")
        assert parameter == Parameter("owner", "0xabc", True)
