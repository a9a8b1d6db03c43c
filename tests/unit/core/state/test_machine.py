"""发行状态机测试"""

from decimal import Decimal

import pytest

from tests.mocks.ledger import MockLedgerClient, make_identity
from tokenforge.common.config import ProvisioningConfig
from tokenforge.common.enums import Network, ProvisioningStep, StepAction
from tokenforge.common.exceptions import (
    DataValidationError,
    InsufficientResourcesError,
    NetworkError,
    RemoteRejectedError,
    StateStoreError,
    StepFailedError,
)
from tokenforge.common.models import NetworkTarget, ProvisioningParams, ProvisioningState
from tokenforge.core.state.machine import ProvisioningStateMachine
from tokenforge.core.state.storage import StateStore

DEVNET = NetworkTarget(network=Network.DEVNET)


@pytest.fixture
def identity(tmp_path):
    return make_identity(tmp_path)


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state")


@pytest.fixture
def ledger():
    return MockLedgerClient(DEVNET)


@pytest.fixture
def params():
    return ProvisioningParams(name="Test Token", symbol="TST", decimals=9, supply=Decimal("1000000"))


@pytest.fixture
def machine(ledger, store, identity):
    return ProvisioningStateMachine(ledger, store, identity, DEVNET)


class TestFullRun:
    """完整运行"""

    @pytest.mark.asyncio
    async def test_fresh_run_reaches_issued(self, machine, ledger, store, identity, params):
        outcome = await machine.run(None, params)

        assert outcome.is_complete
        assert not outcome.already_complete
        assert outcome.executed_steps == [
            StepAction.CREATE_MINT,
            StepAction.CREATE_HOLDING_ACCOUNT,
            StepAction.ISSUE_SUPPLY,
        ]
        assert ledger.issued == [("Mint1", "Ata_Mint1", 1_000_000 * 10 ** 9)]

        persisted = store.load(identity, DEVNET)
        assert persisted.step == ProvisioningStep.ISSUED
        assert persisted.mint_handle == "Mint1"
        assert persisted.holding_account_handle == "Ata_Mint1"
        assert persisted.requested_symbol == "TST"

    @pytest.mark.asyncio
    async def test_transitions_recorded_in_order(self, machine, params):
        outcome = await machine.run(None, params)

        steps = [(t.from_step, t.to_step) for t in outcome.transitions]
        assert steps == [
            (ProvisioningStep.FRESH, ProvisioningStep.MINT_CREATED),
            (ProvisioningStep.MINT_CREATED, ProvisioningStep.ACCOUNT_CREATED),
            (ProvisioningStep.ACCOUNT_CREATED, ProvisioningStep.ISSUED),
        ]
        assert outcome.transitions[0].handle == "Mint1"
        assert machine.get_transition_history(limit=1) == outcome.transitions[-1:]

    @pytest.mark.asyncio
    async def test_balance_checked_before_each_step(self, machine, ledger, params):
        await machine.run(None, params)

        names = ledger.call_names()
        assert names == [
            "get_balance", "create_mint",
            "get_balance", "create_or_get_holding_account",
            "get_balance", "issue",
        ]


class TestIdempotentResume:
    """幂等恢复"""

    @pytest.mark.asyncio
    async def test_second_run_makes_no_mutating_calls(self, ledger, store, identity, params):
        first = await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(None, params)
        ledger.calls.clear()

        state = store.load(identity, DEVNET)
        second = await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(state, params)

        assert second.already_complete
        assert second.executed_steps == []
        assert ledger.calls == []
        assert second.state.mint_handle == first.state.mint_handle
        assert second.state.holding_account_handle == first.state.holding_account_handle

    @pytest.mark.asyncio
    async def test_terminal_record_skips_ledger_entirely(self, machine, ledger, params):
        state = ProvisioningState(
            network=Network.DEVNET,
            mint_handle="MintX",
            holding_account_handle="AtaX",
            issuance_complete=True,
            requested_decimals=9,
            requested_supply=Decimal(1),
        )
        ledger.set_balance(0)

        outcome = await machine.run(state, params)

        assert outcome.already_complete
        assert outcome.state is state
        assert ledger.calls == []


class TestPartialFailure:
    """部分失败与恢复"""

    @pytest.mark.asyncio
    async def test_account_failure_keeps_mint(self, ledger, store, identity, params):
        ledger.fail_next("create_or_get_holding_account", RemoteRejectedError("账户创建被拒绝"))
        machine = ProvisioningStateMachine(ledger, store, identity, DEVNET)

        with pytest.raises(StepFailedError) as exc_info:
            await machine.run(None, params)

        assert exc_info.value.step == StepAction.CREATE_HOLDING_ACCOUNT
        assert isinstance(exc_info.value.cause, RemoteRejectedError)
        assert exc_info.value.details["error_kind"] == "RemoteRejectedError"

        persisted = store.load(identity, DEVNET)
        assert persisted.step == ProvisioningStep.MINT_CREATED
        assert persisted.mint_handle == "Mint1"
        assert persisted.holding_account_handle is None

    @pytest.mark.asyncio
    async def test_resume_skips_mint_creation(self, ledger, store, identity, params):
        ledger.fail_next("create_or_get_holding_account", NetworkError("连接中断"))
        with pytest.raises(StepFailedError):
            await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(None, params)
        ledger.calls.clear()

        state = store.load(identity, DEVNET)
        outcome = await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(state, params)

        assert outcome.executed_steps == [
            StepAction.CREATE_HOLDING_ACCOUNT,
            StepAction.ISSUE_SUPPLY,
        ]
        assert "create_mint" not in ledger.call_names()
        assert outcome.state.mint_handle == "Mint1"

    @pytest.mark.asyncio
    async def test_issue_failure_leaves_account_created(self, ledger, store, identity, params):
        ledger.fail_next("issue", RemoteRejectedError("发行被拒绝"))

        with pytest.raises(StepFailedError) as exc_info:
            await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(None, params)

        assert exc_info.value.retryable
        persisted = store.load(identity, DEVNET)
        assert persisted.step == ProvisioningStep.ACCOUNT_CREATED
        assert not persisted.issuance_complete

    @pytest.mark.asyncio
    async def test_first_step_failure_persists_nothing(self, ledger, store, identity, params):
        ledger.fail_next("create_mint", RemoteRejectedError("铸币被拒绝"))

        with pytest.raises(StepFailedError):
            await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(None, params)

        assert store.load(identity, DEVNET) is None

    @pytest.mark.asyncio
    async def test_balance_query_failure_is_step_failure(self, ledger, store, identity, params):
        ledger.fail_next("get_balance", NetworkError("超时"))

        with pytest.raises(StepFailedError) as exc_info:
            await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(None, params)

        assert exc_info.value.step == StepAction.CREATE_MINT
        assert ledger.mutating_calls() == []

    @pytest.mark.asyncio
    async def test_save_failure_after_remote_success(self, ledger, identity, params, monkeypatch):
        store = StateStore()

        def broken_save(*args, **kwargs):
            raise StateStoreError("磁盘已满")

        monkeypatch.setattr(store, "save", broken_save)

        with pytest.raises(StateStoreError):
            await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(None, params)

        assert ledger.call_names() == ["get_balance", "create_mint"]


class TestResourcePrecondition:
    """余额前置检查"""

    @pytest.mark.asyncio
    async def test_insufficient_balance_blocks_mutation(self, ledger, store, identity, params):
        ledger.set_balance(9_999_999)

        with pytest.raises(InsufficientResourcesError) as exc_info:
            await ProvisioningStateMachine(ledger, store, identity, DEVNET).run(None, params)

        assert exc_info.value.details["required"] == 10_000_000
        assert exc_info.value.details["step"] == StepAction.CREATE_MINT.value
        assert ledger.mutating_calls() == []
        assert store.load(identity, DEVNET) is None

    @pytest.mark.asyncio
    async def test_custom_threshold(self, ledger, store, identity, params):
        ledger.set_balance(500)
        config = ProvisioningConfig(min_balance_lamports=100)

        outcome = await ProvisioningStateMachine(ledger, store, identity, DEVNET, config).run(None, params)

        assert outcome.is_complete


class TestIssuanceStability:
    """发行量以记录为准"""

    @pytest.mark.asyncio
    async def test_resume_uses_persisted_decimals_and_supply(self, machine, ledger, params):
        state = ProvisioningState(
            network=Network.DEVNET,
            mint_handle="MintA",
            holding_account_handle="AtaA",
            requested_name="Test Token",
            requested_symbol="TST",
            requested_decimals=9,
            requested_supply=Decimal(1_000_000),
        )
        other = ProvisioningParams(name="Other", symbol="OTH", decimals=2, supply=Decimal(5))

        outcome = await machine.run(state, other)

        assert ledger.issued == [("MintA", "AtaA", 1_000_000 * 10 ** 9)]
        assert outcome.state.requested_decimals == 9
        assert outcome.state.requested_symbol == "TST"

    @pytest.mark.asyncio
    async def test_diverging_params_logged(self, machine, params):
        state = ProvisioningState(
            network=Network.DEVNET,
            mint_handle="MintA",
            requested_name="Test Token",
            requested_symbol="TST",
            requested_decimals=6,
            requested_supply=Decimal(10),
        )
        warnings = []
        machine._log.warning = lambda msg, *a, **k: warnings.append(msg)

        await machine.run(state, params)

        assert any("decimals" in w for w in warnings)
        assert any("supply" in w for w in warnings)
        assert not any("symbol" in w for w in warnings)


class TestNetworkGuard:
    """网络校验"""

    @pytest.mark.asyncio
    async def test_state_from_other_network_rejected(self, machine, ledger, params):
        state = ProvisioningState(network=Network.TESTNET)

        with pytest.raises(DataValidationError):
            await machine.run(state, params)

        assert ledger.calls == []
