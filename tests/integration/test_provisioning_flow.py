"""
发行流程集成测试

服务 + 状态机 + 文件状态存储，账本使用 Mock。
"""

import json
from decimal import Decimal

import pytest

from tests.mocks.ledger import MockLedgerClient, make_identity
from tokenforge.common.config import ProvisioningConfig, Settings
from tokenforge.common.enums import ConfirmPrompt, Network, ProvisioningStep, StepAction
from tokenforge.common.exceptions import (
    FundingDeclinedError,
    InsufficientResourcesError,
    NetworkError,
    RateLimitedError,
    RemoteRejectedError,
    StateLockedError,
    StepFailedError,
)
from tokenforge.common.models import NetworkTarget, ProvisioningParams
from tokenforge.core.service import ProvisioningService

DEVNET = NetworkTarget(network=Network.DEVNET)
MAINNET = NetworkTarget(network=Network.MAINNET)


class Answers:
    """记录确认问题并按预设回答"""

    def __init__(self, **answers: bool):
        self.answers = answers
        self.asked: list[ConfirmPrompt] = []

    def __call__(self, prompt: ConfirmPrompt, message: str) -> bool:
        self.asked.append(prompt)
        return self.answers.get(prompt.name.lower(), False)


@pytest.fixture
def identity(tmp_path):
    return make_identity(tmp_path)


@pytest.fixture
def params():
    return ProvisioningParams(name="Flow Token", symbol="FLOW", decimals=6, supply=Decimal(5000))


def make_service(ledger, identity, target=DEVNET, **provisioning) -> ProvisioningService:
    settings = Settings(provisioning=ProvisioningConfig(**provisioning))
    return ProvisioningService(ledger, identity, target, settings=settings)


class TestFullFlow:
    """完整发行"""

    @pytest.mark.asyncio
    async def test_fresh_provision(self, identity, params, tmp_path):
        ledger = MockLedgerClient()
        service = make_service(ledger, identity)

        summary = await service.provision(params)

        assert summary.mint == "Mint1"
        assert summary.holding_account == "Ata_Mint1"
        assert summary.owner == identity.public_key
        assert summary.executed_steps == [
            StepAction.CREATE_MINT,
            StepAction.CREATE_HOLDING_ACCOUNT,
            StepAction.ISSUE_SUPPLY,
        ]
        assert summary.explorer_url.endswith("Mint1?cluster=devnet")
        assert ledger.issued == [("Mint1", "Ata_Mint1", 5_000_000_000)]

        record = json.loads((tmp_path / "wallet-token-state-devnet.json").read_text(encoding="utf-8"))
        assert record["mintAddress"] == "Mint1"
        assert record["tokenAccountAddress"] == "Ata_Mint1"
        assert record["tokenAccountCreated"] is True
        assert record["initialSupplyMinted"] is True

    @pytest.mark.asyncio
    async def test_second_run_makes_no_ledger_calls(self, identity, params):
        await make_service(MockLedgerClient(), identity).provision(params)

        ledger = MockLedgerClient()
        summary = await make_service(ledger, identity).provision(params)

        assert summary.already_complete
        assert summary.executed_steps == []
        assert summary.mint == "Mint1"
        assert ledger.calls == []

    @pytest.mark.asyncio
    async def test_networks_are_independent(self, identity, params):
        await make_service(MockLedgerClient(), identity).provision(params)

        testnet = NetworkTarget(network=Network.TESTNET)
        ledger = MockLedgerClient(target=testnet)
        summary = await make_service(ledger, identity, target=testnet).provision(params)

        assert not summary.already_complete
        assert len(summary.executed_steps) == 3


class TestResume:
    """中断恢复"""

    @pytest.mark.asyncio
    async def test_resume_after_issue_failure(self, identity, params):
        ledger = MockLedgerClient()
        ledger.fail_next("issue", RemoteRejectedError("blockhash 过期"))
        service = make_service(ledger, identity)

        with pytest.raises(StepFailedError) as exc_info:
            await service.provision(params)
        assert exc_info.value.step == StepAction.ISSUE_SUPPLY
        assert service.load_state().step == ProvisioningStep.ACCOUNT_CREATED

        retry_ledger = MockLedgerClient()
        summary = await make_service(retry_ledger, identity).provision(params)

        assert summary.executed_steps == [StepAction.ISSUE_SUPPLY]
        assert [c[0] for c in retry_ledger.mutating_calls()] == ["issue"]
        assert retry_ledger.issued == [("Mint1", "Ata_Mint1", 5_000_000_000)]

    @pytest.mark.asyncio
    async def test_resume_after_account_failure(self, identity, params):
        ledger = MockLedgerClient()
        ledger.fail_next("create_or_get_holding_account", NetworkError("连接断开"))

        with pytest.raises(StepFailedError):
            await make_service(ledger, identity).provision(params)

        retry_ledger = MockLedgerClient()
        summary = await make_service(retry_ledger, identity).provision(params)

        assert "create_mint" not in retry_ledger.call_names()
        assert summary.executed_steps == [StepAction.CREATE_HOLDING_ACCOUNT, StepAction.ISSUE_SUPPLY]

    @pytest.mark.asyncio
    async def test_resume_keeps_recorded_params(self, identity, params):
        ledger = MockLedgerClient()
        ledger.fail_next("issue", NetworkError("超时"))
        with pytest.raises(StepFailedError):
            await make_service(ledger, identity).provision(params)

        changed = ProvisioningParams(name="Other", symbol="OTH", decimals=2, supply=Decimal(1))
        retry_ledger = MockLedgerClient()
        summary = await make_service(retry_ledger, identity).provision(changed)

        assert summary.symbol == "FLOW"
        assert retry_ledger.issued == [("Mint1", "Ata_Mint1", 5_000_000_000)]


class TestLegacyCustomRecord:
    """旧版自定义 URL 状态文件"""

    @pytest.mark.asyncio
    async def test_resumes_legacy_mint(self, identity, params, tmp_path):
        url = "http://127.0.0.1:8899"
        legacy = {
            "mintAddress": "OldMint",
            "name": "Flow Token",
            "symbol": "FLOW",
            "decimals": "6",
            "supply": "5000",
            "tokenAccountCreated": False,
            "tokenAccountAddress": None,
            "initialSupplyMinted": False,
            "cluster": "devnet",
            "customUrl": url,
        }
        (tmp_path / "wallet-token-state-custom.json").write_text(json.dumps(legacy), encoding="utf-8")

        ledger = MockLedgerClient()
        target = NetworkTarget.from_options("devnet", url)
        summary = await make_service(ledger, identity, target).provision(params)

        assert "create_mint" not in ledger.call_names()
        assert summary.mint == "OldMint"
        assert summary.executed_steps == [StepAction.CREATE_HOLDING_ACCOUNT, StepAction.ISSUE_SUPPLY]
        assert ledger.issued == [("OldMint", "Ata_OldMint", 5_000_000_000)]


class TestCorruptRecord:
    """损坏的状态记录"""

    @pytest.mark.asyncio
    async def test_corrupt_record_quarantined(self, identity, params, tmp_path):
        path = tmp_path / "wallet-token-state-devnet.json"
        path.write_text("{not json", encoding="utf-8")

        summary = await make_service(MockLedgerClient(), identity).provision(params)

        assert len(summary.executed_steps) == 3
        quarantined = list(tmp_path.glob("wallet-token-state-devnet.json.corrupt-*"))
        assert len(quarantined) == 1
        assert quarantined[0].read_text(encoding="utf-8") == "{not json"

    def test_load_state_missing(self, identity):
        assert make_service(MockLedgerClient(), identity).load_state() is None


class TestFunding:
    """资金检查"""

    @pytest.mark.asyncio
    async def test_sufficient_balance_no_prompt(self, identity, params):
        answers = Answers()
        ledger = MockLedgerClient(balance=2_000_000_000)

        await make_service(ledger, identity).provision(params, answers)

        assert answers.asked == []
        assert "request_funding" not in ledger.call_names()

    @pytest.mark.asyncio
    async def test_low_balance_funded(self, identity, params):
        answers = Answers(request_funding=True)
        ledger = MockLedgerClient(balance=500_000_000)

        await make_service(ledger, identity).provision(params, answers)

        assert answers.asked == [ConfirmPrompt.REQUEST_FUNDING]
        assert ledger.funding_amount == 1_000_000_000
        assert ledger.mutating_calls()[0][0] == "request_funding"

    @pytest.mark.asyncio
    async def test_funding_refused_continues(self, identity, params):
        ledger = MockLedgerClient(balance=500_000_000)

        summary = await make_service(ledger, identity).provision(params, Answers())

        assert "request_funding" not in ledger.call_names()
        assert summary.mint == "Mint1"

    @pytest.mark.asyncio
    async def test_funding_failure_declined(self, identity, params):
        answers = Answers(request_funding=True, proceed_without_funding=False)
        ledger = MockLedgerClient(balance=500_000_000)
        ledger.fail_next("request_funding", RateLimitedError("429 Too Many Requests"))
        service = make_service(ledger, identity)

        with pytest.raises(FundingDeclinedError):
            await service.provision(params, answers)

        assert answers.asked == [ConfirmPrompt.REQUEST_FUNDING, ConfirmPrompt.PROCEED_WITHOUT_FUNDING]
        assert [c[0] for c in ledger.mutating_calls()] == ["request_funding"]
        assert service.load_state() is None

    @pytest.mark.asyncio
    async def test_funding_failure_proceed(self, identity, params):
        answers = Answers(request_funding=True, proceed_without_funding=True)
        ledger = MockLedgerClient(balance=500_000_000)
        ledger.fail_next("request_funding", NetworkError("连接断开"))

        summary = await make_service(ledger, identity).provision(params, answers)

        assert len(summary.executed_steps) == 3

    @pytest.mark.asyncio
    async def test_mainnet_never_requests_funding(self, identity, params):
        answers = Answers(request_funding=True)
        ledger = MockLedgerClient(target=MAINNET, balance=500_000_000)

        await make_service(ledger, identity, target=MAINNET).provision(params, answers)

        assert answers.asked == []
        assert "request_funding" not in ledger.call_names()

    @pytest.mark.asyncio
    async def test_empty_wallet_stops_before_mutations(self, identity, params):
        ledger = MockLedgerClient(target=MAINNET, balance=0)

        with pytest.raises(InsufficientResourcesError):
            await make_service(ledger, identity, target=MAINNET).provision(params)

        assert ledger.mutating_calls() == []

    @pytest.mark.asyncio
    async def test_configured_thresholds(self, identity, params):
        answers = Answers(request_funding=True)
        ledger = MockLedgerClient(balance=500_000_000)
        service = make_service(
            ledger,
            identity,
            funding_threshold_lamports=100_000_000,
            funding_amount_lamports=2_000_000_000,
        )

        await service.provision(params, answers)

        assert answers.asked == []


class TestLocking:
    """并发保护"""

    @pytest.mark.asyncio
    async def test_locked_record_rejected(self, identity, params):
        ledger = MockLedgerClient()
        service = make_service(ledger, identity)

        with service.store.lock(identity, DEVNET):
            with pytest.raises(StateLockedError):
                await make_service(MockLedgerClient(), identity).provision(params)

        assert ledger.calls == []
