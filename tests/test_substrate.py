"""Tests for the in-memory substrate — value movement and all-or-nothing delivery."""

import pytest

from settlement.engine.processor import SettlementEngine
from settlement.models.errors import (
    InsufficientValue,
    NothingToWithdraw,
    ReplayRejected,
    Unauthorized,
)
from settlement.models.messages import (
    RegisterPartnerShare,
    SetPlatformCommissionBps,
    Transfer,
    WithdrawAll,
)
from settlement.models.state import Config, ContractState, CreditKind
from settlement.substrate import InMemorySubstrate, InsufficientFunds

NOW = 1_767_225_600
RESERVE = 10_000_000
CONTRACT = "settlement-contract"


def _substrate(**balances: int) -> InMemorySubstrate:
    state = ContractState(config=Config(
        owner="owner",
        platform_wallet="platform",
        registry_authority="registry",
    ))
    engine = SettlementEngine(state, min_operational_reserve=RESERVE)
    return InMemorySubstrate(engine, contract_address=CONTRACT, balances=dict(balances))


def _transfer(nonce: int = 0, partner: str | None = None) -> Transfer:
    return Transfer(
        payer="alice",
        payee="bob",
        amount=1_000_000,
        payer_pays_commission=True,
        deadline=NOW + 3600,
        nonce=nonce,
        partner_wallet=partner,
    )


class TestTransferExecution:
    def test_credits_executed(self) -> None:
        substrate = _substrate(alice=5_000_000)
        receipt = substrate.deliver("alice", _transfer(), attached_value=1_025_000, now=NOW)
        assert receipt.sequence == 1
        assert substrate.balance_of("bob") == 1_000_000
        assert substrate.balance_of("platform") == 2500
        assert substrate.balance_of("alice") == 5_000_000 - 1_002_500
        assert substrate.contract_balance == 0

    def test_resubmission_leaves_balances_unchanged(self) -> None:
        substrate = _substrate(alice=5_000_000)
        message = _transfer()
        substrate.deliver("alice", message, attached_value=1_025_000, now=NOW)
        before = dict(substrate.balances())
        with pytest.raises(ReplayRejected):
            substrate.deliver("alice", message, attached_value=1_025_000, now=NOW)
        assert dict(substrate.balances()) == before
        assert substrate.engine.nonce_of("alice") == 1
        assert substrate.sequence == 1

    def test_partner_paid(self) -> None:
        substrate = _substrate(alice=5_000_000)
        substrate.deliver("registry", RegisterPartnerShare("partner_1", 4000), now=NOW)
        substrate.deliver("alice", _transfer(partner="partner_1"), 1_002_500, now=NOW)
        assert substrate.balance_of("partner_1") == 1000
        assert substrate.balance_of("platform") == 1500

    def test_rejection_returns_attached_value(self) -> None:
        substrate = _substrate(alice=5_000_000)
        with pytest.raises(InsufficientValue):
            substrate.deliver("alice", _transfer(), attached_value=1_000, now=NOW)
        assert substrate.balance_of("alice") == 5_000_000
        assert substrate.contract_balance == 0

    def test_sender_must_cover_attached_value(self) -> None:
        substrate = _substrate(alice=1_000)
        with pytest.raises(InsufficientFunds):
            substrate.deliver("alice", _transfer(), attached_value=1_002_500, now=NOW)
        assert substrate.balance_of("alice") == 1_000
        assert substrate.engine.nonce_of("alice") == 0

    def test_receipt_carries_plan(self) -> None:
        substrate = _substrate(alice=5_000_000)
        receipt = substrate.deliver("alice", _transfer(), attached_value=1_002_500, now=NOW)
        assert receipt.plan.amount_for(CreditKind.SELLER) == 1_000_000
        assert receipt.timestamp == NOW
        assert receipt.attached_value == 1_002_500


class TestWithdrawAll:
    def test_stranger_cannot_withdraw(self) -> None:
        substrate = _substrate(funder=RESERVE + 750_000, mallory=300)
        substrate.fund("funder", RESERVE + 750_000)
        before = dict(substrate.balances())
        with pytest.raises(Unauthorized):
            substrate.deliver("mallory", WithdrawAll("mallory"), attached_value=300, now=NOW)
        assert dict(substrate.balances()) == before
        assert substrate.contract_balance == RESERVE + 750_000
        assert substrate.balance_of("mallory") == 300
        assert substrate.sequence == 0

    def test_withdraw_sweeps_to_reserve(self) -> None:
        substrate = _substrate(funder=RESERVE + 750_000)
        substrate.fund("funder", RESERVE + 750_000)
        substrate.deliver("owner", WithdrawAll("owner"), now=NOW)
        assert substrate.balance_of("owner") == 750_000
        assert substrate.contract_balance == RESERVE
        with pytest.raises(NothingToWithdraw):
            substrate.deliver("owner", WithdrawAll("owner"), now=NOW)
        assert substrate.contract_balance == RESERVE

    def test_attached_value_counts_toward_balance(self) -> None:
        substrate = _substrate(owner=RESERVE + 10)
        substrate.deliver("owner", WithdrawAll("treasury"), attached_value=RESERVE + 10, now=NOW)
        assert substrate.balance_of("treasury") == 10
        assert substrate.contract_balance == RESERVE

    def test_failed_withdraw_returns_attached_value(self) -> None:
        substrate = _substrate(owner=500)
        with pytest.raises(NothingToWithdraw):
            substrate.deliver("owner", WithdrawAll("owner"), attached_value=500, now=NOW)
        assert substrate.balance_of("owner") == 500


class TestCheckpoints:
    def test_rollback_restores_everything(self) -> None:
        substrate = _substrate(alice=5_000_000)
        checkpoint = substrate.checkpoint()
        substrate.deliver("owner", SetPlatformCommissionBps(500), now=NOW)
        substrate.deliver("alice", _transfer(), attached_value=1_050_000, now=NOW)
        substrate.rollback(checkpoint)
        assert substrate.engine.state.config.platform_commission_bps == 25
        assert substrate.engine.nonce_of("alice") == 0
        assert substrate.balance_of("alice") == 5_000_000
        assert substrate.sequence == 0

    def test_guard_sees_restored_nonces(self) -> None:
        substrate = _substrate(alice=5_000_000)
        checkpoint = substrate.checkpoint()
        substrate.deliver("alice", _transfer(), attached_value=1_002_500, now=NOW)
        substrate.rollback(checkpoint)
        # Nonce 0 is valid again after the rollback.
        substrate.deliver("alice", _transfer(), attached_value=1_002_500, now=NOW)
        assert substrate.engine.nonce_of("alice") == 1


class TestBalances:
    def test_mint_and_fund(self) -> None:
        substrate = _substrate()
        substrate.mint("alice", 100)
        assert substrate.fund("alice", 60) == 60
        assert substrate.balance_of("alice") == 40

    def test_fund_needs_funds(self) -> None:
        substrate = _substrate()
        with pytest.raises(InsufficientFunds):
            substrate.fund("alice", 1)

    def test_negative_values_rejected(self) -> None:
        substrate = _substrate()
        with pytest.raises(ValueError):
            substrate.mint("alice", -1)
        with pytest.raises(ValueError):
            substrate.deliver("alice", _transfer(), attached_value=-1, now=NOW)

    def test_balances_view_hides_zero(self) -> None:
        substrate = _substrate(alice=0, bob=3)
        assert dict(substrate.balances()) == {"bob": 3}

    def test_negative_initial_balance_rejected(self) -> None:
        with pytest.raises(ValueError):
            _substrate(alice=-5)
