"""Settlement engine — the per-instruction state machine.

One inbound message, one transition. Every handler follows the same
shape: validate in a fixed order, mutate contract state only after the
last check has passed, return a SettlementPlan describing the credits
the substrate must execute.

Transfer validation order (the first failure aborts; each failure has
its own error code):

    1. payee != payer                    SelfTradeRejected
    2. amount > 0                        InvalidAmount
    3. now <= deadline                   Expired
    4. sender == payer                   Unauthorized
    5. preview at the platform rate
    6. attached_value >= total_due       InsufficientValue
    7. consume(payer, nonce)             ReplayRejected

Transfer destinations:

    seller   = amount                 if payer pays commission
             = amount - commission    otherwise
    partner  = commission × share_of(partner_wallet) // 10000
    platform = commission - partner
    refund   = attached_value - total_due

Invariant: seller + partner + platform + refund == attached_value.

The engine is a pure state machine: no value moves here and nothing
is logged. The substrate executes plans; the service layer logs.
"""

from __future__ import annotations

from typing import Callable, Dict, List

from settlement.access.control import AccessControl
from settlement.commission.calculator import preview as preview_commission
from settlement.commission.calculator import split_commission
from settlement.config import ConfigStore
from settlement.models.errors import (
    Expired,
    InsufficientValue,
    InvalidAmount,
    NothingToWithdraw,
    SelfTradeRejected,
)
from settlement.models.messages import (
    Message,
    MessageContext,
    RegisterPartnerShare,
    SetPlatformCommissionBps,
    Transfer,
    UnregisterPartnerShare,
    WithdrawAll,
)
from settlement.models.state import (
    DEFAULT_MIN_OPERATIONAL_RESERVE,
    ContractState,
    Credit,
    CreditKind,
    Preview,
    SettlementPlan,
)
from settlement.partners.registry import PartnerShareRegistry
from settlement.replay.guard import ReplayGuard


class SettlementEngine:
    """Validates instructions against contract state and plans settlements.

    Usage:
        engine = SettlementEngine(state)
        plan = engine.handle(message, context)
        # substrate executes plan.credits; on failure it restores state

    Read-only queries:
        engine.preview_payment(1_000_000, payer_pays_commission=False)
        engine.nonce_of("alice")
    """

    def __init__(
        self,
        state: ContractState,
        min_operational_reserve: int = DEFAULT_MIN_OPERATIONAL_RESERVE,
    ) -> None:
        if min_operational_reserve < 0:
            raise ValueError("Operational reserve must be non-negative")
        self._state = state
        self._reserve = min_operational_reserve
        self._access = AccessControl(state)
        self._config_store = ConfigStore(state)
        self._replay_guard = ReplayGuard(state.nonces)
        self._registry = PartnerShareRegistry(state, self._access)
        self._handlers: Dict[type, Callable[[Message, MessageContext], SettlementPlan]] = {
            Transfer: self._handle_transfer,
            SetPlatformCommissionBps: self._handle_set_commission,
            WithdrawAll: self._handle_withdraw_all,
            RegisterPartnerShare: self._handle_register_share,
            UnregisterPartnerShare: self._handle_unregister_share,
        }

    @property
    def state(self) -> ContractState:
        return self._state

    @property
    def min_operational_reserve(self) -> int:
        return self._reserve

    @property
    def registry(self) -> PartnerShareRegistry:
        return self._registry

    @property
    def config_store(self) -> ConfigStore:
        return self._config_store

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def preview_payment(self, amount: int, payer_pays_commission: bool) -> Preview:
        """Commission preview at the current platform rate."""
        return preview_commission(
            amount, payer_pays_commission, self._state.config.platform_commission_bps,
        )

    def nonce_of(self, account: str) -> int:
        return self._replay_guard.nonce_of(account)

    def share_of(self, wallet: str) -> int:
        return self._registry.share_of(wallet)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle(self, message: Message, context: MessageContext) -> SettlementPlan:
        """Run one instruction. Raises a SettlementError subclass on rejection."""
        handler = self._handlers.get(type(message))
        if handler is None:
            raise TypeError(f"Unsupported message type: {type(message).__name__}")
        return handler(message, context)

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def _handle_transfer(self, msg: Transfer, ctx: MessageContext) -> SettlementPlan:
        if msg.payee == msg.payer:
            raise SelfTradeRejected(f"Payee cannot be the payer ({msg.payer})")
        if isinstance(msg.amount, bool) or not isinstance(msg.amount, int) or msg.amount <= 0:
            raise InvalidAmount(f"Amount must be a positive integer, got {msg.amount!r}")
        if ctx.now > msg.deadline:
            raise Expired(f"Deadline {msg.deadline} passed (now {ctx.now})")
        self._access.require_sender_is(ctx.sender, msg.payer)

        quote = self.preview_payment(msg.amount, msg.payer_pays_commission)
        if ctx.attached_value < quote.total_due:
            raise InsufficientValue(
                f"Attached value {ctx.attached_value} is below total due {quote.total_due}"
            )

        # Last check, and the only mutation.
        self._replay_guard.consume(msg.payer, msg.nonce)

        if msg.payer_pays_commission:
            seller_amount = msg.amount
        else:
            seller_amount = msg.amount - quote.commission

        partner_amount = 0
        platform_amount = 0
        if quote.commission > 0:
            share = self._registry.share_of(msg.partner_wallet)
            partner_amount, platform_amount = split_commission(quote.commission, share)

        credits: List[Credit] = [Credit(msg.payee, seller_amount, CreditKind.SELLER)]
        if partner_amount > 0 and msg.partner_wallet is not None:
            credits.append(Credit(msg.partner_wallet, partner_amount, CreditKind.PARTNER))
        if platform_amount > 0:
            credits.append(Credit(
                self._state.config.platform_wallet, platform_amount, CreditKind.PLATFORM,
            ))
        excess = ctx.attached_value - quote.total_due
        if excess > 0:
            credits.append(Credit(msg.payer, excess, CreditKind.REFUND))

        return SettlementPlan(credits=tuple(credits), preview=quote)

    # ------------------------------------------------------------------
    # Administrative
    # ------------------------------------------------------------------

    def _handle_set_commission(
        self, msg: SetPlatformCommissionBps, ctx: MessageContext,
    ) -> SettlementPlan:
        self._access.require_owner(ctx.sender)
        self._config_store.set_platform_commission_bps(msg.new_bps)
        return SettlementPlan()

    def _handle_withdraw_all(self, msg: WithdrawAll, ctx: MessageContext) -> SettlementPlan:
        self._access.require_owner(ctx.sender)
        if not msg.to:
            raise ValueError("Withdrawal recipient must be a non-empty account")
        available = ctx.balance - self._reserve
        if available <= 0:
            raise NothingToWithdraw(
                f"Balance {ctx.balance} does not exceed the reserve {self._reserve}"
            )
        return SettlementPlan(credits=(Credit(msg.to, available, CreditKind.WITHDRAWAL),))

    def _handle_register_share(
        self, msg: RegisterPartnerShare, ctx: MessageContext,
    ) -> SettlementPlan:
        self._registry.set_share(ctx.sender, msg.wallet, msg.share_bps)
        return SettlementPlan()

    def _handle_unregister_share(
        self, msg: UnregisterPartnerShare, ctx: MessageContext,
    ) -> SettlementPlan:
        self._registry.remove(ctx.sender, msg.wallet)
        return SettlementPlan()
