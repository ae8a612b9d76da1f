"""In-memory execution substrate — the collaborator that runs the contract.

The substrate delivers each instruction to the engine with a verified
sender, the attached value and the current time, then executes the
settlement plan the engine returns as value transfers.

Delivery of one instruction is all-or-nothing:

    1. snapshot contract state and balances
    2. move the attached value from the sender into the contract
    3. run the engine handler
    4. move every planned credit out of the contract
    5. on any failure in 2-4, restore the snapshot and re-raise

Deliveries are serialized with a lock, so no instruction ever observes
a partially applied predecessor.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from settlement.engine.processor import SettlementEngine
from settlement.models.messages import Message, MessageContext, VerifiedSender
from settlement.models.state import ContractState, SettlementPlan

logger = logging.getLogger(__name__)


class InsufficientFunds(ValueError):
    """An account cannot cover a debit the substrate was asked to make."""


@dataclass(frozen=True)
class Checkpoint:
    """Opaque restore point for the substrate."""
    state: ContractState
    balances: Dict[str, int]
    sequence: int


@dataclass(frozen=True)
class Receipt:
    """Outcome of one successfully executed instruction."""
    sequence: int
    sender: str
    message: Message
    attached_value: int
    timestamp: int
    plan: SettlementPlan
    contract_balance: int


class InMemorySubstrate:
    """Balances, clock and sender attestation for a single contract.

    Usage:
        substrate = InMemorySubstrate(engine, balances={"alice": 5_000_000})
        receipt = substrate.deliver("alice", transfer, attached_value=1_025_000)
        substrate.balance_of("bob")
    """

    def __init__(
        self,
        engine: SettlementEngine,
        contract_address: str = "settlement-contract",
        balances: Optional[Dict[str, int]] = None,
        sequence: int = 0,
    ) -> None:
        self._engine = engine
        self._contract = contract_address
        self._balances: Dict[str, int] = {}
        for account, amount in (balances or {}).items():
            self._require_amount(amount)
            self._balances[account] = amount
        self._lock = threading.RLock()
        self._sequence = sequence

    @property
    def contract_address(self) -> str:
        return self._contract

    @property
    def engine(self) -> SettlementEngine:
        return self._engine

    @property
    def sequence(self) -> int:
        """Number of instructions executed so far."""
        return self._sequence

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def contract_balance(self) -> int:
        return self.balance_of(self._contract)

    def balances(self) -> Mapping[str, int]:
        """Read-only copy of every non-zero balance."""
        return MappingProxyType({a: b for a, b in self._balances.items() if b})

    def mint(self, account: str, amount: int) -> None:
        """Give an external account funds (test and bootstrap helper)."""
        self._require_amount(amount)
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount

    def fund(self, sender: str, amount: int) -> int:
        """Plain top-up of the contract, no instruction attached.

        Returns the new contract balance.
        """
        self._require_amount(amount)
        with self._lock:
            self._debit(sender, amount)
            self._credit(self._contract, amount)
            return self.contract_balance

    def deliver(
        self,
        sender: str,
        message: Message,
        attached_value: int = 0,
        now: Optional[int] = None,
    ) -> Receipt:
        """Execute one instruction atomically.

        Raises whatever the engine raised (usually a SettlementError),
        or InsufficientFunds, after restoring the prior state.
        """
        self._require_amount(attached_value)
        if now is None:
            now = int(time.time())

        with self._lock:
            checkpoint = self.checkpoint()
            try:
                self._debit(sender, attached_value)
                self._credit(self._contract, attached_value)
                context = MessageContext(
                    sender=VerifiedSender(sender),
                    attached_value=attached_value,
                    now=now,
                    balance=self.contract_balance,
                )
                plan = self._engine.handle(message, context)
                for credit in plan.credits:
                    self._debit(self._contract, credit.amount)
                    self._credit(credit.recipient, credit.amount)
            except Exception:
                self.rollback(checkpoint)
                raise

            self._sequence += 1
            logger.debug(
                "Executed %s #%d from %s: %d credits, contract balance %d",
                type(message).__name__, self._sequence, sender,
                len(plan.credits), self.contract_balance,
            )
            return Receipt(
                sequence=self._sequence,
                sender=sender,
                message=message,
                attached_value=attached_value,
                timestamp=now,
                plan=plan,
                contract_balance=self.contract_balance,
            )

    def checkpoint(self) -> Checkpoint:
        """Capture contract state, balances and sequence for a later rollback."""
        with self._lock:
            return Checkpoint(
                state=self._engine.state.snapshot(),
                balances=dict(self._balances),
                sequence=self._sequence,
            )

    def rollback(self, checkpoint: Checkpoint) -> None:
        """Return to a checkpoint taken earlier."""
        with self._lock:
            self._engine.state.restore(checkpoint.state)
            self._balances = dict(checkpoint.balances)
            self._sequence = checkpoint.sequence

    def _debit(self, account: str, amount: int) -> None:
        if amount == 0:
            return
        current = self._balances.get(account, 0)
        if current < amount:
            raise InsufficientFunds(
                f"Account {account} holds {current}, cannot send {amount}"
            )
        self._balances[account] = current - amount

    def _credit(self, account: str, amount: int) -> None:
        if amount == 0:
            return
        self._balances[account] = self._balances.get(account, 0) + amount

    @staticmethod
    def _require_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError(f"Value must be a non-negative integer, got {amount!r}")
