"""Settlement service — facade over engine, substrate and persistence.

This is the primary interface for programmatic access to the contract.
It orchestrates:
- Deployment (fresh contract from DeploymentSettings, or reload)
- Instruction delivery through the in-memory substrate
- Audit events for accepted and rejected instructions
- State snapshots after every accepted instruction

Every mutating call returns a ServiceResult; nothing here raises for a
rejected instruction. An accepted instruction is only kept if its audit
event was written: if the event log fails, the substrate is rolled back
to the checkpoint taken before delivery and the call fails closed.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from settlement.config import DeploymentSettings
from settlement.engine.processor import SettlementEngine
from settlement.models.errors import SettlementError
from settlement.models.messages import (
    Message,
    RegisterPartnerShare,
    SetPlatformCommissionBps,
    Transfer,
    UnregisterPartnerShare,
    WithdrawAll,
    message_to_dict,
)
from settlement.models.state import Config, ContractState, Preview
from settlement.persistence.event_log import EventKind, EventLog, EventRecord
from settlement.persistence.state_store import StateStore, StoredState
from settlement.substrate import InMemorySubstrate, InsufficientFunds, Receipt

logger = logging.getLogger(__name__)

INVALID_INSTRUCTION = "invalid_instruction"
INSUFFICIENT_FUNDS = "insufficient_funds"
AUDIT_FAILURE = "audit_failure"


@dataclass
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class SettlementService:
    """Unified facade for one settlement contract.

    Usage:
        settings = DeploymentSettings(owner="owner", platform_wallet="platform",
                                      registry_authority="registry")
        service = SettlementService(settings, balances={"alice": 5_000_000})
        result = service.submit("alice", transfer, attached_value=1_002_500)
        if not result.success:
            print(result.data["code"], result.errors)

    With a StateStore holding a saved snapshot, the snapshot wins and
    settings may be omitted.
    """

    def __init__(
        self,
        settings: Optional[DeploymentSettings] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        balances: Optional[Dict[str, int]] = None,
    ) -> None:
        self._event_log = event_log
        self._state_store = state_store
        self._lock = threading.Lock()
        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0
        self._persistence_degraded = False

        stored = state_store.load() if state_store is not None else None
        if stored is not None:
            engine = SettlementEngine(stored.contract, stored.min_operational_reserve)
            self._substrate = InMemorySubstrate(
                engine,
                contract_address=stored.contract_address,
                balances=stored.balances,
                sequence=stored.sequence,
            )
            logger.info(
                "Loaded contract %s at sequence %d",
                stored.contract_address, stored.sequence,
            )
            return

        if settings is None:
            raise ValueError("No saved state found and no deployment settings given")
        engine = SettlementEngine(
            ContractState(config=settings.initial_config()),
            settings.min_operational_reserve,
        )
        self._substrate = InMemorySubstrate(
            engine,
            contract_address=settings.contract_address,
            balances=balances,
        )
        err = self._record_event(
            EventKind.CONTRACT_DEPLOYED,
            settings.owner,
            {"settings": settings.to_dict(), "balances": dict(self._substrate.balances())},
        )
        if err:
            raise OSError(err)
        self._persist_state()
        logger.info(
            "Deployed contract %s (owner %s, commission %d bps)",
            settings.contract_address, settings.owner, settings.platform_commission_bps,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def engine(self) -> SettlementEngine:
        return self._substrate.engine

    @property
    def substrate(self) -> InMemorySubstrate:
        return self._substrate

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    @property
    def persistence_degraded(self) -> bool:
        """True once a state snapshot failed after its audit event was written."""
        return self._persistence_degraded

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    def submit(
        self,
        sender: str,
        message: Message,
        attached_value: int = 0,
        now: Optional[int] = None,
    ) -> ServiceResult:
        """Deliver one instruction from an authenticated sender."""
        message_type = getattr(message, "type_name", type(message).__name__)
        with self._lock:
            checkpoint = self._substrate.checkpoint()
            previous_config = self.engine.state.config
            try:
                receipt = self._substrate.deliver(sender, message, attached_value, now)
            except SettlementError as e:
                return self._reject(sender, message_type, e.code.value, e.message or str(e))
            except InsufficientFunds as e:
                return self._reject(sender, message_type, INSUFFICIENT_FUNDS, str(e))
            except (ValueError, TypeError) as e:
                return self._reject(sender, message_type, INVALID_INSTRUCTION, str(e))

            kind = self._event_kind_for(message)
            payload = self._receipt_payload(receipt)
            if isinstance(message, SetPlatformCommissionBps):
                payload["previous_bps"] = previous_config.platform_commission_bps
            err = self._record_event(kind, sender, payload)
            if err:
                self._substrate.rollback(checkpoint)
                logger.error("%s from %s rolled back: %s", message_type, sender, err)
                return ServiceResult(
                    success=False,
                    errors=[err],
                    data={"code": AUDIT_FAILURE, "message_type": message_type},
                )

            logger.info(
                "%s #%d from %s accepted (%d credits)",
                message_type, receipt.sequence, sender, len(receipt.plan.credits),
            )
            data = self._receipt_data(receipt)
            warning = self._safe_persist_post_audit()
            if warning:
                data["persistence_warning"] = warning
            return ServiceResult(success=True, data=data)

    def transfer(
        self,
        sender: str,
        payee: str,
        amount: int,
        deadline: int,
        nonce: int,
        payer_pays_commission: bool = False,
        partner_wallet: Optional[str] = None,
        attached_value: int = 0,
        payer: Optional[str] = None,
        now: Optional[int] = None,
    ) -> ServiceResult:
        """Build and submit a Transfer. The payer defaults to the sender."""
        message = Transfer(
            payer=payer if payer is not None else sender,
            payee=payee,
            amount=amount,
            payer_pays_commission=payer_pays_commission,
            deadline=deadline,
            nonce=nonce,
            partner_wallet=partner_wallet,
        )
        return self.submit(sender, message, attached_value, now)

    def set_platform_commission_bps(
        self, sender: str, new_bps: int, attached_value: int = 0,
    ) -> ServiceResult:
        return self.submit(sender, SetPlatformCommissionBps(new_bps), attached_value)

    def withdraw_all(self, sender: str, to: str, attached_value: int = 0) -> ServiceResult:
        return self.submit(sender, WithdrawAll(to), attached_value)

    def register_partner_share(
        self, sender: str, wallet: str, share_bps: Optional[int],
    ) -> ServiceResult:
        """Set a partner's share; None or 0 removes the entry."""
        return self.submit(sender, RegisterPartnerShare(wallet, share_bps))

    def unregister_partner_share(self, sender: str, wallet: str) -> ServiceResult:
        return self.submit(sender, UnregisterPartnerShare(wallet))

    # ------------------------------------------------------------------
    # Value movement outside the message surface
    # ------------------------------------------------------------------

    def fund(self, sender: str, amount: int) -> ServiceResult:
        """Top up the contract from an external account."""
        return self._move_value(
            EventKind.CONTRACT_FUNDED,
            sender,
            amount,
            lambda: self._substrate.fund(sender, amount),
        )

    def mint(self, account: str, amount: int) -> ServiceResult:
        """Credit an external account out of thin air (bootstrap and demos)."""
        def _mint() -> int:
            self._substrate.mint(account, amount)
            return self._substrate.balance_of(account)

        return self._move_value(EventKind.ACCOUNT_MINTED, account, amount, _mint)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def preview_payment(self, amount: int, payer_pays_commission: bool) -> Preview:
        """Commission preview at the current rate. Raises InvalidAmount."""
        return self.engine.preview_payment(amount, payer_pays_commission)

    def nonce_of(self, account: str) -> int:
        return self.engine.nonce_of(account)

    def share_of(self, wallet: str) -> int:
        return self.engine.share_of(wallet)

    def balance_of(self, account: str) -> int:
        return self._substrate.balance_of(account)

    def config(self) -> Config:
        return self.engine.state.config

    def status(self) -> dict[str, Any]:
        """Summary of the contract for operators."""
        state = self.engine.state
        return {
            "contract_address": self._substrate.contract_address,
            "config": state.config.to_dict(),
            "min_operational_reserve": self.engine.min_operational_reserve,
            "contract_balance": self._substrate.contract_balance,
            "sequence": self._substrate.sequence,
            "partner_shares": dict(sorted(state.partner_shares.items())),
            "nonces": dict(sorted(state.nonces.items())),
            "balances": dict(sorted(self._substrate.balances().items())),
            "events": self._event_log.count if self._event_log is not None else 0,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reject(
        self, sender: str, message_type: str, code: str, reason: str,
    ) -> ServiceResult:
        logger.warning("%s from %s rejected: %s (%s)", message_type, sender, code, reason)
        errors = [reason]
        err = self._record_event(
            EventKind.INSTRUCTION_REJECTED,
            sender,
            {"message_type": message_type, "code": code, "reason": reason},
        )
        if err:
            errors.append(err)
        return ServiceResult(
            success=False,
            errors=errors,
            data={"code": code, "message_type": message_type},
        )

    def _move_value(
        self,
        kind: EventKind,
        actor: str,
        amount: int,
        action: Callable[[], int],
    ) -> ServiceResult:
        with self._lock:
            checkpoint = self._substrate.checkpoint()
            try:
                new_balance = action()
            except InsufficientFunds as e:
                return ServiceResult(
                    success=False, errors=[str(e)], data={"code": INSUFFICIENT_FUNDS},
                )
            except ValueError as e:
                return ServiceResult(
                    success=False, errors=[str(e)], data={"code": INVALID_INSTRUCTION},
                )

            err = self._record_event(kind, actor, {"amount": amount, "balance": new_balance})
            if err:
                self._substrate.rollback(checkpoint)
                logger.error("%s for %s rolled back: %s", kind.value, actor, err)
                return ServiceResult(success=False, errors=[err], data={"code": AUDIT_FAILURE})

            logger.info("%s: %d for %s", kind.value, amount, actor)
            data: dict[str, Any] = {"amount": amount, "balance": new_balance}
            warning = self._safe_persist_post_audit()
            if warning:
                data["persistence_warning"] = warning
            return ServiceResult(success=True, data=data)

    @staticmethod
    def _event_kind_for(message: Message) -> EventKind:
        if isinstance(message, Transfer):
            return EventKind.TRANSFER_SETTLED
        if isinstance(message, SetPlatformCommissionBps):
            return EventKind.COMMISSION_RATE_CHANGED
        if isinstance(message, WithdrawAll):
            return EventKind.FUNDS_WITHDRAWN
        if isinstance(message, RegisterPartnerShare) and message.share_bps:
            return EventKind.PARTNER_SHARE_SET
        return EventKind.PARTNER_SHARE_REMOVED

    @staticmethod
    def _receipt_payload(receipt: Receipt) -> dict[str, Any]:
        return {
            "sequence": receipt.sequence,
            "instruction": message_to_dict(receipt.message),
            "attached_value": receipt.attached_value,
            "timestamp": receipt.timestamp,
            "plan": receipt.plan.to_dict(),
            "contract_balance": receipt.contract_balance,
        }

    @staticmethod
    def _receipt_data(receipt: Receipt) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sequence": receipt.sequence,
            "message_type": receipt.message.type_name,
            "credits": [c.to_dict() for c in receipt.plan.credits],
            "contract_balance": receipt.contract_balance,
        }
        if receipt.plan.preview is not None:
            data["preview"] = receipt.plan.preview.to_dict()
        return data

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_event(
        self, kind: EventKind, actor_id: str, payload: dict[str, Any],
    ) -> Optional[str]:
        """Append an audit event. Returns an error string or None."""
        if self._event_log is None:
            return None
        try:
            self._event_log.append(EventRecord.create(
                event_id=self._next_event_id(),
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
            ))
        except (ValueError, OSError) as e:
            return f"Event log failure: {e}"
        return None

    def _persist_state(self) -> None:
        if self._state_store is None:
            return
        self._state_store.save(StoredState(
            contract=self.engine.state,
            balances=dict(self._substrate.balances()),
            contract_address=self._substrate.contract_address,
            min_operational_reserve=self.engine.min_operational_reserve,
            sequence=self._substrate.sequence,
        ))

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after the audit event has been committed.

        Never rolls back: the audit trail is already durable. On failure
        the in-memory state stays correct, the snapshot is stale, and the
        degraded flag is raised for operators.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.warning("State snapshot failed, store is stale: %s", e)
            return f"Persistence degraded: {e}"
