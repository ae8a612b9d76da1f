"""Contract state models — config, nonce table, partner registry, plans.

All monetary values are plain Python ints in base units. No floats and
no Decimal: int is arbitrary precision, so commission arithmetic can
never overflow.

Invariants enforced by these models:
- 0 <= platform_commission_bps <= BPS_DENOMINATOR
- Nonces are non-negative and only ever move forward
- A partner share of 0 is never stored
- A settlement plan's credits sum to the value it was built from
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

BPS_DENOMINATOR = 10_000

DEFAULT_COMMISSION_BPS = 25

# Base units kept behind by WithdrawAll so the contract stays callable.
DEFAULT_MIN_OPERATIONAL_RESERVE = 10_000_000


@dataclass(frozen=True)
class Config:
    """Deployment-time configuration of the contract.

    Immutable. Administrative messages replace the whole value
    through the ConfigStore; nothing edits a field in place.
    """
    owner: str
    platform_wallet: str
    registry_authority: str
    platform_commission_bps: int = DEFAULT_COMMISSION_BPS

    def __post_init__(self) -> None:
        bps = self.platform_commission_bps
        if isinstance(bps, bool) or not isinstance(bps, int):
            raise ValueError(f"platform_commission_bps must be an int, got {bps!r}")
        if not 0 <= bps <= BPS_DENOMINATOR:
            raise ValueError(
                f"platform_commission_bps must be in [0, {BPS_DENOMINATOR}], got {bps}"
            )
        for name in ("owner", "platform_wallet", "registry_authority"):
            if not getattr(self, name):
                raise ValueError(f"Config.{name} must be a non-empty account")

    def to_dict(self) -> Dict[str, object]:
        return {
            "owner": self.owner,
            "platform_wallet": self.platform_wallet,
            "registry_authority": self.registry_authority,
            "platform_commission_bps": self.platform_commission_bps,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> Config:
        return Config(
            owner=str(data["owner"]),
            platform_wallet=str(data["platform_wallet"]),
            registry_authority=str(data["registry_authority"]),
            platform_commission_bps=int(
                data.get("platform_commission_bps", DEFAULT_COMMISSION_BPS)
            ),
        )


@dataclass
class ContractState:
    """All persistent state owned by the contract.

    This is the explicit state struct handed to every handler. The
    substrate takes a snapshot before each instruction and restores it
    if the instruction fails.
    """
    config: Config
    nonces: Dict[str, int] = field(default_factory=dict)
    partner_shares: Dict[str, int] = field(default_factory=dict)

    def snapshot(self) -> ContractState:
        """Return an independent copy (config is immutable, maps are copied)."""
        return ContractState(
            config=self.config,
            nonces=dict(self.nonces),
            partner_shares=dict(self.partner_shares),
        )

    def restore(self, snapshot: ContractState) -> None:
        """Restore in place from a snapshot taken earlier.

        The maps are refilled rather than replaced so components holding
        a reference to them keep seeing live state.
        """
        self.config = snapshot.config
        self.nonces.clear()
        self.nonces.update(snapshot.nonces)
        self.partner_shares.clear()
        self.partner_shares.update(snapshot.partner_shares)


@dataclass(frozen=True)
class Preview:
    """Commission preview for a payment amount."""
    commission: int
    total_due: int

    def to_dict(self) -> Dict[str, int]:
        return {"commission": self.commission, "total_due": self.total_due}


class CreditKind(str, enum.Enum):
    """Why a credit is being paid out."""
    SELLER = "seller"
    PARTNER = "partner"
    PLATFORM = "platform"
    REFUND = "refund"
    WITHDRAWAL = "withdrawal"


@dataclass(frozen=True)
class Credit:
    """One value transfer out of the contract."""
    recipient: str
    amount: int
    kind: CreditKind

    def to_dict(self) -> Dict[str, object]:
        return {
            "recipient": self.recipient,
            "amount": self.amount,
            "kind": self.kind.value,
        }


@dataclass(frozen=True)
class SettlementPlan:
    """The complete set of credits produced by one accepted instruction.

    The substrate executes all of them or none of them.
    """
    credits: Tuple[Credit, ...] = ()
    preview: Optional[Preview] = None

    @property
    def total(self) -> int:
        return sum(c.amount for c in self.credits)

    def amount_for(self, kind: CreditKind) -> int:
        """Total credited under a given kind (0 if none)."""
        return sum(c.amount for c in self.credits if c.kind == kind)

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "credits": [c.to_dict() for c in self.credits],
            "total": self.total,
        }
        if self.preview is not None:
            data["preview"] = self.preview.to_dict()
        return data
