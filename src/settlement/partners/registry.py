"""Partner share registry — partner wallet → share of commission in bps.

Only the registry authority (the partner-issuing collection) may write.
Shares live in [1, 10000]; writing None or 0 removes the entry, so a
zero share is never stored. Removing an absent entry is a no-op.

The registry is read once per settlement to compute the partner cut:

    partner_amount = commission × share_of(wallet) // 10000
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Mapping, Optional

from settlement.access.control import AccessControl
from settlement.models.errors import InvalidShare
from settlement.models.messages import VerifiedSender
from settlement.models.state import BPS_DENOMINATOR, ContractState


class PartnerShareRegistry:
    """Authority-gated view over ContractState.partner_shares.

    Usage:
        registry = PartnerShareRegistry(state, AccessControl(state))
        registry.set_share(authority, "partner_1", 4000)
        registry.share_of("partner_1")  # 4000
        registry.set_share(authority, "partner_1", None)  # removed
    """

    def __init__(self, state: ContractState, access: AccessControl) -> None:
        self._state = state
        self._access = access

    def set_share(
        self,
        caller: VerifiedSender,
        wallet: str,
        share_bps: Optional[int],
    ) -> Optional[int]:
        """Set or remove a partner share.

        Returns the stored share, or None when the entry was removed.
        Authorization is checked before the value.
        """
        self._access.require_registry_authority(caller)
        if not wallet:
            raise ValueError("Partner wallet must be a non-empty account")
        if share_bps is None or (share_bps == 0 and not isinstance(share_bps, bool)):
            self._state.partner_shares.pop(wallet, None)
            return None
        if isinstance(share_bps, bool) or not isinstance(share_bps, int):
            raise InvalidShare(f"Share must be an integer number of bps, got {share_bps!r}")
        if not 1 <= share_bps <= BPS_DENOMINATOR:
            raise InvalidShare(
                f"Share must be in [1, {BPS_DENOMINATOR}] bps (or 0/None to remove), "
                f"got {share_bps}"
            )
        self._state.partner_shares[wallet] = share_bps
        return share_bps

    def remove(self, caller: VerifiedSender, wallet: str) -> None:
        """Remove a partner share (idempotent)."""
        self.set_share(caller, wallet, None)

    def share_of(self, wallet: Optional[str]) -> int:
        """Registered share for `wallet`, 0 if absent or no wallet given."""
        if wallet is None:
            return 0
        return self._state.partner_shares.get(wallet, 0)

    def shares(self) -> Mapping[str, int]:
        """Read-only view of all registered shares."""
        return MappingProxyType(dict(self._state.partner_shares))

    def __len__(self) -> int:
        return len(self._state.partner_shares)

    def __contains__(self, wallet: object) -> bool:
        return wallet in self._state.partner_shares


def validate_shares(shares: Dict[str, int]) -> None:
    """Check a loaded share table against the registry invariants."""
    for wallet, share in shares.items():
        if isinstance(share, bool) or not isinstance(share, int):
            raise ValueError(f"Share for {wallet} is not an integer: {share!r}")
        if not 1 <= share <= BPS_DENOMINATOR:
            raise ValueError(f"Share for {wallet} out of range: {share}")
