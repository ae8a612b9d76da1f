"""Access control — role checks at the message boundary.

Three checks, each failing closed with Unauthorized:
- owner-only (commission changes, withdrawals)
- registry-authority-only (partner share writes)
- sender must equal the party the message declares (payer of a Transfer)

Roles are read from the live config on every check, so a config
replacement takes effect for the very next instruction.
"""

from __future__ import annotations

from settlement.models.errors import Unauthorized
from settlement.models.messages import VerifiedSender
from settlement.models.state import ContractState


class AccessControl:
    """Role checks against the contract's current config."""

    def __init__(self, state: ContractState) -> None:
        self._state = state

    def is_owner(self, sender: VerifiedSender) -> bool:
        return sender.address == self._state.config.owner

    def is_registry_authority(self, sender: VerifiedSender) -> bool:
        return sender.address == self._state.config.registry_authority

    def require_owner(self, sender: VerifiedSender) -> None:
        if not self.is_owner(sender):
            raise Unauthorized(f"Only the owner may do this, not {sender.address}")

    def require_registry_authority(self, sender: VerifiedSender) -> None:
        if not self.is_registry_authority(sender):
            raise Unauthorized(
                f"Only the registry authority may manage partner shares, "
                f"not {sender.address}"
            )

    @staticmethod
    def require_sender_is(sender: VerifiedSender, declared: str) -> None:
        """The verified sender must be the party the message speaks for."""
        if sender.address != declared:
            raise Unauthorized(
                f"Sender {sender.address} does not match declared party {declared}"
            )
