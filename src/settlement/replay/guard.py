"""Replay guard — per-account monotonic nonces.

Each payer has a nonce starting at 0. An accepted payment must present
the payer's current nonce; the guard then advances it by exactly one.
A resubmitted instruction presents a nonce that has already been used
and is rejected.

The guard is a pure state machine over the nonce table it is given.
It must be the last check the engine runs so a payment that fails for
any other reason never advances the nonce.
"""

from __future__ import annotations

from typing import Dict

from settlement.models.errors import ReplayRejected


class ReplayGuard:
    """Nonce table view with a single mutating operation, consume().

    Usage:
        guard = ReplayGuard(state.nonces)
        guard.consume("alice", guard.nonce_of("alice"))
    """

    def __init__(self, nonces: Dict[str, int]) -> None:
        self._nonces = nonces

    def nonce_of(self, account: str) -> int:
        """Next expected nonce for `account` (0 if never seen)."""
        return self._nonces.get(account, 0)

    def consume(self, account: str, presented_nonce: int) -> int:
        """Accept `presented_nonce` for `account` and advance it.

        Returns the new nonce. Raises ReplayRejected (with no state
        change) if the presented nonce is not the current one.
        """
        expected = self.nonce_of(account)
        if isinstance(presented_nonce, bool) or presented_nonce != expected:
            raise ReplayRejected(
                f"Nonce {presented_nonce!r} rejected for {account}: expected {expected}"
            )
        self._nonces[account] = expected + 1
        return expected + 1
