"""Settlement error taxonomy.

Every rejected instruction raises exactly one of these. Each carries a
stable ErrorCode so callers (and tests) can tell rejections apart
without parsing messages.

A rejection never leaves partial state behind: the raising handler has
not mutated anything yet, and the substrate rolls back whatever it
staged for the instruction.
"""

from __future__ import annotations

import enum


class ErrorCode(str, enum.Enum):
    """Distinguishing code attached to every rejected instruction."""
    SELF_TRADE_REJECTED = "self_trade_rejected"
    INVALID_AMOUNT = "invalid_amount"
    EXPIRED = "expired"
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_VALUE = "insufficient_value"
    REPLAY_REJECTED = "replay_rejected"
    INVALID_RATE = "invalid_rate"
    INVALID_SHARE = "invalid_share"
    NOTHING_TO_WITHDRAW = "nothing_to_withdraw"


class SettlementError(Exception):
    """Base class for all instruction rejections."""

    code: ErrorCode

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code.value)
        self.message = message or self.code.value


class SelfTradeRejected(SettlementError):
    """Payee equals payer."""
    code = ErrorCode.SELF_TRADE_REJECTED


class InvalidAmount(SettlementError):
    """Amount is not a strictly positive integer."""
    code = ErrorCode.INVALID_AMOUNT


class Expired(SettlementError):
    """Current time is past the instruction deadline."""
    code = ErrorCode.EXPIRED


class Unauthorized(SettlementError):
    """Sender mismatch, or caller lacks the owner/registry-authority role."""
    code = ErrorCode.UNAUTHORIZED


class InsufficientValue(SettlementError):
    """Attached value is below the computed total due."""
    code = ErrorCode.INSUFFICIENT_VALUE


class ReplayRejected(SettlementError):
    """Presented nonce does not match the payer's current nonce."""
    code = ErrorCode.REPLAY_REJECTED


class InvalidRate(SettlementError):
    """Basis-points value outside [0, 10000]."""
    code = ErrorCode.INVALID_RATE


class InvalidShare(InvalidRate):
    """Partner share outside [1, 10000] and not a removal sentinel."""
    code = ErrorCode.INVALID_SHARE


class NothingToWithdraw(SettlementError):
    """Withdrawal would leave less than the operational reserve."""
    code = ErrorCode.NOTHING_TO_WITHDRAW
