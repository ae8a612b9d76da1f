"""Core data models for the settlement engine."""

from settlement.models.errors import (
    ErrorCode,
    Expired,
    InsufficientValue,
    InvalidAmount,
    InvalidRate,
    InvalidShare,
    NothingToWithdraw,
    ReplayRejected,
    SelfTradeRejected,
    SettlementError,
    Unauthorized,
)
from settlement.models.messages import (
    Message,
    MessageContext,
    RegisterPartnerShare,
    SetPlatformCommissionBps,
    Transfer,
    UnregisterPartnerShare,
    VerifiedSender,
    WithdrawAll,
)
from settlement.models.state import (
    BPS_DENOMINATOR,
    Config,
    ContractState,
    Credit,
    CreditKind,
    Preview,
    SettlementPlan,
)

__all__ = [
    "BPS_DENOMINATOR",
    "Config",
    "ContractState",
    "Credit",
    "CreditKind",
    "ErrorCode",
    "Expired",
    "InsufficientValue",
    "InvalidAmount",
    "InvalidRate",
    "InvalidShare",
    "Message",
    "MessageContext",
    "NothingToWithdraw",
    "Preview",
    "RegisterPartnerShare",
    "ReplayRejected",
    "SelfTradeRejected",
    "SetPlatformCommissionBps",
    "SettlementError",
    "SettlementPlan",
    "Transfer",
    "Unauthorized",
    "UnregisterPartnerShare",
    "VerifiedSender",
    "WithdrawAll",
]
