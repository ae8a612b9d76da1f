"""Inbound message surface — the tagged instructions the engine consumes.

Each message is a frozen dataclass. The JSON wire form is a flat object
with a "type" tag:

    {"type": "Transfer", "payer": "alice", "payee": "bob", "amount": 1000000,
     "payer_pays_commission": true, "partner_wallet": null,
     "deadline": 1767225600, "nonce": 0}

Opcodes for Transfer, SetPlatformCommissionBps and WithdrawAll are the
ones the deployed contract answers to. The registry messages use the
CRC32 of their type signature.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class VerifiedSender:
    """Sender identity attested by the execution substrate.

    The core never derives this itself (no signature checks, no key
    handling). Only a substrate should construct one.
    """
    address: str

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True)
class MessageContext:
    """Everything the substrate attaches to a delivered instruction."""
    sender: VerifiedSender
    attached_value: int
    now: int
    balance: int = 0
    """Contract balance at handling time, attached value included."""


@dataclass(frozen=True)
class Transfer:
    """Pay `amount` from payer to payee, splitting commission."""
    payer: str
    payee: str
    amount: int
    payer_pays_commission: bool
    deadline: int
    nonce: int
    partner_wallet: Optional[str] = None

    type_name = "Transfer"
    opcode = 1120014202


@dataclass(frozen=True)
class SetPlatformCommissionBps:
    """Owner-only: replace the platform commission rate."""
    new_bps: int

    type_name = "SetPlatformCommissionBps"
    opcode = 4004194512


@dataclass(frozen=True)
class WithdrawAll:
    """Owner-only: sweep everything above the operational reserve."""
    to: str

    type_name = "WithdrawAll"
    opcode = 3794127834


@dataclass(frozen=True)
class RegisterPartnerShare:
    """Registry-authority-only: set (or clear, with None/0) a partner share."""
    wallet: str
    share_bps: Optional[int] = None

    type_name = "RegisterPartnerShare"
    opcode = zlib.crc32(b"RegisterPartnerShare{wallet:address,shareBps:Maybe int}")


@dataclass(frozen=True)
class UnregisterPartnerShare:
    """Registry-authority-only: remove a partner share."""
    wallet: str

    type_name = "UnregisterPartnerShare"
    opcode = zlib.crc32(b"UnregisterPartnerShare{wallet:address}")


Message = Union[
    Transfer,
    SetPlatformCommissionBps,
    WithdrawAll,
    RegisterPartnerShare,
    UnregisterPartnerShare,
]

MESSAGE_TYPES: Dict[str, type] = {
    cls.type_name: cls
    for cls in (
        Transfer,
        SetPlatformCommissionBps,
        WithdrawAll,
        RegisterPartnerShare,
        UnregisterPartnerShare,
    )
}


def _int_field(data: Dict[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool):
        raise ValueError(f"Field '{key}' must be an integer, got {value!r}")
    if isinstance(value, str):
        return int(value.strip())
    if not isinstance(value, int):
        raise ValueError(f"Field '{key}' must be an integer, got {value!r}")
    return value


def _optional_int_field(data: Dict[str, Any], key: str) -> Optional[int]:
    if data.get(key) is None:
        return None
    return _int_field(data, key)


def _bool_field(data: Dict[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValueError(f"Field '{key}' must be a boolean, got {value!r}")
    return value


def _optional_str_field(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string, got {value!r}")
    return value


def message_from_dict(data: Dict[str, Any]) -> Message:
    """Decode the JSON wire form. Raises ValueError on malformed input."""
    if not isinstance(data, dict):
        raise ValueError(f"Message must be a JSON object, got {type(data).__name__}")
    type_name = data.get("type")
    if type_name not in MESSAGE_TYPES:
        raise ValueError(f"Unknown message type: {type_name!r}")
    try:
        if type_name == Transfer.type_name:
            return Transfer(
                payer=str(data["payer"]),
                payee=str(data["payee"]),
                amount=_int_field(data, "amount"),
                payer_pays_commission=_bool_field(data, "payer_pays_commission"),
                deadline=_int_field(data, "deadline"),
                nonce=_int_field(data, "nonce"),
                partner_wallet=_optional_str_field(data, "partner_wallet"),
            )
        if type_name == SetPlatformCommissionBps.type_name:
            return SetPlatformCommissionBps(new_bps=_int_field(data, "new_bps"))
        if type_name == WithdrawAll.type_name:
            return WithdrawAll(to=str(data["to"]))
        if type_name == RegisterPartnerShare.type_name:
            return RegisterPartnerShare(
                wallet=str(data["wallet"]),
                share_bps=_optional_int_field(data, "share_bps"),
            )
        return UnregisterPartnerShare(wallet=str(data["wallet"]))
    except KeyError as e:
        raise ValueError(f"{type_name} is missing field {e.args[0]!r}") from e


def message_to_dict(message: Message) -> Dict[str, Any]:
    """Encode a message to its JSON wire form."""
    if isinstance(message, Transfer):
        body: Dict[str, Any] = {
            "payer": message.payer,
            "payee": message.payee,
            "amount": message.amount,
            "payer_pays_commission": message.payer_pays_commission,
            "partner_wallet": message.partner_wallet,
            "deadline": message.deadline,
            "nonce": message.nonce,
        }
    elif isinstance(message, SetPlatformCommissionBps):
        body = {"new_bps": message.new_bps}
    elif isinstance(message, WithdrawAll):
        body = {"to": message.to}
    elif isinstance(message, RegisterPartnerShare):
        body = {"wallet": message.wallet, "share_bps": message.share_bps}
    elif isinstance(message, UnregisterPartnerShare):
        body = {"wallet": message.wallet}
    else:
        raise TypeError(f"Not a settlement message: {type(message)}")
    return {"type": message.type_name, **body}
