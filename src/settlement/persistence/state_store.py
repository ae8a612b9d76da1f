"""JSON state store — durable snapshot of contract state and balances.

The snapshot is rewritten after every accepted instruction. Writes go
to a temporary file first and are moved into place with os.replace, so
a crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from settlement.models.state import Config, ContractState
from settlement.partners.registry import validate_shares

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


@dataclass
class StoredState:
    """Everything the store persists."""
    contract: ContractState
    balances: Dict[str, int] = field(default_factory=dict)
    contract_address: str = "settlement-contract"
    min_operational_reserve: int = 0
    sequence: int = 0


class StateStore:
    """Load/save a StoredState as a single JSON document."""

    def __init__(self, storage_path: Path) -> None:
        self._path = storage_path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, stored: StoredState) -> None:
        """Write atomically. Raises OSError on I/O failure."""
        document = {
            "version": STATE_FORMAT_VERSION,
            "contract_address": stored.contract_address,
            "min_operational_reserve": stored.min_operational_reserve,
            "sequence": stored.sequence,
            "config": stored.contract.config.to_dict(),
            "nonces": dict(sorted(stored.contract.nonces.items())),
            "partner_shares": dict(sorted(stored.contract.partner_shares.items())),
            "balances": {k: v for k, v in sorted(stored.balances.items()) if v},
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp_path, self._path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

    def load(self) -> Optional[StoredState]:
        """Load the snapshot, or None if nothing has been saved yet.

        Raises ValueError if the document violates a state invariant.
        """
        if not self._path.exists():
            return None
        data: Dict[str, Any] = json.loads(self._path.read_text(encoding="utf-8"))
        version = data.get("version")
        if version != STATE_FORMAT_VERSION:
            raise ValueError(f"Unsupported state format version: {version!r}")

        nonces = {str(k): int(v) for k, v in data.get("nonces", {}).items()}
        for account, nonce in nonces.items():
            if nonce < 0:
                raise ValueError(f"Negative nonce for {account}: {nonce}")
        shares = {str(k): v for k, v in data.get("partner_shares", {}).items()}
        validate_shares(shares)
        balances = {str(k): int(v) for k, v in data.get("balances", {}).items()}
        for account, balance in balances.items():
            if balance < 0:
                raise ValueError(f"Negative balance for {account}: {balance}")

        stored = StoredState(
            contract=ContractState(
                config=Config.from_dict(data["config"]),
                nonces=nonces,
                partner_shares=shares,
            ),
            balances=balances,
            contract_address=str(data["contract_address"]),
            min_operational_reserve=int(data["min_operational_reserve"]),
            sequence=int(data.get("sequence", 0)),
        )
        logger.debug("Loaded state from %s (sequence %d)", self._path, stored.sequence)
        return stored
