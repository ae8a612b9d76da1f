"""Configuration — the contract's Config Store and deployment settings.

ConfigStore is the only writer of ContractState.config. It replaces the
whole immutable Config value, so a reader sees either the old config or
the new one, never a mix. Authorization is the engine's job; the store
only enforces the value invariants.

DeploymentSettings are the values needed to create a contract. They
come from the environment (optionally a .env file) or a JSON file:

    SETTLEMENT_OWNER               owner account (required)
    SETTLEMENT_PLATFORM_WALLET     platform commission wallet (required)
    SETTLEMENT_REGISTRY_AUTHORITY  partner registry authority (required)
    SETTLEMENT_COMMISSION_BPS      initial commission, default 25
    SETTLEMENT_MIN_RESERVE         operational reserve, default 10000000
    SETTLEMENT_CONTRACT_ADDRESS    contract account, default settlement-contract
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from settlement.models.errors import InvalidRate
from settlement.models.state import (
    BPS_DENOMINATOR,
    DEFAULT_COMMISSION_BPS,
    DEFAULT_MIN_OPERATIONAL_RESERVE,
    Config,
    ContractState,
)

DEFAULT_CONTRACT_ADDRESS = "settlement-contract"

_ENV_PREFIX = "SETTLEMENT_"


def _int_or_default(value: Any, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return int(value)


class ConfigStore:
    """Owner-configurable settings held in the contract state.

    Usage:
        store = ConfigStore(state)
        store.set_platform_commission_bps(1000)
        store.config.platform_commission_bps  # 1000
    """

    def __init__(self, state: ContractState) -> None:
        self._state = state

    @property
    def config(self) -> Config:
        return self._state.config

    def set_platform_commission_bps(self, new_bps: int) -> Config:
        """Replace the commission rate. Raises InvalidRate outside [0, 10000]."""
        if isinstance(new_bps, bool) or not isinstance(new_bps, int):
            raise InvalidRate(f"Commission must be an integer number of bps, got {new_bps!r}")
        if not 0 <= new_bps <= BPS_DENOMINATOR:
            raise InvalidRate(
                f"Commission must be in [0, {BPS_DENOMINATOR}] bps, got {new_bps}"
            )
        self._state.config = dataclasses.replace(
            self._state.config, platform_commission_bps=new_bps,
        )
        return self._state.config


@dataclass(frozen=True)
class DeploymentSettings:
    """Everything needed to deploy a fresh contract."""
    owner: str
    platform_wallet: str
    registry_authority: str
    platform_commission_bps: int = DEFAULT_COMMISSION_BPS
    min_operational_reserve: int = DEFAULT_MIN_OPERATIONAL_RESERVE
    contract_address: str = DEFAULT_CONTRACT_ADDRESS

    def __post_init__(self) -> None:
        if self.min_operational_reserve < 0:
            raise ValueError(
                f"min_operational_reserve must be non-negative, "
                f"got {self.min_operational_reserve}"
            )
        if not self.contract_address:
            raise ValueError("contract_address must be non-empty")

    def initial_config(self) -> Config:
        """Config the contract starts with. Validates the commission range."""
        return Config(
            owner=self.owner,
            platform_wallet=self.platform_wallet,
            registry_authority=self.registry_authority,
            platform_commission_bps=self.platform_commission_bps,
        )

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> DeploymentSettings:
        """Build from a mapping of lower-case field names."""
        missing = [
            key for key in ("owner", "platform_wallet", "registry_authority")
            if not values.get(key)
        ]
        if missing:
            raise ValueError(f"Missing deployment settings: {', '.join(missing)}")
        return cls(
            owner=str(values["owner"]).strip(),
            platform_wallet=str(values["platform_wallet"]).strip(),
            registry_authority=str(values["registry_authority"]).strip(),
            platform_commission_bps=_int_or_default(
                values.get("platform_commission_bps"), DEFAULT_COMMISSION_BPS,
            ),
            min_operational_reserve=_int_or_default(
                values.get("min_operational_reserve"), DEFAULT_MIN_OPERATIONAL_RESERVE,
            ),
            contract_address=str(
                values.get("contract_address") or DEFAULT_CONTRACT_ADDRESS
            ).strip(),
        )

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> DeploymentSettings:
        """Load from SETTLEMENT_* environment variables.

        A .env file (explicit path, or found by python-dotenv) is loaded
        first without overriding variables that are already set.
        """
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ
        values = {
            "owner": environ.get(f"{_ENV_PREFIX}OWNER"),
            "platform_wallet": environ.get(f"{_ENV_PREFIX}PLATFORM_WALLET"),
            "registry_authority": environ.get(f"{_ENV_PREFIX}REGISTRY_AUTHORITY"),
            "platform_commission_bps": environ.get(f"{_ENV_PREFIX}COMMISSION_BPS"),
            "min_operational_reserve": environ.get(f"{_ENV_PREFIX}MIN_RESERVE"),
            "contract_address": environ.get(f"{_ENV_PREFIX}CONTRACT_ADDRESS"),
        }
        return cls.from_mapping(values)

    @classmethod
    def from_json(cls, path: Path) -> DeploymentSettings:
        """Load from a JSON object with the same lower-case keys."""
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Deployment settings must be a JSON object: {path}")
        return cls.from_mapping(data)
