"""Tests for configuration — the config store and deployment settings."""

import json
import os
from pathlib import Path

import pytest

from settlement.config import ConfigStore, DeploymentSettings
from settlement.models.errors import InvalidRate
from settlement.models.state import Config, ContractState


def _state() -> ContractState:
    return ContractState(config=Config("owner", "platform", "registry"))


class TestConfig:
    def test_default_commission(self) -> None:
        assert Config("owner", "platform", "registry").platform_commission_bps == 25

    def test_out_of_range_commission_rejected(self) -> None:
        with pytest.raises(ValueError):
            Config("owner", "platform", "registry", platform_commission_bps=10_001)

    def test_empty_role_rejected(self) -> None:
        with pytest.raises(ValueError):
            Config("", "platform", "registry")

    def test_dict_round_trip(self) -> None:
        config = Config("owner", "platform", "registry", 300)
        assert Config.from_dict(config.to_dict()) == config


class TestConfigStore:
    def test_replaces_whole_config(self) -> None:
        state = _state()
        store = ConfigStore(state)
        original = state.config
        updated = store.set_platform_commission_bps(1000)
        assert updated.platform_commission_bps == 1000
        assert state.config is updated
        assert original.platform_commission_bps == 25
        assert updated.owner == original.owner

    def test_out_of_range_rejected(self) -> None:
        store = ConfigStore(_state())
        for bad in (-1, 10_001):
            with pytest.raises(InvalidRate):
                store.set_platform_commission_bps(bad)
        assert store.config.platform_commission_bps == 25

    def test_non_integer_rejected(self) -> None:
        with pytest.raises(InvalidRate):
            ConfigStore(_state()).set_platform_commission_bps("25")  # type: ignore[arg-type]


class TestDeploymentSettings:
    def test_from_env_mapping(self) -> None:
        settings = DeploymentSettings.from_env(environ={
            "SETTLEMENT_OWNER": "owner",
            "SETTLEMENT_PLATFORM_WALLET": "platform",
            "SETTLEMENT_REGISTRY_AUTHORITY": "registry",
            "SETTLEMENT_COMMISSION_BPS": "50",
            "SETTLEMENT_MIN_RESERVE": "0",
        })
        assert settings.platform_commission_bps == 50
        assert settings.min_operational_reserve == 0
        assert settings.contract_address == "settlement-contract"

    def test_defaults(self) -> None:
        settings = DeploymentSettings.from_env(environ={
            "SETTLEMENT_OWNER": "owner",
            "SETTLEMENT_PLATFORM_WALLET": "platform",
            "SETTLEMENT_REGISTRY_AUTHORITY": "registry",
            "SETTLEMENT_COMMISSION_BPS": "",
        })
        assert settings.platform_commission_bps == 25
        assert settings.min_operational_reserve == 10_000_000

    def test_missing_values_listed(self) -> None:
        with pytest.raises(ValueError, match="platform_wallet, registry_authority"):
            DeploymentSettings.from_env(environ={"SETTLEMENT_OWNER": "owner"})

    def test_env_file_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("OWNER", "PLATFORM_WALLET", "REGISTRY_AUTHORITY", "COMMISSION_BPS",
                     "MIN_RESERVE", "CONTRACT_ADDRESS"):
            monkeypatch.delenv(f"SETTLEMENT_{name}", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text(
            "SETTLEMENT_OWNER=env_owner\n"
            "SETTLEMENT_PLATFORM_WALLET=env_platform\n"
            "SETTLEMENT_REGISTRY_AUTHORITY=env_registry\n"
            "SETTLEMENT_CONTRACT_ADDRESS=contract_1\n",
            encoding="utf-8",
        )
        try:
            settings = DeploymentSettings.from_env(env_file=env_file)
        finally:
            for name in ("OWNER", "PLATFORM_WALLET", "REGISTRY_AUTHORITY",
                         "CONTRACT_ADDRESS"):
                os.environ.pop(f"SETTLEMENT_{name}", None)
        assert settings.owner == "env_owner"
        assert settings.contract_address == "contract_1"

    def test_from_json(self, tmp_path: Path) -> None:
        path = tmp_path / "deploy.json"
        path.write_text(json.dumps({
            "owner": "owner",
            "platform_wallet": "platform",
            "registry_authority": "registry",
            "platform_commission_bps": 100,
        }), encoding="utf-8")
        settings = DeploymentSettings.from_json(path)
        assert settings.initial_config() == Config("owner", "platform", "registry", 100)

    def test_from_json_requires_object(self, tmp_path: Path) -> None:
        path = tmp_path / "deploy.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            DeploymentSettings.from_json(path)

    def test_invalid_commission_caught_at_deploy(self) -> None:
        settings = DeploymentSettings("owner", "platform", "registry", 20_000)
        with pytest.raises(ValueError):
            settings.initial_config()

    def test_negative_reserve_rejected(self) -> None:
        with pytest.raises(ValueError):
            DeploymentSettings("owner", "platform", "registry", min_operational_reserve=-1)
