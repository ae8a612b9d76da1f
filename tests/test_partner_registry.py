"""Tests for the partner share registry — authority-gated, zero never stored."""

import pytest

from settlement.access.control import AccessControl
from settlement.models.errors import InvalidRate, InvalidShare, Unauthorized
from settlement.models.messages import VerifiedSender
from settlement.models.state import Config, ContractState
from settlement.partners.registry import PartnerShareRegistry, validate_shares

AUTHORITY = VerifiedSender("registry")


def _registry() -> PartnerShareRegistry:
    state = ContractState(config=Config(
        owner="owner",
        platform_wallet="platform",
        registry_authority="registry",
    ))
    return PartnerShareRegistry(state, AccessControl(state))


class TestSetShare:
    def test_register_and_read(self) -> None:
        registry = _registry()
        assert registry.set_share(AUTHORITY, "partner_1", 4000) == 4000
        assert registry.share_of("partner_1") == 4000
        assert "partner_1" in registry
        assert len(registry) == 1

    def test_update_replaces(self) -> None:
        registry = _registry()
        registry.set_share(AUTHORITY, "partner_1", 4000)
        registry.set_share(AUTHORITY, "partner_1", 2500)
        assert registry.share_of("partner_1") == 2500

    def test_bounds_accepted(self) -> None:
        registry = _registry()
        registry.set_share(AUTHORITY, "low", 1)
        registry.set_share(AUTHORITY, "high", 10_000)
        assert registry.share_of("low") == 1
        assert registry.share_of("high") == 10_000

    def test_none_removes(self) -> None:
        registry = _registry()
        registry.set_share(AUTHORITY, "partner_1", 4000)
        assert registry.set_share(AUTHORITY, "partner_1", None) is None
        assert "partner_1" not in registry
        assert registry.share_of("partner_1") == 0

    def test_zero_removes_and_is_never_stored(self) -> None:
        registry = _registry()
        registry.set_share(AUTHORITY, "partner_1", 4000)
        registry.set_share(AUTHORITY, "partner_1", 0)
        assert len(registry) == 0
        registry.set_share(AUTHORITY, "partner_2", 0)
        assert "partner_2" not in registry

    def test_removal_is_idempotent(self) -> None:
        registry = _registry()
        registry.remove(AUTHORITY, "partner_1")
        registry.remove(AUTHORITY, "partner_1")
        assert len(registry) == 0

    def test_above_range_rejected(self) -> None:
        registry = _registry()
        with pytest.raises(InvalidShare):
            registry.set_share(AUTHORITY, "partner_1", 10_001)
        assert len(registry) == 0

    def test_negative_rejected(self) -> None:
        registry = _registry()
        with pytest.raises(InvalidShare):
            registry.set_share(AUTHORITY, "partner_1", -5)

    def test_invalid_share_is_an_invalid_rate(self) -> None:
        registry = _registry()
        with pytest.raises(InvalidRate) as exc_info:
            registry.set_share(AUTHORITY, "partner_1", 20_000)
        assert exc_info.value.code.value == "invalid_share"

    def test_empty_wallet_rejected(self) -> None:
        registry = _registry()
        with pytest.raises(ValueError):
            registry.set_share(AUTHORITY, "", 4000)


class TestAuthorization:
    def test_non_authority_cannot_register(self) -> None:
        registry = _registry()
        with pytest.raises(Unauthorized):
            registry.set_share(VerifiedSender("owner"), "partner_1", 4000)
        assert len(registry) == 0

    def test_non_authority_cannot_remove(self) -> None:
        registry = _registry()
        registry.set_share(AUTHORITY, "partner_1", 4000)
        with pytest.raises(Unauthorized):
            registry.remove(VerifiedSender("partner_1"), "partner_1")
        assert registry.share_of("partner_1") == 4000

    def test_authorization_checked_before_value(self) -> None:
        registry = _registry()
        with pytest.raises(Unauthorized):
            registry.set_share(VerifiedSender("mallory"), "partner_1", 99_999)


class TestQueries:
    def test_no_wallet_has_no_share(self) -> None:
        assert _registry().share_of(None) == 0

    def test_shares_view_is_read_only(self) -> None:
        registry = _registry()
        registry.set_share(AUTHORITY, "partner_1", 4000)
        view = registry.shares()
        assert dict(view) == {"partner_1": 4000}
        with pytest.raises(TypeError):
            view["partner_2"] = 1  # type: ignore[index]


class TestValidateShares:
    def test_valid_table(self) -> None:
        validate_shares({"a": 1, "b": 10_000})

    def test_zero_entry_rejected(self) -> None:
        with pytest.raises(ValueError):
            validate_shares({"a": 0})

    def test_non_integer_rejected(self) -> None:
        with pytest.raises(ValueError):
            validate_shares({"a": "4000"})  # type: ignore[dict-item]
