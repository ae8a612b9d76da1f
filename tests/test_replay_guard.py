"""Tests for the replay guard — per-account nonces only move forward."""

import pytest

from settlement.models.errors import ReplayRejected
from settlement.replay.guard import ReplayGuard


class TestReplayGuard:
    def test_unseen_account_starts_at_zero(self) -> None:
        guard = ReplayGuard({})
        assert guard.nonce_of("alice") == 0

    def test_consume_advances_by_one(self) -> None:
        nonces: dict = {}
        guard = ReplayGuard(nonces)
        assert guard.consume("alice", 0) == 1
        assert guard.consume("alice", 1) == 2
        assert nonces == {"alice": 2}

    def test_accounts_are_independent(self) -> None:
        guard = ReplayGuard({})
        guard.consume("alice", 0)
        assert guard.nonce_of("bob") == 0
        guard.consume("bob", 0)
        assert guard.nonce_of("alice") == 1

    def test_reused_nonce_rejected(self) -> None:
        guard = ReplayGuard({})
        guard.consume("alice", 0)
        with pytest.raises(ReplayRejected):
            guard.consume("alice", 0)
        assert guard.nonce_of("alice") == 1

    def test_skipped_nonce_rejected(self) -> None:
        guard = ReplayGuard({"alice": 3})
        with pytest.raises(ReplayRejected):
            guard.consume("alice", 5)
        assert guard.nonce_of("alice") == 3

    def test_bool_nonce_rejected(self) -> None:
        guard = ReplayGuard({})
        with pytest.raises(ReplayRejected):
            guard.consume("alice", False)  # type: ignore[arg-type]
        assert guard.nonce_of("alice") == 0

    def test_reads_live_table(self) -> None:
        nonces = {"alice": 4}
        guard = ReplayGuard(nonces)
        nonces["alice"] = 9
        assert guard.nonce_of("alice") == 9

    def test_rejection_carries_code(self) -> None:
        guard = ReplayGuard({})
        with pytest.raises(ReplayRejected) as exc_info:
            guard.consume("alice", 7)
        assert exc_info.value.code.value == "replay_rejected"
        assert "expected 0" in exc_info.value.message
