"""Replay protection — per-account nonce table."""

from settlement.replay.guard import ReplayGuard

__all__ = ["ReplayGuard"]
