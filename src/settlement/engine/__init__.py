"""Settlement engine — instruction validation and settlement planning."""

from settlement.engine.processor import SettlementEngine

__all__ = ["SettlementEngine"]
