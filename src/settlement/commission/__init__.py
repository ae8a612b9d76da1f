"""Commission subsystem — basis-point commission and partner split."""

from settlement.commission.calculator import (
    CommissionCalculator,
    commission_for,
    preview,
    split_commission,
)

__all__ = [
    "CommissionCalculator",
    "commission_for",
    "preview",
    "split_commission",
]
