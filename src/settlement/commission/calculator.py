"""Commission calculator — deterministic basis-point commission arithmetic.

The formula is fully deterministic and uses truncating integer division:

    commission = amount × rate_bps // 10000
    total_due  = amount + commission   (payer pays commission)
               = amount                (seller absorbs commission)

Partner split of a commission:

    partner  = commission × share_bps // 10000
    platform = commission - partner

Invariants:
- 0 <= commission <= amount for every rate in [0, 10000]
- commission is non-decreasing in rate_bps
- partner + platform == commission
"""

from __future__ import annotations

from typing import Tuple

from settlement.models.errors import InvalidAmount, InvalidRate
from settlement.models.state import BPS_DENOMINATOR, Preview


def _require_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {value!r}")
    return value


def _require_bps(rate_bps: object) -> int:
    if isinstance(rate_bps, bool) or not isinstance(rate_bps, int):
        raise InvalidRate(f"Rate must be an integer number of bps, got {rate_bps!r}")
    if not 0 <= rate_bps <= BPS_DENOMINATOR:
        raise InvalidRate(f"Rate must be in [0, {BPS_DENOMINATOR}] bps, got {rate_bps}")
    return rate_bps


def commission_for(amount: int, rate_bps: int) -> int:
    """Commission on `amount` at `rate_bps`, rounded toward zero."""
    amount = _require_int(amount, "amount")
    if amount < 0:
        raise InvalidAmount(f"amount must be non-negative, got {amount}")
    return amount * _require_bps(rate_bps) // BPS_DENOMINATOR


def preview(amount: int, payer_pays_commission: bool, rate_bps: int) -> Preview:
    """Compute (commission, total_due) for a payment.

    Pure: no state is read or written, so this backs both the
    read-only previewPayment query and settlement itself.
    """
    commission = commission_for(amount, rate_bps)
    total_due = amount + commission if payer_pays_commission else amount
    return Preview(commission=commission, total_due=total_due)


def split_commission(commission: int, share_bps: int) -> Tuple[int, int]:
    """Split a commission into (partner_amount, platform_amount)."""
    partner = commission_for(commission, share_bps)
    return partner, commission - partner


class CommissionCalculator:
    """Stateless calculator bound to nothing but the bps denominator.

    Usage:
        calc = CommissionCalculator()
        p = calc.preview(1_000_000, payer_pays_commission=False, rate_bps=25)
        assert p.commission == 2500
    """

    denominator = BPS_DENOMINATOR

    def preview(
        self,
        amount: int,
        payer_pays_commission: bool,
        rate_bps: int,
    ) -> Preview:
        return preview(amount, payer_pays_commission, rate_bps)

    def split(self, commission: int, share_bps: int) -> Tuple[int, int]:
        return split_commission(commission, share_bps)
