"""Partner revenue-share registry."""

from settlement.partners.registry import PartnerShareRegistry

__all__ = ["PartnerShareRegistry"]
