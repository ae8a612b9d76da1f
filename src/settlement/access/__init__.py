"""Message-level access control."""

from settlement.access.control import AccessControl

__all__ = ["AccessControl"]
