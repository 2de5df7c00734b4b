"""Tiergate package root."""

from tiergate.exceptions import TierGateError, UnknownTierError

__all__ = ["__version__", "TierGateError", "UnknownTierError"]

__version__ = "0.1.0"
