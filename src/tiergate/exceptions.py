"""Exception types raised across the tiergate public API."""

from __future__ import annotations


class TierGateError(RuntimeError):
    """Base class for tiergate failures that must reach the caller.

    Degraded audit conditions (missing artifacts, failing fix commands,
    baseline I/O) are recorded on results instead of raised.
    """


class UnknownTierError(TierGateError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"unknown tier: {value!r}")
        self.value = value
