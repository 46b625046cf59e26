"""
Exception types and failure values.

Network failures never leave the collector and persistence failures never
leave the result store; both exist so the recovering code has something
precise to catch.  ``DecodeFailure`` is returned, not raised.
"""
from __future__ import annotations

from dataclasses import dataclass


class SpeedcheckError(Exception):
    """Base class for all speedcore errors."""


class NetworkFailure(SpeedcheckError):
    """Transport error, timeout, non-2xx status or unusable response body."""


class PersistenceFailure(SpeedcheckError):
    """Local storage is unreadable or unwritable."""


class MeasurementCancelled(SpeedcheckError):
    """The run's cancel token fired while a probe was in progress."""


@dataclass(frozen=True)
class DecodeFailure:
    """A share token could not be turned back into a result."""

    reason: str

    def __bool__(self) -> bool:
        return False
