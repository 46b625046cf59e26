"""Cooperative cancellation for measurement runs."""
from __future__ import annotations

import asyncio

from .errors import MeasurementCancelled


class CancelToken:
    """
    Set once, checked everywhere.

    Probes call :meth:`raise_if_cancelled` before every request and use
    :meth:`sleep` for inter-sample delays so a pending wait ends as soon
    as the token fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise MeasurementCancelled("measurement cancelled")

    async def sleep(self, seconds: float) -> None:
        """Wait *seconds*, raising ``MeasurementCancelled`` if cancelled meanwhile."""
        self.raise_if_cancelled()
        if seconds <= 0:
            await asyncio.sleep(0)
        else:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()
