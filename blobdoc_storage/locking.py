"""
Bounded-wait write gate.

Stores backed by one shared resource (a single directory owned by one
process, a spreadsheet-like service) serialize their mutations through a
single advisory lock. Writers wait a bounded time for it and then fail
with StoreBusyError; readers never take it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from .exceptions import StoreBusyError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 30.0


class AdmissionLock:
    """Async mutex acquired only around mutating calls.

    Example:
        >>> gate = AdmissionLock(timeout=30.0)
        >>> async with gate.hold("put patients/p1.json"):
        ...     await write_file(...)
    """

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.timeout = timeout
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, operation: str = "write") -> AsyncIterator[None]:
        """Hold the gate for the duration of the block.

        Raises:
            StoreBusyError: If the gate is not acquired within ``timeout`` seconds
        """
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
        except TimeoutError:
            logger.warning(f"Write gate busy, rejecting {operation} after {self.timeout:g}s")
            raise StoreBusyError(self.timeout) from None

        try:
            yield
        finally:
            self._lock.release()
