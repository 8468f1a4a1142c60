"""Absolute time budget shared by every query of one export."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

DEFAULT_TIMEOUT_SECONDS = 300.0


class Deadline:
    """An absolute deadline, passed explicitly to each query call.

    The deadline is fixed when the object is created; every ``scope()``
    entered afterwards shares the same expiry.

    Args:
        seconds: Budget from now.  ``None`` means no deadline.

    Example:
        deadline = Deadline(300)
        async with deadline.scope():
            await client.cursor(sql)
    """

    def __init__(self, seconds: float | None = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    def remaining(self) -> float | None:
        """Seconds left, clamped at zero, or ``None`` when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[None]:
        """Raise ``TimeoutError`` if the block runs past the deadline."""
        remaining = self.remaining()
        if remaining is None:
            yield
            return
        if remaining <= 0.0:
            raise TimeoutError("Deadline already passed")
        loop = asyncio.get_running_loop()
        async with asyncio.timeout_at(loop.time() + remaining):
            yield
