"""
Exponential cooldown applied between passes after SteamCMD reports rate limiting.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)


class RateLimitCooldown:
    """
    Tracks how often a run has been rate limited and waits accordingly.

    The window for the n-th strike is ``min(maximum, base * 2 ** n)``, so the
    first cooldown already doubles the base delay.
    """

    def __init__(
        self,
        base: float = 30.0,
        maximum: float = 600.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base = base
        self.maximum = maximum
        self.strikes = 0
        self._sleep = sleep

    def window(self, strikes: int) -> float:
        return min(self.maximum, self.base * (2**strikes))

    async def cool_down(self) -> float:
        """Registers one more strike and sleeps for its window. Returns the delay."""
        self.strikes += 1
        delay = self.window(self.strikes)
        log.warning(
            f"[yellow]Rate limiting detected. Waiting {delay:.0f}s before retrying "
            f"(strike {self.strikes}).[/yellow]"
        )
        if delay > 0:
            await self._sleep(delay)
        return delay

    def reset(self) -> None:
        self.strikes = 0
