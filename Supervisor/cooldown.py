"""Per-service restart throttling."""
from __future__ import annotations

import time
from typing import Callable


class RestartCooldown:
    """Remembers when each service was last restarted.

    A service may be restarted again only once ``cooldown_seconds`` have
    passed since the previous attempt. The clock comes from *clock*
    (``time.monotonic`` by default) so tests can drive it.
    """

    def __init__(
        self,
        cooldown_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self.last_restart_at: dict[str, float] = {}

    def ready(self, name: str) -> bool:
        """True if *name* has no restart inside the cooldown window."""
        last = self.last_restart_at.get(name)
        if last is None:
            return True
        return self._clock() - last >= self.cooldown_seconds

    def record(self, name: str) -> None:
        self.last_restart_at[name] = self._clock()

    def try_acquire(self, name: str) -> bool:
        """Check and record in one step; False while cooling down."""
        if not self.ready(name):
            return False
        self.record(name)
        return True

    def remaining(self, name: str) -> float:
        """Seconds until *name* may be restarted again (0 when ready)."""
        last = self.last_restart_at.get(name)
        if last is None:
            return 0.0
        return max(0.0, self.cooldown_seconds - (self._clock() - last))
