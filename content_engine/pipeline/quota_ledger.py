"""Quota ledger: sliding-window rate and cost governor per provider.

State lives in process memory. Entries older than the longest window (24h)
are pruned on every access, so no background timer is needed.
"""

import logging
import threading
import time
from collections import deque
from collections.abc import Callable

from content_engine.core.config import QuotaConfig
from content_engine.core.schemas import QuotaLedgerEntry, QuotaUsage

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 3600.0
DAY = 86400.0


class BudgetExceededError(Exception):
    """A call was refused because it would breach a provider ceiling.

    Distinct from provider errors: callers should skip, not retry.
    """

    def __init__(self, provider: str, window: str, limit: float, used: float) -> None:
        self.provider = provider
        self.window = window
        self.limit = limit
        self.used = used
        super().__init__(
            f"Budget exceeded for '{provider}': {window} limit {limit:g} (used {used:g})"
        )


class QuotaLedger:
    """Tracks request count and cost for one provider over sliding windows.

    Usage::

        ledger = QuotaLedger("youtube", QuotaConfig(...))
        ledger.check(cost_units=1)   # raises BudgetExceededError on breach
        ...                          # do the call
        ledger.record(cost_units=1)
    """

    def __init__(
        self,
        provider: str,
        config: QuotaConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._config = config
        self._clock = clock
        self._entries: deque[QuotaLedgerEntry] = deque()
        self._lock = threading.Lock()

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def config(self) -> QuotaConfig:
        return self._config

    def record(self, cost_units: float = 1.0) -> None:
        """Append one governed request."""
        if cost_units < 0:
            msg = f"cost_units must not be negative, got {cost_units}"
            raise ValueError(msg)
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._entries.append(QuotaLedgerEntry(timestamp=now, cost_units=cost_units))
        logger.debug("Recorded %g units for '%s'", cost_units, self._provider)

    def count_in_window(self, seconds: float) -> int:
        """Number of requests recorded in the last ``seconds``."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            return self._count(now, seconds)

    def cost_in_window(self, seconds: float) -> float:
        """Total cost recorded in the last ``seconds``."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            return self._cost(now, seconds)

    def check(self, cost_units: float = 1.0) -> None:
        """Raise BudgetExceededError if one more call of ``cost_units`` would breach a ceiling."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._check(now, cost_units)

    def acquire(self, cost_units: float = 1.0) -> None:
        """Atomically check the ceilings and record the call."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._check(now, cost_units)
            self._entries.append(QuotaLedgerEntry(timestamp=now, cost_units=cost_units))

    def usage(self) -> QuotaUsage:
        with self._lock:
            now = self._clock()
            self._prune(now)
            return QuotaUsage(
                provider=self._provider,
                requests_last_minute=self._count(now, MINUTE),
                requests_last_hour=self._count(now, HOUR),
                cost_last_day=self._cost(now, DAY),
                max_requests_per_minute=self._config.max_requests_per_minute,
                max_requests_per_hour=self._config.max_requests_per_hour,
                max_daily_cost=self._config.max_daily_cost,
            )

    def warnings(self) -> list[str]:
        """Human-readable warnings for windows at or above the warning ratio."""
        usage = self.usage()
        ratio = self._config.warning_ratio
        pct = round(ratio * 100)
        result: list[str] = []
        if usage.requests_last_minute >= usage.max_requests_per_minute * ratio:
            result.append(f"Approaching {self._provider} rate limit ({pct}% of minute limit)")
        if usage.requests_last_hour >= usage.max_requests_per_hour * ratio:
            result.append(f"Approaching {self._provider} hourly quota ({pct}% of hour limit)")
        if usage.cost_last_day >= usage.max_daily_cost * ratio:
            result.append(f"Approaching {self._provider} daily quota ({pct}% of daily limit)")
        return result

    # -- internals (caller holds the lock) ------------------------------------

    def _prune(self, now: float) -> None:
        cutoff = now - DAY
        while self._entries and self._entries[0].timestamp <= cutoff:
            self._entries.popleft()

    def _count(self, now: float, seconds: float) -> int:
        cutoff = now - seconds
        return sum(1 for e in self._entries if e.timestamp > cutoff)

    def _cost(self, now: float, seconds: float) -> float:
        cutoff = now - seconds
        return sum(e.cost_units for e in self._entries if e.timestamp > cutoff)

    def _check(self, now: float, cost_units: float) -> None:
        per_minute = self._count(now, MINUTE)
        if per_minute + 1 > self._config.max_requests_per_minute:
            self._refuse("per-minute", self._config.max_requests_per_minute, per_minute)
        per_hour = self._count(now, HOUR)
        if per_hour + 1 > self._config.max_requests_per_hour:
            self._refuse("per-hour", self._config.max_requests_per_hour, per_hour)
        daily_cost = self._cost(now, DAY)
        if daily_cost + cost_units > self._config.max_daily_cost:
            self._refuse("daily-cost", self._config.max_daily_cost, daily_cost)

    def _refuse(self, window: str, limit: float, used: float) -> None:
        logger.info(
            "Quota reached for '%s': %s %g/%g", self._provider, window, used, limit,
        )
        raise BudgetExceededError(self._provider, window, limit, used)


def build_ledgers(
    quotas: dict[str, QuotaConfig],
    clock: Callable[[], float] = time.monotonic,
) -> dict[str, QuotaLedger]:
    """Create one isolated ledger per configured provider."""
    return {name: QuotaLedger(name, config, clock) for name, config in quotas.items()}
