from __future__ import annotations

import random
from dataclasses import dataclass, field

from .crawl_requests import RequestKind

# Statuses the site uses to say "slow down": plain 429 and its non-standard 999.
RATE_LIMIT_STATUSES = frozenset({429, 999})


def is_rate_limited(status_code: int) -> bool:
    return status_code in RATE_LIMIT_STATUSES


@dataclass
class RetryPolicy:
    """
    Backoff schedule per request kind. Delay grows linearly with the retry
    count plus a uniform jitter:

        JOB_DETAIL  retry_count * 3s + U(2s, 5s)
        COMPANY     retry_count * 2s + U(1s, 3s)   (at most company_max_retries)
        network     retry_count * 1s + U(0.5s, 1.5s)

    Tests pass zero steps/jitter (or a seeded rng) for determinism.
    """

    job_detail_step: float = 3.0
    job_detail_jitter: tuple[float, float] = (2.0, 5.0)
    company_step: float = 2.0
    company_jitter: tuple[float, float] = (1.0, 3.0)
    company_max_retries: int = 4
    network_step: float = 1.0
    network_jitter: tuple[float, float] = (0.5, 1.5)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    @classmethod
    def immediate(cls, company_max_retries: int = 4) -> RetryPolicy:
        """No waiting at all; for tests and dry runs."""
        return cls(
            job_detail_step=0.0,
            job_detail_jitter=(0.0, 0.0),
            company_step=0.0,
            company_jitter=(0.0, 0.0),
            company_max_retries=company_max_retries,
            network_step=0.0,
            network_jitter=(0.0, 0.0),
        )

    def _jitter(self, bounds: tuple[float, float]) -> float:
        low, high = bounds
        if high <= low:
            return max(low, 0.0)
        return self.rng.uniform(low, high)

    def delay_for(self, kind: RequestKind, retry_count: int) -> float:
        if kind is RequestKind.JOB_DETAIL:
            return retry_count * self.job_detail_step + self._jitter(self.job_detail_jitter)
        if kind is RequestKind.COMPANY:
            return retry_count * self.company_step + self._jitter(self.company_jitter)
        return self.network_delay(retry_count)

    def network_delay(self, retry_count: int) -> float:
        return retry_count * self.network_step + self._jitter(self.network_jitter)

    def company_may_retry(self, retry_count: int) -> bool:
        return retry_count < self.company_max_retries
