from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    jitter: float = 0.25

    def delay(self, attempt: int) -> float:
        # attempt is 1-based
        exp = min(
            self.max_delay_seconds,
            self.base_delay_seconds * (2 ** max(0, attempt - 1)),
        )
        return min(self.max_delay_seconds, exp + random.uniform(0.0, self.jitter))
