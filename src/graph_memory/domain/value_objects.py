"""Value objects — self-validating domain primitives."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TokenBudget:
    """Remaining token capacity for one response.

    Never mutated: :meth:`consume` returns a new value.  ``remaining`` may go
    negative in "try, then check" flows, so callers check fit *before*
    consuming.
    """

    total: int
    used: int = 0
    remaining: int = 0

    @classmethod
    def create(cls, total_limit: int, safety_margin: float = 0.96) -> TokenBudget:
        """Build a fresh budget with *safety_margin* of *total_limit* usable."""
        if total_limit < 0:
            raise ValueError(f"total_limit must be non-negative, got {total_limit}.")
        if not 0 < safety_margin <= 1:
            raise ValueError(f"safety_margin must be in (0, 1], got {safety_margin}.")
        total = math.floor(total_limit * safety_margin)
        return cls(total=total, used=0, remaining=total)

    def consume(self, tokens: int) -> TokenBudget:
        return TokenBudget(
            total=self.total,
            used=self.used + tokens,
            remaining=self.remaining - tokens,
        )

    def usage_stats(self) -> dict[str, float | bool]:
        """Utilisation figures rounded to one decimal place."""
        if self.total <= 0:
            return {"utilizationPercent": 0.0, "remainingPercent": 0.0, "isNearLimit": True}
        utilization = self.used / self.total * 100
        remaining = self.remaining / self.total * 100
        return {
            "utilizationPercent": round(utilization, 1),
            "remainingPercent": round(remaining, 1),
            "isNearLimit": utilization > 85,
        }
