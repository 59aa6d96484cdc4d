"""Per-run credit accounting for metered providers."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class CreditBudget:
    """Tracks credits spent against an optional ceiling."""

    limit: int | None = None
    used: int = 0

    def can_afford(self, cost: int) -> bool:
        return self.limit is None or self.used + cost <= self.limit

    def charge(self, credits: int) -> None:
        self.used += max(credits, 0)

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(self.limit - self.used, 0)
