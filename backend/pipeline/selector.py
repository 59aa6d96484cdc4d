"""Pick which catalog records an enrichment run should work on."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .gateway import CatalogGateway, CuratedListSource, PriorityTier
from .records import CatalogTitle

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW_YEARS = 6
TIER_ORDER = (PriorityTier.FEATURED, PriorityTier.RECENT, PriorityTier.CLASSIC)


@dataclass(slots=True)
class EnrichmentNeeds:
    """Which providers are active for a run and whether check markers count."""

    metadata: bool = True
    availability: bool = True
    respect_markers: bool = True


def needs_metadata(title: CatalogTitle, *, respect_markers: bool = True) -> bool:
    if title.poster_url:
        return False
    return not (respect_markers and title.metadata_checked_at is not None)


def needs_availability(title: CatalogTitle, *, respect_markers: bool = True) -> bool:
    if title.availability_sources:
        return False
    return not (respect_markers and title.availability_checked_at is not None)


def needs_enrichment(title: CatalogTitle, needs: EnrichmentNeeds) -> bool:
    if needs.metadata and needs_metadata(title, respect_markers=needs.respect_markers):
        return True
    return needs.availability and needs_availability(title, respect_markers=needs.respect_markers)


class EnrichmentSelector:
    """Fills a candidate list tier by tier: featured, then recent, then classics."""

    def __init__(
        self,
        gateway: CatalogGateway,
        *,
        lists: CuratedListSource | None = None,
        recent_window_years: int = DEFAULT_RECENT_WINDOW_YEARS,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._gateway = gateway
        self._lists = lists
        self._recent_window_years = recent_window_years
        self._clock = clock

    def recent_since(self) -> int:
        return self._clock().year - self._recent_window_years

    def select(
        self,
        limit: int,
        needs: EnrichmentNeeds,
        *,
        in_lists: bool = False,
    ) -> list[CatalogTitle]:
        """Return at most ``limit`` records that still need one of the active providers."""

        if limit <= 0:
            return []

        membership: set[str] | None = None
        if in_lists:
            membership = self._lists.published_entry_ids() if self._lists else set()
            if not membership:
                logger.info("No titles are referenced by published lists; nothing to select")
                return []

        def predicate(title: CatalogTitle) -> bool:
            return needs_enrichment(title, needs)

        recent_since = self.recent_since()
        selected: list[CatalogTitle] = []
        seen: set[str] = set()
        for tier in TIER_ORDER:
            remaining = limit - len(selected)
            if remaining <= 0:
                break
            found = self._gateway.select_eligible(
                tier,
                remaining,
                predicate=predicate,
                membership=membership,
                recent_since=recent_since,
            )
            for title in found:
                if title.id not in seen:
                    seen.add(title.id)
                    selected.append(title)
            logger.debug("Tier %s contributed %d candidates", tier.value, len(found))

        return selected[:limit]
