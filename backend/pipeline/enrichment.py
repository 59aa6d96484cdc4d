"""Enrichment run orchestration."""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping

from .budget import CreditBudget
from .errors import ConfigurationError, ProviderResponseError, RecordNotFoundError
from .gateway import CatalogGateway
from .history import RunHistoryLog
from .normalizer import normalize_external_id
from .providers.base import ProviderOutcome
from .providers.omdb import MetadataProviderClient, MetadataResult
from .providers.watchmode import AvailabilityProviderClient, AvailabilityResult
from .records import CatalogTitle, EnrichmentDelta
from .selector import EnrichmentNeeds, EnrichmentSelector, needs_availability, needs_metadata

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
METADATA_CREDITS_PER_LOOKUP = 1
PROGRESS_INTERVAL = 10

ProgressCallback = Callable[[str, dict[str, Any]], None]


class RunState(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    ENRICHING = "enriching"
    REPORTING = "reporting"
    DONE = "done"


@dataclass(slots=True)
class EnrichmentOptions:
    """Parameters of one enrichment run."""

    limit: int = DEFAULT_LIMIT
    metadata_only: bool = False
    in_lists: bool = False
    preview: bool = False
    credit_limit: int | None = None
    metadata_credit_limit: int | None = None
    mark_checked: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None, **defaults: Any) -> "EnrichmentOptions":
        """Build options from a job payload, ignoring unknown keys."""

        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in defaults.items() if key in known}
        for key, value in (data or {}).items():
            if key in known and value is not None:
                values[key] = value
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class EnrichmentStats:
    candidates: int = 0
    metadata_found: int = 0
    metadata_no_match: int = 0
    metadata_failed: int = 0
    metadata_skipped_budget: int = 0
    availability_found: int = 0
    availability_no_match: int = 0
    availability_failed: int = 0
    availability_skipped_budget: int = 0
    database_updates: int = 0
    database_errors: int = 0
    metadata_credits: int = 0
    availability_credits: int = 0

    @property
    def credits_used(self) -> int:
        return self.metadata_credits + self.availability_credits

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["credits_used"] = self.credits_used
        return data


@dataclass(slots=True)
class CandidatePreview:
    id: str
    external_id: str
    title: str
    release_year: int | None
    featured: bool
    needs_metadata: bool
    needs_availability: bool


@dataclass(slots=True)
class EnrichmentReport:
    options: EnrichmentOptions
    stats: EnrichmentStats
    started_at: datetime
    elapsed_seconds: float
    candidates: list[CandidatePreview] = field(default_factory=list)
    estimated_metadata_calls: int = 0
    estimated_availability_credits: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "options": self.options.to_dict(),
            "stats": self.stats.to_dict(),
            "started_at": self.started_at.isoformat(),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "candidates": [asdict(candidate) for candidate in self.candidates],
            "estimated_metadata_calls": self.estimated_metadata_calls,
            "estimated_availability_credits": self.estimated_availability_credits,
        }


class EnrichmentOrchestrator:
    """Runs selection, provider lookups and record updates for one pass.

    Candidates are processed one at a time. A failure while enriching one record
    is counted and the run moves on; only missing configuration stops a run, and
    it does so before anything is selected.
    """

    def __init__(
        self,
        gateway: CatalogGateway,
        selector: EnrichmentSelector,
        *,
        metadata_client: MetadataProviderClient | None = None,
        availability_client: AvailabilityProviderClient | None = None,
        history: RunHistoryLog | None = None,
        progress: ProgressCallback | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._selector = selector
        self._metadata_client = metadata_client
        self._availability_client = availability_client
        self._history = history
        self._progress = progress
        self._clock = clock
        self._monotonic = monotonic
        self.state = RunState.IDLE

    def run(self, options: EnrichmentOptions | None = None) -> EnrichmentReport:
        """Execute one enrichment pass and return its report."""

        options = options or EnrichmentOptions()
        self._require_clients(options)
        started_at = self._clock()
        start = self._monotonic()
        stats = EnrichmentStats()
        needs = EnrichmentNeeds(
            metadata=True,
            availability=not options.metadata_only,
            respect_markers=options.mark_checked,
        )

        self.state = RunState.SELECTING
        candidates = self._selector.select(options.limit, needs, in_lists=options.in_lists)
        stats.candidates = len(candidates)
        self._notify(
            "Enrichment run started",
            {"candidates": len(candidates), "preview": options.preview, "total": len(candidates)},
        )

        report = EnrichmentReport(options=options, stats=stats, started_at=started_at, elapsed_seconds=0.0)
        if options.preview:
            self._fill_preview(report, candidates, needs)
        else:
            self.state = RunState.ENRICHING
            metadata_budget = CreditBudget(options.metadata_credit_limit)
            availability_budget = CreditBudget(options.credit_limit)
            for index, title in enumerate(candidates, start=1):
                self._enrich_candidate(
                    title,
                    needs,
                    options,
                    stats,
                    metadata_budget,
                    availability_budget,
                )
                if index % PROGRESS_INTERVAL == 0 or index == len(candidates):
                    self._notify(
                        f"Processed {index}/{len(candidates)} titles",
                        {"processed": index, "total": len(candidates), "credits_used": stats.credits_used},
                    )

        return self._finish(report, start)

    def enrich_title(self, external_id: str, options: EnrichmentOptions | None = None) -> EnrichmentReport:
        """Refresh one record regardless of whether it still needs enrichment."""

        options = options or EnrichmentOptions(limit=1)
        self._require_clients(options)
        started_at = self._clock()
        start = self._monotonic()

        self.state = RunState.SELECTING
        canonical = normalize_external_id(external_id) or external_id
        title = self._gateway.get_by_external_id(canonical)
        if title is None:
            self.state = RunState.IDLE
            raise RecordNotFoundError(f"No catalog record for {external_id}")

        stats = EnrichmentStats(candidates=1)
        needs = EnrichmentNeeds(metadata=True, availability=not options.metadata_only, respect_markers=False)
        report = EnrichmentReport(options=options, stats=stats, started_at=started_at, elapsed_seconds=0.0)
        if options.preview:
            self._fill_preview(report, [title], needs, force=True)
        else:
            self.state = RunState.ENRICHING
            self._enrich_candidate(
                title,
                needs,
                options,
                stats,
                CreditBudget(options.metadata_credit_limit),
                CreditBudget(options.credit_limit),
                force=True,
            )
        return self._finish(report, start, extra_params={"external_id": canonical})

    def _require_clients(self, options: EnrichmentOptions) -> None:
        if self._metadata_client is None:
            raise ConfigurationError("Metadata provider is not configured")
        if not options.metadata_only and self._availability_client is None:
            raise ConfigurationError("Availability provider is not configured")

    def _finish(
        self,
        report: EnrichmentReport,
        start: float,
        *,
        extra_params: dict[str, Any] | None = None,
    ) -> EnrichmentReport:
        self.state = RunState.REPORTING
        report.elapsed_seconds = max(self._monotonic() - start, 0.0)
        if self._history is not None:
            params = report.options.to_dict()
            if extra_params:
                params.update(extra_params)
            self._history.append(
                "enrichment",
                stats=report.stats.to_dict(),
                elapsed_seconds=report.elapsed_seconds,
                params=params,
                timestamp=report.started_at,
            )
        self._notify("Enrichment run finished", {"stats": report.stats.to_dict()})
        logger.info(
            "Enrichment finished: %d candidates, %d updates, %d credits",
            report.stats.candidates,
            report.stats.database_updates,
            report.stats.credits_used,
        )
        self.state = RunState.DONE
        return report

    def _fill_preview(
        self,
        report: EnrichmentReport,
        candidates: list[CatalogTitle],
        needs: EnrichmentNeeds,
        *,
        force: bool = False,
    ) -> None:
        budget = CreditBudget(report.options.credit_limit)
        cost = AvailabilityProviderClient.CREDITS_PER_LOOKUP
        for title in candidates:
            wants_metadata = force or needs_metadata(title, respect_markers=needs.respect_markers)
            wants_availability = needs.availability and (
                force or needs_availability(title, respect_markers=needs.respect_markers)
            )
            if wants_metadata:
                report.estimated_metadata_calls += 1
            if wants_availability and budget.can_afford(cost):
                budget.charge(cost)
                report.estimated_availability_credits += cost
            report.candidates.append(
                CandidatePreview(
                    id=title.id,
                    external_id=title.external_id,
                    title=title.title,
                    release_year=title.release_year,
                    featured=title.featured,
                    needs_metadata=wants_metadata,
                    needs_availability=wants_availability,
                )
            )

    def _enrich_candidate(
        self,
        title: CatalogTitle,
        needs: EnrichmentNeeds,
        options: EnrichmentOptions,
        stats: EnrichmentStats,
        metadata_budget: CreditBudget,
        availability_budget: CreditBudget,
        *,
        force: bool = False,
    ) -> EnrichmentDelta:
        delta = EnrichmentDelta()
        now = self._clock()

        if needs.metadata and (force or needs_metadata(title, respect_markers=needs.respect_markers)):
            if metadata_budget.can_afford(METADATA_CREDITS_PER_LOOKUP):
                result = self._fetch_metadata(title)
                metadata_budget.charge(METADATA_CREDITS_PER_LOOKUP)
                stats.metadata_credits += result.credits
                self._apply_metadata(title, result, delta, stats, options, now)
            else:
                stats.metadata_skipped_budget += 1

        if needs.availability and (force or needs_availability(title, respect_markers=needs.respect_markers)):
            cost = AvailabilityProviderClient.CREDITS_PER_LOOKUP
            if availability_budget.can_afford(cost):
                result = self._fetch_availability(title)
                # The full lookup price is reserved even when the search step finds nothing.
                availability_budget.charge(cost)
                stats.availability_credits += result.credits
                self._apply_availability(title, result, delta, stats, options, now)
            else:
                stats.availability_skipped_budget += 1

        if delta:
            delta.set("last_enriched_at", now)
            if self._gateway.update_fields(title.id, delta.fields):
                stats.database_updates += 1
            else:
                stats.database_errors += 1
                logger.warning("Failed to store enrichment for %s", title.external_id)
        return delta

    def _fetch_metadata(self, title: CatalogTitle) -> MetadataResult:
        client = self._metadata_client
        before = client.credits_used
        try:
            return client.fetch_metadata(title.external_id)
        except ProviderResponseError as exc:
            logger.warning("Metadata lookup for %s failed: %s", title.external_id, exc)
            return MetadataResult(
                ProviderOutcome.FAILED, error=str(exc), credits=client.credits_used - before
            )

    def _fetch_availability(self, title: CatalogTitle) -> AvailabilityResult:
        client = self._availability_client
        before = client.credits_used
        try:
            return client.fetch_availability(title.external_id)
        except ProviderResponseError as exc:
            logger.warning("Availability lookup for %s failed: %s", title.external_id, exc)
            return AvailabilityResult(
                ProviderOutcome.FAILED, error=str(exc), credits=client.credits_used - before
            )

    def _apply_metadata(
        self,
        title: CatalogTitle,
        result: MetadataResult,
        delta: EnrichmentDelta,
        stats: EnrichmentStats,
        options: EnrichmentOptions,
        now: datetime,
    ) -> None:
        if result.outcome is ProviderOutcome.FAILED:
            stats.metadata_failed += 1
            logger.warning("Metadata lookup for %s failed: %s", title.external_id, result.error)
            return
        if result.outcome is ProviderOutcome.NO_MATCH or result.metadata is None:
            stats.metadata_no_match += 1
            if options.mark_checked:
                delta.set("metadata_checked_at", now)
            return

        stats.metadata_found += 1
        metadata = result.metadata
        for name in (
            "poster_url",
            "synopsis",
            "critic_rating",
            "content_rating",
            "runtime_minutes",
            "director_name",
        ):
            value = getattr(metadata, name)
            if value is not None:
                delta.set(name, value)
        if metadata.countries:
            delta.set("country_list", metadata.countries)
        if metadata.genres:
            genres = list(title.genres)
            genres.extend(genre for genre in metadata.genres if genre not in genres)
            if genres != title.genres:
                delta.set("genres", genres)
        if options.mark_checked:
            delta.set("metadata_checked_at", now)

    def _apply_availability(
        self,
        title: CatalogTitle,
        result: AvailabilityResult,
        delta: EnrichmentDelta,
        stats: EnrichmentStats,
        options: EnrichmentOptions,
        now: datetime,
    ) -> None:
        if result.outcome is ProviderOutcome.FAILED:
            stats.availability_failed += 1
            logger.warning("Availability lookup for %s failed: %s", title.external_id, result.error)
            return

        secondary_ids = dict(delta.fields.get("secondary_ids") or title.secondary_ids)
        if result.provider_title_id and not secondary_ids.get("watchmode"):
            secondary_ids["watchmode"] = result.provider_title_id
        if result.tmdb_id and not secondary_ids.get("tmdb"):
            secondary_ids["tmdb"] = result.tmdb_id
        if secondary_ids != title.secondary_ids:
            delta.set("secondary_ids", secondary_ids)

        if result.outcome is ProviderOutcome.NO_MATCH:
            stats.availability_no_match += 1
            if result.provider_title_id:
                delta.set("availability_sources", [])
            if options.mark_checked:
                delta.set("availability_checked_at", now)
            return

        stats.availability_found += 1
        delta.set("availability_sources", [source.to_dict() for source in result.sources])
        if options.mark_checked:
            delta.set("availability_checked_at", now)

    def _notify(self, message: str, context: dict[str, Any]) -> None:
        if self._progress is not None:
            self._progress(message, context)
