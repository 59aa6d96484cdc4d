"""Interface the pipeline expects from the catalog store."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Protocol, Sequence

from .records import CatalogTitle, NormalizedTitle

LOOKUP_CHUNK_SIZE = 500


class PriorityTier(str, Enum):
    """Selection tiers, drawn in declaration order."""

    FEATURED = "featured"
    RECENT = "recent"
    CLASSIC = "classic"


@dataclass(slots=True)
class ExistingTitleRef:
    """What the importer needs to know about a title already in the catalog."""

    id: str
    external_id: str
    source_modified_at: datetime | None = None
    secondary_ids: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class InsertResult:
    """Outcome counts for one insert batch."""

    inserted: int = 0
    conflicts: int = 0
    errors: int = 0


class CatalogGateway(Protocol):
    def lookup(self, external_ids: Iterable[str]) -> dict[str, ExistingTitleRef]: ...

    def exists(self, external_ids: Iterable[str]) -> set[str]: ...

    def insert_batch(
        self, records: Sequence[NormalizedTitle], *, genres: Sequence[str] = ()
    ) -> InsertResult: ...

    def update_fields(self, record_id: str, fields: dict[str, Any]) -> bool: ...

    def select_eligible(
        self,
        tier: PriorityTier,
        limit: int,
        *,
        predicate: Callable[[CatalogTitle], bool],
        membership: set[str] | None = None,
        recent_since: int,
    ) -> list[CatalogTitle]: ...

    def get_by_external_id(self, external_id: str) -> CatalogTitle | None: ...


class CuratedListSource(Protocol):
    def published_entry_ids(self) -> set[str]: ...
