"""Catalog store: the only component that reads or writes catalog titles."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, Iterable, Sequence
from uuid import uuid4

from sqlalchemy import func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from backend.pipeline.gateway import (
    LOOKUP_CHUNK_SIZE,
    ExistingTitleRef,
    InsertResult,
    PriorityTier,
)
from backend.pipeline.records import AvailabilitySource, CatalogTitle, NormalizedTitle

from ..models import CatalogTitleRecord
from ..schemas import (
    AvailabilitySourceModel,
    CatalogListModel,
    CatalogSortOption,
    CatalogTitleModel,
    EnrichmentStatusModel,
)

logger = logging.getLogger(__name__)

SELECTION_PAGE_SIZE = 500
DIRECTOR_SEPARATOR = "; "
IMMUTABLE_FIELDS = frozenset({"id", "external_id", "created_at"})
UPDATABLE_FIELDS = frozenset(CatalogTitleRecord.model_fields) - IMMUTABLE_FIELDS


class CatalogStore:
    """SQLModel implementation of the catalog gateway.

    Existence checks are chunked so a large import never sends one huge ``IN``
    clause, and insert batches fall back to row-by-row inserts when a batch trips
    the unique external id constraint.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        lookup_chunk_size: int = LOOKUP_CHUNK_SIZE,
        page_size: int = SELECTION_PAGE_SIZE,
    ) -> None:
        self._engine = engine
        self._lookup_chunk_size = max(lookup_chunk_size, 1)
        self._page_size = max(page_size, 1)
        self._lock = Lock()

    def lookup(self, external_ids: Iterable[str]) -> dict[str, ExistingTitleRef]:
        """Return references for the ids already stored, keyed by external id."""

        ids = list(dict.fromkeys(value for value in external_ids if value))
        found: dict[str, ExistingTitleRef] = {}
        with Session(self._engine) as session:
            for offset in range(0, len(ids), self._lookup_chunk_size):
                chunk = ids[offset : offset + self._lookup_chunk_size]
                rows = session.exec(
                    select(
                        CatalogTitleRecord.id,
                        CatalogTitleRecord.external_id,
                        CatalogTitleRecord.source_modified_at,
                        CatalogTitleRecord.secondary_ids,
                    ).where(CatalogTitleRecord.external_id.in_(chunk))
                ).all()
                for record_id, external_id, modified_at, secondary_ids in rows:
                    found[external_id] = ExistingTitleRef(
                        id=record_id,
                        external_id=external_id,
                        source_modified_at=modified_at,
                        secondary_ids=dict(secondary_ids or {}),
                    )
        return found

    def exists(self, external_ids: Iterable[str]) -> set[str]:
        return set(self.lookup(external_ids))

    def insert_batch(
        self,
        records: Sequence[NormalizedTitle],
        *,
        genres: Sequence[str] = (),
    ) -> InsertResult:
        """Insert new titles; duplicates count as conflicts, never as errors."""

        result = InsertResult()
        if not records:
            return result

        with self._lock:
            try:
                with Session(self._engine) as session:
                    session.add_all([_new_record(record, genres) for record in records])
                    session.commit()
                result.inserted = len(records)
                return result
            except IntegrityError:
                logger.info(
                    "Batch of %d titles hit a uniqueness conflict; inserting individually",
                    len(records),
                )
            except SQLAlchemyError as exc:
                logger.error("Batch insert of %d titles failed: %s", len(records), exc)
                result.errors = len(records)
                return result

            for record in records:
                try:
                    with Session(self._engine) as session:
                        session.add(_new_record(record, genres))
                        session.commit()
                    result.inserted += 1
                except IntegrityError:
                    result.conflicts += 1
                except SQLAlchemyError as exc:
                    logger.warning("Insert of %s failed: %s", record.external_id, exc)
                    result.errors += 1
        return result

    def update_fields(self, record_id: str, fields: dict[str, Any]) -> bool:
        """Apply a partial update; columns absent from ``fields`` are left untouched."""

        if not fields:
            return False
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            logger.warning("Refusing update of %s with unknown fields %s", record_id, sorted(unknown))
            return False

        try:
            with self._lock, Session(self._engine) as session:
                record = session.get(CatalogTitleRecord, record_id)
                if record is None:
                    return False
                for name, value in fields.items():
                    setattr(record, name, _column_value(name, value))
                session.add(record)
                session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Update of %s failed: %s", record_id, exc)
            return False
        return True

    def select_eligible(
        self,
        tier: PriorityTier,
        limit: int,
        *,
        predicate: Callable[[CatalogTitle], bool],
        membership: set[str] | None = None,
        recent_since: int,
    ) -> list[CatalogTitle]:
        """Return up to ``limit`` titles of one tier that satisfy ``predicate``."""

        if limit <= 0:
            return []

        record = CatalogTitleRecord
        statement = select(record)
        if tier is PriorityTier.FEATURED:
            statement = statement.where(record.featured.is_(True))
        elif tier is PriorityTier.RECENT:
            statement = statement.where(
                record.featured.is_(False),
                record.release_year.is_not(None),
                record.release_year >= recent_since,
            )
        else:
            statement = statement.where(
                record.featured.is_(False),
                or_(record.release_year.is_(None), record.release_year < recent_since),
            )
        statement = statement.order_by(record.release_year.desc().nullslast(), record.id)

        selected: list[CatalogTitle] = []
        offset = 0
        with Session(self._engine) as session:
            while len(selected) < limit:
                page = session.exec(statement.offset(offset).limit(self._page_size)).all()
                if not page:
                    break
                for row in page:
                    if membership is not None and row.id not in membership and row.external_id not in membership:
                        continue
                    title = _to_title(row)
                    if predicate(title):
                        selected.append(title)
                        if len(selected) >= limit:
                            break
                offset += self._page_size
        return selected

    def count(self) -> int:
        with Session(self._engine) as session:
            return session.exec(select(func.count()).select_from(CatalogTitleRecord)).one()

    def get(self, record_id: str) -> CatalogTitle | None:
        with Session(self._engine) as session:
            record = session.get(CatalogTitleRecord, record_id)
            return _to_title(record) if record else None

    def get_by_external_id(self, external_id: str) -> CatalogTitle | None:
        record = self._find_record(external_id)
        return _to_title(record) if record else None

    def get_model(self, external_id: str) -> CatalogTitleModel | None:
        record = self._find_record(external_id)
        return _to_model(record) if record else None

    def set_featured(self, external_id: str, featured: bool) -> bool:
        record = self._find_record(external_id)
        if record is None:
            return False
        return self.update_fields(record.id, {"featured": featured})

    def _find_record(self, external_id: str) -> CatalogTitleRecord | None:
        with Session(self._engine) as session:
            return session.exec(
                select(CatalogTitleRecord).where(CatalogTitleRecord.external_id == external_id)
            ).first()

    def list(
        self,
        *,
        query: str | None = None,
        year_min: int | None = None,
        year_max: int | None = None,
        featured: bool | None = None,
        needs_metadata: bool | None = None,
        needs_availability: bool | None = None,
        sort: CatalogSortOption = "modified_desc",
        page: int = 1,
        page_size: int = 25,
    ) -> CatalogListModel:
        """Return a paginated set of titles matching the provided filters."""

        record = CatalogTitleRecord
        filters = []
        if query:
            pattern = f"%{query.lower()}%"
            filters.append(
                or_(func.lower(record.title).like(pattern), func.lower(record.external_id).like(pattern))
            )
        if year_min is not None:
            filters.append(record.release_year.is_not(None))
            filters.append(record.release_year >= year_min)
        if year_max is not None:
            filters.append(record.release_year.is_not(None))
            filters.append(record.release_year <= year_max)
        if featured is not None:
            filters.append(record.featured.is_(featured))

        missing_poster = or_(record.poster_url.is_(None), record.poster_url == "")
        if needs_metadata is True:
            filters.append(missing_poster)
        elif needs_metadata is False:
            filters.append(~missing_poster)

        missing_sources = or_(
            record.availability_sources.is_(None),
            func.json_array_length(record.availability_sources) == 0,
        )
        if needs_availability is True:
            filters.append(missing_sources)
        elif needs_availability is False:
            filters.append(~missing_sources)

        count_statement = select(func.count()).select_from(record)
        items_statement = select(record)
        for condition in filters:
            count_statement = count_statement.where(condition)
            items_statement = items_statement.where(condition)

        sort_orders: dict[str, tuple[object, ...]] = {
            "modified_desc": (record.last_modified_at.desc(), record.id),
            "title_asc": (func.lower(record.title).asc(), record.id),
            "title_desc": (func.lower(record.title).desc(), record.id),
            "year_desc": (record.release_year.desc().nullslast(), func.lower(record.title).asc()),
            "year_asc": (record.release_year.asc().nullslast(), func.lower(record.title).asc()),
            "enriched_desc": (record.last_enriched_at.desc().nullslast(), record.id),
        }
        items_statement = items_statement.order_by(*sort_orders.get(sort, sort_orders["modified_desc"]))
        items_statement = items_statement.offset((page - 1) * page_size).limit(page_size)

        with Session(self._engine) as session:
            total = session.exec(count_statement).one()
            items = [_to_model(row) for row in session.exec(items_statement).all()]

        return CatalogListModel(items=items, total=total, page=page, page_size=page_size)

    def metrics(self) -> EnrichmentStatusModel:
        """Summarise enrichment coverage across the catalog."""

        record = CatalogTitleRecord
        with Session(self._engine) as session:
            rows = session.exec(
                select(
                    record.poster_url,
                    record.synopsis,
                    record.availability_sources,
                    record.featured,
                    record.metadata_checked_at,
                    record.availability_checked_at,
                )
            ).all()
            last_enriched = session.exec(select(func.max(record.last_enriched_at))).one()

        status = EnrichmentStatusModel(
            total=len(rows),
            with_poster=0,
            with_synopsis=0,
            with_sources=0,
            featured=0,
            fully_enriched=0,
            partially_enriched=0,
            checked_not_found=0,
            never_checked=0,
            metadata_checked=0,
            availability_checked=0,
            last_enriched_at=last_enriched,
        )
        for poster, synopsis, sources, featured, metadata_checked, availability_checked in rows:
            has_poster = bool(poster)
            has_sources = bool(sources)
            status.with_poster += has_poster
            status.with_synopsis += bool(synopsis)
            status.with_sources += has_sources
            status.featured += bool(featured)
            status.metadata_checked += metadata_checked is not None
            status.availability_checked += availability_checked is not None
            if has_poster and has_sources:
                status.fully_enriched += 1
            elif has_poster or has_sources:
                status.partially_enriched += 1
            if not has_sources:
                if availability_checked is not None:
                    status.checked_not_found += 1
                else:
                    status.never_checked += 1
        return status


def _new_record(record: NormalizedTitle, genres: Sequence[str]) -> CatalogTitleRecord:
    return CatalogTitleRecord(
        id=uuid4().hex,
        external_id=record.external_id,
        title=record.title,
        release_year=record.release_year,
        genres=list(dict.fromkeys(genres)),
        director_name=DIRECTOR_SEPARATOR.join(record.directors) or None,
        country_list=list(record.countries),
        runtime_minutes=record.runtime_minutes,
        secondary_ids=dict(record.secondary_ids),
        source_modified_at=record.source_modified_at,
    )


def _column_value(name: str, value: Any) -> Any:
    if name == "availability_sources" and value is not None:
        return [
            item.to_dict() if isinstance(item, AvailabilitySource) else dict(item)
            for item in value
        ]
    if isinstance(value, (list, dict)):
        return type(value)(value)
    return value


def _to_title(record: CatalogTitleRecord) -> CatalogTitle:
    sources = None
    if record.availability_sources is not None:
        sources = [AvailabilitySource.from_dict(item) for item in record.availability_sources]
    return CatalogTitle(
        id=record.id,
        external_id=record.external_id,
        title=record.title,
        release_year=record.release_year,
        featured=record.featured,
        genres=list(record.genres or []),
        poster_url=record.poster_url,
        synopsis=record.synopsis,
        director_name=record.director_name,
        country_list=list(record.country_list or []),
        runtime_minutes=record.runtime_minutes,
        content_rating=record.content_rating,
        critic_rating=record.critic_rating,
        availability_sources=sources,
        secondary_ids=dict(record.secondary_ids or {}),
        metadata_checked_at=record.metadata_checked_at,
        availability_checked_at=record.availability_checked_at,
        source_modified_at=record.source_modified_at,
        last_enriched_at=record.last_enriched_at,
    )


def _to_model(record: CatalogTitleRecord) -> CatalogTitleModel:
    sources = None
    if record.availability_sources is not None:
        sources = [AvailabilitySourceModel.model_validate(item) for item in record.availability_sources]
    return CatalogTitleModel(
        id=record.id,
        external_id=record.external_id,
        title=record.title,
        release_year=record.release_year,
        title_type=record.title_type,
        featured=record.featured,
        genres=list(record.genres or []),
        poster_url=record.poster_url,
        synopsis=record.synopsis,
        director_name=record.director_name,
        country_list=list(record.country_list or []),
        runtime_minutes=record.runtime_minutes,
        content_rating=record.content_rating,
        critic_rating=record.critic_rating,
        availability_sources=sources,
        secondary_ids=dict(record.secondary_ids or {}),
        metadata_checked_at=record.metadata_checked_at,
        availability_checked_at=record.availability_checked_at,
        source_modified_at=record.source_modified_at,
        last_enriched_at=record.last_enriched_at,
        last_modified_at=record.last_modified_at,
        created_at=record.created_at,
    )
