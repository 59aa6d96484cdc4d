"""Curated list persistence."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from backend.pipeline.normalizer import normalize_external_id

from ..models import CuratedListRecord
from ..schemas import CuratedListCreate, CuratedListModel


class CuratedListExistsError(ValueError):
    """Raised when a list slug is already taken."""


def _canonical_entry(entry: str) -> str:
    """IMDb URLs and bare digits become ``tt`` ids; internal record ids pass through."""

    cleaned = entry.strip()
    return normalize_external_id(cleaned) or cleaned


def _dedupe(entries: Iterable[str]) -> list[str]:
    cleaned = (_canonical_entry(entry) for entry in entries)
    return list(dict.fromkeys(entry for entry in cleaned if entry))


class CuratedListStore:
    """Editorial lists; the enrichment selector only reads the published ones."""

    def __init__(self, engine) -> None:
        self._engine = engine

    def create(self, payload: CuratedListCreate) -> CuratedListModel:
        record = CuratedListRecord(
            id=uuid4().hex,
            slug=payload.slug.strip(),
            name=payload.name.strip(),
            published=payload.published,
            entries=_dedupe(payload.entries),
        )
        try:
            with Session(self._engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
                return _to_model(record)
        except IntegrityError as exc:
            raise CuratedListExistsError(f"List '{payload.slug}' already exists") from exc

    def set_published(self, slug: str, published: bool) -> CuratedListModel | None:
        with Session(self._engine) as session:
            record = session.exec(select(CuratedListRecord).where(CuratedListRecord.slug == slug)).first()
            if record is None:
                return None
            record.published = published
            record.updated_at = datetime.utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def list(self, *, published: bool | None = None) -> list[CuratedListModel]:
        statement = select(CuratedListRecord)
        if published is not None:
            statement = statement.where(CuratedListRecord.published.is_(published))
        statement = statement.order_by(CuratedListRecord.created_at.asc(), CuratedListRecord.slug)
        with Session(self._engine) as session:
            return [_to_model(record) for record in session.exec(statement).all()]

    def published_entry_ids(self) -> set[str]:
        """Union of entries across every published list."""

        with Session(self._engine) as session:
            rows = session.exec(
                select(CuratedListRecord.entries).where(CuratedListRecord.published.is_(True))
            ).all()
        return {_canonical_entry(entry) for entries in rows for entry in (entries or [])}


def _to_model(record: CuratedListRecord) -> CuratedListModel:
    return CuratedListModel(
        id=record.id,
        slug=record.slug,
        name=record.name,
        published=record.published,
        entries=list(record.entries or []),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
