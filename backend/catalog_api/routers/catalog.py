"""Catalog browsing and enrichment status endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query

from backend.pipeline.normalizer import normalize_external_id

from ..dependencies import get_catalog_store
from ..schemas import CatalogListModel, CatalogSortOption, CatalogTitleModel, EnrichmentStatusModel
from ..stores.catalog_store import CatalogStore

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("", response_model=CatalogListModel)
def list_titles(
    query: str | None = Query(default=None, description="Match against title or external id."),
    year_min: int | None = Query(default=None, ge=1880, le=3000),
    year_max: int | None = Query(default=None, ge=1880, le=3000),
    featured: bool | None = Query(default=None),
    needs_metadata: bool | None = Query(
        default=None, description="true for titles without a poster, false for titles with one."
    ),
    needs_availability: bool | None = Query(
        default=None, description="true for titles without streaming sources."
    ),
    sort: CatalogSortOption = Query(default="modified_desc"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=100),
    store: CatalogStore = Depends(get_catalog_store),
) -> CatalogListModel:
    """Return paginated catalog titles matching the provided filters."""

    return store.list(
        query=query,
        year_min=year_min,
        year_max=year_max,
        featured=featured,
        needs_metadata=needs_metadata,
        needs_availability=needs_availability,
        sort=sort,
        page=page,
        page_size=page_size,
    )


@router.get("/metrics", response_model=EnrichmentStatusModel)
def enrichment_status(store: CatalogStore = Depends(get_catalog_store)) -> EnrichmentStatusModel:
    """Return enrichment coverage counts for the whole catalog."""

    return store.metrics()


@router.get("/{external_id}", response_model=CatalogTitleModel)
def get_title(external_id: str, store: CatalogStore = Depends(get_catalog_store)) -> CatalogTitleModel:
    title = store.get_model(normalize_external_id(external_id) or external_id)
    if title is None:
        raise HTTPException(status_code=404, detail="Title not found")
    return title


@router.put("/{external_id}/featured", response_model=CatalogTitleModel)
def set_featured(
    external_id: str,
    featured: bool = Query(default=True),
    store: CatalogStore = Depends(get_catalog_store),
) -> CatalogTitleModel:
    """Flag or unflag a title as featured, which moves it to the first selection tier."""

    canonical = normalize_external_id(external_id) or external_id
    if not store.set_featured(canonical, featured):
        raise HTTPException(status_code=404, detail="Title not found")
    return store.get_model(canonical)
