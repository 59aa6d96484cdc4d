"""Curated list endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_list_store
from ..schemas import CuratedListCreate, CuratedListModel
from ..stores.curated_list_store import CuratedListExistsError, CuratedListStore

router = APIRouter(prefix="/lists", tags=["lists"])


@router.get("", response_model=list[CuratedListModel])
def list_curated_lists(
    published: bool | None = Query(default=None),
    store: CuratedListStore = Depends(get_list_store),
) -> list[CuratedListModel]:
    return store.list(published=published)


@router.post("", response_model=CuratedListModel, status_code=201)
def create_curated_list(
    payload: CuratedListCreate,
    store: CuratedListStore = Depends(get_list_store),
) -> CuratedListModel:
    """Create a list; repeated entries are kept once, in first-seen order."""

    try:
        return store.create(payload)
    except CuratedListExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.put("/{slug}/published", response_model=CuratedListModel)
def set_published(
    slug: str,
    published: bool = Query(default=True),
    store: CuratedListStore = Depends(get_list_store),
) -> CuratedListModel:
    curated = store.set_published(slug, published)
    if curated is None:
        raise HTTPException(status_code=404, detail="List not found")
    return curated
