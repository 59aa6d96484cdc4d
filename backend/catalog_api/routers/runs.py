"""Run history endpoints."""
from fastapi import APIRouter, Depends, Query

from backend.pipeline.history import RunHistoryLog

from ..dependencies import get_run_history
from ..schemas import RunHistoryEntryModel

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("", response_model=list[RunHistoryEntryModel])
def list_runs(
    limit: int = Query(default=20, ge=1, le=500),
    kind: str | None = Query(default=None, description="import or enrichment"),
    history: RunHistoryLog = Depends(get_run_history),
) -> list[RunHistoryEntryModel]:
    """Return the most recent finished runs, oldest first."""

    return [RunHistoryEntryModel.model_validate(entry) for entry in history.read(limit=limit, kind=kind)]
