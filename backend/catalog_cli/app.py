"""Command line interface for the Cryptarr catalog pipeline."""
from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

import typer

from backend.catalog_api.db import create_engine_from_settings, init_database
from backend.catalog_api.services.job_runner import run_sync_job
from backend.catalog_api.settings import CatalogSettings
from backend.catalog_api.stores.catalog_store import CatalogStore
from backend.pipeline.errors import ConfigurationError, RecordNotFoundError
from backend.pipeline.history import RunHistoryLog

from .client import DEFAULT_API_BASE, create_client

app = typer.Typer(help="Import titles and enrich them with provider metadata and availability.")
jobs_app = typer.Typer(help="Inspect and trigger queued jobs through the catalog API.")
app.add_typer(jobs_app, name="jobs")


JOB_STATUS_CHOICES = {"queued", "running", "completed", "failed", "cancelled"}


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the catalog API service.",
        show_default=True,
        envvar="CRYPTARR_API_BASE",
    )


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress to stderr."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _run_local(job_type: str, payload: dict[str, Any]) -> None:
    """Execute a pipeline run in-process, recording it as a job."""

    settings = CatalogSettings()
    engine = create_engine_from_settings(settings)
    init_database(engine)
    try:
        job = run_sync_job(settings, engine, job_type, payload)
    except (ConfigurationError, RecordNotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        engine.dispose()
    _echo_json(job.result)


@app.command("import")
def import_titles(
    file: Optional[str] = typer.Option(
        None, "--file", "-f", help="JSON or CSV dataset; defaults to the configured import path."
    ),
    limit: Optional[int] = typer.Option(None, min=0, help="Maximum number of new titles to insert."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would be inserted without writing."),
    update: bool = typer.Option(
        False, "--update", help="Refresh existing titles whose source record is newer."
    ),
    genres: Optional[List[str]] = typer.Option(
        None, "--genre", help="Genre tag applied to inserted titles (repeat the flag)."
    ),
) -> None:
    """Import a dataset of titles into the catalog."""

    payload: dict[str, Any] = {
        "limit": limit,
        "preview": dry_run,
        "update_existing": update,
        "genres": list(genres or []),
    }
    if file is not None:
        payload["source_path"] = file
    _run_local("import", payload)


@app.command()
def enrich(
    limit: Optional[int] = typer.Option(None, min=1, help="Maximum candidates for this run."),
    dry_run: bool = typer.Option(False, "--dry-run", help="List candidates and estimated credits only."),
    metadata_only: bool = typer.Option(
        False, "--metadata-only", help="Skip the availability provider and spend no credits."
    ),
    in_lists: bool = typer.Option(
        False, "--in-lists", help="Only consider titles referenced by published curated lists."
    ),
    credit_limit: Optional[int] = typer.Option(
        None, min=0, help="Availability credits this run may spend."
    ),
) -> None:
    """Fill missing metadata and streaming availability for catalog titles."""

    payload: dict[str, Any] = {
        "preview": dry_run,
        "metadata_only": metadata_only,
        "in_lists": in_lists,
    }
    if limit is not None:
        payload["limit"] = limit
    if credit_limit is not None:
        payload["credit_limit"] = credit_limit
    _run_local("enrich", payload)


@app.command("enrich-title")
def enrich_title(
    external_id: str = typer.Argument(..., help="External id of the title to refresh."),
    metadata_only: bool = typer.Option(False, "--metadata-only", help="Skip the availability provider."),
) -> None:
    """Refresh one title regardless of what it already has."""

    _run_local("enrich_title", {"external_id": external_id, "metadata_only": metadata_only})


@app.command()
def status() -> None:
    """Show enrichment coverage for the local catalog."""

    settings = CatalogSettings()
    engine = create_engine_from_settings(settings)
    init_database(engine)
    try:
        metrics = CatalogStore(engine).metrics()
    finally:
        engine.dispose()
    _echo_json(metrics.model_dump(mode="json"))


@app.command()
def runs(
    limit: int = typer.Option(10, min=1, max=500, help="Number of recent runs to display."),
    kind: Optional[str] = typer.Option(None, help="Only show import or enrichment runs."),
) -> None:
    """Show recent entries from the run history log."""

    settings = CatalogSettings()
    _echo_json(RunHistoryLog(settings.run_history_path).read(limit=limit, kind=kind))


def _call_api(
    api_base: str,
    method: str,
    path: str,
    *,
    expected_errors: tuple[int, ...] = (404,),
    **kwargs: Any,
) -> None:
    """Send one request to the catalog API and print the JSON body.

    Statuses listed in ``expected_errors`` print the API's ``detail`` to stderr
    and exit with status 1; anything else unexpected raises.
    """

    with create_client(api_base) as client:
        response = client.request(method, path, **kwargs)
        if response.status_code in expected_errors:
            detail = response.json().get("detail", response.reason_phrase)
            typer.echo(f"Rejected: {detail}", err=True)
            raise typer.Exit(code=1)
        response.raise_for_status()
        _echo_json(response.json())


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Check the catalog API, its queue and the catalog size."""

    _call_api(api_base, "GET", "/health", expected_errors=())


@jobs_app.command("run")
def run_job(
    job_type: str = typer.Argument(..., help="Job type to queue: import, enrich or enrich_title."),
    payload: Optional[str] = typer.Option(
        None, "--payload", help="JSON object of run parameters, e.g. '{\"limit\": 50}'."
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Queue a pipeline run for the worker."""

    body: dict[str, Any] = {"type": job_type}
    if payload is not None:
        try:
            body["payload"] = json.loads(payload)
        except json.JSONDecodeError as exc:  # pragma: no cover - user input path
            typer.echo(f"Invalid JSON payload: {exc}", err=True)
            raise typer.Exit(code=1) from exc
    _call_api(api_base, "POST", "/jobs/run", expected_errors=(422,), json=body)


@jobs_app.command("list")
def list_jobs(
    limit: int = typer.Option(10, min=1, max=100, help="Number of recent jobs to display."),
    statuses: Optional[List[str]] = typer.Option(
        None, "--status", help="Only show jobs in these states (repeat the flag)."
    ),
    job_type: Optional[str] = typer.Option(None, "--type", help="Only show one job type."),
    api_base: str = _api_base_option(),
) -> None:
    """Display recent runs, newest first."""

    wanted = sorted({status.lower() for status in statuses or []})
    unknown = [status for status in wanted if status not in JOB_STATUS_CHOICES]
    if unknown:
        typer.echo(
            f"Unknown status {', '.join(unknown)}; choose from {', '.join(sorted(JOB_STATUS_CHOICES))}",
            err=True,
        )
        raise typer.Exit(code=1)

    params: dict[str, Any] = {"limit": limit}
    if wanted:
        params["status"] = wanted
    if job_type:
        params["type"] = job_type
    _call_api(api_base, "GET", "/jobs", params=params)


@jobs_app.command("metrics")
def job_metrics(api_base: str = _api_base_option()) -> None:
    """Show job counts, queue depth and credits spent by enrichment runs."""

    _call_api(api_base, "GET", "/jobs/metrics", expected_errors=())


@jobs_app.command("show")
def show_job(
    job_id: str = typer.Argument(..., help="Job identifier."),
    api_base: str = _api_base_option(),
) -> None:
    """Display one job, including its run report once finished."""

    _call_api(api_base, "GET", f"/jobs/{job_id}")


@jobs_app.command("cancel")
def cancel_job(
    job_id: str = typer.Argument(..., help="Job identifier."),
    reason: Optional[str] = typer.Option(None, "--reason", help="Reason recorded with the cancellation."),
    api_base: str = _api_base_option(),
) -> None:
    """Cancel a run that has not finished yet."""

    body = {"reason": reason} if reason is not None else None
    _call_api(api_base, "POST", f"/jobs/{job_id}/cancel", expected_errors=(404, 409), json=body)


@jobs_app.command("logs")
def job_logs(
    job_id: str = typer.Argument(..., help="Job identifier."),
    limit: int = typer.Option(50, min=1, max=500, help="Maximum number of log entries."),
    level: Optional[List[str]] = typer.Option(None, "--level", help="Only show these levels."),
    api_base: str = _api_base_option(),
) -> None:
    """Display progress and result events for a run."""

    params: dict[str, Any] = {"limit": limit}
    if level:
        params["level"] = level
    _call_api(api_base, "GET", f"/jobs/{job_id}/logs", params=params)
