"""Tests for the catalog API application factory and its routers."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from rq.worker import SimpleWorker

from backend.catalog_api import create_app
from backend.catalog_api.schemas import JobModel
from backend.catalog_api.settings import CatalogSettings
from backend.pipeline.history import RunHistoryLog


@pytest.fixture()
def client(settings: CatalogSettings) -> TestClient:
    """Provide a test client backed by an isolated SQLite database."""

    app = create_app(settings=settings)
    return TestClient(app)


@pytest.fixture()
def dataset(tmp_path: Path) -> Path:
    path = tmp_path / "query.json"
    path.write_text(
        json.dumps(
            [
                {"film": "http://www.wikidata.org/entity/Q1054974", "filmLabel": "The Thing", "imdb": "tt0084787", "releaseDate": "1982-06-25T00:00:00Z"},
                {"filmLabel": "The Shining", "imdb": "tt0081505", "releaseDate": "1980-05-23T00:00:00Z"},
                {"filmLabel": "Q123", "imdb": "tt0000001"},
            ]
        ),
        encoding="utf-8",
    )
    return path


def drain_jobs(client: TestClient) -> None:
    """Drain queued jobs using an in-process RQ worker."""

    app_state = client.app.state.app_state
    worker = SimpleWorker([app_state.job_queue.queue], connection=app_state.job_queue.connection)
    worker.work(burst=True)


def test_health_endpoint_reports_ok_status(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "version": "0.1.0",
        "catalog_titles": 0,
        "queue": {"status": "ok", "detail": None},
    }


def test_import_job_runs_on_worker_and_stores_report(client: TestClient, dataset: Path) -> None:
    response = client.post("/jobs/run", json={"type": "import", "payload": {"source_path": str(dataset)}})

    assert response.status_code == 201
    queued = JobModel.model_validate(response.json())
    assert queued.status == "queued"

    drain_jobs(client)

    job = client.get(f"/jobs/{queued.id}").json()
    assert job["status"] == "completed"
    assert job["progress"] == 1.0
    assert job["worker_id"]
    assert job["result"]["stats"]["inserted"] == 2
    assert job["result"]["stats"]["rejected"] == 1

    health = client.get("/health").json()
    assert health["catalog_titles"] == 2

    direct = client.get("/catalog/tt0084787").json()
    assert direct["title"] == "The Thing"
    assert direct["secondary_ids"] == {"wikidata": "Q1054974"}
    assert direct["availability_sources"] is None

    logs = client.get(f"/jobs/{queued.id}/logs").json()
    messages = [entry["message"] for entry in logs]
    assert messages[0] == "Job import enqueued"
    assert "Job completed" in messages


def test_runs_endpoint_lists_history(client: TestClient, dataset: Path, settings: CatalogSettings) -> None:
    client.post("/jobs/run", json={"type": "import", "payload": {"source_path": str(dataset), "preview": True}})
    drain_jobs(client)

    runs = client.get("/runs").json()

    assert len(runs) == 1
    assert runs[0]["kind"] == "import"
    assert runs[0]["params"]["preview"] is True
    assert runs[0]["stats"]["planned_inserts"] == 2
    assert len(RunHistoryLog(settings.run_history_path).read()) == 1
    assert client.get("/runs", params={"kind": "enrichment"}).json() == []


def test_enrich_job_without_provider_keys_fails(client: TestClient) -> None:
    response = client.post("/jobs/run", json={"type": "enrich"})
    job_id = response.json()["id"]

    drain_jobs(client)

    job = client.get(f"/jobs/{job_id}").json()
    assert job["status"] == "failed"
    assert "API key" in job["error_message"]
    levels = [entry["level"] for entry in client.get(f"/jobs/{job_id}/logs").json()]
    assert "error" in levels


def test_run_rejects_unknown_type_and_missing_external_id(client: TestClient) -> None:
    assert client.post("/jobs/run", json={"type": "collect"}).status_code == 422
    assert client.post("/jobs/run", json={"type": "enrich_title"}).status_code == 422
    assert client.post("/jobs/run", json={"type": "enrich_title", "payload": {}}).status_code == 422
    invalid = client.post("/jobs/run", json={"type": "enrich_title", "payload": {"external_id": "nm0000118"}})
    assert invalid.status_code == 422


def test_enrich_title_job_normalizes_the_identifier(client: TestClient) -> None:
    response = client.post(
        "/jobs/run",
        json={"type": "enrich_title", "payload": {"external_id": "https://www.imdb.com/title/tt0084787/"}},
    )

    assert response.status_code == 201
    assert response.json()["payload"] == {"external_id": "tt0084787"}


def test_cancel_flow(client: TestClient) -> None:
    job_id = client.post("/jobs/run", json={"type": "enrich"}).json()["id"]

    cancelled = client.post(f"/jobs/{job_id}/cancel", json={"reason": "not today"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    again = client.post(f"/jobs/{job_id}/cancel")
    assert again.status_code == 409

    drain_jobs(client)
    assert client.get(f"/jobs/{job_id}").json()["status"] == "cancelled"
    assert client.post("/jobs/missing/cancel").status_code == 404


def test_job_list_filters_and_metrics(client: TestClient, dataset: Path) -> None:
    client.post("/jobs/run", json={"type": "import", "payload": {"source_path": str(dataset)}})
    client.post("/jobs/run", json={"type": "enrich"})

    queued = client.get("/jobs/metrics").json()
    assert queued["queue_depth"] == 2

    drain_jobs(client)

    completed = client.get("/jobs", params={"status": "completed"}).json()
    failed = client.get("/jobs", params={"type": "enrich"}).json()
    metrics = client.get("/jobs/metrics").json()

    assert [job["type"] for job in completed] == ["import"]
    assert [job["status"] for job in failed] == ["failed"]
    assert metrics["queue_depth"] == 0
    assert metrics["type_counts"] == {"import": 1, "enrich": 1}


def test_job_logs_can_be_appended(client: TestClient) -> None:
    job_id = client.post("/jobs/run", json={"type": "enrich"}).json()["id"]

    created = client.post(f"/jobs/{job_id}/logs", json={"message": "operator note", "level": "warning"})

    assert created.status_code == 201
    warnings = client.get(f"/jobs/{job_id}/logs", params={"level": "warning"}).json()
    assert [entry["message"] for entry in warnings] == ["operator note"]
    assert client.get("/jobs/missing/logs").status_code == 404


def test_catalog_endpoints(client: TestClient, seed_title) -> None:
    seed_title("tt0084787", title="The Thing", release_year=1982, poster_url="https://img")
    seed_title("tt0081505", title="The Shining", release_year=1980)

    listing = client.get("/catalog", params={"needs_metadata": True}).json()
    assert [item["external_id"] for item in listing["items"]] == ["tt0081505"]
    assert listing["total"] == 1

    featured = client.put("/catalog/tt0081505/featured")
    assert featured.status_code == 200
    assert featured.json()["featured"] is True

    metrics = client.get("/catalog/metrics").json()
    assert metrics["total"] == 2
    assert metrics["featured"] == 1
    assert metrics["with_poster"] == 1
    assert metrics["never_checked"] == 2

    assert client.get("/catalog/tt9999999").status_code == 404
    assert client.put("/catalog/tt9999999/featured").status_code == 404


def test_curated_lists(client: TestClient) -> None:
    body = {"slug": "halloween", "name": "Halloween", "entries": ["tt0084787", "tt0084787", " tt0081505 "]}

    created = client.post("/lists", json=body)
    duplicate = client.post("/lists", json=body)

    assert created.status_code == 201
    assert created.json()["entries"] == ["tt0084787", "tt0081505"]
    assert created.json()["published"] is False
    assert duplicate.status_code == 409

    urls = client.post(
        "/lists",
        json={"slug": "classics", "name": "Classics", "entries": ["https://www.imdb.com/title/tt0078748/", "78748"]},
    )
    assert urls.json()["entries"] == ["tt0078748"]

    published = client.put("/lists/halloween/published")
    assert published.json()["published"] is True
    assert [item["slug"] for item in client.get("/lists", params={"published": True}).json()] == ["halloween"]
    assert client.put("/lists/missing/published").status_code == 404
