"""Tests for job lifecycle persistence."""
from __future__ import annotations

import pytest

from backend.catalog_api.services import tasks
from backend.catalog_api.stores.job_log_store import JobLogStore
from backend.catalog_api.stores.job_store import JobStore


@pytest.fixture()
def job_store(engine) -> JobStore:
    return JobStore(engine)


def test_job_moves_through_lifecycle(job_store: JobStore) -> None:
    job = job_store.enqueue("import", {"limit": 5})
    assert job.status == "queued"
    assert job.progress == 0.0

    running = job_store.mark_running(job.id, worker_id="worker-1")
    halfway = job_store.update_progress(job.id, 0.5)
    done = job_store.mark_completed(job.id, result={"stats": {"inserted": 5}})

    assert running.status == "running"
    assert running.worker_id == "worker-1"
    assert halfway.progress == 0.5
    assert done.status == "completed"
    assert done.progress == 1.0
    assert done.result == {"stats": {"inserted": 5}}
    assert done.duration_seconds is not None


def test_progress_is_clamped(job_store: JobStore) -> None:
    job = job_store.enqueue("enrich")

    assert job_store.update_progress(job.id, 7.0).progress == 1.0
    assert job_store.update_progress(job.id, -1.0).progress == 0.0


def test_unknown_job_raises(job_store: JobStore) -> None:
    with pytest.raises(KeyError):
        job_store.mark_running("missing")


def test_list_filters_by_status_and_type(job_store: JobStore) -> None:
    first = job_store.enqueue("import")
    job_store.enqueue("enrich")
    job_store.mark_failed(first.id, error_message="boom")

    failed = job_store.list(statuses=["FAILED"])
    enrich = job_store.list(job_type="enrich")

    assert [job.id for job in failed] == [first.id]
    assert [job.type for job in enrich] == ["enrich"]


def test_metrics_sum_enrichment_credits(job_store: JobStore) -> None:
    enrich = job_store.enqueue("enrich")
    single = job_store.enqueue("enrich_title", {"external_id": "tt0084787"})
    imported = job_store.enqueue("import")
    job_store.enqueue("enrich")
    for job in (enrich, single, imported):
        job_store.mark_running(job.id)
    job_store.mark_completed(enrich.id, result={"stats": {"credits_used": 42}})
    job_store.mark_completed(single.id, result={"stats": {"credits_used": 3}})
    job_store.mark_completed(imported.id, result={"stats": {"inserted": 10}})

    metrics = job_store.metrics()

    assert metrics.total == 4
    assert metrics.status_counts == {"completed": 3, "queued": 1}
    assert metrics.type_counts == {"enrich": 2, "enrich_title": 1, "import": 1}
    assert metrics.credits_spent == 45
    assert metrics.average_duration_seconds is not None
    assert metrics.last_finished_at is not None


def test_job_logs_filter_by_level(engine, job_store: JobStore) -> None:
    job = job_store.enqueue("import")
    logs = JobLogStore(engine)
    logs.log(job.id, "started")
    logs.log(job.id, "row rejected", level="warning", context={"row": 3})

    warnings = logs.list_for_job(job.id, levels=["warning"])

    assert [entry.message for entry in warnings] == ["row rejected"]
    assert warnings[0].context == {"row": 3}
    assert len(logs.list_for_job(job.id)) == 2


def test_finishing_does_not_undo_cancellation(job_store: JobStore) -> None:
    job = job_store.enqueue("enrich")
    job_store.mark_running(job.id)
    job_store.mark_cancelled(job.id, reason="operator stop")

    completed = job_store.mark_completed(job.id, result={"stats": {"credits_used": 4}})
    failed = job_store.mark_failed(job.id, error_message="provider down")

    assert completed.status == "cancelled"
    assert completed.result == {"stats": {"credits_used": 4}}
    assert failed.status == "cancelled"
    assert failed.error_message == "operator stop"
    assert job_store.metrics().credits_spent == 4


def test_job_cancelled_mid_run_stays_cancelled(
    monkeypatch: pytest.MonkeyPatch, settings, engine, job_store: JobStore
) -> None:
    job = job_store.enqueue("enrich")

    def _cancel_during_run(job_type, payload, settings, engine, *, progress=None):
        job_store.mark_cancelled(job.id, reason="operator stop")
        return {"stats": {"credits_used": 2}}

    monkeypatch.setattr(tasks, "run_pipeline", _cancel_during_run)

    final = tasks.run_job_lifecycle(job.id, "enrich", None, settings, engine, worker_id="worker-1")

    assert final.status == "cancelled"
    assert job_store.get(job.id).status == "cancelled"
    messages = [entry.message for entry in JobLogStore(engine).list_for_job(job.id)]
    assert messages[-1] == "Cancelled job finished running"
    assert "Job completed" not in messages


def test_job_cancelled_mid_run_keeps_status_when_run_fails(
    monkeypatch: pytest.MonkeyPatch, settings, engine, job_store: JobStore
) -> None:
    job = job_store.enqueue("import")

    def _cancel_then_fail(job_type, payload, settings, engine, *, progress=None):
        job_store.mark_cancelled(job.id)
        raise RuntimeError("disk full")

    monkeypatch.setattr(tasks, "run_pipeline", _cancel_then_fail)

    with pytest.raises(RuntimeError):
        tasks.run_job_lifecycle(job.id, "import", None, settings, engine, worker_id="worker-1")

    assert job_store.get(job.id).status == "cancelled"
