# listing-ai-backend/tests/test_job_store.py

from datetime import timedelta

import pytest

import job_store as job_store_module
from contracts import JobStatus, Stage
from errors import NotFoundError, PersistenceError


def test_new_job_starts_processing(job_store):
    job_id = job_store.create("user-1", "uploads/demo.mp4", "water bottle")

    job = job_store.get(job_id)
    assert job.status == JobStatus.PROCESSING
    assert job.stage is None
    assert job.error_message is None
    assert job.user_hint == "water bottle"
    assert job.updated_at >= job.created_at


def test_unknown_job_raises_not_found(job_store):
    with pytest.raises(NotFoundError):
        job_store.get("does-not-exist")


def test_update_stage_records_the_checkpoint(job_store):
    job_id = job_store.create("user-1", "uploads/demo.mp4", "water bottle")

    assert job_store.update_stage(job_id, Stage.TRANSCRIPTION) is True
    assert job_store.get(job_id).stage == Stage.TRANSCRIPTION


def test_terminal_job_ignores_stage_updates(job_store):
    job_id = job_store.create("user-1", "uploads/demo.mp4", "water bottle")
    job_store.mark_failed(job_id, Stage.DETECTION, "detector down")

    assert job_store.update_stage(job_id, Stage.CONTENT_GEN) is False
    job = job_store.get(job_id)
    assert job.stage == Stage.DETECTION
    assert job.status == JobStatus.FAILED


def test_mark_failed_happens_only_once(job_store):
    job_id = job_store.create("user-1", "uploads/demo.mp4", "water bottle")

    assert job_store.mark_failed(job_id, Stage.SMART_FILTER, "first") is True
    assert job_store.mark_failed(job_id, Stage.CONTENT_GEN, "second") is False

    job = job_store.get(job_id)
    assert job.stage == Stage.SMART_FILTER
    assert job.error_message == "first"


def test_mark_failed_sanitizes_and_never_stores_empty_message(job_store):
    job_id = job_store.create("user-1", "uploads/demo.mp4", "water bottle")

    job_store.mark_failed(job_id, Stage.DETECTION, "   ")

    assert job_store.get(job_id).error_message == "Unknown error"


def test_mark_failed_on_unknown_job_raises(job_store):
    with pytest.raises(NotFoundError):
        job_store.mark_failed("missing", Stage.DETECTION, "boom")


def test_updated_at_never_moves_backwards(job_store, monkeypatch):
    job_id = job_store.create("user-1", "uploads/demo.mp4", "water bottle")
    before = job_store.get(job_id).updated_at

    # a clock that jumped backwards
    monkeypatch.setattr(job_store_module, "utcnow", lambda: before - timedelta(hours=1))
    job_store.update_stage(job_id, Stage.DETECTION)

    job = job_store.get(job_id)
    assert job.updated_at == before
    assert job.updated_at >= job.created_at


def test_mark_success_requires_a_processing_job(job_store, session_factory):
    job_id = job_store.create("user-1", "uploads/demo.mp4", "water bottle")
    job_store.mark_failed(job_id, Stage.DETECTION, "boom")

    with session_factory() as db:
        with pytest.raises(PersistenceError):
            job_store.mark_success(db, job_id)
