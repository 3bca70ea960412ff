# listing-ai-backend/tests/test_tasks.py

import tasks
from config import WORKER_CONCURRENCY
from contracts import DispatchMessage, JobStatus


class RecordingExecutor:
    def __init__(self, status):
        self.status = status
        self.messages = []

    def run(self, message):
        self.messages.append(message)
        return self.status


def test_worker_settings_keep_unfinished_messages():
    """
    Messages are acknowledged only after the task returns, one at a time per
    slot, with a fixed number of slots.
    """
    conf = tasks.celery.conf
    assert conf.task_acks_late is True
    assert conf.task_reject_on_worker_lost is True
    assert conf.worker_prefetch_multiplier == 1
    assert conf.worker_concurrency == WORKER_CONCURRENCY


def test_task_runs_the_executor_once(monkeypatch):
    executor = RecordingExecutor(JobStatus.SUCCESS)
    monkeypatch.setattr(tasks, "get_executor", lambda: executor)

    result = tasks.process_listing_job("job-1", "uploads/demo.mp4", "water bottle")

    assert result == "SUCCESS"
    assert executor.messages == [
        DispatchMessage(job_id="job-1", video_location="uploads/demo.mp4", user_hint="water bottle")
    ]


def test_task_for_unknown_job_returns_none(monkeypatch):
    monkeypatch.setattr(tasks, "get_executor", lambda: RecordingExecutor(None))

    assert tasks.process_listing_job("missing", "uploads/demo.mp4", "mug") is None


def test_dispatch_job_enqueues_without_waiting(monkeypatch):
    sent = []

    class FakeTask:
        def delay(self, *args):
            sent.append(args)

    monkeypatch.setattr(tasks, "process_listing_job", FakeTask())

    tasks.dispatch_job(DispatchMessage(job_id="job-1", video_location="uploads/demo.mp4", user_hint="mug"))

    assert sent == [("job-1", "uploads/demo.mp4", "mug")]
