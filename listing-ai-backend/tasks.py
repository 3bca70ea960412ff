# tasks.py
#
# Start the worker pool with:
#   celery -A tasks worker --loglevel=info

import logging

from celery import Celery
from celery.signals import worker_init, worker_process_init, worker_process_shutdown

from config import LOG_LEVEL, REDIS_URL, WORKER_CONCURRENCY
from contracts import DispatchMessage
from database import Base, SessionLocal, engine
from pipeline import build_executor
from storage import BlobStorage

celery = Celery('tasks', broker=REDIS_URL, backend=REDIS_URL)
celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Ack only after the executor returns; a crashed worker leaves the message for redelivery
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=WORKER_CONCURRENCY,
    broker_transport_options={"visibility_timeout": 3600},
    result_expires=24 * 3600,
)
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")

_executor = None


def get_executor():
    """One executor per worker process, built on first use."""
    global _executor
    if _executor is None:
        _executor = build_executor(SessionLocal, BlobStorage())
    return _executor


@worker_init.connect
def ensure_tables(**kwargs):
    # the worker may start before the API
    Base.metadata.create_all(bind=engine)


@worker_process_init.connect
def reset_connections(**kwargs):
    # forked children must not reuse the parent's pooled connections
    engine.dispose()


@worker_process_shutdown.connect
def release_resources(**kwargs):
    global _executor
    _executor = None
    engine.dispose()


@celery.task(name="tasks.process_listing_job", max_retries=0)
def process_listing_job(job_id: str, video_location: str, user_hint: str):
    """
    Background task: runs the listing pipeline once for a dispatched job.
    """
    message = DispatchMessage(job_id=job_id, video_location=video_location, user_hint=user_hint)
    status = get_executor().run(message)
    return status.value if status else None


def dispatch_job(message: DispatchMessage) -> None:
    """Fire-and-forget enqueue used by ingestion."""
    process_listing_job.delay(message.job_id, message.video_location, message.user_hint)
