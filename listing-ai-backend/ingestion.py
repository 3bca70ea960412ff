"""
Thin input gate: records a new job and hands it to the dispatch queue.
"""

import os
import logging

from config import ALLOWED_VIDEO_EXTENSIONS
from contracts import DispatchMessage
from errors import PersistenceError, ValidationError
from job_store import JobStore


def video_extension(filename: str) -> str:
    """Returns the lower-cased extension of an accepted video file name."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_VIDEO_EXTENSIONS:
        allowed = ", ".join(sorted(ALLOWED_VIDEO_EXTENSIONS))
        raise ValidationError(f"Unsupported video type '{ext or filename}'. Allowed: {allowed}")
    return ext


def create_job(job_store: JobStore, dispatch, user_id: str, video_location: str, user_hint: str) -> str:
    """Writes the job record, enqueues it and returns immediately.

    ``dispatch`` is any callable taking a DispatchMessage; it must not block on
    processing. If it raises, the job is marked FAILED.
    """
    user_hint = (user_hint or "").strip()
    if not user_hint:
        raise ValidationError("A product hint is required.")
    if not (user_id or "").strip():
        raise ValidationError("A user id is required.")

    job_id = job_store.create(user_id.strip(), video_location, user_hint)
    message = DispatchMessage(job_id=job_id, video_location=video_location, user_hint=user_hint)
    try:
        dispatch(message)
    except Exception as e:
        logging.error(f"Failed to submit job {job_id} to the queue: {e}")
        job_store.mark_failed(job_id, None, "Failed to dispatch job")
        raise PersistenceError("Failed to start the listing job.", status_code=503) from e

    logging.info(f"✨ Job {job_id} submitted for hint: '{user_hint}'")
    return job_id
