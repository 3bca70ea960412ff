"""
Durable job records.

Every mutation runs in its own short transaction, loads the row first and
leaves terminal jobs untouched, so duplicate deliveries of the same job are
harmless.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from contracts import JobStatus, Stage
from errors import NotFoundError, PersistenceError, sanitize_error_message
from models import Job, utcnow


def touch(job: Job) -> None:
    """Refreshes updated_at without ever moving it backwards."""
    now = utcnow()
    floor = max(filter(None, (job.updated_at, job.created_at)), default=now)
    job.updated_at = max(now, floor)


def load_for_update(db: Session, job_id: str) -> Job:
    job = db.query(Job).filter(Job.id == job_id).with_for_update().first()
    if job is None:
        raise NotFoundError(f"Job {job_id} not found")
    return job


class JobStore:
    """Reads and writes Job rows through an injected session factory."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def create(self, user_id: str, video_location: str, user_hint: str) -> str:
        now = utcnow()
        job = Job(
            user_id=user_id,
            video_location=video_location,
            user_hint=user_hint,
            status=JobStatus.PROCESSING,
            created_at=now,
            updated_at=now,
        )
        with self._session_factory() as db:
            try:
                db.add(job)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceError(f"Could not create job: {e.__class__.__name__}") from e
        logging.info(f"🆕 Job {job.id} created for user {user_id}")
        return job.id

    def get(self, job_id: str) -> Job:
        with self._session_factory() as db:
            job = db.get(Job, job_id)
        if job is None:
            raise NotFoundError("Job not found.")
        return job

    def update_stage(self, job_id: str, stage: Stage) -> bool:
        """Stage checkpoint. Returns False when the job is already terminal."""
        with self._session_factory() as db:
            try:
                job = load_for_update(db, job_id)
                if job.is_terminal:
                    return False
                job.stage = stage
                touch(job)
                db.commit()
                return True
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceError(f"Could not update stage of job {job_id}") from e

    def mark_success(self, db: Session, job_id: str) -> Job:
        """Flips the job to SUCCESS inside the caller's transaction; does not commit."""
        job = load_for_update(db, job_id)
        if job.status != JobStatus.PROCESSING:
            raise PersistenceError(f"Job {job_id} is {job.status.value}, cannot mark SUCCESS")
        job.status = JobStatus.SUCCESS
        job.error_message = None
        touch(job)
        return job

    def mark_failed(self, job_id: str, stage: Optional[Stage], message: str) -> bool:
        """Records a failure. Returns False when the job was already terminal."""
        with self._session_factory() as db:
            try:
                job = load_for_update(db, job_id)
                if job.is_terminal:
                    logging.warning(f"Job {job_id} already {job.status.value}; ignoring failure at {stage}")
                    return False
                job.status = JobStatus.FAILED
                if stage is not None:
                    job.stage = stage
                job.error_message = sanitize_error_message(message)
                touch(job)
                db.commit()
                return True
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceError(f"Could not mark job {job_id} as FAILED") from e
