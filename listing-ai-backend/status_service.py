"""
Read-only projection of a job record into the client-facing status response.
"""

from sqlalchemy.orm import joinedload

from contracts import JobStatus
from errors import NotFoundError
from models import Job, Product
from schemas import ProductResponse, StatusResponse


class StatusQueryService:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def get_status(self, job_id: str) -> StatusResponse:
        with self._session_factory() as db:
            job = db.get(Job, job_id)
            if job is None:
                raise NotFoundError("Job not found.")

            product = None
            if job.status == JobStatus.SUCCESS:
                row = (
                    db.query(Product)
                    .options(joinedload(Product.image))
                    .filter(Product.job_id == job.id)
                    .first()
                )
                if row is not None:
                    product = ProductResponse.from_row(row)

            return StatusResponse(
                job_id=job.id,
                status=job.status,
                stage=job.stage,
                product=product,
                error=job.error_message if job.status == JobStatus.FAILED else None,
            )
