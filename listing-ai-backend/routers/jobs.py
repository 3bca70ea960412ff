"""
Router for listing jobs.
Handles video submission and status polling.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile

from contracts import JobStatus
from dependencies import get_dispatch, get_job_store, get_status_service, get_storage
from errors import ListingError, ValidationError
from ingestion import create_job, video_extension
from schemas import JobResponse, StatusResponse

# Create the router
router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/", response_model=JobResponse, status_code=202)
def submit_job(
    file: UploadFile = File(...),
    user_hint: str = Form(...),
    user_id: str = Form(...),
    job_store=Depends(get_job_store),
    storage=Depends(get_storage),
    dispatch=Depends(get_dispatch),
):
    """
    Saves the uploaded video, creates a job record, sends the job to the
    queue and immediately returns a job ID.
    """
    extension = video_extension(file.filename)
    if not user_hint.strip():
        raise ValidationError("A product hint is required.")
    if not user_id.strip():
        raise ValidationError("A user id is required.")

    video_location = storage.save_upload(file.file, extension)
    try:
        job_id = create_job(job_store, dispatch, user_id, video_location, user_hint)
    except ListingError:
        storage.delete(video_location)
        raise
    return JobResponse(job_id=job_id, status=JobStatus.PROCESSING)


@router.get("/{job_id}", response_model=StatusResponse)
def get_job_status(job_id: str, status_service=Depends(get_status_service)):
    """
    Checks the status of a job by querying the database.
    """
    return status_service.get_status(job_id)
