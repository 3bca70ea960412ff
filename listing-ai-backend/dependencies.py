"""
FastAPI dependency providers. Tests swap these out with
``app.dependency_overrides``.
"""

from fastapi import Depends

from database import SessionLocal
from job_store import JobStore
from product_service import ProductService
from status_service import StatusQueryService
from storage import BlobStorage
from tasks import dispatch_job

_storage = None


def get_session_factory():
    return SessionLocal


def get_storage() -> BlobStorage:
    global _storage
    if _storage is None:
        _storage = BlobStorage()
    return _storage


def get_dispatch():
    return dispatch_job


def get_job_store(session_factory=Depends(get_session_factory)) -> JobStore:
    return JobStore(session_factory)


def get_status_service(session_factory=Depends(get_session_factory)) -> StatusQueryService:
    return StatusQueryService(session_factory)


def get_product_service(session_factory=Depends(get_session_factory)) -> ProductService:
    return ProductService(session_factory)
