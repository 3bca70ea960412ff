"""
Pydantic models for data validation in the Video-to-Listing API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from contracts import JobStatus, ProductAttributes, Stage


class JobResponse(BaseModel):
    """Response when submitting a video for processing."""
    job_id: str
    status: JobStatus


class ProductImageResponse(BaseModel):
    image_location: str
    frame_timestamp: float


class ProductResponse(BaseModel):
    id: str
    job_id: str
    user_id: Optional[str] = None
    title: str
    description: str
    keywords: List[str]
    bullet_points: List[str]
    suggested_category: Optional[str] = None
    attributes: Optional[ProductAttributes] = None
    image: Optional[ProductImageResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, product) -> "ProductResponse":
        image = None
        if product.image is not None:
            image = ProductImageResponse(
                image_location=product.image.image_location,
                frame_timestamp=product.image.frame_timestamp,
            )
        return cls(
            id=product.id,
            job_id=product.job_id,
            user_id=product.user_id,
            title=product.title,
            description=product.description,
            keywords=list(product.keywords or []),
            bullet_points=list(product.bullet_points or []),
            suggested_category=product.suggested_category,
            attributes=product.attributes,
            image=image,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class StatusResponse(BaseModel):
    """Response for polling a job."""
    job_id: str
    status: JobStatus
    stage: Optional[Stage] = None
    product: Optional[ProductResponse] = None
    error: Optional[str] = None


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    is_more: bool
    total_count: int


class ProductUpdateRequest(BaseModel):
    """Editable listing fields. Omitted fields are left untouched."""
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[List[str]] = None
    bullet_points: Optional[List[str]] = None
    suggested_category: Optional[str] = None
    attributes: Optional[ProductAttributes] = None

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, value):
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value.strip() if value is not None else value

    @field_validator("keywords", "bullet_points")
    @classmethod
    def not_empty(cls, value):
        if value is None:
            return value
        cleaned = [v.strip() for v in value if v.strip()]
        if not cleaned:
            raise ValueError("must contain at least one entry")
        return cleaned
