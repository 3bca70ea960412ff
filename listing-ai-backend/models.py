# models.py

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from contracts import TERMINAL_STATUSES, JobStatus, Stage
from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Job(Base):
    """Job model for tracking one video-to-listing pipeline run."""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    user_id = Column(String, nullable=False, index=True)
    video_location = Column(String, nullable=False)
    user_hint = Column(Text, nullable=False)
    status = Column(Enum(JobStatus, name="job_status"), nullable=False, default=JobStatus.PROCESSING)
    stage = Column(Enum(Stage, name="job_stage"), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    product = relationship("Product", back_populates="job", uselist=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Product(Base):
    """Listing produced by a successful job."""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    keywords = Column(JSON, nullable=False)
    bullet_points = Column(JSON, nullable=False)
    suggested_category = Column(String, nullable=True)
    attributes = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    job = relationship("Job", back_populates="product")
    image = relationship("ProductImage", back_populates="product", uselist=False)


class ProductImage(Base):
    """The single representative frame of a product."""

    __tablename__ = "product_images"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, unique=True, index=True)
    image_location = Column(String, nullable=False)
    frame_timestamp = Column(Float, nullable=False)

    product = relationship("Product", back_populates="image")
