"""
Typed input/output shapes for the pipeline stages and the dispatch queue.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


TERMINAL_STATUSES = {JobStatus.SUCCESS, JobStatus.FAILED}


class Stage(str, Enum):
    """Pipeline stages, declared in execution order."""
    DETECTION = "DETECTION"
    TRANSCRIPTION = "TRANSCRIPTION"
    SMART_FILTER = "SMART_FILTER"
    FRAME_EXTRACT = "FRAME_EXTRACT"
    CONTENT_GEN = "CONTENT_GEN"


class Detection(BaseModel):
    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp_seconds: float = Field(ge=0.0)


class TranscriptWord(BaseModel):
    text: str
    start_seconds: float
    end_seconds: float


class Transcript(BaseModel):
    full_text: str = ""
    words: List[TranscriptWord] = Field(default_factory=list)


class FrameSelection(BaseModel):
    timestamp_seconds: float
    confidence: float = 0.0
    reasoning: str = ""


class ProductAttributes(BaseModel):
    brand: Optional[str] = None
    color: Optional[str] = None
    material: Optional[str] = None
    target_audience: Optional[str] = None
    estimated_price_inr: Optional[float] = None


class GeneratedContent(BaseModel):
    """Content generation output. Emptiness is checked by the executor, not here."""
    title: str = ""
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    bullet_points: List[str] = Field(default_factory=list)
    suggested_category: Optional[str] = None
    attributes: Optional[ProductAttributes] = None


class DispatchMessage(BaseModel):
    """Payload carried by the dispatch queue from ingestion to the worker."""
    job_id: str
    video_location: str
    user_hint: str
