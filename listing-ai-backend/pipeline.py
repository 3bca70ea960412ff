"""
Pipeline executor: drives one job through the fixed stage sequence.

    PROCESSING:DETECTION -> TRANSCRIPTION -> SMART_FILTER -> FRAME_EXTRACT -> CONTENT_GEN -> SUCCESS
                        \\____________________ any stage error ____________________/ -> FAILED

Stages run strictly in order and each one feeds the next through an in-memory
PipelineContext. The first error stops the job: no later stage runs and the
job is marked FAILED at the stage that broke. There are no retries.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from contracts import (
    Detection,
    DispatchMessage,
    FrameSelection,
    GeneratedContent,
    JobStatus,
    Stage,
    Transcript,
)
from errors import (
    FrameExtractionError,
    IncompleteContentError,
    InvalidTimestampError,
    ListingError,
    NotFoundError,
)
from job_store import JobStore
from persistence import ProductCommitter
from services import ContentGenerator, DetectionService, FrameExtractor, SmartFilterService, TranscriptionService

FIRST_STAGE = Stage.DETECTION

NEXT_STAGE: Dict[Stage, Optional[Stage]] = {
    Stage.DETECTION: Stage.TRANSCRIPTION,
    Stage.TRANSCRIPTION: Stage.SMART_FILTER,
    Stage.SMART_FILTER: Stage.FRAME_EXTRACT,
    Stage.FRAME_EXTRACT: Stage.CONTENT_GEN,
    Stage.CONTENT_GEN: None,
}


def stage_sequence() -> List[Stage]:
    """The stages in the order the executor runs them."""
    stages, stage = [], FIRST_STAGE
    while stage is not None:
        stages.append(stage)
        stage = NEXT_STAGE[stage]
    return stages


@dataclass
class PipelineContext:
    """Stage outputs carried forward within a single run."""
    message: DispatchMessage
    detections: List[Detection] = field(default_factory=list)
    transcript: Optional[Transcript] = None
    video_duration: Optional[float] = None
    selection: Optional[FrameSelection] = None
    image_location: Optional[str] = None
    content: Optional[GeneratedContent] = None


def _clean_list(values: List[str]) -> List[str]:
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


class PipelineExecutor:
    """Runs the stage state machine for dispatched jobs."""

    def __init__(
        self,
        job_store: JobStore,
        committer: ProductCommitter,
        detector,
        transcriber,
        smart_filter,
        frame_extractor,
        content_generator,
    ):
        self.job_store = job_store
        self.committer = committer
        self.detector = detector
        self.transcriber = transcriber
        self.smart_filter = smart_filter
        self.frame_extractor = frame_extractor
        self.content_generator = content_generator

        self._handlers: Dict[Stage, Callable[[PipelineContext], None]] = {
            Stage.DETECTION: self._detect,
            Stage.TRANSCRIPTION: self._transcribe,
            Stage.SMART_FILTER: self._select_frame,
            Stage.FRAME_EXTRACT: self._extract_frame,
            Stage.CONTENT_GEN: self._generate_content,
        }

    def run(self, message: DispatchMessage) -> Optional[JobStatus]:
        """Processes one dispatch message and returns the job's final status."""
        job_id = message.job_id
        try:
            job = self.job_store.get(job_id)
        except NotFoundError:
            logging.error(f"❌ Job {job_id} does not exist; dropping message")
            return None

        if job.is_terminal:
            logging.info(f"Job {job_id} is already {job.status.value}; ignoring redelivered message")
            return job.status

        logging.info(f"📝 Worker received job {job_id} for hint: '{message.user_hint}'")
        ctx = PipelineContext(message=message)
        stage = FIRST_STAGE
        while stage is not None:
            if not self._checkpoint(job_id, stage):
                return self.job_store.get(job_id).status
            try:
                self._handlers[stage](ctx)
            except Exception as e:
                return self._fail(job_id, stage, e, ctx)
            stage = NEXT_STAGE[stage]

        product_fields, image_fields = self._product_rows(ctx)
        try:
            self.committer.commit_product_result(job_id, product_fields, image_fields)
        except ListingError as e:
            return self._fail(job_id, Stage.CONTENT_GEN, e, ctx)

        logging.info(f"✅ Worker finished job {job_id}: '{product_fields['title']}'")
        return JobStatus.SUCCESS

    def _checkpoint(self, job_id: str, stage: Stage) -> bool:
        """Records the stage about to run. False means the job is already terminal."""
        try:
            return self.job_store.update_stage(job_id, stage)
        except ListingError as e:
            logging.warning(f"Could not record stage {stage.value} for job {job_id}: {e.message}")
            return True

    def _fail(self, job_id: str, stage: Stage, error: Exception, ctx: Optional[PipelineContext] = None) -> JobStatus:
        if isinstance(error, ListingError):
            message = error.message
            logging.error(f"❌ Job {job_id} failed at {stage.value}: {message}")
        else:
            message = f"Unexpected {error.__class__.__name__} during {stage.value}"
            logging.error(f"❌ Job {job_id} failed at {stage.value}", exc_info=error)

        try:
            recorded = self.job_store.mark_failed(job_id, stage, message)
        except ListingError:
            logging.critical(f"🚨 Could not record failure of job {job_id}; it is stuck in PROCESSING")
            raise

        if ctx is not None and ctx.image_location:
            self.frame_extractor.discard(ctx.image_location)

        if not recorded:
            return self.job_store.get(job_id).status
        return JobStatus.FAILED

    # --- Stage handlers ---

    def _detect(self, ctx: PipelineContext) -> None:
        ctx.detections = list(self.detector.detect(ctx.message.video_location))
        if not ctx.detections:
            logging.warning(f"Job {ctx.message.job_id}: detection found no labels, continuing")

    def _transcribe(self, ctx: PipelineContext) -> None:
        ctx.transcript = self.transcriber.transcribe(ctx.message.video_location)

    def _select_frame(self, ctx: PipelineContext) -> None:
        ctx.video_duration = self.frame_extractor.probe_duration(ctx.message.video_location)
        selection = self.smart_filter.select_frame(
            ctx.detections, ctx.transcript, ctx.message.user_hint, ctx.video_duration
        )

        timestamp = selection.timestamp_seconds
        if not math.isfinite(timestamp) or not 0 <= timestamp <= ctx.video_duration:
            raise InvalidTimestampError(
                f"InvalidTimestamp: smart filter chose {timestamp}s, video is {ctx.video_duration:.2f}s long",
                stage=Stage.SMART_FILTER,
            )
        ctx.selection = selection
        logging.info(f"Job {ctx.message.job_id}: best frame at {timestamp:.2f}s ({selection.reasoning})")

    def _extract_frame(self, ctx: PipelineContext) -> None:
        locations = list(self.frame_extractor.extract_frames(
            ctx.message.video_location, ctx.selection.timestamp_seconds
        ))
        if len(locations) != 1:
            for location in locations:
                self.frame_extractor.discard(location)
            raise FrameExtractionError(
                f"Frame extraction produced {len(locations)} images, expected exactly one",
                stage=Stage.FRAME_EXTRACT,
            )
        ctx.image_location = locations[0]

    def _generate_content(self, ctx: PipelineContext) -> None:
        transcript_text = ctx.transcript.full_text if ctx.transcript else None
        content = self.content_generator.generate(ctx.image_location, ctx.message.user_hint, transcript_text or None)

        content = content.model_copy(update={
            "title": (content.title or "").strip(),
            "description": (content.description or "").strip(),
            "keywords": _clean_list(content.keywords),
            "bullet_points": _clean_list(content.bullet_points),
        })
        missing = [name for name in ("title", "description", "keywords", "bullet_points") if not getattr(content, name)]
        if missing:
            raise IncompleteContentError(
                f"Content generation left required fields empty: {', '.join(missing)}",
                stage=Stage.CONTENT_GEN,
            )
        ctx.content = content

    @staticmethod
    def _product_rows(ctx: PipelineContext) -> Tuple[dict, dict]:
        content = ctx.content
        product_fields = {
            "title": content.title,
            "description": content.description,
            "keywords": content.keywords,
            "bullet_points": content.bullet_points,
            "suggested_category": content.suggested_category,
            "attributes": content.attributes.model_dump(exclude_none=True) if content.attributes else None,
        }
        image_fields = {
            "image_location": ctx.image_location,
            "frame_timestamp": ctx.selection.timestamp_seconds,
        }
        return product_fields, image_fields


def build_executor(session_factory, storage) -> PipelineExecutor:
    """Wires the executor to the real collaborators."""
    job_store = JobStore(session_factory)
    return PipelineExecutor(
        job_store=job_store,
        committer=ProductCommitter(session_factory, job_store),
        detector=DetectionService(storage),
        transcriber=TranscriptionService(storage),
        smart_filter=SmartFilterService(),
        frame_extractor=FrameExtractor(storage),
        content_generator=ContentGenerator(storage),
    )
