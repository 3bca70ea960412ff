# listing-ai-backend/tests/conftest.py

import os
import sys
import tempfile

# Add the parent directory to the Python path so we can import from it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Keep the module-level engine and media dir away from real data
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MEDIA_DIR", tempfile.mkdtemp(prefix="listing-media-"))

import pytest

import models  # noqa: F401
from contracts import Detection, DispatchMessage, FrameSelection, GeneratedContent, Transcript, TranscriptWord
from database import Base, make_engine, make_session_factory
from job_store import JobStore
from persistence import ProductCommitter
from pipeline import PipelineExecutor
from storage import BlobStorage

CALL_ORDER = ["detect", "transcribe", "probe_duration", "select_frame", "extract_frames", "generate"]


class StubCollaborators:
    """Plays every collaborator at once and records which ones were called."""

    def __init__(self):
        self.calls = []
        self.errors = {}
        self.side_effects = {}
        self.detections = [Detection(label="bottle", confidence=0.9, timestamp_seconds=12.0)]
        self.transcript = Transcript(
            full_text="this amazing bottle keeps water cold",
            words=[
                TranscriptWord(text=w, start_seconds=10.0 + i * 0.5, end_seconds=10.4 + i * 0.5)
                for i, w in enumerate("this amazing bottle keeps water cold".split())
            ],
        )
        self.duration = 30.0
        self.selection = FrameSelection(timestamp_seconds=12.0, confidence=0.93, reasoning="bottle in view while named")
        self.frames = ["frames/bottle.jpg"]
        self.content = GeneratedContent(
            title="Insulated Steel Water Bottle 1L",
            description="Keeps water cold for 24 hours.",
            keywords=["water bottle", "insulated bottle"],
            bullet_points=["Double-wall insulation", "Leak-proof lid"],
            suggested_category="Home & Kitchen",
        )
        self.filter_input = None
        self.filter_duration = None
        self.discarded = []

    def _call(self, name, value):
        self.calls.append(name)
        if name in self.side_effects:
            self.side_effects[name]()
        if name in self.errors:
            raise self.errors[name]
        return value

    def detect(self, video_location):
        return self._call("detect", self.detections)

    def transcribe(self, video_location):
        return self._call("transcribe", self.transcript)

    def probe_duration(self, video_location):
        return self._call("probe_duration", self.duration)

    def select_frame(self, detections, transcript, user_hint, video_duration=None):
        self.filter_input = (detections, transcript, user_hint)
        self.filter_duration = video_duration
        return self._call("select_frame", self.selection)

    def extract_frames(self, video_location, timestamp_seconds):
        return self._call("extract_frames", self.frames)

    def discard(self, location):
        self.discarded.append(location)

    def generate(self, image_location, user_hint, transcript_text=None):
        return self._call("generate", self.content)


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def committer(session_factory, job_store):
    return ProductCommitter(session_factory, job_store)


@pytest.fixture
def storage(tmp_path):
    return BlobStorage(str(tmp_path / "media"))


@pytest.fixture
def stubs():
    return StubCollaborators()


@pytest.fixture
def executor(job_store, committer, stubs):
    return PipelineExecutor(job_store, committer, stubs, stubs, stubs, stubs, stubs)


@pytest.fixture
def submit(job_store):
    """Creates a job the way ingestion does and returns its dispatch message."""
    def _submit(hint="water bottle", user_id="user-1", video_location="uploads/demo.mp4"):
        job_id = job_store.create(user_id, video_location, hint)
        return DispatchMessage(job_id=job_id, video_location=video_location, user_hint=hint)
    return _submit


def count_rows(session_factory, model, **filters):
    with session_factory() as db:
        return db.query(model).filter_by(**filters).count()
