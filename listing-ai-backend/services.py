"""
Service classes for the Video-to-Listing backend.
Each class wraps one external collaborator of the pipeline and turns every
kind of failure into a CollaboratorError tagged with its stage.
"""

import os
import re
import json
import base64
import logging
import subprocess
from typing import List, Optional

import ffmpeg
import requests
from pydantic import ValidationError as PydanticValidationError

from config import (
    OLLAMA_API_URL,
    SMART_FILTER_MODEL,
    CONTENT_MODEL,
    DETECTION_API_URL,
    TRANSCRIPTION_API_URL,
    DETECTION_TIMEOUT,
    TRANSCRIPTION_TIMEOUT,
    SMART_FILTER_TIMEOUT,
    FRAME_EXTRACT_TIMEOUT,
    CONTENT_TIMEOUT,
    SMART_FILTER_SYSTEM_PROMPT,
    CONTENT_SYSTEM_PROMPT,
)
from contracts import (
    Detection,
    FrameSelection,
    GeneratedContent,
    ProductAttributes,
    Stage,
    Transcript,
    TranscriptWord,
)
from errors import CollaboratorError, NotFoundError, ValidationError
from storage import BlobStorage

MAX_PROMPT_WORDS = 300


def post_json(url: str, payload: dict, timeout: int, stage: Stage, service_name: str) -> dict:
    """POSTs JSON and returns the decoded body, raising CollaboratorError on any failure."""
    try:
        response = requests.post(url, json=payload, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except requests.Timeout as e:
        raise CollaboratorError(f"{service_name} timed out after {timeout}s", stage=stage) from e
    except requests.RequestException as e:
        raise CollaboratorError(f"{service_name} request failed: {e}", stage=stage) from e
    except ValueError as e:
        raise CollaboratorError(f"{service_name} returned invalid JSON", stage=stage) from e
    if not isinstance(data, dict):
        raise CollaboratorError(f"{service_name} returned {type(data).__name__} instead of a JSON object", stage=stage)
    return data


def parse_json_reply(raw: str, stage: Stage, service_name: str) -> dict:
    """Extracts the JSON object from an LLM reply, tolerating markdown fences and chatter."""
    text = re.sub(r"```(?:json)?\n?|```", "", raw or "").strip()
    if not text:
        raise CollaboratorError(f"{service_name} returned an empty response.", stage=stage)

    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end < start:
        raise CollaboratorError(f"{service_name} did not return a JSON object.", stage=stage)
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise CollaboratorError(f"{service_name} returned malformed JSON: {e.msg}", stage=stage) from e
    if not isinstance(data, dict):
        raise CollaboratorError(f"{service_name} did not return a JSON object.", stage=stage)
    return data


def resolve_input(storage: BlobStorage, location: str, stage: Stage) -> str:
    try:
        return storage.open_path(location)
    except (NotFoundError, ValidationError) as e:
        raise CollaboratorError(f"Input not available: {e.message}", stage=stage) from e


class OllamaChat:
    """Minimal client for the Ollama chat endpoint used by both reasoning stages."""

    def __init__(self, api_url: str = OLLAMA_API_URL):
        self.api_url = api_url

    def chat(self, model: str, messages: list, timeout: int, stage: Stage) -> str:
        logging.info(f"📝 Sending {stage.value} prompt to {model}")
        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.2, "top_p": 0.95},
        }
        data = post_json(self.api_url, payload, timeout, stage, f"Ollama model {model}")
        return (data.get("message") or {}).get("content", "")


class DetectionService:
    """Object/label detection over the whole video."""

    def __init__(self, storage: BlobStorage, api_url: str = DETECTION_API_URL, timeout: int = DETECTION_TIMEOUT):
        self.storage = storage
        self.api_url = api_url
        self.timeout = timeout

    def detect(self, video_location: str) -> List[Detection]:
        video_path = resolve_input(self.storage, video_location, Stage.DETECTION)
        data = post_json(self.api_url, {"video_path": video_path}, self.timeout, Stage.DETECTION, "Detection service")

        raw = data.get("detections")
        if not isinstance(raw, list):
            raise CollaboratorError("Detection service response has no 'detections' list", stage=Stage.DETECTION)
        try:
            return [
                Detection(
                    label=item.get("label"),
                    confidence=item.get("confidence"),
                    timestamp_seconds=item.get("timestamp_seconds", item.get("timestamp")),
                )
                for item in raw
            ]
        except (AttributeError, PydanticValidationError) as e:
            raise CollaboratorError("Detection service returned malformed detections", stage=Stage.DETECTION) from e


class TranscriptionService:
    """Speech-to-text with word timings."""

    def __init__(self, storage: BlobStorage, api_url: str = TRANSCRIPTION_API_URL, timeout: int = TRANSCRIPTION_TIMEOUT):
        self.storage = storage
        self.api_url = api_url
        self.timeout = timeout

    def transcribe(self, video_location: str) -> Transcript:
        video_path = resolve_input(self.storage, video_location, Stage.TRANSCRIPTION)
        data = post_json(
            self.api_url, {"video_path": video_path}, self.timeout, Stage.TRANSCRIPTION, "Transcription service"
        )
        try:
            words = [
                TranscriptWord(
                    text=w.get("text", w.get("word", "")),
                    start_seconds=w.get("start_seconds", w.get("start")),
                    end_seconds=w.get("end_seconds", w.get("end")),
                )
                for w in data.get("words") or []
            ]
            return Transcript(full_text=data.get("text") or data.get("full_text") or "", words=words)
        except (AttributeError, PydanticValidationError) as e:
            raise CollaboratorError("Transcription service returned a malformed transcript", stage=Stage.TRANSCRIPTION) from e


class SmartFilterService:
    """Asks a reasoning model for the single timestamp that best shows the product."""

    def __init__(self, chat: Optional[OllamaChat] = None, model: str = SMART_FILTER_MODEL, timeout: int = SMART_FILTER_TIMEOUT):
        self.chat = chat or OllamaChat()
        self.model = model
        self.timeout = timeout

    @staticmethod
    def build_prompt(
        detections: List[Detection], transcript: Transcript, user_hint: str, video_duration: Optional[float] = None
    ) -> str:
        lines = [f"Product hint: {user_hint}"]
        if video_duration is not None:
            lines.append(f"Video length: {video_duration:.2f}s (timestamp must be between 0 and {video_duration:.2f})")
        lines += ["", "Detections:"]
        if detections:
            lines += [f"- {d.timestamp_seconds:.2f}s {d.label} ({d.confidence:.2f})" for d in detections]
        else:
            lines.append("- none")
        lines += ["", f"Transcript: {transcript.full_text or '(no speech)'}"]
        if transcript.words:
            timed = " ".join(
                f"[{w.start_seconds:.1f}] {w.text}" for w in transcript.words[:MAX_PROMPT_WORDS]
            )
            lines.append(f"Word timings: {timed}")
        return "\n".join(lines)

    def select_frame(
        self, detections: List[Detection], transcript: Transcript, user_hint: str, video_duration: Optional[float] = None
    ) -> FrameSelection:
        messages = [
            {"role": "system", "content": SMART_FILTER_SYSTEM_PROMPT},
            {"role": "user", "content": self.build_prompt(detections, transcript, user_hint, video_duration)},
        ]
        raw = self.chat.chat(self.model, messages, self.timeout, Stage.SMART_FILTER)
        data = parse_json_reply(raw, Stage.SMART_FILTER, "Smart filter")
        try:
            return FrameSelection(
                timestamp_seconds=data.get("timestamp_seconds", data.get("timestamp")),
                confidence=data.get("confidence") or 0.0,
                reasoning=data.get("reasoning") or "",
            )
        except PydanticValidationError as e:
            raise CollaboratorError("Smart filter did not return a usable timestamp", stage=Stage.SMART_FILTER) from e


class FrameExtractor:
    """Probes videos and grabs still frames with ffmpeg."""

    def __init__(self, storage: BlobStorage, timeout: int = FRAME_EXTRACT_TIMEOUT):
        self.storage = storage
        self.timeout = timeout

    def probe_duration(self, video_location: str, stage: Stage = Stage.SMART_FILTER) -> float:
        video_path = resolve_input(self.storage, video_location, stage)
        try:
            info = ffmpeg.probe(video_path, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise CollaboratorError("ffprobe timed out", stage=stage) from e
        except ffmpeg.Error as e:
            raise CollaboratorError(f"ffprobe failed: {_last_line(e.stderr)}", stage=stage) from e

        candidates = [info.get("format", {}).get("duration")]
        candidates += [s.get("duration") for s in info.get("streams", []) if s.get("codec_type") == "video"]
        for value in candidates:
            try:
                duration = float(value)
            except (TypeError, ValueError):
                continue
            if duration > 0:
                return duration
        raise CollaboratorError("Could not determine video duration", stage=stage)

    def extract_frames(self, video_location: str, timestamp_seconds: float) -> List[str]:
        video_path = resolve_input(self.storage, video_location, Stage.FRAME_EXTRACT)
        location = self.storage.new_location("frames", ".jpg")
        output_path = self.storage.prepare(location)

        process = (
            ffmpeg
            .input(video_path, ss=timestamp_seconds)
            .output(output_path, vframes=1, format="image2", **{"q:v": 2})
            .overwrite_output()
            .run_async(pipe_stdout=True, pipe_stderr=True)
        )
        try:
            _, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            raise CollaboratorError(f"Frame extraction timed out after {self.timeout}s", stage=Stage.FRAME_EXTRACT) from e

        if process.returncode != 0:
            raise CollaboratorError(f"ffmpeg failed: {_last_line(stderr)}", stage=Stage.FRAME_EXTRACT)

        if not os.path.isfile(output_path) or os.path.getsize(output_path) == 0:
            return []
        logging.info(f"🖼️ Extracted frame at {timestamp_seconds:.2f}s to {location}")
        return [location]

    def discard(self, location: str) -> None:
        """Removes a frame that no product will reference. Never raises."""
        try:
            self.storage.delete(location)
        except (OSError, ValidationError) as e:
            logging.warning(f"Could not remove frame {location}: {e}")


class ContentGenerator:
    """Writes the listing copy from the chosen frame and the user's hint."""

    def __init__(
        self,
        storage: BlobStorage,
        chat: Optional[OllamaChat] = None,
        model: str = CONTENT_MODEL,
        timeout: int = CONTENT_TIMEOUT,
    ):
        self.storage = storage
        self.chat = chat or OllamaChat()
        self.model = model
        self.timeout = timeout

    def generate(self, image_location: str, user_hint: str, transcript_text: Optional[str] = None) -> GeneratedContent:
        image_path = resolve_input(self.storage, image_location, Stage.CONTENT_GEN)
        with open(image_path, "rb") as f:
            image_b64 = base64.b64encode(f.read()).decode("ascii")

        prompt = f"Product hint: {user_hint}"
        if transcript_text:
            prompt += f"\nSeller said: {transcript_text}"
        messages = [
            {"role": "system", "content": CONTENT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt, "images": [image_b64]},
        ]
        raw = self.chat.chat(self.model, messages, self.timeout, Stage.CONTENT_GEN)
        return self.parse(parse_json_reply(raw, Stage.CONTENT_GEN, "Content generator"))

    @staticmethod
    def parse(data: dict) -> GeneratedContent:
        fields = {
            "title": data.get("title"),
            "description": data.get("description"),
            "keywords": data.get("keywords", data.get("search_terms")),
            "bullet_points": data.get("bullet_points", data.get("bulletPoints")),
            "suggested_category": data.get("suggested_category"),
        }
        fields = {k: v for k, v in fields.items() if v is not None}
        if isinstance(fields.get("keywords"), str):
            fields["keywords"] = [k.strip() for k in fields["keywords"].split(",") if k.strip()]

        attributes = data.get("attributes")
        if isinstance(attributes, dict):
            try:
                fields["attributes"] = ProductAttributes(**attributes)
            except PydanticValidationError:
                logging.warning("Ignoring malformed product attributes from content generator")

        try:
            return GeneratedContent(**fields)
        except PydanticValidationError as e:
            raise CollaboratorError("Content generator returned malformed fields", stage=Stage.CONTENT_GEN) from e


def _last_line(stderr) -> str:
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf8", "ignore")
    lines = (stderr or "").strip().splitlines()
    return lines[-1] if lines else "Unknown FFmpeg error"
