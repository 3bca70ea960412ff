"""
Configuration file for the Video-to-Listing backend.
Contains all global constants and prompt engineering templates.
"""

import os

# --- Constants ---
PROJECT_ROOT = os.getcwd()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./listing_ai.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")

MEDIA_DIR = os.getenv("MEDIA_DIR", os.path.join(PROJECT_ROOT, "media"))

# --- Collaborators ---
OLLAMA_API_URL = os.getenv("OLLAMA_API_URL", "http://localhost:11434/api/chat")
SMART_FILTER_MODEL = os.getenv("SMART_FILTER_MODEL", "llama3.1:8b")
CONTENT_MODEL = os.getenv("CONTENT_MODEL", "llava:7b")
DETECTION_API_URL = os.getenv("DETECTION_API_URL", "http://localhost:5081/detect")
TRANSCRIPTION_API_URL = os.getenv("TRANSCRIPTION_API_URL", "http://localhost:5082/transcribe")

# Seconds; every collaborator call is bounded
DETECTION_TIMEOUT = int(os.getenv("DETECTION_TIMEOUT", "300"))
TRANSCRIPTION_TIMEOUT = int(os.getenv("TRANSCRIPTION_TIMEOUT", "300"))
SMART_FILTER_TIMEOUT = int(os.getenv("SMART_FILTER_TIMEOUT", "180"))
FRAME_EXTRACT_TIMEOUT = int(os.getenv("FRAME_EXTRACT_TIMEOUT", "60"))
CONTENT_TIMEOUT = int(os.getenv("CONTENT_TIMEOUT", "180"))

# --- Worker pool ---
WORKER_CONCURRENCY = int(os.getenv("WORKER_CONCURRENCY", "2"))

# --- Upload gate ---
MAX_UPLOAD_BYTES = 100 * 1024 * 1024
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".mov", ".webm", ".mkv", ".avi"}

PRODUCTS_PAGE_SIZE = 15

# --- Prompt Engineering Section ---

SMART_FILTER_SYSTEM_PROMPT = """You pick the single best video frame for an e-commerce product photo.

You receive object detections (label, confidence, timestamp in seconds), the spoken transcript
with word timings, and a hint describing the product the seller wants to list.

VERY IMPORTANT RULES:
1.  Your response MUST BE ONLY a JSON object. No explanations or markdown.
2.  The JSON object has exactly these keys: "timestamp" (number, seconds), "confidence" (number 0-1), "reasoning" (string).
3.  Choose a timestamp where the hinted product is clearly visible, preferably where it is also mentioned.
4.  The timestamp must lie between 0 and the video length given in the prompt. Never go past the end of the video.
"""

CONTENT_SYSTEM_PROMPT = """You are an expert e-commerce copywriter for the Indian marketplace.

You receive one product photo, a hint describing the product and, optionally, what the seller said in the video.

VERY IMPORTANT RULES:
1.  Your response MUST BE ONLY a JSON object. No explanations or markdown.
2.  Required keys: "title" (string), "description" (string), "keywords" (list of strings), "bullet_points" (list of strings).
3.  Optional keys: "suggested_category" (string, e.g. "Home & Kitchen") and "attributes"
    (object with optional "brand", "color", "material", "target_audience", "estimated_price_inr").
4.  Keep the title under 120 characters and give 3 to 6 bullet points.
5.  Never mention the video, the seller or the photo itself.
"""
