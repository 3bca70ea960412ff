"""
Error taxonomy for the listing pipeline.

Every error carries an HTTP status code so the API layer can render it
directly, and collaborator errors remember the stage they were raised in.
"""

import re

MAX_ERROR_LENGTH = 400

_URL_CREDENTIALS = re.compile(r"(\w+://)[^/\s:@]+:[^/\s@]+@")
_SECRET_PARAMS = re.compile(r"(?i)\b(api[_-]?key|token|secret|password|access[_-]?key(?:[_-]?id)?)=\S+")
_ABS_PATHS = re.compile(r"(?<![\w:/.])(?:[A-Za-z]:\\|/)(?:[\w.\-]+[\\/])+[\w.\-]*")


class ListingError(Exception):
    """Base error with a client-facing message and status code."""

    status_code = 500

    def __init__(self, message: str = "Internal Server Error", status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ListingError):
    status_code = 400


class NotFoundError(ListingError):
    status_code = 404


class PersistenceError(ListingError):
    status_code = 500


class CollaboratorError(ListingError):
    """An external stage call failed, timed out or returned unusable data."""

    status_code = 502

    def __init__(self, message: str, stage=None):
        super().__init__(message)
        self.stage = stage


class InvalidTimestampError(CollaboratorError):
    pass


class FrameExtractionError(CollaboratorError):
    pass


class IncompleteContentError(CollaboratorError):
    pass


def sanitize_error_message(text) -> str:
    """Strips credentials and local paths from an error before it is stored."""
    message = str(text or "").strip()
    message = _URL_CREDENTIALS.sub(r"\1***@", message)
    message = _SECRET_PARAMS.sub(lambda m: f"{m.group(1)}=***", message)
    message = _ABS_PATHS.sub("<path>", message)
    message = " ".join(message.split())
    if len(message) > MAX_ERROR_LENGTH:
        message = message[: MAX_ERROR_LENGTH - 3] + "..."
    return message or "Unknown error"
