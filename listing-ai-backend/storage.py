"""
Local blob storage rooted at the media directory.

Locations handed around the system are relative keys such as
``uploads/<uuid>.mp4``; only this module turns them into filesystem paths.
"""

import os
import uuid
import logging

from config import MAX_UPLOAD_BYTES, MEDIA_DIR
from errors import NotFoundError, ValidationError

CHUNK_SIZE = 1024 * 1024


class BlobStorage:
    def __init__(self, root: str = MEDIA_DIR):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def new_location(self, prefix: str, extension: str) -> str:
        return f"{prefix}/{uuid.uuid4()}{extension}"

    def resolve(self, location: str) -> str:
        """Absolute path for a location. Refuses anything outside the media root."""
        path = os.path.abspath(os.path.join(self.root, location))
        if os.path.commonpath([path, self.root]) != self.root:
            raise ValidationError("Forbidden: Access to this path is not allowed.", status_code=403)
        return path

    def prepare(self, location: str) -> str:
        """Resolves a location for writing, creating its parent directory."""
        path = self.resolve(location)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        return path

    def exists(self, location: str) -> bool:
        try:
            return os.path.isfile(self.resolve(location))
        except ValidationError:
            return False

    def save_upload(self, fileobj, extension: str, max_bytes: int = MAX_UPLOAD_BYTES) -> str:
        """Streams a file object into ``uploads/`` in 1 MB chunks and returns its location."""
        location = self.new_location("uploads", extension)
        path = self.prepare(location)
        total = 0
        with open(path, "wb") as dst:
            while True:
                chunk = fileobj.read(CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    break
                dst.write(chunk)
        if total > max_bytes:
            os.remove(path)
            raise ValidationError(f"File too large (max {max_bytes // (1024 * 1024)} MB)", status_code=413)
        if total == 0:
            os.remove(path)
            raise ValidationError("Uploaded file is empty.")
        logging.info(f"Upload saved to: {location} ({total} bytes)")
        return location

    def open_path(self, location: str) -> str:
        path = self.resolve(location)
        if not os.path.isfile(path):
            raise NotFoundError("File not found.")
        return path

    def delete(self, location: str) -> bool:
        """Removes a stored file. Returns False if there was nothing to remove."""
        path = self.resolve(location)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        logging.info(f"🗑️ Removed {location}")
        return True
