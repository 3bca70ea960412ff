"""
Serves stored videos and extracted product frames.
"""

import mimetypes
import os

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from dependencies import get_storage

router = APIRouter(prefix="/media", tags=["media"])


@router.get("/")
def get_media(location: str, storage=Depends(get_storage)):
    """
    Safely serves a file from the server's media directory.
    Locations outside the media directory are rejected with 403.
    """
    path = storage.open_path(location)
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type, filename=os.path.basename(path))
