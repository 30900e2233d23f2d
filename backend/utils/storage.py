"""
Local media storage.

Files land under ``config.UPLOAD_DIR/<folder>/`` and are served by the
``/uploads`` static mount. The returned ``public_id`` (``<folder>/<file>``)
is what callers keep to delete the file later.
"""
import logging
import os
import uuid
from typing import Iterable, Optional

import aiofiles
from fastapi import HTTPException, UploadFile
from pydantic import BaseModel

from core.config import config
from models.complaints import MediaType

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
ALLOWED_VIDEO_TYPES = {"video/mp4", "video/quicktime", "video/webm"}


class StoredMedia(BaseModel):
    url: str
    public_id: str
    media_type: MediaType


def media_type_for(content_type: Optional[str], images_only: bool = False) -> MediaType:
    if content_type in ALLOWED_IMAGE_TYPES:
        return MediaType.image
    if content_type in ALLOWED_VIDEO_TYPES and not images_only:
        return MediaType.video
    allowed = "images" if images_only else "images or videos"
    raise HTTPException(
        status_code=400,
        detail=f"Invalid file type: {content_type}. Only {allowed} are allowed.",
    )


def _path_for(public_id: str) -> str:
    return os.path.join(config.UPLOAD_DIR, *public_id.split("/"))


async def save_upload(
    file: UploadFile,
    folder: str,
    images_only: bool = False,
    max_bytes: Optional[int] = None,
) -> StoredMedia:
    media_type = media_type_for(file.content_type, images_only=images_only)

    content = await file.read()
    if max_bytes is not None and len(content) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB.",
        )

    file_ext = os.path.splitext(file.filename or "")[1]
    public_id = f"{folder}/{uuid.uuid4()}{file_ext}"
    file_path = _path_for(public_id)
    os.makedirs(os.path.dirname(file_path), exist_ok=True)

    try:
        async with aiofiles.open(file_path, "wb") as out_file:
            await out_file.write(content)
    except OSError as e:
        logger.error("Failed to save upload %s: %s", public_id, e)
        raise HTTPException(status_code=500, detail=f"Failed to save file: {str(e)}")

    return StoredMedia(url=f"/uploads/{public_id}", public_id=public_id, media_type=media_type)


def delete_media(public_ids: Iterable[str]) -> int:
    """Remove stored files; missing ones are skipped. Returns how many were deleted."""
    deleted = 0
    for public_id in public_ids:
        file_path = _path_for(public_id)
        try:
            os.remove(file_path)
            deleted += 1
        except FileNotFoundError:
            logger.warning("Media %s already gone", public_id)
        except OSError as e:
            logger.error("Failed to delete media %s: %s", public_id, e)
    return deleted
