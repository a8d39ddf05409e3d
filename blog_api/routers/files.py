import logging
from pathlib import Path

from fastapi import APIRouter, Depends, UploadFile
from fastapi.concurrency import run_in_threadpool

from blog_api.config import settings
from blog_api.dependencies import get_current_user, get_storage
from blog_api.exceptions import ValidationError
from blog_api.models import User
from blog_api.schemas import UploadResponse
from blog_api.storage import LocalFileStorage, temp_url_prefix

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/files", tags=["files"])

@router.post("/images", status_code=201, response_model=UploadResponse)
async def upload_image(
    file: UploadFile,
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_storage),
):
    """
    Store an image in the temp folder.  The returned URL is meant to be
    embedded in post content; it is rewritten when the post is saved.
    """
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in settings.ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError(f"Unsupported image type: {suffix or 'none'}")

    data = await file.read(settings.MAX_UPLOAD_SIZE + 1)
    if len(data) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError("Image exceeds the maximum upload size")

    filename = await run_in_threadpool(storage.save_temp_image, data, suffix)
    logger.info("User %d uploaded %s", current_user.id, filename)
    return {"filename": filename, "url": f"{temp_url_prefix()}{filename}"}
