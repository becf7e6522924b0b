# backend/routes/uploads.py
import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from utils.storage import PhotoStorage, get_photo_storage, content_type_for

router = APIRouter(prefix="/uploads", tags=["Uploads"])
logger = logging.getLogger(__name__)


@router.get("/reviews/{file}")
def get_review_photo(file: str, storage: PhotoStorage = Depends(get_photo_storage)):
    path = storage.path_for(file)
    if path is None or not path.is_file():
        logger.warning("Review photo not found: %s (dir=%s)", file, storage.reviews_dir)
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(
        path,
        media_type=content_type_for(file),
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
