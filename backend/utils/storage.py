# backend/utils/storage.py
"""Filesystem storage for review photos.

Files live under ``<upload root>/reviews``. The database only keeps the
public relative path (``/uploads/reviews/<file>``), so the upload root can
move between deployments without touching stored rows.
"""
import logging
import time
from pathlib import Path
from typing import List, Optional

from config import settings

logger = logging.getLogger(__name__)

# Mounted volume used by the production container
VOLUME_UPLOAD_DIR = Path("/app/uploads")

PUBLIC_PREFIX = "/uploads/reviews/"

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}
ALLOWED_EXTENSIONS = set(MIME_TYPES)


def default_upload_dir() -> Path:
    if settings.UPLOAD_DIR:
        return Path(settings.UPLOAD_DIR)
    if VOLUME_UPLOAD_DIR.exists():
        return VOLUME_UPLOAD_DIR
    return Path.cwd() / "uploads"


def file_extension(filename: Optional[str]) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def content_type_for(filename: str) -> str:
    return MIME_TYPES.get(file_extension(filename), "application/octet-stream")


class PhotoStorage:
    def __init__(self, root: Path):
        self.root = Path(root)
        self.reviews_dir = self.root / "reviews"

    def ensure_dirs(self):
        self.reviews_dir.mkdir(parents=True, exist_ok=True)

    def save_review_photo(self, *, location_id: int, user_id: int, index: int, filename: str, data: bytes) -> str:
        """Write one photo and return the relative path to store in the database."""
        self.ensure_dirs()
        timestamp = int(time.time() * 1000)
        while True:
            name = f"{location_id}_{user_id}_{timestamp}_{index}.{file_extension(filename)}"
            try:
                # Exclusive create, an existing photo is never overwritten
                with open(self.reviews_dir / name, "xb") as buffer:
                    buffer.write(data)
                return PUBLIC_PREFIX + name
            except FileExistsError:
                timestamp += 1

    def path_for(self, relative_path: str) -> Optional[Path]:
        """Map a stored relative path or bare file name to a file inside reviews_dir."""
        name = relative_path[len(PUBLIC_PREFIX):] if relative_path.startswith(PUBLIC_PREFIX) else relative_path
        # Only plain file names are served; anything else could escape the directory
        if not name or name != Path(name).name or name in (".", ".."):
            return None
        return self.reviews_dir / name

    def delete(self, relative_path: str) -> bool:
        """Best-effort removal; failures are logged and reported as False."""
        path = self.path_for(relative_path)
        if path is None:
            logger.warning("Refusing to delete photo with unexpected path: %s", relative_path)
            return False
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            logger.warning("Photo file already missing: %s", path)
        except OSError as e:
            logger.warning("Failed to remove photo file %s: %s", path, e)
        return False

    def delete_many(self, relative_paths: List[str]) -> int:
        return sum(1 for p in relative_paths if self.delete(p))


_storage: Optional[PhotoStorage] = None

def get_photo_storage() -> PhotoStorage:
    global _storage
    if _storage is None:
        _storage = PhotoStorage(default_upload_dir())
    return _storage
