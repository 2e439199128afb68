"""Disk storage for uploaded videos and thumbnails. Files are served from /uploads/{kind}/{filename}."""
import logging
import uuid
from pathlib import Path
from fastapi import UploadFile, HTTPException, status
from vidshare.config import get_settings

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPES = {"video/mp4", "video/webm", "video/ogg", "video/quicktime"}
VIDEO_EXTENSIONS = (".mp4", ".webm", ".ogg", ".mov")
IMAGE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
CHUNK_SIZE = 1024 * 1024  # 1 MB

KIND_VIDEOS = "videos"
KIND_THUMBNAILS = "thumbnails"
URL_PREFIX = "/uploads"


def _default_dir(kind: str) -> Path:
    return Path(__file__).resolve().parent.parent.parent / "uploads" / kind


def upload_dir(kind: str) -> Path:
    settings = get_settings()
    configured = settings.video_upload_dir if kind == KIND_VIDEOS else settings.thumbnail_upload_dir
    if configured:
        return Path(configured)
    return _default_dir(kind)


def _content_type(file: UploadFile) -> str:
    return (file.content_type or "").split(";")[0].strip().lower()


def _check_type(file: UploadFile, kind: str) -> None:
    ct = _content_type(file)
    name = (file.filename or "").lower()
    if kind == KIND_VIDEOS:
        if ct not in VIDEO_CONTENT_TYPES and not name.endswith(VIDEO_EXTENSIONS):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="File must be a video (e.g. video/mp4). Allowed: mp4, webm, ogg, mov.",
            )
    elif ct not in IMAGE_CONTENT_TYPES and not name.endswith(IMAGE_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Thumbnail must be an image. Allowed: jpg, png, webp, gif.",
        )


def save_upload(file: UploadFile, kind: str) -> str:
    """Validate and stream file to disk. Returns its public URL path."""
    _check_type(file, kind)
    target_dir = upload_dir(kind)
    target_dir.mkdir(parents=True, exist_ok=True)
    default_ext = ".mp4" if kind == KIND_VIDEOS else ".jpg"
    ext = Path(file.filename or "").suffix.lower() or default_ext
    if len(ext) > 10:
        ext = default_ext
    path = target_dir / f"{uuid.uuid4()}{ext}"
    max_bytes = get_settings().max_upload_mb * 1024 * 1024
    written = 0
    with path.open("wb") as f:
        while chunk := file.file.read(CHUNK_SIZE):
            written += len(chunk)
            if written > max_bytes:
                break
            f.write(chunk)
    if written > max_bytes:
        path.unlink(missing_ok=True)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {get_settings().max_upload_mb} MB.",
        )
    return f"{URL_PREFIX}/{kind}/{path.name}"


def resolve_upload(kind: str, filename: str) -> Path | None:
    """Resolve a served file under its upload dir. None if unknown kind, missing, or path traversal."""
    if kind not in (KIND_VIDEOS, KIND_THUMBNAILS):
        return None
    base = upload_dir(kind).resolve()
    try:
        full = (base / filename).resolve()
        full.relative_to(base)
    except (ValueError, OSError):
        return None
    if not full.is_file():
        return None
    return full


def remove_upload(url: str | None) -> None:
    """Delete a local file given its URL path; remote URLs are ignored."""
    if not url or not url.startswith(URL_PREFIX + "/"):
        return
    parts = url[len(URL_PREFIX) + 1:].split("/", 1)
    if len(parts) != 2:
        return
    path = resolve_upload(parts[0], parts[1])
    if path is None:
        return
    try:
        path.unlink()
    except OSError as e:
        logger.warning("Failed to remove upload %s: %s", path, e)
