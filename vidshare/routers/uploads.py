from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse
from vidshare.services.video_upload import resolve_upload

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.get("/{kind}/{filename}")
def serve_upload(kind: str, filename: str):
    """Serve a stored video or thumbnail. FileResponse handles Range requests for seeking."""
    path = resolve_upload(kind, filename)
    if not path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path, headers={"Content-Disposition": "inline"})
