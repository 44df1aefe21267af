from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse

from decisionlog.core.security import decode_artifact_token
from decisionlog.services.exports_storage import LocalObjectStorage, StorageError

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/{key:path}")
def get_stored_object(
    bucket: str,
    key: str,
    token: str = Query(..., min_length=1),  # noqa: B008
):
    # Serves artifacts written by the local storage backend; links are minted by
    # LocalObjectStorage.create_signed_url.
    claims = decode_artifact_token(token)
    if not claims or claims.get("bucket") != bucket or claims.get("key") != key:
        raise HTTPException(status_code=403, detail="Invalid or expired link")

    storage = LocalObjectStorage()
    try:
        path = storage.object_path(bucket, key)
    except StorageError:
        raise HTTPException(status_code=404, detail="Object not found")
    if not path.exists() or not path.is_file():
        raise HTTPException(status_code=404, detail="Object not found")

    return FileResponse(
        path=str(path),
        media_type=claims.get("ct") or "application/octet-stream",
        filename=Path(key).name,
    )
