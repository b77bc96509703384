# backend/ruralcare/api/routes/storage_routes.py

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from ruralcare.services import storage

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/{path:path}")
async def get_object(bucket: str, path: str, expires: int, signature: str):
    if not storage.verify_signature(bucket, path, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired signature")

    stored = storage.download(bucket, path)
    if stored is None:
        raise HTTPException(status_code=404, detail="Object not found")

    content, content_type = stored
    return Response(content=content, media_type=content_type)
