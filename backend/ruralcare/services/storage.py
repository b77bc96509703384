# backend/ruralcare/services/storage.py

import hashlib
import hmac
import time
from typing import Dict, Optional, Tuple
from urllib.parse import quote, urlencode

from ruralcare.core.config import settings

MEDICAL_IMAGES_BUCKET = "medical-images"
MEDICAL_DOCUMENTS_BUCKET = "medical-documents"
BUCKETS = (MEDICAL_IMAGES_BUCKET, MEDICAL_DOCUMENTS_BUCKET)

# bucket -> path -> (content, content_type)
_objects: Dict[str, Dict[str, Tuple[bytes, str]]] = {name: {} for name in BUCKETS}


class StorageError(Exception):
    pass


def upload(bucket: str, path: str, content: bytes, content_type: str) -> str:
    if bucket not in _objects:
        raise StorageError(f"Unknown bucket: {bucket}")
    if path in _objects[bucket]:
        raise StorageError(f"Object already exists: {bucket}/{path}")
    _objects[bucket][path] = (content, content_type)
    return path


def download(bucket: str, path: str) -> Optional[Tuple[bytes, str]]:
    return _objects.get(bucket, {}).get(path)


def _signature(bucket: str, path: str, expires: int) -> str:
    message = f"{bucket}/{path}:{expires}".encode("utf-8")
    return hmac.new(settings.STORAGE_SIGNING_SECRET.encode("utf-8"), message, hashlib.sha256).hexdigest()


def create_signed_url(bucket: str, path: str, expires_in: Optional[int] = None) -> str:
    if download(bucket, path) is None:
        raise StorageError(f"Object not found: {bucket}/{path}")
    expires = int(time.time()) + (expires_in or settings.SIGNED_URL_TTL_SECONDS)
    query = urlencode({"expires": expires, "signature": _signature(bucket, path, expires)})
    return f"{settings.PUBLIC_BASE_URL}/storage/{bucket}/{quote(path)}?{query}"


def verify_signature(bucket: str, path: str, expires: int, signature: str) -> bool:
    if expires < int(time.time()):
        return False
    return hmac.compare_digest(_signature(bucket, path, expires), signature)


def clear() -> None:
    for bucket in _objects.values():
        bucket.clear()
