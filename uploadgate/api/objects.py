"""Download route for MemoryObjectStore signed URLs.

Only meaningful with ``storage.backend: memory``; with MinIO the signed URL
points at the object store itself and this route always answers 404.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request, Response

from uploadgate.storage.memory_store import MemoryObjectStore

router = APIRouter(prefix="/objects", tags=["objects"], include_in_schema=False)


@router.get("/{bucket}/{key:path}")
async def download_object(
    request: Request,
    bucket: str,
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
) -> Response:
    store = getattr(request.app.state, "object_store", None)
    if not isinstance(store, MemoryObjectStore) or bucket != store.bucket:
        raise HTTPException(status_code=404, detail="Not found")
    if not store.verify(key, expires, signature):
        raise HTTPException(status_code=404, detail="Not found")
    obj = store.get(key)
    if obj is None:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=obj.data, media_type=obj.content_type)
