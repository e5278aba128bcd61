from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from maintenix.api.deps import get_blob_storage


router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{key}", response_class=FileResponse)
def download_file(key: str, storage=Depends(get_blob_storage)):
    resolve = getattr(storage, "resolve", None)
    path = resolve(key) if resolve else None
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path, filename=key)
