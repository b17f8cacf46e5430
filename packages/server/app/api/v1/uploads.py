"""Standalone upload endpoint: store a file, return its URL."""

from fastapi import APIRouter, Depends, File, UploadFile

from app.core.auth import get_current_user
from app.core.storage import FileStorage, get_storage
from app.models.user import User
from taskhub_shared.schemas.common import APIResponse
from taskhub_shared.schemas.tasks import UploadRead

router = APIRouter()


@router.post("/file", response_model=APIResponse[UploadRead], status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    storage: FileStorage = Depends(get_storage),
):
    stored = await storage.save(file)
    return APIResponse[UploadRead](data=UploadRead(url=stored.url, name=stored.name))
