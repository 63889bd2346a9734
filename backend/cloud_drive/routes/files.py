"""Files API routes."""
from typing import Literal, Optional
from fastapi import APIRouter, Depends, File as FastAPIFile, Form, Query, UploadFile
from fastapi.responses import RedirectResponse

from cloud_drive.dependencies import get_current_user, get_file_service
from cloud_drive.schemas.file import FolderCreate
from cloud_drive.schemas.user import UserResponse
from cloud_drive.services import responses
from cloud_drive.services.file_service import FileService, serialize_file

router = APIRouter(prefix="/api/files", tags=["files"])


@router.post("/upload", status_code=201)
async def upload_file(
    file: Optional[UploadFile] = FastAPIFile(None),
    folder_id: Optional[str] = Form(None, alias="folderId"),
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Upload a file, optionally into one of the caller's folders."""
    data = None
    if file is not None:
        # The spooled upload knows its size before the bytes are read into memory
        service.check_upload_size(file.size)
        data = await file.read()
    record = await service.upload_file(
        user.id,
        data,
        file.filename if file is not None else None,
        file.content_type if file is not None else None,
        folder_id,
    )
    return responses.created({"file": serialize_file(record)}, "File uploaded successfully")


@router.get("")
async def list_files(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: Literal["asc", "desc"] = Query("desc"),
    folder: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Paginated listing of a folder or view (root, starred, trash, ...)."""
    payload = await service.list_files(
        user.id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
        folder=folder,
        search=search,
    )
    return responses.success(payload)


@router.get("/search")
async def search_files(
    query: Optional[str] = Query(None),
    folder: Optional[str] = Query(None),
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Case-insensitive name search over non-trashed files."""
    records = await service.search_files(user.id, query, folder)
    return responses.success({"files": [serialize_file(r) for r in records], "count": len(records)})


@router.get("/preview/{file_id}")
async def preview_file(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    record = await service.get_file(user.id, file_id)
    return responses.success({"file": serialize_file(record)}, "File preview fetched")


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Redirect to the object's storage URL."""
    record = await service.get_file(user.id, file_id)
    return RedirectResponse(record.url, status_code=302)


@router.post("/folder", status_code=201)
async def create_folder(
    body: FolderCreate,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    folder = await service.create_folder(user.id, body.folder_name)
    return responses.created({"folder": serialize_file(folder)}, "Folder created successfully")


@router.post("/share/{file_id}")
async def share_file(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Generate a public share link."""
    share = await service.share_file(user.id, file_id)
    return responses.success(share, "File shared successfully")


@router.delete("/share/{file_id}")
async def unshare_file(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Revoke a share link."""
    record = await service.unshare_file(user.id, file_id)
    return responses.success({"file": serialize_file(record)}, "File unshared")


@router.get("/shared/{share_id}")
async def get_shared_file(
    share_id: str,
    service: FileService = Depends(get_file_service),
):
    """Public, unauthenticated access to a shared file's metadata."""
    record = await service.get_shared_file(share_id)
    return responses.success({"file": serialize_file(record)})


@router.patch("/star/{file_id}")
async def toggle_star(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    record = await service.toggle_star(user.id, file_id)
    message = "File starred" if record.is_starred else "File unstarred"
    return responses.success({"isStarred": record.is_starred}, message)


@router.patch("/trash/{file_id}")
async def move_to_trash(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    await service.move_to_trash(user.id, file_id)
    return responses.success(message="File moved to trash")


@router.patch("/restore/{file_id}")
async def restore_from_trash(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    record = await service.restore_from_trash(user.id, file_id)
    return responses.success({"file": serialize_file(record)}, "File restored from trash")


@router.delete("/permanent/{file_id}")
async def permanent_delete(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    _, outcome = await service.permanent_delete(user.id, file_id)
    return responses.success(outcome.to_dict(), "File permanently deleted")


@router.delete("/{file_id}")
async def delete_file(
    file_id: str,
    user: UserResponse = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Delete a file, or a folder and its contents."""
    record, outcome = await service.delete_file(user.id, file_id)
    message = "Folder deleted successfully" if record.is_folder else "File deleted successfully"
    return responses.success(outcome.to_dict(), message)
