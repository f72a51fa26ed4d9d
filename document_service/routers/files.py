import uuid

from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, Request, Response

import schemas
from config import settings as global_app_settings, Settings
from coordinator import DocumentCoordinator
from errors import DocumentError, ErrorKind
from logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    tags=["files"],
)

ERROR_DETAILS = {
    ErrorKind.STORAGE_WRITE: "Error storing file data",
    ErrorKind.METADATA_WRITE: "Error saving file metadata",
    ErrorKind.METADATA_READ: "Server error retrieving file metadata",
}

def get_settings():
    return global_app_settings

def get_coordinator(request: Request) -> DocumentCoordinator:
    return request.app.state.coordinator

def to_http_exception(error: DocumentError) -> HTTPException:
    return HTTPException(status_code=500, detail=ERROR_DETAILS.get(error.kind, "Internal server error"))

def check_content_type(file: UploadFile, current_settings: Settings):
    if file.content_type not in current_settings.ALLOWED_CONTENT_TYPES:
        allowed = ", ".join(current_settings.ALLOWED_CONTENT_TYPES)
        logger.warning(f"Rejected '{file.filename}' with content type '{file.content_type}'")
        raise HTTPException(status_code=400, detail=f"Only {allowed} files are allowed")

@router.post("/upload", response_model=schemas.UploadResponse, status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    coordinator: DocumentCoordinator = Depends(get_coordinator),
    current_settings: Settings = Depends(get_settings)
):
    logger.info(f"Upload request for filename: '{file.filename}', content_type: '{file.content_type}'")
    check_content_type(file, current_settings)
    content = await file.read()
    await file.close()

    try:
        upload_id = await coordinator.upload(content, file.filename, len(content), file.content_type)
    except DocumentError as e:
        logger.error(f"Upload failed for '{file.filename}': {e.kind.value}")
        raise to_http_exception(e)
    return schemas.UploadResponse(upload_id=upload_id)

@router.get("/files/{upload_id}", response_model=schemas.FilePathResponse)
async def get_file_path(
    upload_id: uuid.UUID,
    coordinator: DocumentCoordinator = Depends(get_coordinator)
):
    try:
        file_path = await coordinator.resolve(upload_id)
    except DocumentError as e:
        raise to_http_exception(e)
    if file_path is None:
        logger.warning(f"File not found: ID {upload_id}")
        raise HTTPException(status_code=404, detail="File not found")
    return schemas.FilePathResponse(file_path=file_path)

@router.get("/files/{upload_id}/metadata", response_model=schemas.DocumentInDB)
async def get_file_metadata(
    upload_id: uuid.UUID,
    coordinator: DocumentCoordinator = Depends(get_coordinator)
):
    try:
        document = await coordinator.describe(upload_id)
    except DocumentError as e:
        raise to_http_exception(e)
    if document is None:
        raise HTTPException(status_code=404, detail="File metadata not found")
    return document

@router.put("/files/{upload_id}", response_model=schemas.MessageResponse)
async def replace_file(
    upload_id: uuid.UUID,
    file: UploadFile = File(...),
    coordinator: DocumentCoordinator = Depends(get_coordinator),
    current_settings: Settings = Depends(get_settings)
):
    logger.info(f"Replace request for {upload_id} with filename: '{file.filename}'")
    check_content_type(file, current_settings)
    content = await file.read()
    await file.close()

    try:
        replaced = await coordinator.replace(upload_id, content, file.filename, len(content), file.content_type)
    except DocumentError as e:
        logger.error(f"Replace failed for {upload_id}: {e.kind.value}")
        raise to_http_exception(e)
    if not replaced:
        raise HTTPException(status_code=404, detail="File not found")
    return schemas.MessageResponse(message="File successfully replaced")

@router.delete("/files/{upload_id}", status_code=204)
async def delete_file(
    upload_id: uuid.UUID,
    coordinator: DocumentCoordinator = Depends(get_coordinator)
):
    try:
        deleted = await coordinator.delete(upload_id)
    except DocumentError as e:
        logger.error(f"Delete failed for {upload_id}: {e.kind.value}")
        raise to_http_exception(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="File not found")
    return Response(status_code=204)
