from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from starlette.requests import Request
from starlette.routing import NoMatchFound

from api import models
from api.services.storage import (
    DeleteError,
    LocalFileStore,
    NotFoundError,
    ReadError,
    RenameError,
    UploadError,
    get_content_type,
    get_store,
    sanitize_file_name,
)

LOG = logging.getLogger(__name__)
router = APIRouter()


def _build_download_url(request: Request, relative_path: str) -> str | None:
    try:
        return str(request.url_for("download_stored_file", relative_path=relative_path))
    except NoMatchFound:
        return None


def _display_name(relative_path: str) -> str:
    name = relative_path.rsplit("/", 1)[-1]
    stamp, sep, rest = name.partition("-")
    return rest if sep and stamp.isdigit() and rest else name


@router.post("/", response_model=models.FileUploadResponse)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    filename: Optional[str] = None,
    store: LocalFileStore = Depends(get_store),
) -> models.FileUploadResponse:
    return await _handle_upload(request, file, filename, store)


@router.post("", response_model=models.FileUploadResponse)
async def upload_file_no_slash(
    request: Request,
    file: UploadFile = File(...),
    filename: Optional[str] = None,
    store: LocalFileStore = Depends(get_store),
) -> models.FileUploadResponse:
    return await _handle_upload(request, file, filename, store)


async def _handle_upload(
    request: Request,
    file: UploadFile,
    filename: Optional[str],
    store: LocalFileStore,
) -> models.FileUploadResponse:
    _log_upload_start(request, file)
    desired_name = (filename or file.filename or "").strip()
    if not desired_name:
        raise HTTPException(status_code=400, detail="A file name is required.")

    try:
        content = await file.read()
    finally:
        await file.close()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    try:
        relative_path = await store.upload_file(content, desired_name)
    except UploadError as exc:
        raise HTTPException(status_code=500, detail="Failed to write uploaded file.") from exc

    response = models.FileUploadResponse(
        path=relative_path,
        filename=desired_name,
        content_type=get_content_type(desired_name),
        size=len(content),
        download_url=_build_download_url(request, relative_path),
    )
    _log_upload_complete(request, response)
    return response


@router.post("/rename", response_model=models.FileRenameResponse)
async def rename_file(
    request: Request,
    payload: models.FileRenameRequest,
    store: LocalFileStore = Depends(get_store),
) -> models.FileRenameResponse:
    if not payload.new_name.strip():
        raise HTTPException(status_code=400, detail="new_name must not be empty.")
    try:
        await store.get_file_path(payload.path)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found.") from exc
    try:
        new_path = await store.rename_file(payload.path, payload.new_name)
    except RenameError as exc:
        raise HTTPException(status_code=500, detail="Failed to rename file.") from exc
    return models.FileRenameResponse(
        old_path=payload.path,
        path=new_path,
        download_url=_build_download_url(request, new_path),
    )


@router.get("/{relative_path:path}", name="download_stored_file")
async def download_stored_file(
    relative_path: str,
    store: LocalFileStore = Depends(get_store),
) -> Response:
    try:
        content = await store.read_file(relative_path)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found.") from exc
    except ReadError as exc:
        raise HTTPException(status_code=500, detail="Failed to read file.") from exc

    name = _display_name(relative_path)
    return Response(
        content=content,
        media_type=get_content_type(name),
        headers={"Content-Disposition": f'attachment; filename="{sanitize_file_name(name)}"'},
    )


@router.delete("/{relative_path:path}", status_code=204, response_class=Response)
async def delete_stored_file(
    relative_path: str,
    store: LocalFileStore = Depends(get_store),
) -> Response:
    try:
        await store.delete_file(relative_path)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found.") from exc
    except DeleteError as exc:
        raise HTTPException(status_code=500, detail="Failed to delete file.") from exc
    return Response(status_code=204)


def _log_upload_start(request: Request, file: UploadFile) -> None:
    client = request.client.host if request.client else "unknown"
    LOG.info(
        "Upload started from %s | filename=%s | content_length=%s",
        client,
        file.filename,
        request.headers.get("content-length"),
    )


def _log_upload_complete(request: Request, payload: models.FileUploadResponse) -> None:
    client = request.client.host if request.client else "unknown"
    LOG.info(
        "Upload completed from %s | stored=%s | size=%d | content_type=%s",
        client,
        payload.path,
        payload.size,
        payload.content_type,
    )
