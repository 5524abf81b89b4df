from typing import Optional

from pydantic import BaseModel, Field


class FileUploadResponse(BaseModel):
    path: str = Field(..., description="Relative path to persist, e.g. uploads/<timestamp>-<name>")
    filename: str
    content_type: str
    size: int
    download_url: Optional[str] = None


class FileRenameRequest(BaseModel):
    path: str = Field(..., description="Current relative path of the stored file")
    new_name: str = Field(..., description="New display file name (sanitized on save)")


class FileRenameResponse(BaseModel):
    old_path: str
    path: str
    download_url: Optional[str] = None


class StorageStatus(BaseModel):
    path: str
    exists: bool
    writable: bool


class HealthResponse(BaseModel):
    status: str
    storage: StorageStatus
