"""Backup/restore request/response schemas."""
from typing import Optional
from app.schemas.base import CamelModel


class BackupRequest(CamelModel):
    source_profile_id: str
    target_profile_id: Optional[str] = None
    description: Optional[str] = None


class BackupResponse(CamelModel):
    success: bool = True
    message: str
    profile_id: str
    overwritten: bool = False


class RestoreRequest(CamelModel):
    profile_id: str
    target_folder_id: str


class RestoreResponse(CamelModel):
    success: bool = True
    message: str
