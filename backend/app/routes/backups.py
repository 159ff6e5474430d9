"""Backup and restore API routes."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.backup import BackupRequest, BackupResponse, RestoreRequest, RestoreResponse
from app.schemas.profile import AvailableProfile
from app.services.profile_service import BackupOverwritten, ProfileService, get_profile_service

router = APIRouter(prefix="/api", tags=["backups"])


@router.get("/available-profiles", response_model=list[AvailableProfile])
async def list_available_profiles(
    service: ProfileService = Depends(get_profile_service),
):
    """Live browser profile folders that can be backed up."""
    names = await service.list_available_source_profiles()
    return [AvailableProfile(name=name) for name in names]


@router.post("/backup", response_model=BackupResponse)
async def backup_profile(
    body: BackupRequest,
    db: AsyncSession = Depends(get_db),
    service: ProfileService = Depends(get_profile_service),
):
    """Back up a live profile, optionally overwriting an existing backup."""
    outcome = await service.backup(
        db,
        body.source_profile_id,
        target_profile_id=body.target_profile_id,
        description=body.description,
    )
    if isinstance(outcome, BackupOverwritten):
        return BackupResponse(
            message=f"Backup {outcome.profile_id} overwritten from {body.source_profile_id}",
            profile_id=outcome.profile_id,
            overwritten=True,
        )
    return BackupResponse(
        message=f"Profile {body.source_profile_id} backed up successfully",
        profile_id=outcome.profile_id,
    )


@router.post("/restore", response_model=RestoreResponse)
async def restore_profile(
    body: RestoreRequest,
    db: AsyncSession = Depends(get_db),
    service: ProfileService = Depends(get_profile_service),
):
    """Restore a backup into a browser profile folder, replacing what is there."""
    await service.restore(db, body.profile_id, body.target_folder_id)
    return RestoreResponse(
        message=f"Profile {body.profile_id} restored to {body.target_folder_id}",
    )
