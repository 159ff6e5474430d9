"""Backup, restore and delete of browser profile directories.

Directory work is never part of the database transaction, so a failure
between the copy and the record write can leave them out of step. Operations
on the same profile id are serialized within this process.
"""
import asyncio
import logging
import os
import secrets
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.services import profile_store
from app.services.errors import (
    ConflictError,
    InvalidInputError,
    IOFailureError,
    NotFoundError,
)
from app.services.file_utils import (
    compute_directory_size,
    copy_directory,
    delete_directory,
    directory_exists,
    ensure_directory,
    list_subdirectories,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupCreated:
    """A new profile record was created for the backup."""
    profile_id: str


@dataclass(frozen=True)
class BackupOverwritten:
    """An existing profile's backup directory was replaced in place."""
    profile_id: str


BackupOutcome = Union[BackupCreated, BackupOverwritten]


def generate_profile_id() -> str:
    """Random 32-character hex id."""
    return secrets.token_hex(16)


class ProfileLocks:
    """One asyncio.Lock per profile id, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, profile_id: str):
        lock = self._locks.setdefault(profile_id, asyncio.Lock())
        self._users[profile_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[profile_id] -= 1
            if self._users[profile_id] == 0:
                del self._users[profile_id]
                self._locks.pop(profile_id, None)

    def __len__(self) -> int:
        return len(self._locks)


class ProfileService:
    """Moves profile directories between the browser folder and the backup folder."""

    def __init__(
        self,
        browser_profiles_path: Optional[str] = None,
        backup_folder_path: Optional[str] = None,
    ):
        self._browser_profiles_path = (
            browser_profiles_path if browser_profiles_path is not None
            else settings.BROWSER_PROFILES_PATH
        )
        self.backup_folder_path = (
            backup_folder_path if backup_folder_path is not None
            else settings.BACKUP_FOLDER_PATH
        )
        self.locks = ProfileLocks()

    @property
    def browser_profiles_path(self) -> str:
        if not self._browser_profiles_path:
            raise InvalidInputError("BROWSER_PROFILES_PATH is not configured")
        return self._browser_profiles_path

    @staticmethod
    def _child(root: str, name: str, label: str) -> str:
        """Join a single path component under ``root``."""
        if (
            not name
            or name in (".", "..")
            or "/" in name
            or "\\" in name
            or "\x00" in name
        ):
            raise InvalidInputError(f"Invalid {label}: {name!r}")
        return os.path.join(root, name)

    def source_path(self, source_profile_id: str) -> str:
        return self._child(self.browser_profiles_path, source_profile_id, "source profile id")

    def backup_path(self, profile_id: str) -> str:
        return self._child(self.backup_folder_path, profile_id, "profile id")

    async def list_available_source_profiles(self) -> list[str]:
        """Profile folders in the browser directory that can be backed up."""
        return await list_subdirectories(self.browser_profiles_path)

    async def backup(
        self,
        db: AsyncSession,
        source_profile_id: str,
        target_profile_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> BackupOutcome:
        """Copy a live profile into the backup folder.

        With ``target_profile_id`` an existing backup under that id is replaced
        and its record kept. Without it a fresh random id is used and a new
        record is created.
        """
        source = self.source_path(source_profile_id)
        if not await directory_exists(source):
            raise NotFoundError(f"Profile {source_profile_id} does not exist in the browser profile folder")

        overwrite = bool(target_profile_id)
        profile_id = target_profile_id if overwrite else generate_profile_id()
        destination = self.backup_path(profile_id)

        async with self.locks.hold(profile_id):
            existing = await profile_store.get_profile(db, profile_id)
            if existing is not None and not overwrite:
                raise ConflictError(f"Profile {profile_id} is already backed up")

            try:
                await ensure_directory(self.backup_folder_path)
                if existing is not None:
                    await delete_directory(destination)
                await copy_directory(source, destination)
            except OSError as e:
                raise IOFailureError(f"Failed to back up {source_profile_id} to {profile_id}: {e}") from e

            size_bytes = await compute_directory_size(destination)

            if existing is not None:
                await profile_store.update_size(db, profile_id, size_bytes)
                logger.info("Overwrote backup %s from %s (%d bytes)", profile_id, source_profile_id, size_bytes)
                return BackupOverwritten(profile_id)

            await profile_store.create_profile(db, profile_id, description, size_bytes)
            logger.info("Backed up %s as %s (%d bytes)", source_profile_id, profile_id, size_bytes)
            return BackupCreated(profile_id)

    async def restore(self, db: AsyncSession, profile_id: str, target_folder_id: str) -> None:
        """Replace ``target_folder_id`` in the browser folder with a backup copy."""
        backup = self.backup_path(profile_id)
        target = self._child(self.browser_profiles_path, target_folder_id, "target folder id")

        async with self.locks.hold(profile_id):
            if not await directory_exists(backup):
                raise NotFoundError(f"Backup for profile {profile_id} does not exist")
            if await profile_store.get_profile(db, profile_id) is None:
                raise NotFoundError(f"Profile {profile_id} not found in database")

            try:
                await delete_directory(target)
                await copy_directory(backup, target)
            except OSError as e:
                raise IOFailureError(f"Failed to restore {profile_id} to {target_folder_id}: {e}") from e

        logger.info("Restored backup %s into %s", profile_id, target_folder_id)

    async def delete_backup(self, db: AsyncSession, profile_id: str) -> None:
        """Remove the backup directory and its record."""
        backup = self.backup_path(profile_id)

        async with self.locks.hold(profile_id):
            if await profile_store.get_profile(db, profile_id) is None:
                raise NotFoundError(f"Profile {profile_id} not found in database")

            try:
                await delete_directory(backup)
            except OSError as e:
                raise IOFailureError(f"Failed to delete backup {profile_id}: {e}") from e

            await profile_store.delete_profile(db, profile_id)

        logger.info("Deleted backup %s", profile_id)


profile_service = ProfileService()


def get_profile_service() -> ProfileService:
    """FastAPI dependency for the shared ProfileService."""
    return profile_service
