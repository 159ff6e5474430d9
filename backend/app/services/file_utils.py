"""Async directory helpers for backup folders.

Copy and delete propagate OSError to the caller. Existence, listing and size
helpers never raise: they log the failure and return an empty/partial result.
"""
import logging
import os
import stat

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


async def ensure_directory(dir_path: str) -> None:
    await aiofiles.os.makedirs(dir_path, exist_ok=True)


async def directory_exists(dir_path: str) -> bool:
    """True when ``dir_path`` exists and is a directory."""
    try:
        st = await aiofiles.os.stat(dir_path)
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Could not stat %s: %s", dir_path, e)
        return False
    return stat.S_ISDIR(st.st_mode)


async def list_subdirectories(dir_path: str) -> list[str]:
    """Names of the immediate subdirectories of ``dir_path``, sorted."""
    try:
        names = await aiofiles.os.listdir(dir_path)
    except OSError as e:
        logger.warning("Could not list %s: %s", dir_path, e)
        return []

    folders = []
    for name in sorted(names):
        if await aiofiles.os.path.isdir(os.path.join(dir_path, name)):
            folders.append(name)
    return folders


async def copy_file(source: str, destination: str) -> None:
    async with aiofiles.open(source, "rb") as src, aiofiles.open(destination, "wb") as dst:
        while True:
            chunk = await src.read(CHUNK_SIZE)
            if not chunk:
                break
            await dst.write(chunk)


async def copy_directory(source: str, destination: str) -> None:
    """Recursively copy ``source`` into ``destination``, creating it as needed.

    Raises FileNotFoundError if ``source`` is missing (before anything is
    created). Not atomic: an interrupted copy leaves a partial tree behind.
    Symlinks are recreated as symlinks, not followed. Special files such as
    FIFOs and sockets are skipped.
    """
    names = await aiofiles.os.listdir(source)
    await aiofiles.os.makedirs(destination, exist_ok=True)

    for name in names:
        source_path = os.path.join(source, name)
        dest_path = os.path.join(destination, name)

        if await aiofiles.os.path.islink(source_path):
            target = await aiofiles.os.readlink(source_path)
            await aiofiles.os.symlink(target, dest_path)
            continue

        mode = (await aiofiles.os.stat(source_path)).st_mode
        if stat.S_ISDIR(mode):
            await copy_directory(source_path, dest_path)
        elif stat.S_ISREG(mode):
            await copy_file(source_path, dest_path)
        else:
            # FIFOs, sockets and device nodes
            logger.debug("Skipping special file %s", source_path)


async def _remove_tree(dir_path: str) -> None:
    for name in await aiofiles.os.listdir(dir_path):
        full_path = os.path.join(dir_path, name)
        if await aiofiles.os.path.islink(full_path) or not await aiofiles.os.path.isdir(full_path):
            await aiofiles.os.remove(full_path)
        else:
            await _remove_tree(full_path)
    await aiofiles.os.rmdir(dir_path)


async def delete_directory(dir_path: str) -> None:
    """Recursively remove ``dir_path``. A missing directory is not an error.

    If ``dir_path`` is itself a symlink only the link is removed.
    """
    if await aiofiles.os.path.islink(dir_path):
        await aiofiles.os.remove(dir_path)
        return
    if not await aiofiles.os.path.exists(dir_path):
        return
    try:
        await _remove_tree(dir_path)
    except OSError as e:
        logger.error("Failed to delete directory %s: %s", dir_path, e)
        raise


async def compute_directory_size(dir_path: str) -> int:
    """Sum of file sizes below ``dir_path``.

    Unreadable subtrees are logged and skipped, so the result may be partial.
    """
    total_size = 0
    try:
        names = await aiofiles.os.listdir(dir_path)
    except OSError as e:
        logger.error("Failed to calculate size for %s: %s", dir_path, e)
        return 0

    for name in names:
        full_path = os.path.join(dir_path, name)
        try:
            if await aiofiles.os.path.islink(full_path):
                continue
            if await aiofiles.os.path.isdir(full_path):
                total_size += await compute_directory_size(full_path)
            else:
                total_size += (await aiofiles.os.stat(full_path)).st_size
        except OSError as e:
            logger.error("Failed to calculate size for %s: %s", full_path, e)

    return total_size
