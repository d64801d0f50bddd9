import os
import uuid
from pathlib import Path
import logging

import aiofiles
import aiofiles.os

from app.domain.errors import StorageFailure
from app.storage.blob_storage import BlobNotFound, BlobStorage, validate_key

logger = logging.getLogger(__name__)


class FileBlobStorage(BlobStorage):
    """
    Blob storage backed by a directory tree.

    Every key maps to a file below the root directory. Writes go to a
    temporary sibling file first and are moved into place with `os.replace`,
    so a concurrent reader sees either the old or the new content.
    """

    def __init__(self, root: Path):
        self._root = root

        # Ensure storage directory exists
        if not self._root.exists():
            self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        return self._root.joinpath(*validate_key(key).split("/"))

    async def save(self, key: str, content: bytes) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to save {key}", exc_info=True)
            if tmp_path.exists():
                tmp_path.unlink()
            raise StorageFailure(key, str(e)) from e
        logger.debug(f"Saved {len(content)} bytes to {key}")

    async def load(self, key: str) -> bytes:
        path = self._path(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            raise BlobNotFound(key)
        except IsADirectoryError:
            raise BlobNotFound(key)
        except OSError as e:
            logger.error(f"Failed to load {key}", exc_info=True)
            raise StorageFailure(key, str(e)) from e

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.isfile(self._path(key))

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            raise BlobNotFound(key)
        except OSError as e:
            logger.error(f"Failed to delete {key}", exc_info=True)
            raise StorageFailure(key, str(e)) from e

        # Prune directories left empty, but never the root itself.
        parent = path.parent
        while parent != self._root and not os.listdir(parent):
            parent.rmdir()
            parent = parent.parent
