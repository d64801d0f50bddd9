from typing import Optional
import logging

from app.data.repository import get_repository_config, get_storage_dir
from app.domain.entities import Repository
from app.storage.blob_storage import BlobStorage
from app.storage.file_storage import FileBlobStorage
from app.storage.memory_storage import InMemoryBlobStorage

logger = logging.getLogger(__name__)

_storage: Optional[BlobStorage] = None
_repository: Optional[Repository] = None


def get_storage() -> BlobStorage:
    global _storage
    if _storage is None:
        config = get_repository_config()
        if config.storage_backend == "memory":
            _storage = InMemoryBlobStorage()
            logger.warning("Using in-memory storage, packages are lost on restart")
        else:
            storage_dir = get_storage_dir(config)
            _storage = FileBlobStorage(storage_dir)
            logger.info(f"Using file storage at {storage_dir}")
    return _storage


def get_repository() -> Repository:
    global _repository
    if _repository is None:
        _repository = Repository(get_storage(), base_url=get_repository_config().base_url)
    return _repository


def reset() -> None:
    """Forget the cached storage and repository (they are rebuilt on next use)."""
    global _storage, _repository
    _storage = None
    _repository = None
