from typing import Dict

from app.storage.blob_storage import BlobNotFound, BlobStorage, validate_key


class InMemoryBlobStorage(BlobStorage):
    """Blob storage kept in a dict. Used for tests and throwaway instances."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    async def save(self, key: str, content: bytes) -> None:
        self._blobs[validate_key(key)] = bytes(content)

    async def load(self, key: str) -> bytes:
        try:
            return self._blobs[validate_key(key)]
        except KeyError:
            raise BlobNotFound(key)

    async def exists(self, key: str) -> bool:
        return validate_key(key) in self._blobs

    async def delete(self, key: str) -> None:
        try:
            del self._blobs[validate_key(key)]
        except KeyError:
            raise BlobNotFound(key)

    def keys(self):
        return sorted(self._blobs)
