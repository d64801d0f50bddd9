from abc import ABC, abstractmethod


class BlobNotFound(KeyError):
    """Raised by `BlobStorage.load` when nothing is stored under the key."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key


def validate_key(key: str) -> str:
    """
    Check that a storage key is a relative, slash-separated path.

    Empty segments and `.`/`..` are rejected so a key can never escape the
    storage root.
    """
    if not key or key.startswith("/"):
        raise ValueError(f"Invalid storage key: {key!r}")
    for part in key.split("/"):
        if part in ("", ".", ".."):
            raise ValueError(f"Invalid storage key: {key!r}")
    return key


class BlobStorage(ABC):
    """
    Abstract base class for key/value blob storage.

    Keys are hierarchical path-like strings (e.g. `vendor/package.json`).
    Backends wrap their own I/O errors in `StorageFailure`.
    """

    @abstractmethod
    async def save(self, key: str, content: bytes) -> None:
        """Atomically store content under key, replacing any previous value."""
        pass

    @abstractmethod
    async def load(self, key: str) -> bytes:
        """Return the content stored under key or raise BlobNotFound."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Raises BlobNotFound if nothing is stored there."""
        pass
