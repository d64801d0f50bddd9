from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from app.domain.composer_utils import dump_json, empty_document, load_json, package_key
from app.domain.errors import PackageNotFound, StorageFailure, VersionExists
from app.storage.blob_storage import BlobNotFound, BlobStorage
from app.storage.key_locks import KeyLocks

logger = logging.getLogger(__name__)


async def load_document(storage: BlobStorage, key: str) -> Optional[Dict[str, Any]]:
    """
    Load a `{"packages": {...}}` document, or None when the key is absent.

    A stored blob that is not such a document is reported as a storage
    failure rather than silently replaced.
    """
    try:
        content = await storage.load(key)
    except BlobNotFound:
        return None
    try:
        document = load_json(content)
    except ValueError as e:
        raise StorageFailure(key, f"corrupt JSON document: {e}") from e
    if not isinstance(document, dict) or not isinstance(document.get("packages"), dict):
        raise StorageFailure(key, "not a packages document")
    return document


class PackageMetadataStore:
    """
    Per-package metadata documents.

    Each package `vendor/name` owns one blob at `p/vendor/name.json` holding
    `{"packages": {"vendor/name": {<version>: <entry>, ...}}}`.
    """

    def __init__(self, storage: BlobStorage, locks: KeyLocks):
        self.storage = storage
        self.locks = locks

    async def read(self, name: str) -> Dict[str, Any]:
        document = await load_document(self.storage, package_key(name))
        if document is None:
            raise PackageNotFound(name)
        return document

    async def read_raw(self, name: str) -> bytes:
        """Stored bytes of the package document, for serving verbatim."""
        try:
            return await self.storage.load(package_key(name))
        except BlobNotFound:
            raise PackageNotFound(name)

    async def versions(self, name: str) -> Dict[str, Any]:
        document = await self.read(name)
        return document["packages"].get(name, {})

    async def add_version(
        self,
        name: str,
        version: str,
        entry: Dict[str, Any],
        before_write: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Dict[str, Any]:
        """
        Insert `entry` as `version` of package `name` and persist the document.

        The whole read-modify-write runs under the package's lock. An existing
        version raises VersionExists and leaves storage untouched.
        `before_write` runs after the uniqueness check and before the document
        is saved, so anything it stores exists before the entry is visible.

        Returns the updated package document.
        """
        key = package_key(name)
        async with self.locks.hold(key):
            document = await load_document(self.storage, key) or empty_document()
            versions = document["packages"].setdefault(name, {})
            if version in versions:
                raise VersionExists(name, version)

            if before_write is not None:
                await before_write()

            versions[version] = entry
            await self.storage.save(key, dump_json(document))

        logger.debug(f"Stored version {version} of {name} ({len(versions)} versions)")
        return document
