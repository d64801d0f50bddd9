from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from app.data.packages import load_document
from app.domain.composer_utils import ALL_PACKAGES_KEY, dump_json, empty_document
from app.storage.blob_storage import BlobNotFound, BlobStorage
from app.storage.key_locks import KeyLocks

logger = logging.getLogger(__name__)


class AllPackagesIndex:
    """
    The aggregated `packages.json` document listing every package and all of
    its versions.

    Each merge copies the full, authoritative per-package document into the
    index, so a package that was left stale (e.g. by a crash between the
    package update and the merge) is repaired by its next upload.
    """

    def __init__(self, storage: BlobStorage, locks: KeyLocks):
        self.storage = storage
        self.locks = locks

    async def read(self) -> Optional[Dict[str, Any]]:
        return await load_document(self.storage, ALL_PACKAGES_KEY)

    async def read_raw(self) -> Optional[bytes]:
        try:
            return await self.storage.load(ALL_PACKAGES_KEY)
        except BlobNotFound:
            return None

    async def merge(self, name: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Copy the versions of `name` from its package document into the index.

        Versions already indexed but missing from `document` are kept: versions
        are never removed, so a missing one only means `document` was loaded
        before a concurrent add that merged first.
        """
        async with self.locks.hold(ALL_PACKAGES_KEY):
            index = await load_document(self.storage, ALL_PACKAGES_KEY) or empty_document()
            versions = dict(index["packages"].get(name) or {})
            versions.update(document["packages"].get(name, {}))
            index["packages"][name] = versions
            await self.storage.save(ALL_PACKAGES_KEY, dump_json(index))

        logger.debug(f"Merged {name} into {ALL_PACKAGES_KEY} ({len(index['packages'])} packages)")
        return index
