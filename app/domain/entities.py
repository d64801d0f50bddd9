from typing import Any, Dict, Optional
import hashlib
import logging
import uuid

from app.data.all_packages import AllPackagesIndex
from app.data.packages import PackageMetadataStore
from app.domain.archive import ArchiveName, JsonDescriptor, PackageSource, ZipArchive
from app.domain.composer_utils import artifact_key, artifact_url
from app.domain.errors import ArtifactExists, PackageNotFound, RepositoryError
from app.domain.models import AddResult
from app.storage.blob_storage import BlobNotFound, BlobStorage
from app.storage.key_locks import KeyLocks

logger = logging.getLogger(__name__)


class Repository:
    """
    Composer repository: adds uploaded packages and serves their metadata.

    An add is: derive identity -> insert the version into the package
    document -> merge that document into packages.json. The two documents are
    not updated atomically; between the two steps packages.json may lag
    behind the package document.
    """

    def __init__(self, storage: BlobStorage, base_url: Optional[str] = None):
        self.storage = storage
        self.base_url = base_url
        self.locks = KeyLocks()
        self.packages = PackageMetadataStore(storage, self.locks)
        self.all_packages = AllPackagesIndex(storage, self.locks)

    def _dist_base(self, base_url: Optional[str]) -> str:
        return (self.base_url or base_url or "").rstrip("/")

    async def add_from_upload(self, content: bytes, base_url: Optional[str] = None) -> AddResult:
        """
        Add a package from a raw `composer.json` descriptor.

        The upload is stored under a fresh random key before it is parsed. If
        the add fails the blob stays behind unreferenced. The entry's `dist`
        always points at that blob; a `dist` carried by the descriptor is
        replaced.
        """
        filename = f"{uuid.uuid4()}.json"
        key = artifact_key(filename)
        await self.storage.save(key, content)

        try:
            source = JsonDescriptor(content)
            entry = source.descriptor()
            entry["dist"] = {
                "url": artifact_url(self._dist_base(base_url), filename),
                "type": "file",
                "shasum": hashlib.sha1(content).hexdigest(),
            }
            return await self._add(source, entry, key)
        except RepositoryError as e:
            logger.warning(f"Rejected package upload {key}: {e.message}")
            raise

    async def add_from_archive(
        self,
        archive_name: ArchiveName,
        content: bytes,
        base_url: Optional[str] = None,
    ) -> AddResult:
        """
        Add a package from a zip archive uploaded as `archive_name`.

        The archive is saved at `artifacts/<filename>` only once the version is
        known to be new, and before the metadata pointing at it is written.
        Adds of the same filename are serialised on the artifact key, which is
        always taken before the package key.

        A blob already at that key that no package entry references is left
        over from a failed add and gets overwritten; one that is referenced
        raises ArtifactExists.
        """
        try:
            source = ZipArchive(archive_name, content)
            stored = source.content()
            key = artifact_key(archive_name.full)
            entry = source.descriptor()
            entry["dist"] = {
                "url": artifact_url(self._dist_base(base_url), archive_name.full),
                "type": "zip",
                "shasum": hashlib.sha1(stored).hexdigest(),
            }

            async def save_archive() -> None:
                if await self._artifact_in_use(archive_name, key):
                    raise ArtifactExists(key)
                await self.storage.save(key, stored)

            async with self.locks.hold(key):
                return await self._add(source, entry, key, before_write=save_archive)
        except RepositoryError as e:
            logger.warning(f"Rejected archive {archive_name.full}: {e.message}")
            raise

    async def _artifact_in_use(self, archive_name: ArchiveName, key: str) -> bool:
        """
        Whether the blob stored at `key` is the `dist` of the package version
        it identifies as.
        """
        try:
            existing = await self.storage.load(key)
        except BlobNotFound:
            return False

        try:
            owner, version = ZipArchive(archive_name, existing).identity()
        except RepositoryError:
            return False
        try:
            versions = await self.packages.versions(owner)
        except PackageNotFound:
            return False

        dist = versions.get(version, {}).get("dist")
        in_use = isinstance(dist, dict) and str(dist.get("url", "")).endswith(f"/{key}")
        if not in_use:
            logger.info(f"Replacing unreferenced artifact {key}")
        return in_use

    async def _add(self, source: PackageSource, entry: Dict[str, Any], key: str, before_write=None) -> AddResult:
        name, version = source.identity()
        entry["name"] = name
        entry["version"] = version

        document = await self.packages.add_version(name, version, entry, before_write=before_write)
        await self.all_packages.merge(name, document)

        logger.info(f"Added {name} {version} ({key})")
        return AddResult(name=name, version=version, artifact_key=key)

    async def get_package(self, name: str) -> Dict[str, Any]:
        return await self.packages.read(name)

    async def get_package_raw(self, name: str) -> bytes:
        return await self.packages.read_raw(name)

    async def get_all_packages(self) -> Optional[Dict[str, Any]]:
        return await self.all_packages.read()

    async def get_all_packages_raw(self) -> Optional[bytes]:
        return await self.all_packages.read_raw()

    async def get_artifact(self, filename: str) -> Optional[bytes]:
        try:
            return await self.storage.load(artifact_key(filename))
        except (BlobNotFound, ValueError):
            return None
