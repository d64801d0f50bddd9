"""
Package identity extraction.

Two kinds of uploads carry a package:

* a zip archive whose filename follows `<name>-<version>.zip`; the version
  comes from the filename, the name from the `composer.json` packed inside
  (or from the filename when the archive has none);
* a raw `composer.json`-style descriptor with `name` and `version` fields.

Both are exposed through the `PackageSource` interface so the repository can
store and index them the same way.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from app.domain.composer_utils import normalize_package_name
from app.domain.errors import InvalidArchiveName, MissingPackageIdentity

logger = logging.getLogger(__name__)

# See https://getcomposer.org/doc/05-repositories.md#artifact
ARCHIVE_PATH_RE = re.compile(
    r"^/?(?P<full>(?P<name>[a-z0-9_.-]*)-(?P<version>v?\d+\.\d+\.\d+[-\w]*)\.zip)$",
    re.ASCII,
)
VERSION_RE = re.compile(r"v?\d+\.\d+\.\d+[-\w]*", re.ASCII)

COMPOSER_JSON = "composer.json"

# Raised by zipfile for damaged members, bad CRCs and unsupported
# compression or encryption.
UNREADABLE_ZIP_ERRORS = (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError)


@dataclass(frozen=True)
class ArchiveName:
    """Identity parsed from an archive filename such as `vendor-name-v1.2.3.zip`."""

    full: str
    name: str
    version: str

    @classmethod
    def parse(cls, filename: str) -> "ArchiveName":
        match = ARCHIVE_PATH_RE.fullmatch(filename)
        if match is None:
            raise InvalidArchiveName(filename)
        return cls(
            full=match.group("full"),
            name=match.group("name"),
            version=match.group("version"),
        )


class PackageSource(ABC):
    """An uploaded artifact from which a package identity can be derived."""

    @abstractmethod
    def identity(self) -> Tuple[str, str]:
        """Return `(name, version)` or raise MissingPackageIdentity."""

    @abstractmethod
    def descriptor(self) -> Dict[str, Any]:
        """Package metadata carried by the artifact (may be empty)."""


def _parse_descriptor(content: bytes, origin: str) -> Dict[str, Any]:
    try:
        document = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MissingPackageIdentity(f"{origin} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise MissingPackageIdentity(f"{origin} must be a JSON object")
    return document


class JsonDescriptor(PackageSource):
    """A raw `composer.json` document uploaded as-is."""

    def __init__(self, content: bytes):
        self._document = _parse_descriptor(content, "Package descriptor")

    def identity(self) -> Tuple[str, str]:
        raw_name = self._document.get("name")
        if not raw_name:
            raise MissingPackageIdentity("Package descriptor has no 'name'")
        name = normalize_package_name(raw_name)
        if name is None:
            raise MissingPackageIdentity(f"Invalid package name: {raw_name!r}")

        version = self._document.get("version")
        if not version:
            raise MissingPackageIdentity(f"Package descriptor for {name} has no 'version'")
        if not isinstance(version, str) or not VERSION_RE.fullmatch(version):
            raise MissingPackageIdentity(f"Invalid version for {name}: {version!r}")
        return name, version

    def descriptor(self) -> Dict[str, Any]:
        return dict(self._document)


class ZipArchive(PackageSource):
    """
    A zip artifact uploaded under a `<name>-<version>.zip` filename.

    Archive validation is limited to locating `composer.json`; bytes that are
    not a readable zip are accepted and stored unchanged.
    """

    def __init__(self, name: ArchiveName, content: bytes):
        self.name = name
        self._content = content
        self._entry_name: Optional[str] = None
        self._document: Dict[str, Any] = {}
        self._load_descriptor()

    def _load_descriptor(self) -> None:
        try:
            with zipfile.ZipFile(io.BytesIO(self._content)) as zf:
                entry_name = _find_composer_json(zf.namelist())
                if entry_name is None:
                    return
                raw = zf.read(entry_name)
        except UNREADABLE_ZIP_ERRORS:
            logger.debug(f"{self.name.full} is not a readable zip archive, using filename only")
            return

        self._entry_name = entry_name
        self._document = _parse_descriptor(raw, f"{self.name.full}:{entry_name}")

    def identity(self) -> Tuple[str, str]:
        name = self.name.name
        raw_name = self._document.get("name")
        if raw_name:
            name = normalize_package_name(raw_name)
            if name is None:
                raise MissingPackageIdentity(
                    f"Invalid package name in {self.name.full}: {raw_name!r}"
                )
        if not name:
            raise MissingPackageIdentity(f"No package name in {self.name.full}")
        return name, self.name.version

    def descriptor(self) -> Dict[str, Any]:
        return dict(self._document)

    def content(self) -> bytes:
        """
        Archive bytes to store.

        When the archive carries a `composer.json`, it is rewritten with the
        version taken from the filename so the stored artifact agrees with the
        repository metadata. An archive with members that cannot be read back
        is stored unchanged.
        """
        if self._entry_name is None or self._document.get("version") == self.name.version:
            return self._content

        updated = dict(self._document)
        updated["version"] = self.name.version

        out = io.BytesIO()
        try:
            with zipfile.ZipFile(io.BytesIO(self._content)) as src, \
                    zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as dst:
                for info in src.infolist():
                    if info.filename == self._entry_name:
                        dst.writestr(info, json.dumps(updated, indent=4, ensure_ascii=False))
                    else:
                        dst.writestr(info, src.read(info.filename))
        except UNREADABLE_ZIP_ERRORS as e:
            logger.warning(f"Cannot repack {self.name.full} ({e}), storing it unchanged")
            return self._content
        return out.getvalue()


def _find_composer_json(names) -> Optional[str]:
    """`composer.json` at the archive root wins over one nested a single directory deep."""
    if COMPOSER_JSON in names:
        return COMPOSER_JSON
    nested = sorted(
        n for n in names
        if n.count("/") == 1 and n.endswith("/" + COMPOSER_JSON)
    )
    return nested[0] if nested else None
