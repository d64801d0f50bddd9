"""
Exceptions raised by the repository metadata engine.

Every error carries the HTTP status code the API layer answers with, so the
router only needs a single exception handler to translate them.
"""

from __future__ import annotations

from typing import Optional


class RepositoryError(Exception):
    """Base class for all repository errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArchiveName(RepositoryError):
    """The archive filename does not follow `<name>-<version>.zip`."""

    status_code = 400

    def __init__(self, filename: str):
        super().__init__(f"Invalid archive name: {filename!r}")
        self.filename = filename


class MissingPackageIdentity(RepositoryError):
    """The uploaded content carries no usable package name or version."""

    status_code = 400


class VersionExists(RepositoryError):
    status_code = 409

    def __init__(self, name: str, version: str):
        super().__init__(f"Version {version} of package {name} already exists")
        self.name = name
        self.version = version


class PackageNotFound(RepositoryError):
    status_code = 404

    def __init__(self, name: str):
        super().__init__(f"Package {name} not found")
        self.name = name


class StorageFailure(RepositoryError):
    """
    The blob storage backend failed to read or write a key.

    Not retried here; the original error is kept as `__cause__`.
    """

    status_code = 500

    def __init__(self, key: str, reason: Optional[str] = None):
        message = f"Storage failure for key {key!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.key = key


class ArtifactExists(RepositoryError):
    """Another package already stored an artifact under the same key."""

    status_code = 409

    def __init__(self, key: str):
        super().__init__(f"Artifact {key} already exists")
        self.key = key
