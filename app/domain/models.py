"""
Pydantic models for the Composer repository.

This module defines:
- Repository configuration
- Authentication store (users, credentials, permissions)
- Results returned by the repository when a package is added
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Repository Configuration Models
# ---------------------------------------------------------------------------


StorageBackend = Literal["file", "memory"]


class RepositoryConfig(BaseModel):
    """
    Top-level configuration for the Composer repository.

    Persisted at: <DATA_DIR>/repository.json
    """

    repository_name: str = Field(
        default="python-composer-repo",
        description="Human-friendly name for this repository instance.",
    )
    base_url: Optional[str] = Field(
        default=None,
        description=(
            "Public URL prefix used to build `dist` download URLs "
            "(e.g. 'https://packages.example.com/base'). When unset, the URL "
            "of the incoming upload request is used."
        ),
    )
    storage_backend: StorageBackend = Field(
        default="file",
        description="Where package metadata and artifacts are stored: 'file' or 'memory'.",
    )
    storage_dir: str = Field(
        default="storage",
        description="Directory for the file storage backend, relative to the data directory.",
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Timestamp when this repository configuration was first created.",
    )


# ---------------------------------------------------------------------------
# Authentication Models
# ---------------------------------------------------------------------------


Permission = Literal["read", "write"]


class AuthCredential(BaseModel):
    """
    A single credential entry for user authentication.

    Supports two credential types:
    - "cleartext": Password stored as plain text (normalized to SHA256 on startup)
    - "sha256": Password field contains the SHA256 hash, with per-user salt
    """

    type: str = Field(
        description='Credential type: "cleartext" or "sha256".',
    )
    password: str = Field(
        description="Password value: plain text if type is 'cleartext', SHA256 hash if type is 'sha256'.",
    )
    salt: Optional[str] = Field(
        default=None,
        description="Per-user salt used for SHA256 hashing (only used when type == 'sha256').",
    )


class AuthUser(BaseModel):
    username: str = Field(
        description="Unique username used for HTTP Basic authentication.",
    )
    authentications: List[AuthCredential] = Field(
        default_factory=list,
        description="Credential entries for this user; the last sha256 entry is authoritative.",
    )
    permissions: List[Permission] = Field(
        default_factory=lambda: ["read"],
        description="Granted actions: 'read' for downloads and metadata, 'write' for uploads.",
    )


class AuthenticationStore(BaseModel):
    """
    Root object for repository users.

    An empty store means anonymous access with all permissions.

    Persisted at: <DATA_DIR>/authentication.json
    """

    users: List[AuthUser] = Field(
        default_factory=list,
        description="List of all user accounts.",
    )


# ---------------------------------------------------------------------------
# Repository Results
# ---------------------------------------------------------------------------


class AddResult(BaseModel):
    """Outcome of a successful package upload."""

    name: str
    version: str
    artifact_key: str = Field(
        description="Storage key of the uploaded artifact.",
    )
