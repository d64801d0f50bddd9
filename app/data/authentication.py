from __future__ import annotations

import hashlib
import json
import logging
import secrets
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from app.domain.models import AuthCredential, AuthenticationStore, AuthUser
from app.data.repository import get_data_dir

logger = logging.getLogger(__name__)

_auth_store: Optional[AuthenticationStore] = None


def _auth_path() -> Path:
    """
    Location of authentication.json alongside repository.json.
    """
    return get_data_dir() / "authentication.json"


def hash_password_sha256(password: str, salt: str) -> str:
    """
    Compute SHA256 hash for the given password+salt combination.
    """
    data = (salt + password).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _normalize_store(store: AuthenticationStore) -> AuthenticationStore:
    """
    Normalize an AuthenticationStore in-place:

    * Convert any cleartext credentials to salted SHA256 credentials.
    * Ensure that for each user only the last 'sha256' credential is kept.
    """
    for user in store.users:
        normalized_auths: list[AuthCredential] = []

        # First pass: convert cleartext entries to sha256.
        for cred in user.authentications:
            if cred.type == "cleartext":
                salt = secrets.token_hex(16)
                hashed = hash_password_sha256(cred.password, salt)
                normalized_auths.append(
                    AuthCredential(type="sha256", password=hashed, salt=salt)
                )
            else:
                normalized_auths.append(cred)

        # Second pass: keep only the last sha256 entry per user.
        sha_indices = [i for i, c in enumerate(normalized_auths) if c.type == "sha256"]
        if len(sha_indices) > 1:
            last_index = sha_indices[-1]
            normalized_auths = [
                c
                for i, c in enumerate(normalized_auths)
                if c.type != "sha256" or i == last_index
            ]

        user.authentications = normalized_auths

    return store


def _load_store_from_disk() -> AuthenticationStore:
    """
    Load authentication.json from disk, applying normalization rules and
    persisting any changes back to disk.
    """
    path = _auth_path()
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            store = AuthenticationStore(**raw)
        except (ValueError, TypeError, ValidationError):
            logger.warning(f"Ignoring unreadable {path}, repository is open to anonymous access", exc_info=True)
            store = AuthenticationStore()
    else:
        store = AuthenticationStore()

    store = _normalize_store(store)
    path.write_text(store.model_dump_json(indent=2), encoding="utf-8")
    return store


def get_auth_store(refresh: bool = False) -> AuthenticationStore:
    """
    Return the in-memory AuthenticationStore, loading from disk on first use
    or when refresh=True.
    """
    global _auth_store
    if _auth_store is None or refresh:
        _auth_store = _load_store_from_disk()
    return _auth_store


def set_auth_store(store: Optional[AuthenticationStore]) -> None:
    """Replace the in-memory store without touching disk (None forces a reload)."""
    global _auth_store
    _auth_store = _normalize_store(store) if store is not None else None


def initialize_authentication() -> None:
    """
    Ensure authentication.json exists and is normalized on startup.
    """
    store = get_auth_store(refresh=True)
    if store.users:
        logger.info(f"Loaded {len(store.users)} repository users")
    else:
        logger.info("No repository users configured, allowing anonymous access")


def find_user(username: str) -> Optional[AuthUser]:
    store = get_auth_store()
    for user in store.users:
        if user.username == username:
            return user
    return None


def has_any_user() -> bool:
    """
    Return True if at least one user account exists.
    """
    return len(get_auth_store().users) > 0


def verify_user_password(username: str, password: str) -> bool:
    """
    Verify the supplied password for the given user.
    """
    user = find_user(username)
    if user is None:
        return False

    sha_creds = [c for c in user.authentications if c.type == "sha256"]
    if not sha_creds:
        return False
    cred = sha_creds[-1]
    if not cred.salt:
        return False

    expected = cred.password
    actual = hash_password_sha256(password, cred.salt)
    return secrets.compare_digest(expected, actual)
