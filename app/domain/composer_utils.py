import json
import re
from typing import Any, Dict, Optional

# Well-known storage keys and key prefixes.
ALL_PACKAGES_KEY = "packages.json"
ARTIFACTS_PREFIX = "artifacts"
PACKAGES_PREFIX = "p"

# Composer package names: "vendor/name", lowercase, see
# https://getcomposer.org/doc/04-schema.md#name
PACKAGE_NAME_RE = re.compile(r"[a-z0-9]([_.-]?[a-z0-9]+)*/[a-z0-9](([_.]|-{1,2})?[a-z0-9]+)*")


def package_key(name: str) -> str:
    """
    Storage key of the metadata document for a package.

    `vendor/name` is stored at `p/vendor/name.json`, the same path clients
    request it under.
    """
    return f"{PACKAGES_PREFIX}/{name}.json"


def artifact_key(filename: str) -> str:
    return f"{ARTIFACTS_PREFIX}/{filename}"


def artifact_url(base_url: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}/{artifact_key(filename)}"


def normalize_package_name(value: Any) -> Optional[str]:
    """
    Lowercase and validate a `vendor/name` package name.

    Returns None when the value is not a usable package name.
    """
    if not isinstance(value, str):
        return None
    name = value.strip().lower()
    if not PACKAGE_NAME_RE.fullmatch(name):
        return None
    return name


def dump_json(document: Dict[str, Any]) -> bytes:
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def load_json(content: bytes) -> Any:
    return json.loads(content.decode("utf-8"))


def empty_document() -> Dict[str, Any]:
    """The `{"packages": {}}` skeleton shared by package documents and packages.json."""
    return {"packages": {}}
