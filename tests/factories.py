"""Builders for test uploads."""

import io
import json
import zipfile
from typing import Dict, Optional


def make_zip(files: Dict[str, bytes], compression: int = zipfile.ZIP_DEFLATED) -> bytes:
    """Build a zip archive in memory from a path -> content mapping."""
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w", compression=compression) as zf:
        for path, content in files.items():
            zf.writestr(path, content)
    return out.getvalue()


def corrupt_member(files: Dict[str, bytes], path: str) -> bytes:
    """A stored (uncompressed) zip whose member `path` fails its CRC check."""
    content = make_zip(files, compression=zipfile.ZIP_STORED)
    original = files[path]
    damaged = original[:-1] + bytes([original[-1] ^ 0xFF])
    assert content.count(original) == 1
    return content.replace(original, damaged)


def composer_json(name: str, version: Optional[str] = None, **extra) -> bytes:
    """A composer.json document; `version` is left out when None."""
    document = {"name": name, **extra}
    if version is not None:
        document["version"] = version
    return json.dumps(document).encode("utf-8")
