"""Native key resolution."""

from __future__ import annotations

import posixpath
import re

from unistore.storage.models import StorageConfig, StorageKind


def join_path(*parts: str) -> str:
    """Join path parts POSIX-style, dropping empty parts and duplicate separators.

    A trailing separator on the last part is kept: it marks a directory.
    """
    parts = tuple(p for p in parts if p)
    if not parts:
        return ""
    joined = posixpath.normpath(re.sub(r"/+", "/", "/".join(parts)))
    if joined == ".":
        joined = ""
    if parts[-1].endswith("/") and not joined.endswith("/"):
        joined += "/"
    return joined


def resolve_key(config: StorageConfig, key: str) -> str:
    """Derive the backend-native key for a logical key.

    B2 rejects keys with a leading separator, so it is stripped for that
    kind only.
    """
    native = join_path(config.path_prefix, key)
    if config.kind == StorageKind.B2:
        return native.lstrip("/")
    return native
