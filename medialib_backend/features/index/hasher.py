"""Usage fingerprints used to tell unchanged usages from edited ones."""
from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import Any, Optional

HASH_LENGTH = 16


def create_hash(*parts: Optional[str]) -> str:
    h = hashlib.sha256()
    for part in parts:
        h.update(str(part or "").encode("utf-8"))
        h.update(b"\x00")
    return h.hexdigest()[:HASH_LENGTH]


def usage_hash(url: str, doc: str, alt: Optional[str]) -> str:
    """Fingerprint over the fields that make a usage meaningful: URL, document and alt text."""
    return create_hash(url, doc, alt or "")


def media_file_hash(url: str) -> str:
    return create_hash(url)


def same_usage(existing: Mapping[str, Any], fresh: Mapping[str, Any]) -> bool:
    """True when both records carry the same non-empty fingerprint."""
    existing_hash = existing.get("hash") if isinstance(existing, Mapping) else None
    return bool(existing_hash) and existing_hash == fresh.get("hash")
