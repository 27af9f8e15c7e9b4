"""
URL resolution for media references found in site documents.
"""
from __future__ import annotations

import posixpath
import re
from urllib.parse import unquote, urlparse

from ...path_utils import SiteRef

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")


def is_absolute_url(value: str) -> bool:
    return bool(_SCHEME_RE.match(value or ""))


def extract_relative_path(full_path: str) -> str:
    """
    Strip the leading `/org/repo` from a crawled path.

    `/acme/site/blog/post.html` -> `/blog/post.html`. Paths with fewer than
    two segments are returned unchanged.
    """
    if not full_path:
        return full_path
    parts = [p for p in full_path.split("/") if p]
    if len(parts) >= 2:
        return "/" + "/".join(parts[2:])
    return full_path


def _document_dir(doc_path: str) -> str:
    """Site-relative directory of a document, always ending with '/'."""
    relative = extract_relative_path(doc_path) if doc_path else "/"
    if not relative.startswith("/"):
        relative = "/" + relative
    return relative[: relative.rfind("/") + 1]


def resolve_media_url(src: str, doc_path: str, site: SiteRef, content_origin: str) -> str:
    """
    Resolve a media reference into an absolute URL.

    Absolute URLs pass through unchanged; protocol-relative URLs get `https:`.
    Site-absolute (`/x.png`) and document-relative (`./x.png`, `../x.png`,
    `x.png`) references resolve under `{content_origin}/{org}/{repo}`.
    `..` segments never climb above the site root.
    """
    src = (src or "").strip()
    if is_absolute_url(src):
        return src
    if src.startswith("//"):
        return f"https:{src}"

    path, sep, tail = src.partition("?")
    if not sep:
        path, sep, tail = src.partition("#")
    if path.startswith("/"):
        joined = path
    else:
        joined = _document_dir(doc_path) + path
    normalized = posixpath.normpath(joined)
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    while normalized.startswith("/.."):
        normalized = normalized[3:] or "/"
    if joined.endswith("/") and not normalized.endswith("/"):
        normalized += "/"
    resolved = f"{content_origin.rstrip('/')}{site.path}{normalized}"
    return f"{resolved}{sep}{tail}" if sep else resolved


def media_name(url: str) -> str:
    """Display name: the final path segment of the URL, percent-decoded."""
    try:
        path = urlparse(url).path or url
    except ValueError:
        path = url
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    return unquote(segment)


def normalize_url(url: str) -> str:
    """Path component of an absolute URL; other values are returned as-is."""
    if not url:
        return ""
    if is_absolute_url(url):
        try:
            return urlparse(url).path
        except ValueError:
            return url
    return url


def urls_match(first: str, second: str) -> bool:
    """
    Lenient comparison used when reconciling edited references.

    Equal paths match regardless of origin or a missing leading slash;
    otherwise identical, non-empty file names match.
    """
    if not first or not second:
        return False
    path1 = normalize_url(first)
    path2 = normalize_url(second)
    if path1 == path2:
        return True
    if ("/" + path1.lstrip("/")) == ("/" + path2.lstrip("/")):
        return True
    name1 = path1.rsplit("/", 1)[-1]
    name2 = path2.rsplit("/", 1)[-1]
    return bool(name1) and name1 == name2
