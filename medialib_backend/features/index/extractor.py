"""
HTML media extraction.

Parses one document and emits a usage record for every media reference:
`<img src>`, `<video src>`, `<source src>` nested in a video, and `<a href>`
pointing at a known media extension. Extraction is pure and total: broken
markup yields fewer records, never an exception.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from ...config import CONTEXT_ANCESTOR_DEPTH, CONTEXT_MAX_LENGTH, CONTEXT_MAX_SNIPPETS, CONTENT_ORIGIN
from ...path_utils import SiteRef
from ...shared import extract_file_extension, get_logger, is_media_extension, now_iso
from .hasher import usage_hash
from .models import MediaUsageRecord
from .urls import extract_relative_path, media_name, resolve_media_url

logger = get_logger(__name__)

_WS_RE = re.compile(r"\s+")
_ANCESTOR_MIN_TEXT = 10
_SIBLING_MIN_TEXT = 5


def _clean_text(node: Tag) -> str:
    try:
        return _WS_RE.sub(" ", node.get_text(" ")).strip()
    except Exception:
        return ""


def extract_surrounding_context(element: Tag, max_length: int = CONTEXT_MAX_LENGTH) -> str:
    """
    Collect short text snippets around `element`.

    Ancestors (up to three levels) contribute when their text is longer than
    10 characters; siblings when longer than 5. The first three snippets are
    joined and capped at `max_length`.
    """
    snippets: list[str] = []
    try:
        parent = element.parent
        depth = 0
        while isinstance(parent, Tag) and not isinstance(parent, BeautifulSoup) and depth < CONTEXT_ANCESTOR_DEPTH:
            text = _clean_text(parent)
            if len(text) > _ANCESTOR_MIN_TEXT:
                snippets.append(text[:max_length])
            parent = parent.parent
            depth += 1

        direct_parent = element.parent
        if isinstance(direct_parent, Tag) and not isinstance(direct_parent, BeautifulSoup):
            for sibling in direct_parent.find_all(True, recursive=False):
                if sibling is element:
                    continue
                text = _clean_text(sibling)
                if len(text) > _SIBLING_MIN_TEXT:
                    snippets.append(text[:max_length])
    except Exception:
        logger.debug("Context extraction failed", exc_info=True)
    return " ".join(snippets[:CONTEXT_MAX_SNIPPETS])[:max_length]


def create_media_usage(
    resolved_url: str,
    doc_path: str,
    type_tag: str,
    element: Tag,
    alt: Optional[str] = None,
    doc_last_modified: Optional[str] = None,
) -> MediaUsageRecord:
    timestamp = doc_last_modified or now_iso()
    doc = extract_relative_path(doc_path)
    return {
        "url": resolved_url,
        "name": media_name(resolved_url),
        "doc": doc,
        "alt": alt,
        "type": type_tag,
        "ctx": extract_surrounding_context(element),
        "hash": usage_hash(resolved_url, doc, alt),
        "firstUsedAt": timestamp,
        "lastUsedAt": timestamp,
    }


def _attr(element: Tag, name: str) -> str:
    value: Any = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return str(value or "").strip()


class HtmlMediaExtractor:
    """Extracts media usages from site documents resolved against one content origin."""

    def __init__(self, site: SiteRef, content_origin: str = CONTENT_ORIGIN):
        self.site = site
        self.content_origin = content_origin

    def _usage(self, src: str, doc_path: str, kind: str, element: Tag, alt: Optional[str], stamp: Optional[str]) -> Optional[MediaUsageRecord]:
        ext = extract_file_extension(src)
        if not is_media_extension(ext):
            return None
        url = resolve_media_url(src, doc_path, self.site, self.content_origin)
        return create_media_usage(url, doc_path, f"{kind} > {ext}", element, alt, stamp)

    def extract(self, html: str, doc_path: str, doc_last_modified: Optional[str] = None) -> list[MediaUsageRecord]:
        """
        Parse `html` (the document at crawl path `doc_path`) into usage records.

        Args:
            html: Raw document markup
            doc_path: Full crawl path, e.g. `/org/repo/blog/post.html`
            doc_last_modified: ISO timestamp stamped into first/last used fields
        """
        usages: list[MediaUsageRecord] = []
        try:
            soup = BeautifulSoup(html or "", "html.parser")
        except Exception:
            logger.warning("Unparseable document skipped: %s", doc_path, exc_info=True)
            return usages

        candidates: list[tuple[str, Tag, str, Optional[str]]] = []
        for img in soup.find_all("img"):
            candidates.append(("img", img, _attr(img, "src"), _attr(img, "alt") or None))
        for video in soup.find_all("video"):
            candidates.append(("video", video, _attr(video, "src"), None))
            for source in video.find_all("source"):
                candidates.append(("video-source", source, _attr(source, "src"), None))
        for link in soup.find_all("a", href=True):
            candidates.append(("link", link, _attr(link, "href"), None))

        for kind, element, src, alt in candidates:
            if not src:
                continue
            try:
                usage = self._usage(src, doc_path, kind, element, alt, doc_last_modified)
            except Exception:
                logger.debug("Skipping reference %r in %s", src, doc_path, exc_info=True)
                continue
            if usage is not None:
                usages.append(usage)
        return usages


def parse_html_media(
    html: str,
    doc_path: str,
    site: SiteRef,
    doc_last_modified: Optional[str] = None,
    content_origin: str = CONTENT_ORIGIN,
) -> list[MediaUsageRecord]:
    """Functional shortcut for `HtmlMediaExtractor(site, content_origin).extract(...)`."""
    return HtmlMediaExtractor(site, content_origin).extract(html, doc_path, doc_last_modified)
