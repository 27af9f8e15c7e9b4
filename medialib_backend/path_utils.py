"""
Site-relative storage locations and site path helpers.

All persisted artifacts of one site live under `/{org}/{repo}/.da/mediaindex`.
"""
from __future__ import annotations

from dataclasses import dataclass

MEDIA_INDEX_DIR = ".da/mediaindex"


@dataclass(frozen=True)
class SiteRef:
    """Identifies one site (org + repo). `path` is the crawl root `/org/repo`."""
    org: str
    repo: str

    @property
    def path(self) -> str:
        return f"/{self.org}/{self.repo}"

    @property
    def key(self) -> str:
        return f"{self.org}/{self.repo}"

    @classmethod
    def parse(cls, site_path: str) -> "SiteRef":
        """
        Parse `/org/repo` (extra trailing segments are ignored).

        Raises:
            ValueError: if org or repo is missing.
        """
        parts = [p for p in str(site_path or "").split("/") if p]
        if len(parts) < 2:
            raise ValueError(f"Invalid site path {site_path!r}; expected /org/repo")
        return cls(org=parts[0], repo=parts[1])


def media_library_path(site: SiteRef) -> str:
    return f"{site.path}/{MEDIA_INDEX_DIR}"


def media_json_path(site: SiteRef) -> str:
    return f"{media_library_path(site)}/media.json"


def scan_lock_path(site: SiteRef) -> str:
    return f"{media_library_path(site)}/scan-lock.json"


def last_modified_data_path(site: SiteRef, folder_name: str = "root") -> str:
    return f"{media_library_path(site)}/lastmodified-data/{folder_name}.json"


def is_index_artifact(site: SiteRef, path: str) -> bool:
    """True for files the index itself writes (never treated as site content)."""
    return str(path or "").startswith(media_library_path(site) + "/")
