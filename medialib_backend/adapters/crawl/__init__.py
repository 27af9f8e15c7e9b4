"""Tree crawler adapters."""
from .base import CrawlCallback, CrawlError, CrawlHandle, Crawler, DocumentSource, start_crawl
from .fs_crawler import FileSystemCrawler
from .source_tree import SourceTreeCrawler

__all__ = [
    "CrawlCallback",
    "CrawlHandle",
    "Crawler",
    "DocumentSource",
    "start_crawl",
    "FileSystemCrawler",
    "SourceTreeCrawler",
    "CrawlError",
]
