"""Blob storage adapters."""
from .base import BlobStore, StorageError
from .memory import MemoryBlobStore
from .source_api import SourceApiBlobStore
from .sqlite import SqliteBlobStore

__all__ = [
    "BlobStore",
    "StorageError",
    "MemoryBlobStore",
    "SqliteBlobStore",
    "SourceApiBlobStore",
]
