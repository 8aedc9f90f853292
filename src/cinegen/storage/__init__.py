"""Durable storage and local caching of generated resources."""

from .cache import CacheEntry, LocalCache
from .payloads import is_data_url, to_data_url
from .remote import RemoteStore, derive_namespace
from .resources import ResourceCache, canonical_key
from .store import DurableStore, FileEntry, StoredFile

__all__ = [
    "CacheEntry",
    "LocalCache",
    "is_data_url",
    "to_data_url",
    "RemoteStore",
    "derive_namespace",
    "ResourceCache",
    "canonical_key",
    "DurableStore",
    "FileEntry",
    "StoredFile",
]
