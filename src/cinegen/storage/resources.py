"""Two-tier resource access: local cache in front of the durable store."""

import logging
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from ..errors import StorageError
from .cache import LocalCache
from .payloads import DEFAULT_MIME_TYPE, data_url_mime_type, is_data_url
from .remote import RemoteStore
from .store import FILES_ROUTE

logger = logging.getLogger(__name__)

REFERENCE_MARKER = FILES_ROUTE + "/"


def canonical_key(reference: str) -> Optional[str]:
    """Reduce a store reference to its host-independent path.

    ``http://host:3001/api/files/get/u/images/a.png?x=1`` and
    ``/api/files/get/u/images/a.png`` share the key
    ``/api/files/get/u/images/a.png``. Returns None for anything that is not
    a store reference.
    """
    if not reference:
        return None
    path = urlsplit(reference).path if "://" in reference else reference.split("?", 1)[0]
    index = path.find(REFERENCE_MARKER)
    if index == -1:
        return None
    return path[index:]


def split_key(key: str) -> Optional[tuple]:
    """Return ``(namespace, category, filename)`` for a canonical key."""
    parts = key[len(REFERENCE_MARKER):].split("/")
    if len(parts) != 3 or not all(parts):
        return None
    return parts[0], parts[1], parts[2]


class ResourceCache:
    """Resolves and saves resources through the cache and the store.

    Reads check the local cache first and only go to the store on a miss.
    Writes go to the store first and then warm the cache.
    """

    def __init__(
        self,
        remote: RemoteStore,
        cache: LocalCache,
        store_url: Optional[str] = None,
    ):
        self.remote = remote
        self.cache = cache
        self.store_url = (store_url if store_url is not None else remote.base_url).rstrip("/")

    def resolve(self, reference: Optional[str], category: str = "images") -> Optional[str]:
        """Turn a reference into a self-contained payload.

        Args:
            reference: Data URL, store URL, or canonical store path.
            category: Resource category recorded with cache entries.

        Returns:
            Data URL, or None when the reference cannot be resolved.
        """
        if not reference:
            return None
        if is_data_url(reference):
            return reference

        key = canonical_key(reference)
        if key is None:
            logger.debug(f"Not a store reference: {reference[:80]}")
            return None

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        parts = split_key(key)
        if parts is None:
            logger.warning(f"Malformed store reference: {key}")
            return None
        namespace, path_category, filename = parts

        try:
            payload = self.remote.get(path_category, filename, namespace=namespace)
        except StorageError as e:
            logger.warning(f"Could not fetch {key}: {e}")
            return None
        if payload is None:
            logger.debug(f"Not found in store: {key}")
            return None

        try:
            self.cache.put(key, payload, category)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to cache {key}: {e}")
        return payload

    def resolve_many(self, references: Iterable[Optional[str]], category: str = "images") -> List[Optional[str]]:
        """Resolve references in order."""
        return [self.resolve(reference, category) for reference in references]

    def save(
        self,
        category: str,
        filename: str,
        payload: str,
        mime_type: Optional[str] = None,
    ) -> str:
        """Persist a payload and return its store reference.

        Raises:
            StorageError: If the store write fails.
        """
        path = self.remote.save(category, filename, payload, mime_type)

        # An explicit mime type wins over the declared one, as in the store
        if is_data_url(payload):
            encoded = payload.partition(",")[2]
            mime_type = mime_type or data_url_mime_type(payload)
        else:
            encoded = "".join(payload.split())
        data_url = f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{encoded}"

        key = canonical_key(path) or path
        try:
            self.cache.put(key, data_url, category)
        except (OSError, ValueError) as e:
            logger.warning(f"Saved {key} but could not warm the cache: {e}")

        return f"{self.store_url}{key}"
