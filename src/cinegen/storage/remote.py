"""Client for the durable store's HTTP surface."""

import logging
from typing import Any, Dict, List, Optional, Union

import requests

from ..errors import StorageError
from .payloads import DEFAULT_MIME_TYPE, to_data_url

logger = logging.getLogger(__name__)


def derive_namespace(username: Optional[str] = None, api_key: Optional[str] = None) -> str:
    """Pick the storage namespace: explicit identity, then key prefix, then default."""
    if username:
        return username
    if api_key:
        return api_key[:8]
    return "default"


class RemoteStore:
    """Talks to the store server on behalf of one session.

    The namespace is resolved once at construction and stays fixed for the
    lifetime of the instance.
    """

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[Any] = None,
        timeout: float = 60.0,
    ):
        """Initialize the client.

        Args:
            base_url: Store server root, e.g. ``http://localhost:3001``.
            username: Explicit namespace.
            api_key: Generation API key, used for the namespace when no
                username is given.
            session: Object with ``get``/``post`` methods; defaults to a
                ``requests.Session``.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.namespace = derive_namespace(username, api_key)
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @staticmethod
    def _error_message(response: Any) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            return body["error"]
        return f"HTTP {response.status_code}"

    def save(
        self,
        category: str,
        filename: str,
        data: str,
        mime_type: Optional[str] = None,
    ) -> str:
        """Write a payload to the store.

        Returns:
            Canonical retrieval path, ``/api/files/get/...``.

        Raises:
            StorageError: On connection failure or a non-2xx response.
        """
        logger.info(f"Saving {category}/{filename} to store as {self.namespace}")
        payload = {
            "username": self.namespace,
            "resourceType": category,
            "filename": filename,
            "data": data,
            "mimeType": mime_type,
        }
        try:
            response = self.session.post(self._url("/api/files/save"), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageError(f"Store unreachable: {e}") from e

        if not 200 <= response.status_code < 300:
            raise StorageError(
                f"Failed to save {category}/{filename}: {self._error_message(response)}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise StorageError(f"Store returned invalid JSON for {category}/{filename}") from e
        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise StorageError(f"Store returned no url for {category}/{filename}")
        return url

    def get(
        self,
        category: str,
        filename: str,
        namespace: Optional[str] = None,
    ) -> Optional[str]:
        """Fetch a stored file as a data URL.

        Returns:
            Data URL, or None if the file does not exist.

        Raises:
            StorageError: On connection failure or an unexpected status.
        """
        namespace = namespace or self.namespace
        url = self._url(f"/api/files/get/{namespace}/{category}/{filename}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageError(f"Store unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if not 200 <= response.status_code < 300:
            raise StorageError(
                f"Failed to read {namespace}/{category}/{filename}: {self._error_message(response)}"
            )

        mime_type = (response.headers.get("content-type") or DEFAULT_MIME_TYPE).split(";")[0].strip()
        return to_data_url(response.content, mime_type)

    def list(self, category: Optional[str] = None) -> Union[List[Dict], Dict[str, List[Dict]]]:
        """List this session's stored files.

        Returns:
            Entries of one category, or a mapping of category to entries.

        Raises:
            StorageError: On connection failure or a non-2xx response.
        """
        path = f"/api/files/list/{self.namespace}"
        if category:
            path += f"/{category}"
        try:
            response = self.session.get(self._url(path), timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageError(f"Store unreachable: {e}") from e

        if not 200 <= response.status_code < 300:
            raise StorageError(f"Failed to list files: {self._error_message(response)}")

        try:
            body = response.json()
        except ValueError as e:
            raise StorageError("Store returned invalid JSON for the file listing") from e
        if category:
            return body.get("files", [])
        if set(body) == {"files"}:
            return {}
        return body
