"""Filesystem-backed blob store laid out as ``root/{namespace}/{category}/{filename}``."""

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..errors import InvalidPathError, PayloadTooLargeError
from .payloads import decode_payload, extension_for, mime_type_for

logger = logging.getLogger(__name__)

MAX_ARTIFACT_BYTES = 100 * 1024 * 1024
FILES_ROUTE = "/api/files/get"


def file_url(namespace: str, category: str, filename: str) -> str:
    """Canonical retrieval path for a stored file."""
    return f"{FILES_ROUTE}/{namespace}/{category}/{filename}"


def check_segment(value: str, label: str) -> str:
    """Reject anything that is not a single, plain path segment."""
    if not value or value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise InvalidPathError(f"Invalid {label}: {value!r}")
    return value


@dataclass
class StoredFile:
    """Result of a successful save."""

    namespace: str
    category: str
    filename: str
    path: Path
    size_bytes: int

    @property
    def url(self) -> str:
        return file_url(self.namespace, self.category, self.filename)


@dataclass
class FileEntry:
    """One file found by ``DurableStore.list``."""

    filename: str
    url: str


class DurableStore:
    """System of record for generated artifacts."""

    def __init__(
        self,
        root: Union[str, Path],
        max_bytes: int = MAX_ARTIFACT_BYTES,
    ) -> None:
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    def _dir(self, namespace: str, category: str) -> Path:
        return self.root / check_segment(namespace, "namespace") / check_segment(category, "category")

    def save(
        self,
        namespace: str,
        category: str,
        filename: Optional[str],
        data: str,
        mime_type: Optional[str] = None,
    ) -> StoredFile:
        """Decode a payload and write it to disk.

        Args:
            namespace: Owning user namespace.
            category: Resource category, e.g. ``images`` or ``videos``.
            filename: Target filename. An extension is inferred from the
                mime type when it has none.
            data: A data URL or bare base64 text.
            mime_type: Explicit mime type, overriding the data URL's.

        Returns:
            StoredFile describing the written artifact.

        Raises:
            InvalidPathError: If a path segment is unsafe.
            PayloadTooLargeError: If the decoded payload exceeds the ceiling.
            ValueError: If the payload cannot be decoded.
        """
        directory = self._dir(namespace, category)
        raw, effective_mime = decode_payload(data, mime_type)

        if len(raw) > self.max_bytes:
            raise PayloadTooLargeError(
                f"Artifact is {len(raw)} bytes; the limit is {self.max_bytes}"
            )

        final_name = filename or f"file_{int(time.time() * 1000)}"
        if "." not in final_name:
            final_name += extension_for(effective_mime)
        check_segment(final_name, "filename")

        directory.mkdir(parents=True, exist_ok=True)
        target = directory / final_name

        # Last write wins; readers never see a partial file
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(raw)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info(f"Stored {namespace}/{category}/{final_name} ({len(raw)} bytes)")
        return StoredFile(
            namespace=namespace,
            category=category,
            filename=final_name,
            path=target,
            size_bytes=len(raw),
        )

    def locate(self, namespace: str, category: str, filename: str) -> Optional[Path]:
        """Return the on-disk path of a stored file, or None if missing."""
        path = self._dir(namespace, category) / check_segment(filename, "filename")
        if not path.is_file():
            return None
        return path

    def get(self, namespace: str, category: str, filename: str) -> Optional[Tuple[Path, str]]:
        """Find a stored file.

        Returns:
            Tuple of the file path and its content type, or None if the file
            does not exist.
        """
        path = self.locate(namespace, category, filename)
        if path is None:
            logger.debug(f"Not found: {namespace}/{category}/{filename}")
            return None
        return path, mime_type_for(filename)

    def list(
        self,
        namespace: str,
        category: Optional[str] = None,
    ) -> Union[List[FileEntry], Dict[str, List[FileEntry]]]:
        """Enumerate stored files.

        Args:
            namespace: Owning user namespace.
            category: Restrict the listing to one category.

        Returns:
            A list of entries when ``category`` is given, otherwise a mapping
            of category name to entries. Unknown namespaces and categories
            yield empty results.
        """
        user_dir = self.root / check_segment(namespace, "namespace")

        if category is not None:
            return self._entries(namespace, category, user_dir / check_segment(category, "category"))

        if not user_dir.is_dir():
            return {}
        return {
            child.name: self._entries(namespace, child.name, child)
            for child in sorted(user_dir.iterdir())
            if child.is_dir()
        }

    @staticmethod
    def _entries(namespace: str, category: str, directory: Path) -> List[FileEntry]:
        if not directory.is_dir():
            return []
        return [
            FileEntry(filename=p.name, url=file_url(namespace, category, p.name))
            for p in sorted(directory.iterdir())
            if p.is_file() and not p.name.startswith(".tmp-")
        ]
