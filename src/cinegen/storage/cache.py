"""Local, per-machine cache of stored resources keyed by canonical path."""

import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, Union

from .payloads import parse_data_url, to_data_url

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Metadata kept beside each cached payload."""

    key: str
    mime_type: str
    resource_type: str
    size_bytes: int
    timestamp: float


def _digest(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _write_atomic(target: Path, data: bytes) -> None:
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, target)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class LocalCache:
    """Content cache on the local filesystem.

    Entries live at ``root/<d[:2]>/<d>.bin`` with a ``.json`` sidecar, where
    ``d`` is the sha256 of the canonical key. A read never touches the
    network; a miss is just ``None``.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _paths(self, key: str) -> tuple:
        digest = _digest(key)
        base = self.root / digest[:2]
        return base / f"{digest}.bin", base / f"{digest}.json"

    def get(self, key: str) -> Optional[str]:
        """Return the cached payload for ``key`` as a data URL, or None."""
        data_path, meta_path = self._paths(key)
        if not data_path.is_file() or not meta_path.is_file():
            return None
        try:
            entry = CacheEntry(**json.loads(meta_path.read_text(encoding="utf-8")))
            raw = data_path.read_bytes()
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable cache entry for {key}: {e}")
            return None
        if entry.key != key:
            return None
        logger.debug(f"Cache hit: {key}")
        return to_data_url(raw, entry.mime_type)

    def contains(self, key: str) -> bool:
        data_path, meta_path = self._paths(key)
        return data_path.is_file() and meta_path.is_file()

    def put(self, key: str, payload: str, resource_type: str = "images") -> CacheEntry:
        """Cache a data URL under ``key``.

        Args:
            key: Canonical resource path.
            payload: Self-contained data URL.
            resource_type: Category the resource belongs to.

        Returns:
            The stored CacheEntry.

        Raises:
            ValueError: If ``payload`` is not a base64 data URL.
            OSError: If the cache directory cannot be written.
        """
        mime_type, raw = parse_data_url(payload)
        data_path, meta_path = self._paths(key)
        data_path.parent.mkdir(parents=True, exist_ok=True)

        entry = CacheEntry(
            key=key,
            mime_type=mime_type,
            resource_type=resource_type,
            size_bytes=len(raw),
            timestamp=time.time(),
        )
        _write_atomic(data_path, raw)
        _write_atomic(meta_path, json.dumps(asdict(entry), ensure_ascii=True).encode("utf-8"))
        logger.debug(f"Cached {key} ({len(raw)} bytes)")
        return entry

    def delete(self, key: str) -> bool:
        """Drop an entry. Returns True if something was removed."""
        removed = False
        for path in self._paths(key):
            if path.exists():
                path.unlink()
                removed = True
        return removed
