"""Ordered field lookups for loosely specified upstream responses.

Each list is tried in order and the first non-empty value wins. Add new
response shapes by appending an extractor, never by reordering.
"""

from typing import Any, Callable, Iterable, List, Optional

Extractor = Callable[[Any], Any]


def path(*keys) -> Extractor:
    """Build an extractor that walks dict keys and list indexes."""

    def extract(data: Any) -> Any:
        current = data
        for key in keys:
            if isinstance(key, int):
                if not isinstance(current, list) or len(current) <= key:
                    return None
                current = current[key]
            else:
                if not isinstance(current, dict):
                    return None
                current = current.get(key)
            if current is None:
                return None
        return current

    extract.__name__ = ".".join(str(k) for k in keys)
    return extract


def first_match(
    data: Any,
    extractors: Iterable[Extractor],
    accept: Callable[[Any], bool] = bool,
) -> Optional[Any]:
    """Return the first extracted value that ``accept`` approves."""
    for extractor in extractors:
        value = extractor(data)
        if value is not None and accept(value):
            return value
    return None


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _present(value: Any) -> bool:
    return value not in (None, "")


TASK_ID: List[Extractor] = [
    path("task_id"),
    path("id"),
    path("data", "task_id"),
]

STATUS: List[Extractor] = [
    path("status"),
    path("state"),
    path("data", "status"),
]

VIDEO_URL: List[Extractor] = [
    path("content", "video_url"),
    path("video_url"),
    path("result", "video_url"),
    path("data", "video_url"),
    path("output", "video_url"),
    path("data", "result", "video_url"),
    path("result", "url"),
    path("data", "url"),
    path("content", "url"),
]

ERROR_MESSAGE: List[Extractor] = [
    path("error", "message"),
    path("error"),
    path("message"),
    path("data", "error"),
    path("data", "message"),
]

IMAGE: List[Extractor] = [
    path("data", 0, "url"),
    path("data", 0, "image_url"),
    path("data", 0, "b64_json"),
]

TEXT: List[Extractor] = [
    path("choices", 0, "message", "content"),
]


def task_id(data: Any) -> Optional[str]:
    value = first_match(data, TASK_ID, _present)
    return str(value) if value is not None else None


def status(data: Any) -> Optional[str]:
    value = first_match(data, STATUS, _present)
    return str(value) if value is not None else None


def video_url(data: Any) -> Optional[str]:
    return first_match(data, VIDEO_URL, _non_empty_str)


def error_message(data: Any) -> Optional[str]:
    """Upstream error text. Only string values count."""
    return first_match(data, ERROR_MESSAGE, _non_empty_str)


def image(data: Any) -> Optional[str]:
    return first_match(data, IMAGE, _non_empty_str)


def text(data: Any) -> Optional[str]:
    return first_match(data, TEXT, lambda value: isinstance(value, str))
