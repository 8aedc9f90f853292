"""Turning HTTP responses into typed upstream errors."""

import json
import logging
from typing import Any, Optional

import requests

from ..errors import MalformedResponseError, PermanentUpstreamError, RateLimitError, UpstreamError
from . import extractors

logger = logging.getLogger(__name__)

# Error codes some backends send with a non-429 status when throttling
RATE_LIMIT_CODES = frozenset({
    "RateLimitExceeded",
    "QuotaExceeded",
    "ServerOverloaded",
    "RESOURCE_EXHAUSTED",
})


def parse_body(text: str) -> Any:
    """Decode a JSON body, returning None if it is not JSON."""
    try:
        return json.loads(text)
    except ValueError:
        return None


def error_code(body: Any) -> Optional[str]:
    """Machine-readable error code from a JSON error body, if any."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("code") or error.get("status")
        if code:
            return str(code)
    code = body.get("code")
    return str(code) if code else None


def upstream_error(status_code: int, text: str, label: str) -> UpstreamError:
    """Classify a failed response.

    Args:
        status_code: HTTP status of the response.
        text: Raw response body.
        label: Name of the call, used in the message.

    Returns:
        RateLimitError for throttling signals, PermanentUpstreamError
        otherwise.
    """
    body = parse_body(text)
    message = extractors.error_message(body) if body is not None else None
    message = message or text[:500] or f"HTTP {status_code}"
    code = error_code(body)

    if status_code == 429 or code in RATE_LIMIT_CODES:
        return RateLimitError(f"{label}: {message}", status_code=status_code, body=text)
    return PermanentUpstreamError(f"{label}: {message}", status_code=status_code, body=text)


def check_response(response: requests.Response, label: str) -> Any:
    """Return the decoded JSON body of a successful response.

    Raises:
        RateLimitError: On a throttling response.
        PermanentUpstreamError: On any other non-2xx response.
        MalformedResponseError: If a 2xx body is not JSON.
    """
    if not response.ok:
        error = upstream_error(response.status_code, response.text, label)
        logger.error(f"{label} failed with {response.status_code}: {error}")
        raise error

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(f"{label}: response is not JSON") from e


def send(session: requests.Session, method: str, url: str, label: str, **kwargs) -> Any:
    """Perform a request and classify the outcome.

    Connection problems are reported as PermanentUpstreamError.
    """
    try:
        response = session.request(method, url, **kwargs)
    except requests.RequestException as e:
        raise PermanentUpstreamError(f"{label}: {e}") from e
    return check_response(response, label)
