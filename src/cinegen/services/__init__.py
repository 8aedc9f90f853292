"""External service integrations."""

from .client import GenerationClient, classify_status, clean_json_text
from .retry import RetryGovernor, is_rate_limited

__all__ = [
    "GenerationClient",
    "classify_status",
    "clean_json_text",
    "RetryGovernor",
    "is_rate_limited",
]
