"""Anthropic Claude text backend."""

import logging
from typing import Any, Optional

from anthropic import Anthropic, APIConnectionError, APIStatusError
from anthropic import RateLimitError as AnthropicRateLimitError

from ..config import GenerationConfig
from ..errors import PermanentUpstreamError, RateLimitError

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = "Respond with a single valid JSON object and nothing else."


class AnthropicBackend:
    """Text completion through the Anthropic Messages API.

    Retries are left to the caller's RetryGovernor; this class only maps SDK
    exceptions onto the shared error types.
    """

    def __init__(
        self,
        settings: GenerationConfig,
        client: Optional[Any] = None,
        max_tokens: int = 4096,
    ) -> None:
        """Initialize the backend.

        Args:
            settings: Generation settings carrying the Anthropic key and model.
            client: Preconfigured SDK client, mainly for tests.
            max_tokens: Maximum tokens in the response.
        """
        if client is None:
            if not settings.anthropic_api_key:
                raise ValueError(
                    "Anthropic API key not provided. Set ANTHROPIC_API_KEY env var."
                )
            client = Anthropic(api_key=settings.anthropic_api_key, max_retries=0)

        self._client = client
        self._model = settings.anthropic_model
        self._temperature = settings.temperature
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    def complete_text(
        self,
        prompt: str,
        response_format: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Create a message using Claude.

        Args:
            prompt: The user prompt to send.
            response_format: ``"json_object"`` adds a JSON-only system prompt.
            temperature: Sampling temperature (0.0-1.0).

        Returns:
            The text content of Claude's response.

        Raises:
            RateLimitError: If the API throttled the request.
            PermanentUpstreamError: On any other API failure.
        """
        kwargs = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature if temperature is not None else self._temperature,
        }
        if response_format == "json_object":
            kwargs["system"] = JSON_SYSTEM_PROMPT

        logger.debug(f"Sending request to Claude ({len(prompt)} chars)")
        try:
            response = self._client.messages.create(**kwargs)
        except AnthropicRateLimitError as e:
            raise RateLimitError(f"Claude: {e}", status_code=e.status_code) from e
        except APIStatusError as e:
            if e.status_code == 529:
                # overloaded
                raise RateLimitError(f"Claude: {e}", status_code=e.status_code) from e
            logger.error(f"API error: {e}")
            raise PermanentUpstreamError(f"Claude: {e}", status_code=e.status_code) from e
        except APIConnectionError as e:
            logger.error(f"Connection error: {e}")
            raise PermanentUpstreamError(f"Claude: {e}") from e

        # Extract text content from response
        content = response.content[0]
        if hasattr(content, "text"):
            return content.text
        return str(content)
