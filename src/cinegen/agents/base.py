"""Base agent abstraction."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Optional, TypeVar

from ..errors import MalformedResponseError
from ..services.client import GenerationClient, clean_json_text

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """Abstract base class for AI agents.

    Provides shared functionality for agents that drive the generation
    client. Subclasses must implement the `run` method and define their
    prompts.
    """

    def __init__(self, client: Optional[GenerationClient] = None) -> None:
        """Initialize the agent.

        Args:
            client: GenerationClient instance. Created if not provided.
        """
        self._client = client or GenerationClient()
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the agent's name."""
        ...

    @property
    def client(self) -> GenerationClient:
        """Return the generation client being used."""
        return self._client

    @abstractmethod
    def run(self, input_data: InputT) -> OutputT:
        """Execute the agent's main task.

        Args:
            input_data: Input data for the agent.

        Returns:
            Structured output from the agent.
        """
        ...

    def _create_message(self, prompt: str, response_format: Optional[str] = None) -> str:
        """Run a text completion through the agent's client.

        Args:
            prompt: The prompt to send.
            response_format: ``"json_object"`` to request JSON output.

        Returns:
            The completion text.
        """
        self._logger.debug(f"Creating message with prompt length: {len(prompt)}")

        try:
            response = self._client.submit_text(prompt, response_format=response_format)
            self._logger.debug(f"Received response of length: {len(response)}")
            return response

        except Exception as e:
            self._logger.error(f"Error creating message: {e}")
            raise

    def _parse_json(self, response: str) -> Any:
        """Decode a JSON answer after stripping code fences.

        Raises:
            MalformedResponseError: If the text is not valid JSON.
        """
        try:
            return json.loads(clean_json_text(response))
        except json.JSONDecodeError as e:
            self._logger.debug(f"Raw response: {response[:500]}")
            raise MalformedResponseError(f"Invalid JSON in response: {e}") from e
