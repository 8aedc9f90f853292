"""Task-based generation backend (OpenAI-compatible REST API)."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..config import GenerationConfig
from ..errors import MalformedResponseError, PermanentUpstreamError
from . import extractors
from .http import check_response, send

logger = logging.getLogger(__name__)


class ArkBackend:
    """Client for chat completions, image generations and video tasks.

    One instance is bound to one immutable ``GenerationConfig``.
    """

    def __init__(
        self,
        settings: GenerationConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the backend.

        Args:
            settings: Generation settings, including the API key.
            session: HTTP session. A new ``requests.Session`` by default.
        """
        self.settings = settings
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self.settings.base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if not self.settings.api_key:
            raise PermanentUpstreamError("ARK_API_KEY is not set")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
        }

    def _post(self, endpoint: str, body: Dict[str, Any], label: str) -> Any:
        return send(
            self.session,
            "POST",
            f"{self.base_url}/{endpoint}",
            label,
            json=body,
            headers=self._headers(),
            timeout=self.settings.request_timeout,
        )

    def complete_text(
        self,
        prompt: str,
        response_format: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Run a single-turn chat completion.

        Args:
            prompt: User message.
            response_format: ``"json_object"`` to request JSON output.
            temperature: Sampling temperature, config default if None.

        Returns:
            The completion text, empty if the upstream sent none.
        """
        body: Dict[str, Any] = {
            "model": self.settings.chat_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature if temperature is not None else self.settings.temperature,
        }
        if response_format:
            body["response_format"] = {"type": response_format}

        logger.info(f"Chat completion with {self.settings.chat_model} ({len(prompt)} chars)")
        data = self._post("chat/completions", body, "Chat API")
        return extractors.text(data) or ""

    def generate_image(self, prompt: str, images: Optional[List[str]] = None) -> str:
        """Request one image.

        Args:
            prompt: Final image prompt.
            images: Reference images as URLs or data URLs, in order.

        Returns:
            The raw image reference from the response: a URL, a data URL or
            bare base64.

        Raises:
            MalformedResponseError: If the response holds no image.
        """
        body: Dict[str, Any] = {"model": self.settings.image_model, "prompt": prompt}
        if images:
            body["images"] = list(images)

        logger.info(f"Image generation with {self.settings.image_model} ({len(images or [])} references)")
        data = self._post("images/generations", body, "Image API")

        image = extractors.image(data)
        if not image:
            raise MalformedResponseError("Image API: no image data returned")
        return image

    def create_video_task(
        self,
        prompt: str,
        start_image: Optional[str] = None,
        end_image: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> str:
        """Submit a video generation task.

        Returns:
            The upstream task id.

        Raises:
            MalformedResponseError: If the response carries no task id.
        """
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        if start_image:
            content.append({
                "type": "image_url",
                "image_url": {"url": start_image},
                "role": "first_frame",
            })
        if end_image:
            content.append({
                "type": "image_url",
                "image_url": {"url": end_image},
                "role": "last_frame",
            })

        body = {
            "model": self.settings.video_model,
            "content": content,
            "resolution": self.settings.video_resolution,
            "ratio": self.settings.video_aspect_ratio,
            "duration": duration if duration is not None else self.settings.video_duration,
        }

        logger.info(
            f"Submitting video task with {self.settings.video_model} "
            f"(start={bool(start_image)}, end={bool(end_image)})"
        )
        data = self._post("contents/generations/tasks", body, "Video API")

        task_id = extractors.task_id(data)
        if not task_id:
            logger.debug(f"Video task response without id: {data}")
            raise MalformedResponseError("Video API: no task id returned")
        return task_id

    def get_video_task(self, task_id: str) -> Any:
        """Fetch the raw status document of a video task."""
        return send(
            self.session,
            "GET",
            f"{self.base_url}/contents/generations/tasks/{task_id}",
            "Video status",
            headers=self._headers(),
            timeout=self.settings.request_timeout,
        )

    def download(self, url: str) -> Tuple[bytes, Optional[str]]:
        """Fetch a result file. No credentials are sent.

        Returns:
            Tuple of the body and the response content type.
        """
        try:
            response = self.session.get(url, timeout=self.settings.request_timeout)
        except requests.RequestException as e:
            raise PermanentUpstreamError(f"Download of {url[:80]}: {e}") from e
        if not response.ok:
            check_response(response, f"Download of {url[:80]}")
        content_type = response.headers.get("content-type")
        return response.content, content_type.split(";")[0].strip() if content_type else None
