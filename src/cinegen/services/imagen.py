"""Google Imagen image backend via Vertex AI."""

import logging
from typing import Any, Callable, List, Optional

import google.auth
import google.auth.exceptions
import google.auth.transport.requests
import requests

from ..config import GenerationConfig
from ..errors import MalformedResponseError, PermanentUpstreamError
from ..storage.payloads import decode_base64, to_data_url
from .http import send

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def default_token() -> str:
    """Fetch an access token from Application Default Credentials."""
    credentials, _ = google.auth.default(scopes=SCOPES)
    credentials.refresh(google.auth.transport.requests.Request())
    return credentials.token


class ImagenBackend:
    """Image synthesis through the Imagen ``predict`` endpoint."""

    DEFAULT_LOCATION = "us-central1"
    DEFAULT_MODEL = "imagen-3.0-generate-001"

    def __init__(
        self,
        settings: GenerationConfig,
        location: str = DEFAULT_LOCATION,
        model: Optional[str] = None,
        session: Optional[requests.Session] = None,
        token_provider: Optional[Callable[[], str]] = None,
    ) -> None:
        """Initialize the Imagen backend.

        Args:
            settings: Generation settings carrying the Google Cloud project.
            location: GCP region for Vertex AI.
            model: Imagen model name.
            session: HTTP session. A new ``requests.Session`` by default.
            token_provider: Returns a bearer token; ADC by default.
        """
        self._project_id = settings.google_cloud_project
        if not self._project_id:
            raise ValueError("GOOGLE_CLOUD_PROJECT not set")

        self._location = location
        self._model = model or self.DEFAULT_MODEL
        self._aspect_ratio = settings.video_aspect_ratio
        self._timeout = settings.request_timeout
        self._session = session or requests.Session()
        self._token_provider = token_provider or default_token

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def model(self) -> str:
        return self._model

    def generate_image(self, prompt: str, images: Optional[List[str]] = None) -> str:
        """Generate an image from a text prompt.

        Imagen's predict endpoint takes no reference images, so ``images``
        only shapes the prompt the caller already built.

        Returns:
            PNG data URL.

        Raises:
            PermanentUpstreamError: If authentication or the API call fails.
            MalformedResponseError: If the response holds no image.
        """
        try:
            token = self._token_provider()
        except google.auth.exceptions.GoogleAuthError as e:
            raise PermanentUpstreamError(f"Imagen auth: {e}") from e

        url = (
            f"https://{self._location}-aiplatform.googleapis.com/v1/"
            f"projects/{self._project_id}/locations/{self._location}/"
            f"publishers/google/models/{self._model}:predict"
        )
        request_body = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": self._aspect_ratio,
            },
        }
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

        if images:
            logger.debug(f"Imagen ignores {len(images)} reference images")
        logger.info(f"Generating image with Imagen: {prompt[:50]}...")
        data: Any = send(
            self._session, "POST", url, "Imagen API",
            json=request_body, headers=headers, timeout=self._timeout,
        )

        predictions = data.get("predictions", []) if isinstance(data, dict) else []
        if not predictions:
            raise MalformedResponseError("Imagen API: no predictions in response")

        image_data = predictions[0].get("bytesBase64Encoded")
        if not image_data:
            raise MalformedResponseError("Imagen API: no image data in response")

        mime_type = predictions[0].get("mimeType") or "image/png"
        return to_data_url(decode_base64(image_data), mime_type)
