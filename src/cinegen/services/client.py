"""Vendor-neutral facade over the text, image and video backends."""

import logging
import re
import threading
import time
from typing import Any, Callable, Optional, Sequence
from urllib.parse import urlsplit

import requests

from ..config import GenerationConfig
from ..errors import (
    GenerationTimeoutError,
    MalformedResponseError,
    OperationCancelledError,
    PermanentUpstreamError,
)
from ..models import GenerationTask, PollResult, TaskStatus
from ..storage.payloads import is_data_url, to_data_url
from . import extractors
from .ark import ArkBackend
from .retry import RetryGovernor

logger = logging.getLogger(__name__)

COMPLETED_STATUSES = frozenset({"completed", "success", "succeeded"})
FAILED_STATUSES = frozenset({"failed", "error"})
PENDING_STATUSES = frozenset({"pending", "queued"})
PROCESSING_STATUSES = frozenset({"processing", "running"})

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})

REFERENCE_PROMPT = """Reference Images Information:
- The FIRST image provided is the Scene/Environment reference.
- Any subsequent images are Character references (e.g. Base Look, or specific Variation).

Task:
Generate a cinematic shot matching this prompt: "{prompt}".

Requirements:
- STRICTLY maintain the visual style, lighting, and environment from the scene reference.
- If characters are present, they MUST resemble the character reference images provided."""

_FENCE = re.compile(r"```(?:json)?\n?", re.IGNORECASE)


def clean_json_text(text: Optional[str]) -> str:
    """Strip markdown code fences around a JSON answer."""
    if not text:
        return "{}"
    return _FENCE.sub("", text).strip()


def classify_status(raw: Optional[str]) -> Optional[TaskStatus]:
    """Map an upstream status token onto TaskStatus.

    Returns None for a missing or unrecognized token.
    """
    if not raw:
        return None
    token = raw.strip().lower()
    if token in COMPLETED_STATUSES:
        return TaskStatus.COMPLETED
    if token in FAILED_STATUSES:
        return TaskStatus.FAILED
    if token in PENDING_STATUSES:
        return TaskStatus.PENDING
    if token in PROCESSING_STATUSES:
        return TaskStatus.PROCESSING
    return None


def is_local_url(url: str) -> bool:
    """True for URLs the upstream service cannot reach."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return False
    return host in LOCAL_HOSTS


class GenerationClient:
    """Single entry point for text, image and video generation.

    Every upstream call goes through the same RetryGovernor. The settings are
    frozen; ``with_config`` and ``with_api_key`` return new clients.
    """

    def __init__(
        self,
        settings: Optional[GenerationConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
        text_backend: Optional[Any] = None,
        image_backend: Optional[Any] = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Generation settings. Snapshotted from the environment
                config when omitted.
            session: HTTP session shared by the REST backends.
            sleep: Sleep function for backoff and polling.
            text_backend: Object with ``complete_text``, overriding the
                configured provider.
            image_backend: Object with ``generate_image``, overriding the
                configured provider.
        """
        self.settings = settings or GenerationConfig.from_config()
        self._session = session or requests.Session()
        self._sleep = sleep or time.sleep
        self.ark = ArkBackend(self.settings, self._session)
        self.governor = RetryGovernor(
            max_attempts=self.settings.max_attempts,
            base_delay=self.settings.base_delay,
            sleep=self._sleep,
        )
        self._text_backend = text_backend
        self._image_backend = image_backend

    def with_config(self, **changes) -> "GenerationClient":
        """Return a new client with some settings replaced."""
        return GenerationClient(
            self.settings.model_copy(update=changes),
            session=self._session,
            sleep=self._sleep,
        )

    def with_api_key(self, api_key: str) -> "GenerationClient":
        """Return a new client that authenticates with ``api_key``."""
        return GenerationClient(
            self.settings.with_api_key(api_key),
            session=self._session,
            sleep=self._sleep,
        )

    @property
    def text_backend(self) -> Any:
        if self._text_backend is None:
            provider = self.settings.text_provider
            if provider == "anthropic":
                from .anthropic import AnthropicBackend

                self._text_backend = AnthropicBackend(self.settings)
            elif provider == "ark":
                self._text_backend = self.ark
            else:
                raise ValueError(f"Unknown text provider: {provider}")
        return self._text_backend

    @property
    def image_backend(self) -> Any:
        if self._image_backend is None:
            provider = self.settings.image_provider
            if provider == "imagen":
                from .imagen import ImagenBackend

                self._image_backend = ImagenBackend(self.settings, session=self._session)
            elif provider == "ark":
                self._image_backend = self.ark
            else:
                raise ValueError(f"Unknown image provider: {provider}")
        return self._image_backend

    # Text

    def submit_text(self, prompt: str, response_format: Optional[str] = None) -> str:
        """Run one text completion.

        Args:
            prompt: Prompt text.
            response_format: ``"json_object"`` to ask for JSON output.

        Returns:
            Raw completion text. Use ``clean_json_text`` before parsing JSON.
        """
        return self.governor.execute(
            lambda: self.text_backend.complete_text(prompt, response_format=response_format),
            label="Chat API",
        )

    # Images

    def submit_image(self, prompt: str, reference_images: Sequence[str] = ()) -> str:
        """Generate one image.

        Args:
            prompt: Natural-language description.
            reference_images: Ordered references. The first is the scene,
                the rest are characters.

        Returns:
            The image as a data URL.
        """
        references = [image for image in reference_images if image]
        final_prompt = REFERENCE_PROMPT.format(prompt=prompt) if references else prompt

        raw = self.governor.execute(
            lambda: self.image_backend.generate_image(final_prompt, references or None),
            label="Image API",
        )

        if is_data_url(raw):
            return raw
        if raw.startswith(("http://", "https://")):
            logger.debug("Image returned as URL, downloading")
            return self.download(raw, default_mime="image/png")
        return f"data:image/png;base64,{raw}"

    # Video

    def _localize(self, image: Optional[str]) -> Optional[str]:
        if not image or is_data_url(image) or not is_local_url(image):
            return image
        logger.info(f"Converting local image URL to data URL: {image}")
        try:
            return self.download(image, default_mime="image/png")
        except PermanentUpstreamError as e:
            raise PermanentUpstreamError(f"Failed to convert local image {image}: {e}") from e

    def submit_video(
        self,
        prompt: str,
        start_image: Optional[str] = None,
        end_image: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> GenerationTask:
        """Start an asynchronous video generation.

        Returns:
            Task handle to pass to ``poll`` or ``wait_for_video``.
        """
        start = self._localize(start_image)
        end = self._localize(end_image)

        task_id = self.governor.execute(
            lambda: self.ark.create_video_task(prompt, start, end, duration),
            label="Video API",
        )
        logger.info(f"Video task created: {task_id}")
        return GenerationTask(task_id=task_id)

    def poll(self, task: GenerationTask) -> PollResult:
        """Query a task once and classify the answer.

        Updates ``task.polls`` and, for recognized statuses, ``task.status``.
        """
        data = self.governor.execute(
            lambda: self.ark.get_video_task(task.task_id),
            label="Video status",
        )
        task.polls += 1

        raw_status = extractors.status(data)
        status = classify_status(raw_status)
        result = PollResult(status=status, raw_status=raw_status)

        if status == TaskStatus.COMPLETED:
            result.result_url = extractors.video_url(data)
        elif status == TaskStatus.FAILED:
            result.error = extractors.error_message(data)

        if status is not None:
            task.status = status
        if status not in (None, TaskStatus.PENDING, TaskStatus.PROCESSING):
            logger.debug(f"Task {task.task_id} response: {data}")
        return result

    def wait_for_video(
        self,
        task: GenerationTask,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Poll until the task finishes.

        Args:
            task: Handle from ``submit_video``.
            cancel: Checked before every poll.

        Returns:
            The result video URL.

        Raises:
            PermanentUpstreamError: If the upstream reports failure.
            MalformedResponseError: If it completed without a video URL.
            GenerationTimeoutError: If the attempt bound runs out.
            OperationCancelledError: If ``cancel`` was set.
        """
        max_attempts = self.settings.max_poll_attempts
        threshold = self.settings.unknown_status_threshold
        unknown_streak = 0

        logger.info(f"Polling task {task.task_id} (every {self.settings.poll_interval}s, max {max_attempts})")

        for attempt in range(max_attempts):
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError(f"Cancelled while waiting for {task.task_id}")

            self._sleep(self.settings.poll_interval)
            result = self.poll(task)

            if result.status == TaskStatus.COMPLETED:
                if not result.result_url:
                    task.status = TaskStatus.FAILED
                    task.error = "No video URL in response"
                    raise MalformedResponseError(f"Task {task.task_id} completed without a video URL")
                task.result_url = result.result_url
                logger.info(f"Task {task.task_id} completed after {task.polls} polls")
                return result.result_url

            if result.status == TaskStatus.FAILED:
                task.error = result.error or "Unknown error"
                logger.error(f"Task {task.task_id} failed: {task.error}")
                raise PermanentUpstreamError(f"Video generation failed: {task.error}")

            if result.status is None and result.raw_status:
                unknown_streak += 1
                if unknown_streak == threshold:
                    task.unrecognized_status = result.raw_status
                    logger.warning(
                        f"Task {task.task_id} reported unrecognized status "
                        f"'{result.raw_status}' {threshold} times in a row; still polling"
                    )
            else:
                unknown_streak = 0

            if attempt % 10 == 0:
                logger.debug(f"Task {task.task_id} poll {attempt + 1}/{max_attempts}: {result.raw_status or 'unknown'}")

        task.status = TaskStatus.TIMEOUT
        logger.error(f"Task {task.task_id} timed out after {max_attempts} polls")
        raise GenerationTimeoutError(task.task_id, max_attempts)

    def generate_video(
        self,
        prompt: str,
        start_image: Optional[str] = None,
        end_image: Optional[str] = None,
        duration: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Submit a video task and wait for its result URL."""
        task = self.submit_video(prompt, start_image, end_image, duration)
        return self.wait_for_video(task, cancel=cancel)

    # Downloads

    def download(self, url: str, default_mime: str = "application/octet-stream") -> str:
        """Fetch a result and return it as a data URL."""
        if is_data_url(url):
            return url
        body, content_type = self.governor.execute(
            lambda: self.ark.download(url),
            label="Download",
        )
        if not content_type or content_type in ("application/octet-stream", "binary/octet-stream"):
            content_type = default_mime
        return to_data_url(body, content_type)
