"""
Pytest Configuration and Fixtures

Shared fakes and fixtures for all tests.
"""

import json
from typing import Any, Dict, List, Optional

import pytest

from cinegen.config import GenerationConfig
from cinegen.models import Character, Scene, ScriptData, StoryParagraph

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png"
PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgpmYWtlLXBuZw=="


class FakeResponse:
    """Just enough of ``requests.Response`` for the code under test."""

    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = None,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        text: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self._json = json_body
        self.headers = headers or {}
        if text is None:
            text = json.dumps(json_body) if json_body is not None else content.decode("latin-1")
        self.text = text
        self.content = content or text.encode("utf-8")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._json is None:
            return json.loads(self.text)
        return self._json


class FakeSession:
    """Routes requests by method and URL fragment to canned responses.

    With several responses on one route they are served in order and the
    last one repeats.
    """

    def __init__(self) -> None:
        self.routes: List[list] = []
        self.calls: List[tuple] = []

    def add(self, method: str, fragment: str, *responses: Any) -> "FakeSession":
        self.routes.append([method, fragment, list(responses)])
        return self

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        for route_method, fragment, responses in self.routes:
            if route_method == method and fragment in url:
                response = responses.pop(0) if len(responses) > 1 else responses[0]
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"Unexpected request: {method} {url}")

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    def calls_to(self, method: str, fragment: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method and fragment in c[1]]


class FakeClient:
    """Stand-in for GenerationClient with scripted answers."""

    def __init__(self, texts: Optional[List[Any]] = None) -> None:
        self.texts = list(texts or [])
        self.prompts: List[str] = []
        self.images: List[tuple] = []
        self.videos: List[tuple] = []
        self.image_result: Any = PNG_DATA_URL
        self.video_result: Any = "https://cdn.example.com/out.mp4"
        self.downloads: List[str] = []

    def submit_text(self, prompt: str, response_format: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        answer = self.texts.pop(0) if self.texts else "[]"
        if isinstance(answer, Exception):
            raise answer
        return answer

    def submit_image(self, prompt: str, reference_images=()) -> str:
        self.images.append((prompt, list(reference_images)))
        if isinstance(self.image_result, Exception):
            raise self.image_result
        return self.image_result

    def generate_video(self, prompt, start_image=None, end_image=None, duration=None, cancel=None) -> str:
        self.videos.append((prompt, start_image, end_image))
        if isinstance(self.video_result, Exception):
            raise self.video_result
        return self.video_result

    def download(self, url: str, default_mime: str = "application/octet-stream") -> str:
        self.downloads.append(url)
        return "data:video/mp4;base64,AAAAIGZ0eXA="


@pytest.fixture
def settings() -> GenerationConfig:
    """Generation settings pointing at a fake host."""
    return GenerationConfig(
        api_key="test-key-123456",
        base_url="https://ark.test/api/v3",
        poll_interval=5.0,
    )


@pytest.fixture
def sleeps() -> List[float]:
    """Collects the delays passed to an injected sleep function."""
    return []


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def script() -> ScriptData:
    """Two scenes; only the first has story text."""
    return ScriptData(
        title="The Heist",
        genre="Thriller",
        target_duration="60s",
        characters=[
            Character(id="c1", name="Mara", personality="calm", visual_prompt="woman in grey coat"),
            Character(id="c2", name="Jon", personality="nervous"),
        ],
        scenes=[
            Scene(id="s1", location="Vault", time="Night", atmosphere="Tense"),
            Scene(id="s2", location="Roof", time="Dawn", atmosphere="Quiet"),
        ],
        story_paragraphs=[
            StoryParagraph(id=1, text="Mara cracks the vault.", scene_ref_id="s1"),
            StoryParagraph(id=2, text="Jon keeps watch.", scene_ref_id=" s1 "),
        ],
    )
