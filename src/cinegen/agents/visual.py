"""Visual prompt agent for characters and scenes."""

import json
import logging
from dataclasses import dataclass
from typing import Union

from ..models import Character, Scene
from .base import BaseAgent

logger = logging.getLogger(__name__)


@dataclass
class VisualInput:
    """Subject of a visual prompt."""

    subject: Union[Character, Scene]
    genre: str = "General"

    @property
    def kind(self) -> str:
        return "character" if isinstance(self.subject, Character) else "scene"


class VisualPromptAgent(BaseAgent[VisualInput, str]):
    """Writes an English, comma-separated image prompt for one subject."""

    @property
    def name(self) -> str:
        """Return the agent's name."""
        return "VisualPromptAgent"

    def run(self, input_data: VisualInput) -> str:
        data = input_data.subject.model_dump(
            by_alias=True,
            exclude={"image_url", "variations", "visual_prompt"},
            exclude_none=True,
        )
        prompt = (
            f"Generate a high-fidelity visual prompt for a {input_data.kind} "
            f"in a {input_data.genre} movie.\n"
            f"Data: {json.dumps(data, ensure_ascii=False)}.\n"
            "Output only the prompt in English, comma-separated, focused on visual "
            "details (lighting, texture, appearance)."
        )

        self._logger.info(f"Designing {input_data.kind} prompt for {input_data.subject.id}")
        return self._create_message(prompt).strip()
