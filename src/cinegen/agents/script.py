"""Script agent: raw screenplay text to structured ScriptData."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from ..errors import MalformedResponseError
from ..models import Character, Scene, ScriptData, StoryParagraph
from .base import BaseAgent

logger = logging.getLogger(__name__)

MAX_SCRIPT_CHARS = 30000

PROMPT_TEMPLATE = """Analyze the text and output a JSON object in the language: {language}.

Tasks:
1. Extract title, genre, logline (in {language}).
2. Extract characters (id, name, gender, age, personality).
3. Extract scenes (id, location, time, atmosphere).
4. Break down the story into paragraphs linked to scenes.

Input:
"{text}"

Output a valid JSON object with this structure:
{{
  "title": "...",
  "genre": "...",
  "logline": "...",
  "characters": [{{"id": "...", "name": "...", "gender": "...", "age": "...", "personality": "..."}}],
  "scenes": [{{"id": "...", "location": "...", "time": "...", "atmosphere": "..."}}],
  "storyParagraphs": [{{"id": 1, "text": "...", "sceneRefId": "..."}}]
}}"""


@dataclass
class ScriptInput:
    """Input data for the script agent."""

    text: str
    language: str = "English"
    target_duration: Optional[str] = None


def _drop_none(item: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in item.items() if value is not None}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _build_items(raw: Any, model: Type[BaseModel], label: str) -> List[Any]:
    """Validate a list of dicts, skipping entries that do not fit."""
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            items.append(model.model_validate(_drop_none(entry)))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {label}: {e.errors()[0].get('msg')}")
    return items


class ScriptAgent(BaseAgent[ScriptInput, ScriptData]):
    """Agent for structuring a screenplay.

    Extracts title, genre, logline, characters, scenes and the story
    paragraphs attached to each scene. Output that cannot be parsed yields an
    empty ScriptData with default values instead of an error.
    """

    @property
    def name(self) -> str:
        """Return the agent's name."""
        return "ScriptAgent"

    def run(self, input_data: ScriptInput) -> ScriptData:
        """Parse the screenplay.

        Args:
            input_data: Raw text and output language.

        Returns:
            Structured ScriptData.
        """
        self._logger.info(
            f"Parsing script ({len(input_data.text)} chars, language: {input_data.language})"
        )

        prompt = PROMPT_TEMPLATE.format(
            language=input_data.language,
            text=input_data.text[:MAX_SCRIPT_CHARS],
        )
        response = self._create_message(prompt, response_format="json_object")

        try:
            parsed = self._parse_json(response)
        except MalformedResponseError as e:
            self._logger.error(f"Failed to parse script JSON: {e}")
            parsed = {}
        if not isinstance(parsed, dict):
            parsed = {}

        script = self._build_script(parsed, input_data)
        self._logger.info(
            f"Parsed '{script.title}': {len(script.characters)} characters, "
            f"{len(script.scenes)} scenes, {len(script.story_paragraphs)} paragraphs"
        )
        return script

    def _build_script(self, parsed: Dict[str, Any], input_data: ScriptInput) -> ScriptData:
        characters = _build_items(parsed.get("characters"), Character, "character")
        for character in characters:
            character.variations = []

        return ScriptData(
            title=_text(parsed.get("title")) or "Untitled Script",
            genre=_text(parsed.get("genre")) or "General",
            logline=_text(parsed.get("logline")),
            language=input_data.language,
            target_duration=input_data.target_duration,
            characters=characters,
            scenes=_build_items(parsed.get("scenes"), Scene, "scene"),
            story_paragraphs=_build_items(
                parsed.get("storyParagraphs", parsed.get("story_paragraphs")),
                StoryParagraph,
                "paragraph",
            ),
        )
