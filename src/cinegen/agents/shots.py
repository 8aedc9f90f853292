"""Shot list agent: per-scene camera blocking for a parsed script."""

import json
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..errors import MalformedResponseError
from ..models import Keyframe, KeyframeStatus, KeyframeType, Scene, ScriptData, Shot, StageReport
from ..services.client import clean_json_text
from .base import BaseAgent

logger = logging.getLogger(__name__)

SCENE_DELAY = 1.5
MAX_SCENE_CHARS = 5000
WRAPPER_KEYS = ("shots", "data", "result")
_ARRAY = re.compile(r"\[[\s\S]*\]")

PROMPT_TEMPLATE = """Act as a professional cinematographer. Generate a detailed shot list (Camera blocking) for Scene {number}.
Language for Text Output: {language}.

Scene Details:
Location: {location}
Time: {time}
Atmosphere: {atmosphere}

Scene Action:
"{action}"

Context:
Genre: {genre}
Target Duration (Whole Script): {target_duration}

Characters:
{characters}

Instructions:
1. Create a sequence of shots covering the action.
2. IMPORTANT: Limit to maximum 6-8 shots per scene to prevent JSON truncation errors. If the scene is long, summarize the less critical actions.
3. 'cameraMovement': Use professional terms (e.g., Dolly In, Pan Right, Static, Handheld, Tracking).
4. 'shotSize': Specify the field of view (e.g., Extreme Close-up, Medium Shot, Wide Shot).
5. 'actionSummary': Detailed description of what happens in the shot (in {language}).
6. 'visualPrompt': Detailed English description for image generation. Keep it under 40 words to save tokens.

Output a valid JSON array with this structure:
[
  {{
    "id": "...",
    "sceneId": "{scene_id}",
    "actionSummary": "...",
    "dialogue": "...",
    "cameraMovement": "...",
    "shotSize": "...",
    "characters": ["..."],
    "keyframes": [
      {{"id": "...", "type": "start", "visualPrompt": "..."}},
      {{"id": "...", "type": "end", "visualPrompt": "..."}}
    ]
  }}
]"""


@dataclass
class ShotListInput:
    """Input data for the shot list agent."""

    script: ScriptData
    cancel: Optional[threading.Event] = None


@dataclass
class ShotPlan:
    """Flattened, re-indexed shots plus per-scene counts."""

    shots: List[Shot] = field(default_factory=list)
    report: StageReport = field(default_factory=lambda: StageReport(stage="shots"))


def parse_shots(response: str) -> List[Dict[str, Any]]:
    """Extract the list of shot objects from a completion.

    Accepts a bare array, an object wrapping the array, or an array embedded
    in surrounding prose.

    Raises:
        MalformedResponseError: If no array can be recovered.
    """
    try:
        parsed = json.loads(clean_json_text(response))
    except json.JSONDecodeError:
        match = _ARRAY.search(response or "")
        if not match:
            raise MalformedResponseError("Failed to parse shots array")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Failed to parse shots array: {e}") from e

    if isinstance(parsed, dict):
        for key in WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                parsed = parsed[key]
                break
        else:
            parsed = next((v for v in parsed.values() if isinstance(v, list)), [])

    if not isinstance(parsed, list):
        return []
    return [entry for entry in parsed if isinstance(entry, dict)]


def select_keyframes(raw: Any) -> List[Dict[str, Any]]:
    """Keep the first start and first end keyframe, in that order."""
    picked: Dict[str, Dict[str, Any]] = {}
    for entry in raw if isinstance(raw, list) else []:
        if not isinstance(entry, dict):
            continue
        kind = str(entry.get("type", "")).strip().lower()
        if kind in (KeyframeType.START.value, KeyframeType.END.value) and kind not in picked:
            picked[kind] = entry
    return [picked[kind] for kind in (KeyframeType.START.value, KeyframeType.END.value) if kind in picked]


def _field(entry: Dict[str, Any], camel: str, snake: str) -> str:
    value = entry.get(camel, entry.get(snake))
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def build_shot(entry: Dict[str, Any], scene_id: str) -> Shot:
    """Turn one raw shot object into a Shot bound to ``scene_id``.

    Ids are placeholders until the plan is re-indexed.
    """
    characters = entry.get("characters")
    keyframes = [
        Keyframe(
            id="",
            type=KeyframeType(str(kf["type"]).strip().lower()),
            visual_prompt=_field(kf, "visualPrompt", "visual_prompt"),
        )
        for kf in select_keyframes(entry.get("keyframes"))
    ]
    return Shot(
        id="",
        scene_id=scene_id,
        action_summary=_field(entry, "actionSummary", "action_summary"),
        dialogue=_field(entry, "dialogue", "dialogue"),
        camera_movement=_field(entry, "cameraMovement", "camera_movement"),
        shot_size=_field(entry, "shotSize", "shot_size"),
        characters=[str(c) for c in characters if c is not None] if isinstance(characters, list) else [],
        keyframes=keyframes,
    )


def reindex(shots: List[Shot]) -> List[Shot]:
    """Number shots ``shot-1..n`` and keyframes ``kf-{n}-{type}``, all pending."""
    for number, shot in enumerate(shots, start=1):
        shot.id = f"shot-{number}"
        for keyframe in shot.keyframes:
            keyframe.id = f"kf-{number}-{keyframe.type.value}"
            keyframe.status = KeyframeStatus.PENDING
    return shots


class ShotListAgent(BaseAgent[ShotListInput, ShotPlan]):
    """Agent for breaking every scene of a script into shots.

    Scenes are handled one at a time with a fixed pause between them. A
    scene that fails contributes no shots; the others are unaffected.
    """

    def __init__(
        self,
        client=None,
        scene_delay: float = SCENE_DELAY,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        """Initialize the agent.

        Args:
            client: GenerationClient instance. Created if not provided.
            scene_delay: Seconds to wait between scenes.
            sleep: Sleep function, ``time.sleep`` by default.
        """
        super().__init__(client)
        self.scene_delay = scene_delay
        self._sleep = sleep or time.sleep

    @property
    def name(self) -> str:
        """Return the agent's name."""
        return "ShotListAgent"

    def run(self, input_data: ShotListInput) -> ShotPlan:
        """Generate the shot list for every scene.

        Args:
            input_data: Parsed script and an optional cancel flag.

        Returns:
            ShotPlan with the flattened shots in scene order.
        """
        script = input_data.script
        cancel = input_data.cancel
        plan = ShotPlan()

        if not script.scenes:
            self._logger.warning("No scenes in script, returning empty shot list")
            return plan

        self._logger.info(f"Generating shot list for {len(script.scenes)} scenes")
        collected: List[Shot] = []

        for index, scene in enumerate(script.scenes):
            if cancel is not None and cancel.is_set():
                self._logger.warning(f"Cancelled before scene {index + 1}")
                plan.report.cancelled = True
                break
            if index > 0:
                self._sleep(self.scene_delay)

            text = "\n".join(p.text for p in script.paragraphs_for(scene))
            if not text.strip():
                self._logger.debug(f"Scene {scene.id} has no text, skipping")
                plan.report.skipped += 1
                continue

            try:
                shots = self._process_scene(script, scene, index, text)
            except Exception as e:
                self._logger.error(f"Shot generation failed for scene {scene.id}: {e}")
                plan.report.failed += 1
                continue

            plan.report.succeeded += 1
            collected.extend(shots)

        plan.shots = reindex(collected)
        self._logger.info(
            f"Generated {len(plan.shots)} shots "
            f"({plan.report.succeeded} scenes ok, {plan.report.failed} failed, "
            f"{plan.report.skipped} skipped)"
        )
        return plan

    def _process_scene(self, script: ScriptData, scene: Scene, index: int, text: str) -> List[Shot]:
        self._logger.debug(f"Processing scene {index + 1}: {scene.id} ({scene.location})")
        response = self._create_message(
            self._build_prompt(script, scene, index, text),
            response_format="json_object",
        )
        scene_id = str(scene.id)
        return [build_shot(entry, scene_id) for entry in parse_shots(response)]

    def _build_prompt(self, script: ScriptData, scene: Scene, index: int, text: str) -> str:
        characters = [
            {"id": c.id, "name": c.name, "desc": c.description}
            for c in script.characters
        ]
        return PROMPT_TEMPLATE.format(
            number=index + 1,
            language=script.language,
            location=scene.location,
            time=scene.time,
            atmosphere=scene.atmosphere,
            action=text[:MAX_SCENE_CHARS],
            genre=script.genre,
            target_duration=script.target_duration or "Standard",
            characters=json.dumps(characters, ensure_ascii=False),
            scene_id=scene.id,
        )
