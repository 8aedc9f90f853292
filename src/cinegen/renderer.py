"""Reference, keyframe and video rendering for a storyboard."""

import logging
import threading
from typing import List, Optional, Union

from .agents.visual import VisualInput, VisualPromptAgent
from .errors import GenerationTimeoutError, OperationCancelledError
from .models import (
    Character,
    KeyframeStatus,
    KeyframeType,
    Scene,
    ScriptData,
    Shot,
    StageReport,
    TaskStatus,
    generate_filename,
)
from .services.client import GenerationClient
from .storage.payloads import data_url_mime_type, extension_for
from .storage.resources import ResourceCache

logger = logging.getLogger(__name__)


def _cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()


class StoryboardRenderer:
    """Generates and stores the images and videos of a storyboard.

    Items are processed one at a time. A failing item is marked on the item
    itself and counted in the stage report; the rest of the stage goes on.
    """

    def __init__(
        self,
        client: GenerationClient,
        resources: ResourceCache,
        visual_agent: Optional[VisualPromptAgent] = None,
    ) -> None:
        """Initialize the renderer.

        Args:
            client: Generation client for images and videos.
            resources: Where results are saved and references resolved.
            visual_agent: Writes missing visual prompts. Built on ``client``
                if not provided.
        """
        self.client = client
        self.resources = resources
        self.visual_agent = visual_agent or VisualPromptAgent(client)

    def _save_image(self, prefix: str, image: str) -> str:
        mime_type = data_url_mime_type(image) or "image/png"
        filename = generate_filename(prefix, extension_for(mime_type))
        return self.resources.save("images", filename, image, mime_type)

    def render_references(
        self,
        script: ScriptData,
        cancel: Optional[threading.Event] = None,
    ) -> StageReport:
        """Create a reference image for every character and scene.

        Subjects without a visual prompt get one from the visual agent
        first. Subjects that already have an image are skipped.

        Args:
            script: Parsed script; updated in place.
            cancel: Checked before every subject.

        Returns:
            StageReport for the ``references`` stage.
        """
        report = StageReport(stage="references")
        subjects: List[Union[Character, Scene]] = [*script.characters, *script.scenes]

        for subject in subjects:
            if _cancelled(cancel):
                report.cancelled = True
                break
            if subject.image_url:
                report.skipped += 1
                continue

            kind = "character" if isinstance(subject, Character) else "scene"
            try:
                if not subject.visual_prompt:
                    subject.visual_prompt = self.visual_agent.run(
                        VisualInput(subject=subject, genre=script.genre)
                    )
                image = self.client.submit_image(subject.visual_prompt)
                subject.image_url = self._save_image(kind, image)
                report.succeeded += 1
                logger.info(f"Reference image ready for {kind} {subject.id}")
            except Exception as e:
                report.failed += 1
                logger.error(f"Reference image failed for {kind} {subject.id}: {e}")

        return report

    def reference_images(self, shot: Shot, script: ScriptData) -> List[str]:
        """Resolve the scene image, then each character image, for a shot."""
        references: List[Optional[str]] = []
        scene = script.scene(shot.scene_id)
        if scene is not None:
            references.append(scene.image_url)
        for character_id in shot.characters:
            character = script.character(character_id)
            if character is not None:
                references.append(character.image_url)
        return [image for image in self.resources.resolve_many(references, "images") if image]

    def render_keyframes(
        self,
        shots: List[Shot],
        script: ScriptData,
        cancel: Optional[threading.Event] = None,
    ) -> StageReport:
        """Generate the image of every keyframe that is not ready yet.

        Args:
            shots: Shots to render; keyframes are updated in place.
            script: Script holding the reference images.
            cancel: Checked before every keyframe.

        Returns:
            StageReport for the ``keyframes`` stage.
        """
        report = StageReport(stage="keyframes")

        for shot in shots:
            for keyframe in shot.keyframes:
                if _cancelled(cancel):
                    report.cancelled = True
                    return report
                if keyframe.status == KeyframeStatus.READY and keyframe.image_url:
                    report.skipped += 1
                    continue

                keyframe.status = KeyframeStatus.GENERATING
                keyframe.error = None
                try:
                    references = self.reference_images(shot, script)
                    prompt = keyframe.visual_prompt or shot.action_summary
                    image = self.client.submit_image(prompt, references)
                    keyframe.image_url = self._save_image("keyframe", image)
                    keyframe.status = KeyframeStatus.READY
                    report.succeeded += 1
                    logger.info(f"Keyframe {keyframe.id} ready")
                except Exception as e:
                    keyframe.status = KeyframeStatus.FAILED
                    keyframe.error = str(e)
                    report.failed += 1
                    logger.error(f"Keyframe {keyframe.id} failed: {e}")

        return report

    def render_videos(
        self,
        shots: List[Shot],
        cancel: Optional[threading.Event] = None,
        duration: Optional[int] = None,
    ) -> StageReport:
        """Generate a video for every shot with a ready start keyframe.

        Args:
            shots: Shots to render; updated in place.
            cancel: Checked before every shot and while polling.
            duration: Clip length in seconds, config default if None.

        Returns:
            StageReport for the ``videos`` stage.
        """
        report = StageReport(stage="videos")

        for shot in shots:
            if _cancelled(cancel):
                report.cancelled = True
                break

            start = shot.keyframe(KeyframeType.START)
            if start is None or start.status != KeyframeStatus.READY or not start.image_url:
                logger.debug(f"{shot.id} has no ready start keyframe, skipping")
                report.skipped += 1
                continue
            if shot.video_status == TaskStatus.COMPLETED and shot.video_url:
                report.skipped += 1
                continue

            end = shot.keyframe(KeyframeType.END)
            shot.video_status = TaskStatus.PROCESSING
            shot.video_error = None
            try:
                start_image = self.resources.resolve(start.image_url, "images")
                if start_image is None:
                    raise ValueError(f"Start keyframe image unavailable: {start.image_url}")
                end_image = None
                if end is not None and end.status == KeyframeStatus.READY:
                    end_image = self.resources.resolve(end.image_url, "images")

                prompt = shot.action_summary
                if shot.camera_movement:
                    prompt = f"{prompt} Camera: {shot.camera_movement}."

                url = self.client.generate_video(
                    prompt, start_image, end_image, duration=duration, cancel=cancel
                )
                video = self.client.download(url, default_mime="video/mp4")
                shot.video_url = self.resources.save(
                    "videos", generate_filename("video", ".mp4"), video, "video/mp4"
                )
                shot.video_status = TaskStatus.COMPLETED
                report.succeeded += 1
                logger.info(f"Video ready for {shot.id}")
            except OperationCancelledError:
                shot.video_status = None
                report.cancelled = True
                break
            except GenerationTimeoutError as e:
                shot.video_status = TaskStatus.TIMEOUT
                shot.video_error = str(e)
                report.failed += 1
                logger.error(f"Video for {shot.id} timed out: {e}")
            except Exception as e:
                shot.video_status = TaskStatus.FAILED
                shot.video_error = str(e)
                report.failed += 1
                logger.error(f"Video for {shot.id} failed: {e}")

        return report
