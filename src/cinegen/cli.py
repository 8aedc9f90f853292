"""CLI entry point for the storyboard generator."""

import logging
import signal
import threading
import typer
from pathlib import Path
from typing import Optional

from . import __version__
from .config import GenerationConfig, config
from .models import Project, ProjectStage, StageReport

app = typer.Typer(
    name="cinegen",
    help="AI-powered script-to-storyboard generator",
    no_args_is_help=True
)

PROJECT_OPTION = typer.Option(
    Path("project.yaml"),
    "--project",
    "-p",
    help="Path to project YAML file",
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable verbose logging"
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cinegen version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """CineGen - Turn a screenplay into shots, keyframes and video clips."""
    pass


def _load_project(path: Path) -> Project:
    if not path.exists():
        typer.echo(f"❌ No project found at {path}")
        typer.echo("   Run 'cinegen new' to create a new project")
        raise typer.Exit(1)
    try:
        return Project.from_yaml(path)
    except Exception as e:
        typer.echo(f"❌ Error loading project: {e}")
        raise typer.Exit(1)


def _save_project(project: Project, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        project.to_yaml(path)
    except Exception as e:
        typer.echo(f"❌ Error saving project: {e}")
        raise typer.Exit(1)


def _client():
    from .services import GenerationClient

    try:
        config.validate_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)
    return GenerationClient(GenerationConfig.from_config(config))


def _resources(client):
    from .storage import LocalCache, RemoteStore, ResourceCache

    try:
        config.validate_store_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)
    remote = RemoteStore(
        config.store_url,
        username=config.username,
        api_key=client.settings.api_key,
    )
    return ResourceCache(remote, LocalCache(config.cache_dir))


def _cancel_on_interrupt() -> threading.Event:
    """Turn the first Ctrl-C into a cooperative cancel request."""
    cancel = threading.Event()

    def handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        typer.echo("\n⚠️  Cancelling after the current item (Ctrl-C again to abort)")
        cancel.set()

    signal.signal(signal.SIGINT, handler)
    return cancel


def _report(report: StageReport) -> None:
    typer.echo(f"\n📊 Summary ({report.stage}):")
    typer.echo(f"   Succeeded: {report.succeeded}")
    typer.echo(f"   Failed: {report.failed}")
    typer.echo(f"   Skipped: {report.skipped}")
    if report.cancelled:
        typer.echo("   ⚠️  Cancelled before completion")
    if report.failed > 0:
        typer.echo(f"\n⚠️  {report.failed} item(s) failed")
        raise typer.Exit(1)


def _require_script(project: Project) -> None:
    if project.script_data is None:
        typer.echo("❌ Project has no parsed script")
        typer.echo("   Run 'cinegen parse' first")
        raise typer.Exit(1)


@app.command()
def new(
    script_file: Path = typer.Argument(
        ...,
        help="Screenplay or story text file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    title: Optional[str] = typer.Option(
        None,
        "--title",
        "-t",
        help="Project title"
    ),
    language: str = typer.Option(
        "English",
        "--language",
        "-l",
        help="Language for generated text"
    ),
    duration: str = typer.Option(
        "60s",
        "--duration",
        "-d",
        help="Target runtime of the whole script"
    ),
    output: Path = PROJECT_OPTION,
) -> None:
    """Create a new project from a script text file."""
    if output.exists():
        typer.echo(f"❌ Project already exists at {output}")
        raise typer.Exit(1)

    project = Project(
        raw_script=script_file.read_text(encoding="utf-8"),
        language=language,
        target_duration=duration,
    )
    if title:
        project.title = title

    _save_project(project, output)
    typer.echo(f"✅ Project created: {output}")
    typer.echo(f"   Id: {project.id}")
    typer.echo(f"   Script: {len(project.raw_script)} characters")


@app.command()
def parse(
    project_file: Path = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Break the raw script into characters, scenes and paragraphs."""
    from .agents import ScriptAgent, ScriptInput

    setup_logging(verbose)
    project = _load_project(project_file)
    if not project.raw_script.strip():
        typer.echo("❌ Project has no script text")
        raise typer.Exit(1)

    typer.echo(f"📝 Parsing script for {project.title}")
    try:
        agent = ScriptAgent(_client())
        script = agent.run(ScriptInput(
            text=project.raw_script,
            language=project.language,
            target_duration=project.target_duration,
        ))
    except typer.Exit:
        raise
    except Exception as e:
        typer.echo(f"❌ Error parsing script: {e}")
        raise typer.Exit(1)

    project.script_data = script
    if project.title == "Untitled Project" and script.title:
        project.title = script.title
    project.stage = ProjectStage.ASSETS
    _save_project(project, project_file)

    typer.echo(f"\n✅ Parsed '{script.title}' ({script.genre})")
    typer.echo(f"   Characters: {len(script.characters)}")
    typer.echo(f"   Scenes: {len(script.scenes)}")
    typer.echo(f"   Paragraphs: {len(script.story_paragraphs)}")


@app.command()
def shots(
    project_file: Path = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Generate the shot list for every scene."""
    from .agents import ShotListAgent, ShotListInput

    setup_logging(verbose)
    project = _load_project(project_file)
    _require_script(project)

    typer.echo(f"🎥 Planning shots for {len(project.script_data.scenes)} scenes")
    cancel = _cancel_on_interrupt()
    try:
        plan = ShotListAgent(_client()).run(ShotListInput(project.script_data, cancel=cancel))
    except typer.Exit:
        raise
    except Exception as e:
        typer.echo(f"❌ Error generating shots: {e}")
        raise typer.Exit(1)

    project.shots = plan.shots
    project.stage = ProjectStage.DIRECTOR
    _save_project(project, project_file)

    typer.echo(f"\n✅ {len(plan.shots)} shots saved to {project_file}")
    _report(plan.report)


@app.command()
def status(project_file: Path = PROJECT_OPTION) -> None:
    """Show project status."""
    project = _load_project(project_file)

    typer.echo(f"📁 Project: {project.title} ({project.id})")
    typer.echo(f"   Stage: {project.stage.value}")
    typer.echo(f"   Language: {project.language}")
    typer.echo(f"   Target duration: {project.target_duration}")

    script = project.script_data
    if script is None:
        typer.echo("   Script: not parsed")
        return

    typer.echo(f"   Characters: {len(script.characters)}")
    typer.echo(f"   Scenes: {len(script.scenes)}")
    references = sum(1 for s in [*script.characters, *script.scenes] if s.image_url)
    typer.echo(f"   Reference images: {references}/{len(script.characters) + len(script.scenes)}")

    if not project.shots:
        typer.echo("   Shots: none")
        return

    typer.echo("\n🎬 Shots:")
    for shot in project.shots:
        video = shot.video_status.value if shot.video_status else "none"
        typer.echo(f"   {shot.id} [{shot.scene_id}] {shot.shot_size} / {shot.camera_movement}")
        for keyframe in shot.keyframes:
            icon = {"ready": "✅", "failed": "❌"}.get(keyframe.status.value, "⏳")
            typer.echo(f"      {icon} {keyframe.id}: {keyframe.status.value}")
        typer.echo(f"      🎞️  video: {video}")
        if shot.video_error:
            typer.echo(f"      → {shot.video_error}")


@app.command()
def references(
    project_file: Path = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Design visual prompts and reference images for characters and scenes."""
    from .renderer import StoryboardRenderer

    setup_logging(verbose)
    project = _load_project(project_file)
    _require_script(project)

    client = _client()
    renderer = StoryboardRenderer(client, _resources(client))
    typer.echo("🎨 Generating reference images")
    report = renderer.render_references(project.script_data, cancel=_cancel_on_interrupt())

    _save_project(project, project_file)
    _report(report)


@app.command()
def keyframes(
    project_file: Path = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Render the start and end keyframe images of every shot."""
    from .renderer import StoryboardRenderer

    setup_logging(verbose)
    project = _load_project(project_file)
    _require_script(project)
    if not project.shots:
        typer.echo("❌ Project has no shots. Run 'cinegen shots' first")
        raise typer.Exit(1)

    client = _client()
    renderer = StoryboardRenderer(client, _resources(client))
    typer.echo(f"🖼️  Rendering keyframes for {len(project.shots)} shots")
    report = renderer.render_keyframes(
        project.shots, project.script_data, cancel=_cancel_on_interrupt()
    )

    _save_project(project, project_file)
    _report(report)


@app.command()
def videos(
    project_file: Path = PROJECT_OPTION,
    duration: Optional[int] = typer.Option(
        None,
        "--duration",
        "-d",
        help="Clip length in seconds",
        min=1,
        max=30
    ),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Generate a video clip per shot from its keyframes."""
    from .renderer import StoryboardRenderer

    setup_logging(verbose)
    project = _load_project(project_file)
    if not project.shots:
        typer.echo("❌ Project has no shots. Run 'cinegen shots' first")
        raise typer.Exit(1)

    client = _client()
    renderer = StoryboardRenderer(client, _resources(client))
    typer.echo(f"⏳ Generating videos for {len(project.shots)} shots (this can take a while)")
    report = renderer.render_videos(
        project.shots, cancel=_cancel_on_interrupt(), duration=duration
    )

    if report.succeeded and not report.failed:
        project.stage = ProjectStage.EXPORT
    _save_project(project, project_file)
    _report(report)


@app.command()
def files(
    category: Optional[str] = typer.Option(
        None,
        "--category",
        "-c",
        help="Only list one category (images, videos)"
    ),
) -> None:
    """List files stored for this user."""
    from .errors import StorageError
    from .storage import RemoteStore

    remote = RemoteStore(config.store_url, username=config.username, api_key=config.ark_api_key)
    try:
        listing = remote.list(category)
    except StorageError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    typer.echo(f"📂 Namespace: {remote.namespace}")
    groups = {category: listing} if category else listing
    if not any(groups.values()):
        typer.echo("   No files")
        return
    for name, entries in groups.items():
        typer.echo(f"\n   {name} ({len(entries)})")
        for entry in entries:
            typer.echo(f"     • {entry['filename']}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="Bind address"
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        help="Port"
    ),
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        "-r",
        help="Storage root directory"
    ),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Run the file store server."""
    import uvicorn

    from .storage.server import create_app

    setup_logging(verbose)
    storage_root = root or config.storage_root
    bind_host = host or config.server_host
    bind_port = port or config.server_port

    typer.echo(f"🗄️  File server running on http://{bind_host}:{bind_port}")
    typer.echo(f"   Storage path: {storage_root.resolve()}")
    uvicorn.run(create_app(storage_root), host=bind_host, port=bind_port)


if __name__ == "__main__":
    app()
