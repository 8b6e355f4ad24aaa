"""Command line interface for Scene Studio."""

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Tuple

import click
from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from scenestudio.context import StudioContext, get_default_context
from scenestudio.error_handling import SceneGenerationError
from scenestudio.interpretation import interpret_mood
from scenestudio.models import (
    BusinessContext,
    GeneratedScene,
    ProductDescriptor,
    ReferenceImage,
    SceneArchetype,
    SceneGenerationRequest,
)
from scenestudio.orchestrator import GenerationDeadline
from scenestudio.pipeline import ScenePipeline
from scenestudio.prompt_engineering import PromptCompiler, compile_batch


console = Console()

SCENE_CHOICES = [archetype.value for archetype in SceneArchetype]


def _load_context() -> StudioContext:
    load_dotenv(find_dotenv(usecwd=True), override=False)
    context = get_default_context()
    logging.basicConfig(
        level=getattr(logging, context.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return context


def _parse_scenes(scenes: Tuple[str, ...]) -> List[SceneArchetype]:
    return [SceneArchetype(scene.lower()) for scene in scenes]


def _business_context(name: str | None, description: str | None, tone: str | None) -> BusinessContext | None:
    context = BusinessContext(business_name=name, business_description=description, brand_tone=tone)
    return None if context.is_empty() else context


def _output_path(output_dir: Path, index: int, scene: GeneratedScene) -> Path:
    image = ReferenceImage.from_data_url(scene.image_data)
    extension = mimetypes.guess_extension(image.mime_type) or ".png"
    if extension == ".jpe":
        extension = ".jpg"
    return output_dir / f"{index:02d}_{scene.scene_archetype.value}{extension}"


@click.group()
def cli():
    """Scene Studio - Generate locked, brand-safe product scene photography."""
    pass


@cli.command()
@click.argument('mood', default='')
@click.option(
    '--scene', 'scenes',
    type=click.Choice(SCENE_CHOICES, case_sensitive=False),
    multiple=True,
    required=True,
    help='Scene archetype(s) in the batch; repeat for several'
)
def interpret(mood: str, scenes: Tuple[str, ...]):
    """Show how a mood description is read for the given scenes."""
    interpretation = interpret_mood(mood, _parse_scenes(scenes))

    table = Table(title="Mood Interpretation")
    table.add_column("Dimension", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Temperature", interpretation.temperature.value)
    table.add_row("Energy", interpretation.energy.value)
    table.add_row("Material", interpretation.material_bias.value)
    table.add_row("Light", interpretation.light_quality.value)
    table.add_row("Overridden", "yes" if interpretation.was_overridden else "no")
    console.print(table)

    for note in interpretation.override_notes:
        console.print(f"[yellow]• {escape(note)}[/yellow]")


@cli.command()
@click.option('--product', 'product_name', required=True, help='Product name')
@click.option(
    '--scene', 'scenes',
    type=click.Choice(SCENE_CHOICES, case_sensitive=False),
    multiple=True,
    required=True,
    help='Scene archetype(s) in the batch; repeat for several'
)
@click.option('--mood', default='', help='Free-text mood description')
@click.option('--brand-name', default=None, help='Brand or business name')
@click.option('--brand-description', default=None, help='What the business does')
@click.option('--brand-tone', default=None, help='Tone of voice of the brand')
@click.option('--palette', 'palette', multiple=True, help='Brand color; repeat for several')
def prompts(
    product_name: str,
    scenes: Tuple[str, ...],
    mood: str,
    brand_name: str | None,
    brand_description: str | None,
    brand_tone: str | None,
    palette: Tuple[str, ...],
):
    """Print the compiled prompt pairs without generating images."""
    archetypes = _parse_scenes(scenes)
    interpretation = interpret_mood(mood, archetypes)

    try:
        request = SceneGenerationRequest(
            # Prompt compilation never touches the reference image
            product=ProductDescriptor(product_name=product_name, primary_image=ReferenceImage(data=b"")),
            scenes=archetypes,
            mood_text=mood,
            business_context=_business_context(brand_name, brand_description, brand_tone),
            brand_palette=list(palette),
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid request: {escape(str(e))}[/red]")
        sys.exit(1)

    for archetype, pair in zip(archetypes, compile_batch(request, interpretation, PromptCompiler())):
        console.print(Panel(pair.positive, title=f"{archetype.value} (positive)", border_style="green"))
        console.print(Panel(pair.negative, title=f"{archetype.value} (negative)", border_style="red"))


@cli.command()
@click.option('--image', 'image_path', type=click.Path(exists=True, dir_okay=False), required=True,
              help='Primary product reference image')
@click.option('--extra-image', 'extra_images', type=click.Path(exists=True, dir_okay=False), multiple=True,
              help='Additional reference angle; repeat for several')
@click.option('--product', 'product_name', required=True, help='Product name')
@click.option(
    '--scene', 'scenes',
    type=click.Choice(SCENE_CHOICES, case_sensitive=False),
    multiple=True,
    required=True,
    help='Scene archetype(s) in the batch; repeat for several'
)
@click.option('--mood', default='', help='Free-text mood description')
@click.option('--brand-name', default=None, help='Brand or business name')
@click.option('--brand-description', default=None, help='What the business does')
@click.option('--brand-tone', default=None, help='Tone of voice of the brand')
@click.option('--palette', 'palette', multiple=True, help='Brand color; repeat for several')
@click.option('--output-dir', type=click.Path(file_okay=False), default='scenes', show_default=True,
              help='Directory to write generated images to')
@click.option('--deadline', type=float, default=None, help='Abort the batch after this many seconds')
def generate(
    image_path: str,
    extra_images: Tuple[str, ...],
    product_name: str,
    scenes: Tuple[str, ...],
    mood: str,
    brand_name: str | None,
    brand_description: str | None,
    brand_tone: str | None,
    palette: Tuple[str, ...],
    output_dir: str,
    deadline: float | None,
):
    """Generate product scenes and write them to disk."""
    context = _load_context()
    if not context.gemini_api_key:
        console.print("[red]Error: GEMINI_API_KEY required for scene generation[/red]")
        sys.exit(1)

    try:
        request = SceneGenerationRequest(
            product=ProductDescriptor(
                product_name=product_name,
                primary_image=ReferenceImage.from_path(image_path),
                additional_images=[ReferenceImage.from_path(path) for path in extra_images],
            ),
            scenes=_parse_scenes(scenes),
            mood_text=mood,
            business_context=_business_context(brand_name, brand_description, brand_tone),
            brand_palette=list(palette),
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid request: {escape(str(e))}[/red]")
        sys.exit(1)

    batch_deadline = GenerationDeadline(deadline if deadline is not None else context.batch_deadline)
    pipeline = ScenePipeline(context=context)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Preparing scenes...", total=None)

            def on_progress(current: int, total: int, archetype: SceneArchetype) -> None:
                progress.update(task, description=f"Generating {archetype.value} scene ({current}/{total})")

            results = asyncio.run(
                pipeline.generate(request, context.gemini_api_key, on_progress=on_progress, deadline=batch_deadline)
            )
    except KeyboardInterrupt:
        console.print("\n\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        sys.exit(130)
    except SceneGenerationError as e:
        console.print(f"\n[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)

    target = Path(output_dir)
    target.mkdir(parents=True, exist_ok=True)
    for index, scene in enumerate(results, 1):
        path = _output_path(target, index, scene)
        path.write_bytes(ReferenceImage.from_data_url(scene.image_data).data)
        console.print(
            f"[green]✅ {scene.scene_archetype.value}: {path} "
            f"({scene.provider.value}, {scene.model}, score {scene.quality_score})[/green]"
        )


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
