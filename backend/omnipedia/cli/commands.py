"""CLI commands for omnipedia using Typer and Rich.

Implements the CLI commands:
- generate: Run the full pipeline for a topic
- surprise: Let the model pick a topic, then run the pipeline
- set-key / clear-key: Manage the persisted API key
- serve: Start the HTTP API
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from omnipedia import configure_logging
from omnipedia.config import settings
from omnipedia.orchestrator import GenerationStatus, PipelineRunner, SessionSnapshot, SessionStore
from omnipedia.schemas.generation import GenerationItem
from omnipedia.services.file_manager import FileManager
from omnipedia.services.genai_client import ApiCredentials

app = typer.Typer(name="omnipedia", help="AI-generated multimedia encyclopedia entries")
console = Console()

_STATUS_MESSAGES = {
    GenerationStatus.GENERATING_RANDOM: "Dreaming up an object...",
    GenerationStatus.PLANNING: "Planning the entry...",
    GenerationStatus.GENERATING_INFOGRAPHIC: "Drawing the infographic...",
    GenerationStatus.GENERATING_ASSEMBLY: "Rendering the assembled view...",
    GenerationStatus.ENRICHING: "Researching components...",
    GenerationStatus.ANIMATING: "Animating and narrating...",
}


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default: INFO)"),
):
    """Omnipedia command line interface."""
    configure_logging(log_level)


@app.command()
def generate(
    topic: str = typer.Argument(..., help="Object or concept to explain"),
    animate: bool = typer.Option(True, "--animate/--no-animate", help="Generate the assembly video"),
):
    """Generate an encyclopedia entry for a topic.

    Runs planning, both image stages, component enrichment, and the
    concurrent video + narration step.
    """
    asyncio.run(_run_async(topic, animate))


@app.command()
def surprise(
    animate: bool = typer.Option(True, "--animate/--no-animate", help="Generate the assembly video"),
):
    """Pick a random topic and generate an entry for it."""
    asyncio.run(_run_async(None, animate))


async def _run_async(topic: Optional[str], animate: bool):
    """Async implementation of generate and surprise."""
    credentials = ApiCredentials.from_environment()
    if not credentials.is_configured:
        console.print("[red]Error:[/red] No API key configured.")
        console.print("[yellow]Set one with:[/yellow] omnipedia set-key <KEY>")
        raise typer.Exit(code=1)

    file_manager = FileManager()
    session = SessionStore(file_manager=file_manager)
    runner = PipelineRunner(session, credentials, file_manager=file_manager)

    with console.status("[bold green]Starting pipeline...") as status:
        def on_change(snapshot: SessionSnapshot):
            message = _STATUS_MESSAGES.get(snapshot.status)
            if message:
                status.update(f"[bold green]{message}")

        session.subscribe(on_change)
        if topic is None:
            item = await runner.surprise(animate)
        else:
            item = await runner.generate(topic, animate)

    if session.credential_required:
        console.print(f"[red]✗ {session.error or 'API key rejected.'}[/red]")
        console.print("[yellow]Update your key with:[/yellow] omnipedia set-key <KEY>")
        raise typer.Exit(code=1)

    if item is not None:
        _print_item(item)

    if session.status != GenerationStatus.COMPLETED:
        console.print()
        console.print(f"[red]✗ Pipeline failed:[/red] {session.error}")
        raise typer.Exit(code=1)

    console.print()
    console.print("[green]✓[/green] Entry complete!")


def _print_item(item: GenerationItem):
    """Print the entry summary, output locations and usage ledger."""
    console.print()
    if item.plan:
        console.print(f"[bold]{item.plan.display_title}[/bold] ({item.plan.category})")
        console.print(item.plan.origin_story)
        console.print()

    if item.components:
        components = Table(show_header=True, header_style="bold blue", title="Components")
        components.add_column("Name")
        components.add_column("Description")
        components.add_column("Sources", justify="right")
        for part in item.components:
            components.add_row(part.name, part.short_description, str(len(part.sources)))
        console.print(components)

    if item.video_url:
        console.print(f"[green]Video:[/green] {item.video_url}")
    if item.audio_url:
        console.print(f"[green]Narration:[/green] {item.audio_url}")

    usage = Table(show_header=True, header_style="bold blue", title="Usage")
    usage.add_column("Model", style="dim")
    usage.add_column("Input", justify="right")
    usage.add_column("Output", justify="right")
    usage.add_column("Cost", justify="right")
    for record in item.usage:
        usage.add_row(
            record.model,
            str(record.input_tokens),
            str(record.output_tokens),
            f"${record.cost_estimate:.5f}",
        )
    usage.add_row("[bold]Total[/bold]", "", "", f"[bold]${item.total_cost:.5f}[/bold]")
    console.print(usage)


@app.command("set-key")
def set_key(
    api_key: str = typer.Argument(..., help="Gemini API key"),
):
    """Save the API key used by every command."""
    credentials = ApiCredentials.from_environment()
    try:
        credentials.set(api_key)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] API key saved to {settings.gemini.credential_file}")


@app.command("clear-key")
def clear_key():
    """Remove the saved API key."""
    ApiCredentials.from_environment().clear()
    console.print("[green]✓[/green] API key removed")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
):
    """Start the HTTP API server."""
    import uvicorn

    uvicorn.run(
        "omnipedia.api.app:app",
        host=host or settings.server.host,
        port=port or settings.server.port,
        reload=False,
    )
