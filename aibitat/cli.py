"""CLI entry point for AIbitat."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from aibitat import __version__
from aibitat.config import create_default_config, get_settings, load_scenario, load_settings
from aibitat.engine import create_aibitat
from aibitat.errors import AIbitatError
from aibitat.plugins import FileHistoryPlugin, RetryPlugin, TerminalPlugin, default_history_path
from aibitat.utils import setup_logging

app = typer.Typer(
    name="aibitat",
    help="Multi-agent conversations between language models",
    add_completion=True,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]AIbitat[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write debug logs to this file",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """AIbitat - agents and channels chatting through language models."""
    setup_logging(log_file=log_file, verbose=verbose)
    if config:
        load_settings(config_path=config, force_reload=True)


@app.command()
def run(
    scenario: Path = typer.Argument(..., help="YAML file describing agents, channels and the first message"),
    history: Optional[Path] = typer.Option(
        None,
        "--history",
        "-H",
        help="Write the chat history to this JSON file",
    ),
    no_retry: bool = typer.Option(False, "--no-retry", help="Do not retry after rate limits or server errors"),
    no_stream: bool = typer.Option(False, "--no-stream", help="Print replies at once"),
    plugins: Optional[list[str]] = typer.Option(
        None,
        "--plugin",
        "-p",
        help="Enable a function plugin for this run, e.g. web-browsing (repeatable)",
    ),
) -> None:
    """Run the conversation described by a scenario file."""
    settings = get_settings()

    try:
        scenario_config = load_scenario(scenario, plugins=plugins or ())
        aibitat = create_aibitat(settings, scenario=scenario_config)
    except FileNotFoundError:
        console.print(f"[red]Scenario not found: {escape(str(scenario))}[/red]")
        raise typer.Exit(1)
    except AIbitatError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(1)

    simulate_stream = settings.terminal.simulate_stream and not no_stream
    aibitat.use(TerminalPlugin(simulate_stream=simulate_stream, console=console))

    if settings.retry.enabled and not no_retry:
        aibitat.use(RetryPlugin(delay=settings.retry.delay, max_attempts=settings.retry.max_attempts))

    if history is not None:
        aibitat.use(FileHistoryPlugin(history))
    elif settings.history.enabled:
        aibitat.use(FileHistoryPlugin(default_history_path(settings.history.resolved_directory)))

    start = scenario_config.start
    try:
        asyncio.run(aibitat.start(start.sender, start.recipient, start.content))
    except AIbitatError as e:
        console.print(f"[red]Error: {escape(e.message)}[/red]")
        raise typer.Exit(1)

    console.print(f"[dim]Total cost: ${aibitat.cost:.4f}[/dim]")


@app.command()
def config(
    init: bool = typer.Option(False, "--init", help="Write the default config file if it is missing"),
) -> None:
    """Show current configuration."""
    if init:
        path = create_default_config()
        console.print(f"[green]Config file: {path}[/green]")
        return

    settings = get_settings()

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))

    # API Keys (masked)
    console.print("\n[bold]API Keys:[/bold]")
    console.print(f"  OpenAI:    {'✓ Set' if settings.openai_api_key else '✗ Not set'}")
    console.print(f"  Anthropic: {'✓ Set' if settings.anthropic_api_key else '✗ Not set'}")
    console.print(f"  Serper:    {'✓ Set' if settings.serper_api_key else '✗ Not set'}")

    console.print("\n[bold]Providers:[/bold]")
    console.print(f"  Replies:   {settings.provider.name} ({settings.provider.model or 'default model'})")
    console.print(f"  Selection: {settings.selector.name} ({settings.selector.model or 'default model'})")

    engine = settings.engine
    console.print("\n[bold]Engine:[/bold]")
    console.print(f"  Max rounds: {engine.max_rounds}")
    console.print(f"  Interrupt: {engine.interrupt or 'per participant'}")
    console.print(f"  Max function calls per turn: {engine.max_function_calls}")
    console.print(f"  Provider timeout: {engine.provider_timeout or 'none'}")

    console.print("\n[bold]Retry:[/bold]")
    console.print(f"  Enabled: {settings.retry.enabled}")
    console.print(f"  Delay: {settings.retry.delay}s, max attempts: {settings.retry.max_attempts}")

    console.print("\n[bold]History:[/bold]")
    console.print(f"  Enabled: {settings.history.enabled}")
    console.print(f"  Directory: {settings.history.resolved_directory}")

    browsing = settings.browsing
    console.print("\n[bold]Web browsing:[/bold]")
    console.print(f"  Timeout: {browsing.timeout}s, results per search: {browsing.max_results}")
    console.print(f"  Pages over {browsing.max_length} characters are summarized")


if __name__ == "__main__":
    app()
