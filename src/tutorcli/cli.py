"""CLI interface for tutorcli."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tutorcli import __version__
from tutorcli.commands import format_learning_stats
from tutorcli.config import (
    API_KEY_ENV,
    DEFAULT_MODELS,
    ConfigState,
    TutorConfig,
    configure_logging,
    default_db_path,
    read_config,
    resolve_config,
    write_config,
)
from tutorcli.exceptions import TutorError
from tutorcli.export import EXPORT_FORMATS, export_conversation, is_valid_export_format
from tutorcli.models import ChatMessage, ProviderName, Role
from tutorcli.providers import build_provider
from tutorcli.storage import TutorStorage

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="tutorcli",
    help="English tutor in your terminal.",
    no_args_is_help=False,
    invoke_without_command=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"tutorcli version {__version__}")
        raise typer.Exit()


def _load_config_state() -> ConfigState:
    state = read_config()
    configure_logging(state.config)
    if state.error:
        console.print(f"[yellow]⚠ {state.error} ({state.path})[/yellow]")
    return state


def _open_storage() -> TutorStorage:
    try:
        return TutorStorage(default_db_path())
    except TutorError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from None


def _run_chat(provider: str | None, model: str | None) -> None:
    from tutorcli.tui.app import run_tui

    config_state = _load_config_state()
    overrides = {"provider": provider, "model": model}
    resolved = resolve_config(config_state.config, **overrides)
    if resolved.error:
        console.print(f"[yellow]⚠ {resolved.error}[/yellow] Run [bold]tutorcli setup[/bold] to configure.")
    chat_provider = build_provider(resolved)

    with _open_storage() as storage:
        asyncio.run(
            run_tui(
                storage,
                resolved,
                chat_provider,
                config_state=config_state,
                provider_overrides=overrides,
            )
        )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """English tutor in your terminal."""
    if ctx.invoked_subcommand is None:
        _run_chat(None, None)


@app.command()
def chat(
    provider: Annotated[
        str | None, typer.Option("--provider", "-p", help="Provider for this run (openai, gemini)")
    ] = None,
    model: Annotated[str | None, typer.Option("--model", "-m", help="Model for this run")] = None,
) -> None:
    """Start a tutoring chat."""
    _run_chat(provider, model)


@app.command()
def setup() -> None:
    """Choose a provider, model and API key, and save them."""
    state = read_config()
    configure_logging(state.config)
    existing = state.config or TutorConfig()

    options = ", ".join(p.value for p in ProviderName)
    provider_raw = typer.prompt(f"Provider ({options})", default=existing.provider.value)
    try:
        provider = ProviderName(provider_raw.strip().lower())
    except ValueError:
        console.print(f"[red]Unknown provider:[/red] {provider_raw}. Options: {options}")
        raise typer.Exit(1) from None

    default_model = existing.model if existing.provider == provider and existing.model else DEFAULT_MODELS[provider]
    model = typer.prompt("Model", default=default_model)
    api_key = typer.prompt(
        f"API key (leave empty to use ${API_KEY_ENV[provider]})",
        default="",
        show_default=False,
        hide_input=True,
    )

    config = TutorConfig(
        provider=provider,
        model=model.strip() or None,
        api_key=api_key.strip() or (existing.api_key if existing.provider == provider else None),
        summary_model=existing.summary_model,
        log_level=existing.log_level,
        log_file=existing.log_file,
    )
    try:
        path = write_config(config, state.path)
    except TutorError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from None
    console.print(f"[green]Saved config to:[/green] {path}")


@app.command("config")
def config_cmd() -> None:
    """Show the effective configuration."""
    state = _load_config_state()
    resolved = resolve_config(state.config)
    source = str(state.path) if state.config else "defaults"

    body = (
        f"[bold]Source:[/bold] {source}\n"
        f"[bold]Provider:[/bold] {resolved.provider.value}\n"
        f"[bold]Model:[/bold] {resolved.model}\n"
        f"[bold]Summary model:[/bold] {resolved.summary_model or resolved.model}\n"
        f"[bold]API key:[/bold] {resolved.masked_key}\n"
        f"[bold]Database:[/bold] {default_db_path()}"
    )
    console.print(Panel(body, title="tutorcli Configuration", border_style="green"))
    if resolved.error:
        console.print(f"\n[yellow]⚠ {resolved.error}[/yellow]")
    else:
        console.print("\n[green]✓ Configuration is valid[/green]")


@app.command()
def export(
    session: Annotated[str, typer.Argument(help="Session id or unique prefix")],
    fmt: Annotated[
        str, typer.Option("--format", "-f", help=f"Output format ({', '.join(EXPORT_FORMATS)})")
    ] = "md",
    output_dir: Annotated[
        Path | None, typer.Option("--output-dir", "-o", help="Directory to write to")
    ] = None,
) -> None:
    """Export a stored session to a file."""
    _load_config_state()
    if not is_valid_export_format(fmt):
        console.print(f"[red]Invalid format.[/red] Options: {', '.join(EXPORT_FORMATS)}")
        raise typer.Exit(1)

    with _open_storage() as storage:
        matches = storage.find_sessions(session, limit=500)
        if not matches:
            console.print(f"[red]No session matches[/red] {session}")
            raise typer.Exit(1)
        if len(matches) > 1:
            console.print(f"[yellow]Prefix is ambiguous ({len(matches)} sessions). Use more characters.[/yellow]")
            raise typer.Exit(1)
        record = matches[0]
        history = [
            ChatMessage(role=Role(m.role), content=m.content, id=m.message_id)
            for m in storage.get_session_messages(record.session_id)
        ]

    try:
        path = export_conversation(history, record.session_id, fmt, output_dir)
    except TutorError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from None
    console.print(f"[green]Exported to:[/green] {path}")


@app.command()
def stats() -> None:
    """Show learning statistics."""
    _load_config_state()
    with _open_storage() as storage:
        summary = format_learning_stats(storage)
        sessions = storage.list_sessions(5)

    console.print(Panel(summary, title="Progress", border_style="cyan"))
    if sessions:
        table = Table(title="Recent sessions", show_header=True, header_style="bold cyan")
        table.add_column("Session", style="bold")
        table.add_column("Updated")
        table.add_column("Messages", justify="right")
        table.add_column("Title")
        for record in sessions:
            table.add_row(
                record.session_id[:8],
                record.updated_at[:16].replace("T", " "),
                str(record.message_count),
                record.title or "",
            )
        console.print(table)


if __name__ == "__main__":
    app()
