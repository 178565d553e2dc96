"""Typer CLI — generate, customize and download API mashups."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mashup.config import load_config
from mashup.schemas.config import ClientConfig
from mashup.schemas.mashup import MashupArtifact

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="mashup",
    help="Mashup Maker — generate app ideas and project scaffolds from random API combinations.",
    no_args_is_help=True,
)
console = Console()

_SESSION_HELP = """\
[bold]Commands[/]
  g            generate a new mashup
  r            regenerate with different APIs
  c ID [ID..]  custom mashup from up to 3 API ids
  d            download the current project ZIP
  s            show the current mashup
  e            dismiss the current error
  q            quit"""


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(config: Optional[Path]) -> ClientConfig:
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


def _make_client(cfg: ClientConfig, dry_run: bool):
    if dry_run:
        from mashup.shared.service_client import DryRunServiceClient
        console.print("[yellow]DRY-RUN mode — no network calls will be made.[/]\n")
        return DryRunServiceClient()

    from mashup.shared.service_client import MashupServiceClient
    return MashupServiceClient.from_config(cfg)


ConfigOption = typer.Option(None, "--config", "-c", help="Path to mashup-config.yml")
VerboseOption = typer.Option(False, "--verbose", "-v")
DryRunOption = typer.Option(False, "--dry-run", help="Use canned data instead of the Mashup service.")


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to mashup-config.yml"),
    verbose: bool = VerboseOption,
) -> None:
    """Validate a configuration file without contacting the service."""
    _setup_logging(verbose)
    cfg = _load(config)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  API base URL:   {cfg.api_base_url}")
    console.print(f"  Timeout:        {cfg.request_timeout:g}s")
    console.print(f"  Downloads:      {cfg.download_directory}")
    if cfg.generation.exclude_categories:
        console.print(f"  Skip categories: {', '.join(cfg.generation.exclude_categories)}")
    if cfg.generation.cors_only:
        console.print("  CORS-compatible APIs only")
    if cfg.generation.require_auth:
        console.print("  Authenticated APIs only")


@app.command()
def generate(
    config: Optional[Path] = ConfigOption,
    download: bool = typer.Option(False, "--download", "-d", help="Also download the project ZIP."),
    markdown: bool = typer.Option(False, "--markdown", "-m", help="Write the idea as Markdown next to the downloads."),
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Generate a mashup from three randomly chosen APIs."""
    _setup_logging(verbose)
    cfg = _load(config)
    ok = asyncio.run(_run_once(cfg, None, dry_run=dry_run, download=download, markdown=markdown))
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def custom(
    api: list[str] = typer.Option(..., "--api", "-a", help="API id to include (repeat up to 3 times)."),
    config: Optional[Path] = ConfigOption,
    download: bool = typer.Option(False, "--download", "-d", help="Also download the project ZIP."),
    markdown: bool = typer.Option(False, "--markdown", "-m", help="Write the idea as Markdown next to the downloads."),
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Generate a mashup from APIs you pick (see ``mashup apis`` for ids).

    Example:

        mashup custom --api open-meteo --api spotify
    """
    _setup_logging(verbose)
    if len(api) > 3:
        console.print("[red]Error:[/] select at most 3 APIs.")
        raise typer.Exit(code=1)
    cfg = _load(config)
    ok = asyncio.run(_run_once(cfg, list(api), dry_run=dry_run, download=download, markdown=markdown))
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def session(
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Interactive session: generate, regenerate, customize and download."""
    _setup_logging(verbose)
    cfg = _load(config)
    asyncio.run(_run_session(cfg, dry_run=dry_run))


@app.command()
def apis(
    category: Optional[str] = typer.Option(None, "--category", help="Only APIs in this category."),
    auth_type: Optional[str] = typer.Option(None, "--auth-type", help="none, apikey or oauth."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """List the APIs available for mashups."""
    _setup_logging(verbose)
    if auth_type and auth_type not in ("none", "apikey", "oauth"):
        console.print(f"[red]Error:[/] unknown auth type {auth_type!r}.")
        raise typer.Exit(code=1)
    cfg = _load(config)
    ok = asyncio.run(_run_list_apis(cfg, category, auth_type, dry_run=dry_run))
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def categories(
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """List API categories and how many APIs each has."""
    _setup_logging(verbose)
    cfg = _load(config)
    ok = asyncio.run(_run_list_categories(cfg, dry_run=dry_run))
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def chat(
    message: Optional[str] = typer.Argument(None, help="Question for the assistant."),
    topic: Optional[str] = typer.Option(None, "--topic", "-t", help="Show quick help for a topic instead."),
    config: Optional[Path] = ConfigOption,
    verbose: bool = VerboseOption,
    dry_run: bool = DryRunOption,
) -> None:
    """Ask the project assistant a question."""
    _setup_logging(verbose)
    if not message and not topic:
        console.print("[red]Error:[/] give a MESSAGE or --topic.")
        raise typer.Exit(code=1)
    cfg = _load(config)
    ok = asyncio.run(_run_chat(cfg, message, topic, dry_run=dry_run))
    if not ok:
        raise typer.Exit(code=1)


# ------------------------------------------------------------------
# Async runners
# ------------------------------------------------------------------

async def _run_once(
    cfg: ClientConfig,
    api_ids: list[str] | None,
    *,
    dry_run: bool,
    download: bool,
    markdown: bool,
) -> bool:
    """Generate (or custom-generate) once, optionally download; True on success."""
    from mashup.session.controller import MashupSession
    from mashup.shared.progress import SessionProgress

    async with _make_client(cfg, dry_run) as client:
        async with MashupSession.from_config(cfg, client) as sess:
            with SessionProgress(sess.state):
                if api_ids is None:
                    await sess.generate()
                else:
                    await sess.generate_custom(api_ids)
            if sess.state.error:
                console.print(f"[red]Generation failed:[/] {sess.state.error}")
                return False

            artifact = sess.state.artifact
            _print_artifact(artifact)

            if markdown:
                _write_markdown(cfg, artifact)

            if download:
                with SessionProgress(sess.state):
                    await sess.download()
                if sess.state.error:
                    console.print(f"[red]Download failed:[/] {sess.state.error}")
                    return False
                console.print(f"[green]Project saved to:[/] {sess.state.last_saved_path}")
    return True


async def _run_session(cfg: ClientConfig, *, dry_run: bool) -> None:
    """Read-eval loop over the session actions."""
    from mashup.session.controller import MashupSession
    from mashup.shared.progress import SessionProgress, ask_user, describe_state

    console.print(Panel(_SESSION_HELP, title="Mashup Maker", style="blue"))

    async with _make_client(cfg, dry_run) as client:
        async with MashupSession.from_config(cfg, client) as sess:
            while True:
                line = await ask_user("[bold]mashup[/]")
                if line is None:
                    break
                parts = line.split()
                if not parts:
                    continue
                cmd, args = parts[0].lower(), parts[1:]

                if cmd in ("q", "quit", "exit"):
                    break
                if cmd in ("h", "help", "?"):
                    console.print(_SESSION_HELP)
                    continue
                if cmd == "s":
                    if sess.state.artifact:
                        _print_artifact(sess.state.artifact)
                    else:
                        console.print(describe_state(sess.state))
                    continue
                if cmd == "e":
                    sess.clear_error()
                    console.print(describe_state(sess.state))
                    continue

                previous_id = sess.state.artifact.id if sess.state.artifact else None
                with SessionProgress(sess.state):
                    if cmd == "g":
                        await sess.generate()
                    elif cmd == "r":
                        await sess.regenerate()
                    elif cmd == "c":
                        if len(args) > 3:
                            console.print("[red]Select at most 3 APIs.[/]")
                            continue
                        await sess.generate_custom(args)
                    elif cmd == "d":
                        await sess.download()
                    else:
                        console.print(f"[yellow]Unknown command:[/] {cmd} (h for help)")
                        continue

                artifact = sess.state.artifact
                if cmd != "d" and artifact and artifact.id != previous_id:
                    _print_artifact(artifact)
                else:
                    console.print(describe_state(sess.state))


async def _run_list_apis(
    cfg: ClientConfig, category: str | None, auth_type: str | None, *, dry_run: bool,
) -> bool:
    from mashup.shared.errors import MashupServiceError

    async with _make_client(cfg, dry_run) as client:
        try:
            listing = await client.list_apis(category=category, auth_type=auth_type)
        except MashupServiceError as exc:
            console.print(f"[red]Could not list APIs:[/] {exc}")
            return False

    table = Table(title=f"APIs ({listing.count})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Auth")
    table.add_column("CORS")
    for api in listing.apis:
        table.add_row(api.id, api.name, api.category, api.auth_type, "yes" if api.cors_compatible else "no")
    console.print(table)
    return True


async def _run_list_categories(cfg: ClientConfig, *, dry_run: bool) -> bool:
    from mashup.shared.errors import MashupServiceError

    async with _make_client(cfg, dry_run) as client:
        try:
            listing = await client.list_categories()
        except MashupServiceError as exc:
            console.print(f"[red]Could not list categories:[/] {exc}")
            return False

    table = Table(title=f"Categories ({len(listing.categories)})")
    table.add_column("Category", style="cyan")
    table.add_column("APIs", justify="right")
    for name in listing.categories:
        table.add_row(name, str(listing.category_data.get(name, "")))
    console.print(table)
    return True


async def _run_chat(
    cfg: ClientConfig, message: str | None, topic: str | None, *, dry_run: bool,
) -> bool:
    from mashup.schemas.chat import ChatRequest
    from mashup.shared.errors import MashupServiceError

    async with _make_client(cfg, dry_run) as client:
        try:
            if topic:
                console.print(Panel(await client.quick_help(topic), title=topic))
                return True

            status = await client.chatbot_status()
            if not status.configured:
                console.print(f"[yellow]Assistant unavailable:[/] {status.message}")
                return False
            response = await client.chat(ChatRequest(message=message))
        except MashupServiceError as exc:
            console.print(f"[red]Assistant request failed:[/] {exc}")
            return False

    console.print(Panel(response.message, title="Assistant"))
    return True


# ------------------------------------------------------------------
# Output helpers
# ------------------------------------------------------------------

def _print_artifact(artifact: MashupArtifact) -> None:
    idea = artifact.idea
    body = idea.description
    if idea.features:
        body += "\n\n" + "\n".join(f"• {f}" for f in idea.features)
    console.print(Panel(body, title=f"[bold]{idea.app_name}[/]", style="green"))

    table = Table(show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("API")
    table.add_column("Category")
    table.add_column("Auth")
    for api in idea.apis:
        table.add_row(api.id, api.name, api.category, api.auth_type)
    console.print(table)


def _write_markdown(cfg: ClientConfig, artifact: MashupArtifact) -> None:
    from mashup.output.markdown import render_markdown
    from mashup.session.download import derive_filename

    out_dir = Path(cfg.download_directory)
    md_path = out_dir / Path(derive_filename(artifact.idea.app_name)).with_suffix(".md")
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        md_path.write_text(render_markdown(artifact))
    except OSError as exc:
        console.print(f"[red]Could not write Markdown to {md_path}:[/] {exc}")
        raise typer.Exit(code=1)
    console.print(f"[green]Markdown written to:[/] {md_path}")
