"""Click CLI: run the HTTP server, or compare and debate models from the terminal."""

import asyncio
import logging
import sys
from pathlib import Path

import click
import uvicorn
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from modelcompare.compare import compare_models
from modelcompare.debate import DebateTurnEngine
from modelcompare.errors import ModelCompareError
from modelcompare.healthcheck import run_health_checks
from modelcompare.models import DebateTurn
from modelcompare.output import (
    print_comparison,
    print_models_table,
    print_turn,
    save_comparison,
    save_debate,
)
from modelcompare.registry import ProviderRegistry
from modelcompare.server import create_app
from modelcompare.storage import MemoryStorage

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _split_ids(raw: str) -> list[str]:
    return [m.strip() for m in raw.split(",") if m.strip()]


def _check_models_known(registry: ProviderRegistry, model_ids: list[str]) -> None:
    unknown = [m for m in model_ids if registry.get_model_by_id(m) is None]
    if unknown:
        console.print(f"[bold red]Error:[/bold red] Unknown model id(s): {', '.join(unknown)}")
        console.print("Run [bold]modelcompare models[/bold] to list available ids.")
        sys.exit(1)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Model Compare -- side-by-side model comparison and streamed debates.

    \b
    Examples:
      modelcompare serve --port 5000
      modelcompare models
      modelcompare compare "Explain CRDTs" --models gpt-5-2025-08-07,claude-sonnet-4-20250514
      modelcompare debate "Remote work beats office work" --model1 gpt-5-2025-08-07 --model2 grok-4-0709 --rounds 2
      modelcompare health --models gemini-2.5-flash,deepseek-chat
    """
    # Model output can carry characters the legacy Windows console encoding rejects.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    ctx.obj = config


@main.command()
@click.option("--host", default=None, help="Bind address (default: from config)")
@click.option("--port", default=None, type=int, help="Port (default: from config or $PORT)")
@click.pass_obj
def serve(config: AppConfig, host: str | None, port: int | None) -> None:
    """Run the HTTP API."""
    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,
    )


@main.command("models")
@click.pass_obj
def list_models(config: AppConfig) -> None:
    """List every registered model; providers without an API key are dimmed."""
    registry = ProviderRegistry.from_config(config)
    print_models_table(registry.get_all_models(), config.available_providers)


@main.command()
@click.argument("prompt")
@click.option("--models", "models_arg", required=True, help="Comma-separated model ids")
@click.option("--output", "output_path", default=None, help="Save a markdown report to this directory")
@click.pass_obj
def compare(config: AppConfig, prompt: str, models_arg: str, output_path: str | None) -> None:
    """Send one PROMPT to several models concurrently."""
    registry = ProviderRegistry.from_config(config)
    model_ids = _split_ids(models_arg)
    if not model_ids:
        console.print("[bold red]Error:[/bold red] --models needs at least one model id.")
        sys.exit(1)
    _check_models_known(registry, model_ids)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Waiting on {len(model_ids)} model(s)...", total=None)
        responses = asyncio.run(compare_models(registry, prompt, model_ids))

    print_comparison(prompt, responses)

    if output_path:
        saved = save_comparison(prompt, responses, Path(output_path))
        console.print(f"\n[dim]Saved to: {saved}[/dim]")

    if all(entry["status"] == "error" for entry in responses.values()):
        sys.exit(1)


@main.command()
@click.argument("topic")
@click.option("--model1", required=True, help="Affirmative model id (odd turns)")
@click.option("--model2", required=True, help="Negative model id (even turns)")
@click.option("--rounds", default=1, show_default=True, type=click.IntRange(1), help="Exchanges; each is two turns")
@click.option("--intensity", default=2, show_default=True, type=click.IntRange(1, 4), help="Adversarial level")
@click.option("--output", "output_path", default=None, help="Save the transcript to this directory")
@click.pass_obj
def debate(
    config: AppConfig,
    topic: str,
    model1: str,
    model2: str,
    rounds: int,
    intensity: int,
    output_path: str | None,
) -> None:
    """Run a turn-by-turn debate on TOPIC between two models."""
    registry = ProviderRegistry.from_config(config)
    _check_models_known(registry, [model1, model2])
    if rounds > config.debate.max_rounds:
        console.print(f"[yellow]Capping rounds at {config.debate.max_rounds}[/yellow]")

    storage = MemoryStorage()
    engine = DebateTurnEngine(registry, storage, config.debate)

    console.print(f"\n[bold cyan]Model Compare[/bold cyan] debate, {rounds} round(s), intensity {intensity}")
    console.print(f"Affirmative: {model1}   Negative: {model2}")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    def on_turn_complete(turn: DebateTurn) -> None:
        print_turn(turn)

    try:
        session = asyncio.run(
            engine.run_debate(
                topic=topic,
                model1_id=model1,
                model2_id=model2,
                rounds=rounds,
                intensity_level=intensity,
                on_turn_complete=on_turn_complete,
            )
        )
    except ModelCompareError as exc:
        console.print(f"[bold red]Debate failed:[/bold red] {escape(exc.message)}")
        sys.exit(1)

    console.print(f"\n[bold]Total cost:[/bold] ${session.total_cost:.4f}")
    if output_path:
        saved = save_debate(session, Path(output_path))
        console.print(f"[dim]Saved to: {saved}[/dim]")


@main.command()
@click.option("--models", "models_arg", default=None, help="Comma-separated model ids (default: one per available provider)")
@click.pass_obj
def health(config: AppConfig, models_arg: str | None) -> None:
    """Ping models through their circuit breakers and report which answer."""
    registry = ProviderRegistry.from_config(config)
    if models_arg:
        model_ids = _split_ids(models_arg)
        _check_models_known(registry, model_ids)
    else:
        model_ids = [
            provider.models[0].id
            for name, provider in registry.providers.items()
            if name in config.available_providers and provider.models
        ]
    if not model_ids:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    console.print("\n[bold]Checking models...[/bold]")
    results = asyncio.run(run_health_checks(registry, model_ids))

    failed = 0
    for model_id in sorted(results):
        ok, err = results[model_id]
        if ok:
            console.print(f"  [green]OK  [/green] {model_id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model_id}: {escape(short_err)}")
            failed += 1

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
