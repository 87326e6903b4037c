"""Rich console output and markdown file save for comparisons and debates."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from modelcompare.models import DebateSession, DebateTurn, ModelConfig

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _cost_label(cost: dict[str, Any] | None) -> str:
    if not cost:
        return ""
    return f"${cost.get('total', 0.0):.4f}"


def print_models_table(models: list[ModelConfig], available_providers: set[str] | None = None) -> None:
    table = Table(title="Models", show_lines=False)
    table.add_column("Id", style="bold")
    table.add_column("Provider")
    table.add_column("Reasoning", justify="center")
    table.add_column("In $/M", justify="right")
    table.add_column("Out $/M", justify="right")
    table.add_column("Max tokens", justify="right")
    for model in models:
        provider = model.provider
        if available_providers is not None and provider.lower() not in available_providers:
            provider = f"[dim]{provider}[/dim]"
        table.add_row(
            model.id,
            provider,
            "yes" if model.capabilities.reasoning else "",
            f"{model.pricing.input_per_million:.3f}",
            f"{model.pricing.output_per_million:.3f}",
            str(model.limits.max_tokens),
        )
    console.print(table)


def print_comparison(prompt: str, responses: dict[str, dict[str, Any]]) -> None:
    """Print one panel per model, failures in red."""
    console.print(Rule(f"[bold cyan]{prompt[:80]}[/bold cyan]"))
    for model_id, entry in responses.items():
        if entry["status"] == "success":
            console.print(
                Panel(
                    Markdown(entry["content"]),
                    title=f"[bold]{model_id}[/bold]",
                    subtitle=f"{entry['responseTime'] / 1000:.1f}s {_cost_label(entry.get('cost'))}".strip(),
                    border_style="dim",
                )
            )
        else:
            console.print(
                Panel(escape(entry.get("error", "unknown error")), title=f"[bold]{model_id}[/bold]", border_style="red")
            )


def print_turn(turn: DebateTurn) -> None:
    console.print(
        Panel(
            Markdown(turn.content),
            title=f"[bold]Turn {turn.turn_number}[/bold] {turn.role} ({turn.model_id})",
            subtitle=_cost_label(turn.cost),
            border_style="green" if turn.role == "AFFIRMATIVE" else "magenta",
        )
    )


def save_comparison(prompt: str, responses: dict[str, dict[str, Any]], output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_compare_{_slug(prompt)}.md"

    lines: list[str] = [
        f"# Model Comparison: {prompt[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Models:** {', '.join(responses)}",
        "",
        "---",
        "",
    ]
    for model_id, entry in responses.items():
        lines.append(f"## {model_id}")
        lines.append("")
        if entry["status"] == "success":
            lines.append(entry["content"])
            lines.append("")
            lines.append(f"*Latency: {entry['responseTime'] / 1000:.2f}s {_cost_label(entry.get('cost'))}*".replace(" *", "*"))
        else:
            lines.append(f"**Failed:** {entry.get('error', 'unknown error')}")
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Comparison saved to: %s", filepath)
    return filepath


def save_debate(session: DebateSession, output_dir: Path) -> Path:
    """Save the full debate transcript as a markdown file."""
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_debate_{_slug(session.topic)}.md"

    lines: list[str] = [
        f"# Debate: {session.topic[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Affirmative:** {session.model1_id}",
        f"**Negative:** {session.model2_id}",
        f"**Intensity:** {session.adversarial_level}",
        f"**Turns:** {len(session.turn_history)}",
        f"**Total cost:** ${session.total_cost:.4f}",
        "",
        "---",
        "",
    ]
    for turn in session.turn_history:
        lines.append(f"## Turn {turn.turn_number}: {turn.role.title()} ({turn.model_id})")
        lines.append("")
        if turn.reasoning:
            lines.append("<details><summary>Reasoning</summary>")
            lines.append("")
            lines.append(turn.reasoning)
            lines.append("")
            lines.append("</details>")
            lines.append("")
        lines.append(turn.content)
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath
