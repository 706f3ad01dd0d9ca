"""Rich console output and markdown file save for collaboration results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from ai_collab.models import CollaborationResult, Response, SynthesisResult

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _response_preview(response: Response, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = response.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _summary_line(result: CollaborationResult) -> str:
    meta = result.metadata
    parts = [f"Strategy: {result.strategy}", f"Duration: {meta.get('execution_time_sec', 0.0):.1f}s"]
    if "failed_providers" in meta and meta["failed_providers"]:
        parts.append(f"Failed: {', '.join(meta['failed_providers'])}")
    if "rounds_completed" in meta:
        parts.append(f"Rounds: {meta['rounds_completed']} (agreement {meta['final_agreement']:.2f})")
    if "iterations_completed" in meta:
        parts.append(f"Iterations: {meta['iterations_completed']} (stop: {meta['stop_reason']})")
    if "step_count" in meta:
        parts.append(f"Steps: {meta['step_count']}")
    return " | ".join(parts)


def print_responses(responses: list[Response]) -> None:
    """Print a brief preview of every individual response."""
    console.print(Rule("[bold cyan]Provider Responses[/bold cyan]"))
    for resp in responses:
        console.print(
            Panel(
                _response_preview(resp),
                title=f"[bold]{resp.provider}[/bold] ({resp.model})",
                subtitle=f"{resp.latency_sec:.1f}s, {resp.usage.total_tokens} tokens",
                border_style="dim",
            )
        )


def print_result(result: CollaborationResult) -> None:
    """Print the final answer of a collaboration, or its error."""
    if not result.success:
        console.print(f"[bold red]{result.strategy} failed:[/bold red] {result.error}")
        return
    console.print(Rule(f"[bold green]{result.strategy.title()} Result[/bold green]"))
    console.print(Text(_summary_line(result), style="dim"))
    if result.final_result is not None:
        console.print(Markdown(result.final_result.content))


def print_synthesis(result: SynthesisResult) -> None:
    """Print the synthesized answer with its quality metrics."""
    if not result.success:
        console.print(f"[bold red]Synthesis failed:[/bold red] {result.error}")
        return
    process = result.synthesis_process
    console.print(Rule("[bold green]Synthesis[/bold green]"))
    console.print(
        Text(
            f"Method: {process.method} | "
            f"Inputs: {result.input_analysis.total_responses} | "
            f"Consensus level: {process.consensus_level:.2f} | "
            f"Duration: {process.processing_time_sec:.1f}s",
            style="dim",
        )
    )
    console.print(Markdown(result.synthesized_content.main_content))

    metrics = result.quality_metrics
    table = Table(title="Quality", show_header=True, header_style="bold")
    for column in ("Coherence", "Completeness", "Novelty", "Accuracy", "Readability", "Overall"):
        table.add_column(column, justify="right")
    table.add_row(*(
        f"{value:.2f}"
        for value in (
            metrics.coherence, metrics.completeness, metrics.novelty,
            metrics.accuracy_estimate, metrics.readability, metrics.overall,
        )
    ))
    console.print(table)

    for limitation in result.recommendations.limitations:
        console.print(f"[yellow]Note:[/yellow] {limitation}")


def save_to_file(
    prompt: str,
    result: CollaborationResult,
    output_dir: Path,
    synthesis: SynthesisResult | None = None,
    slug_override: str | None = None,
) -> Path:
    """Save the full collaboration transcript as a markdown file.

    Args:
        prompt: The prompt the collaboration answered.
        result: The completed CollaborationResult.
        output_dir: Directory to save the file in.
        synthesis: Optional synthesis of the individual responses.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the prompt text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(prompt)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    providers = sorted({r.provider for r in result.responses})
    lines: list[str] = [
        f"# AI Collab ({result.strategy}): {prompt[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Providers:** {', '.join(providers) or 'none'}",
        f"**Status:** {'success' if result.success else 'failed'}",
        f"**Summary:** {_summary_line(result)}",
        "",
        "---",
        "",
    ]

    if result.error:
        lines += ["## Error", "", result.error, ""]

    if result.responses:
        lines += ["## Responses", ""]
        for resp in result.responses:
            lines.append(f"### {resp.provider.title()} ({resp.model})")
            lines.append("")
            lines.append(resp.content)
            lines.append("")
            lines.append(f"*Latency: {resp.latency_sec:.2f}s | Tokens: {resp.usage.total_tokens}*")
            lines.append("")

    if result.final_result is not None:
        lines += ["## Final Result", "", result.final_result.content, ""]

    if synthesis is not None and synthesis.success:
        lines += [
            f"## Synthesis ({synthesis.synthesis_process.method})",
            "",
            synthesis.synthesized_content.main_content,
            "",
            f"*Overall quality: {synthesis.quality_metrics.overall:.2f}*",
            "",
        ]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Collaboration saved to: %s", filepath)
    return filepath
