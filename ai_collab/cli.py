"""Click CLI: orchestrates config loading, provider selection, strategy execution, and output."""

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from ai_collab.gateway import ProviderGateway
from ai_collab.healthcheck import run_health_checks
from ai_collab.models import CollaborationResult, Request, SynthesisParams, SynthesisResult
from ai_collab.output import print_responses, print_result, print_synthesis, save_to_file
from ai_collab.prompt_file import parse_file, parse_models, split_options
from ai_collab.providers.anthropic import AnthropicProvider
from ai_collab.providers.base import AIProvider
from ai_collab.providers.gemini import GeminiProvider
from ai_collab.providers.openai_provider import OpenAIProvider
from ai_collab.strategy_config import (
    AGGREGATION_METHODS,
    CONSENSUS,
    ITERATIVE,
    PARALLEL,
    SEQUENTIAL,
    STRATEGIES,
    VOTING_METHODS,
)
from ai_collab.strategy_manager import StrategyManager
from ai_collab.synthesis import METHODS as SYNTHESIS_METHODS
from ai_collab.synthesis import SynthesisEngine
from config.config_loader import AppConfig, load_config

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# Keyed by the ``sdk`` field of a model config.
PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}

AUTO = "auto"


@dataclass
class Runtime:
    gateway: ProviderGateway
    manager: StrategyManager
    synthesis: SynthesisEngine


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def build_runtime(config: AppConfig, providers: dict[str, AIProvider]) -> Runtime:
    """Wire the gateway, strategy manager and synthesis engine together."""
    gateway = ProviderGateway(providers, max_retries=config.defaults.max_retries)
    return Runtime(
        gateway=gateway,
        manager=StrategyManager(gateway, config.prompts),
        synthesis=SynthesisEngine(gateway, config.prompts),
    )


def _determine_panel(
    config: AppConfig,
    models_arg: list[str],
    full_flag: bool,
) -> list[str]:
    """--models overrides all, then --full, then the default panel."""
    if models_arg:
        return models_arg
    if full_flag:
        return list(config.defaults.full_panel)
    return list(config.defaults.default_panel)


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(
        f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def strategy_options(
    strategy: str,
    config: AppConfig,
    panel: list[str],
    file_options: dict[str, Any],
    cli_options: dict[str, Any],
) -> dict[str, Any]:
    """Build the raw option mapping for ``strategy``.

    Precedence: CLI flag > front-matter > config default.
    """
    defaults = config.defaults
    if strategy == PARALLEL:
        options: dict[str, Any] = {
            "providers": panel,
            "timeout_sec": defaults.timeout_sec,
            "failure_threshold": defaults.failure_threshold,
            "aggregation_method": defaults.aggregation_method,
        }
    elif strategy == SEQUENTIAL:
        options = {"providers": panel, "timeout_sec": defaults.timeout_sec}
    elif strategy == CONSENSUS:
        options = {
            "providers": panel,
            "timeout_sec": defaults.timeout_sec,
            "consensus_threshold": defaults.consensus_threshold,
            "max_rounds": defaults.max_rounds,
            "voting_method": defaults.voting_method,
            "conflict_resolution": defaults.conflict_resolution,
        }
    else:
        options = {
            "primary_provider": panel[0] if panel else "",
            "review_providers": panel[1:] or panel[:1],
            "timeout_sec": defaults.timeout_sec,
            "max_iterations": defaults.max_iterations,
            "improvement_threshold": defaults.improvement_threshold,
        }

    options.update(file_options)
    overrides = {
        PARALLEL: {"aggregation_method": cli_options.get("aggregation")},
        CONSENSUS: {"voting_method": cli_options.get("voting"), "max_rounds": cli_options.get("rounds")},
        ITERATIVE: {"max_iterations": cli_options.get("iterations")},
    }.get(strategy, {})
    options.update({k: v for k, v in overrides.items() if v is not None})
    return options


async def _run_single(
    prompt: str,
    runtime: Runtime,
    strategy: str,
    options: dict[str, Any] | None,
    panel: list[str],
    synthesize: bool,
    synthesis_method: str | None,
    synthesizer: str | None,
) -> tuple[CollaborationResult, SynthesisResult | None]:
    request = Request(prompt=prompt)
    if strategy == AUTO:
        recommendation = runtime.manager.recommend_strategy(request, panel)
        console.print(f"Auto-selected [bold]{recommendation.strategy}[/bold]: {recommendation.reason}")
        strategy, config = recommendation.strategy, recommendation.config
    else:
        config = options or {}

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Running {strategy} strategy...", total=None)
        result = await runtime.manager.execute_strategy(strategy, request, config)

        synthesis = None
        if synthesize and result.success and len(result.responses) > 1:
            progress.update(task, description="Running synthesis...")
            synthesis = await runtime.synthesis.synthesize(
                SynthesisParams(
                    responses=result.responses,
                    method=synthesis_method,
                    synthesizer_provider=synthesizer,
                )
            )
    return result, synthesis


@click.command()
@click.argument("prompt", required=False)
@click.option("--file", "prompt_file", type=click.Path(exists=True), help="Read prompt from .md file")
@click.option("--strategy", type=click.Choice([*STRATEGIES, AUTO]), default=None,
              help="Collaboration strategy (default: from config)")
@click.option("--models", default=None, help="Comma-separated provider list, overrides panel selection")
@click.option("--full", "use_full_panel", is_flag=True, help="Use the full provider panel from config")
@click.option("--aggregation", type=click.Choice(AGGREGATION_METHODS), default=None,
              help="Parallel aggregation method")
@click.option("--voting", type=click.Choice(VOTING_METHODS), default=None, help="Consensus voting method")
@click.option("--rounds", default=None, type=int, help="Max consensus rounds")
@click.option("--iterations", default=None, type=int, help="Max iterative cycles")
@click.option("--synthesize", is_flag=True, help="Synthesize the individual responses afterwards")
@click.option("--synthesis-method", type=click.Choice(SYNTHESIS_METHODS), default=None,
              help="Synthesis method (default: picked from the responses)")
@click.option("--synthesizer", default=None, help="Which provider writes the synthesis (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    prompt: str | None,
    prompt_file: str | None,
    strategy: str | None,
    models: str | None,
    use_full_panel: bool,
    aggregation: str | None,
    voting: str | None,
    rounds: int | None,
    iterations: int | None,
    synthesize: bool,
    synthesis_method: str | None,
    synthesizer: str | None,
    output_path: str | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """AI Collab -- run a prompt across several AI providers.

    \b
    Examples:
      ai-collab "Should we use REST or GraphQL?"
      ai-collab "Monorepo vs polyrepo?" --strategy consensus --voting weighted
      ai-collab "Explain CRDTs" --strategy iterative --models claude,gemini --iterations 3
      ai-collab "SQL or NoSQL?" --strategy parallel --synthesize --synthesis-method consensus
      ai-collab --file question.md
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    file_meta: dict[str, Any] = {}
    file_options: dict[str, Any] = {}
    slug_override = None
    if prompt_file:
        prompt_text, metadata = parse_file(Path(prompt_file))
        file_meta, file_options = split_options(metadata)
        slug_override = Path(prompt_file).stem
    elif prompt:
        prompt_text = prompt
    else:
        console.print("[bold red]Error:[/bold red] Provide a PROMPT argument or --file.")
        sys.exit(1)

    effective_strategy = strategy or file_meta.get("strategy") or config.defaults.strategy
    if effective_strategy not in (*STRATEGIES, AUTO):
        console.print(f"[bold red]Error:[/bold red] Unknown strategy '{effective_strategy}'.")
        sys.exit(1)
    effective_models = parse_models(models) or parse_models(file_meta.get("models"))
    effective_output = Path(output_path) if output_path else config.defaults.output_dir
    effective_synthesize = synthesize or bool(file_meta.get("synthesize", False))
    effective_method = synthesis_method or file_meta.get("synthesis_method")

    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers)

    runtime = build_runtime(config, all_providers)
    requested = _determine_panel(config, effective_models, use_full_panel)
    panel = [n for n in requested if n in all_providers]
    skipped = [n for n in requested if n not in all_providers]
    if skipped:
        console.print(f"[yellow]Unavailable, skipped:[/yellow] {', '.join(skipped)}")
    if not panel:
        console.print("[bold red]Error:[/bold red] None of the requested providers are available.")
        sys.exit(1)

    effective_synthesizer = synthesizer or config.defaults.synthesizer
    if effective_synthesizer not in all_providers:
        effective_synthesizer = None

    options = None
    if effective_strategy != AUTO:
        options = strategy_options(
            effective_strategy,
            config,
            panel,
            file_options,
            {"aggregation": aggregation, "voting": voting, "rounds": rounds, "iterations": iterations},
        )

    console.print(f"\n[bold cyan]AI Collab[/bold cyan]: {effective_strategy} with {len(panel)} provider(s)")
    console.print(f"Panel: {', '.join(panel)}")
    console.print(f"Prompt: [italic]{prompt_text[:80]}{'...' if len(prompt_text) > 80 else ''}[/italic]\n")

    result, synthesis = asyncio.run(
        _run_single(
            prompt=prompt_text,
            runtime=runtime,
            strategy=effective_strategy,
            options=options,
            panel=panel,
            synthesize=effective_synthesize,
            synthesis_method=effective_method,
            synthesizer=effective_synthesizer,
        )
    )

    if result.responses:
        print_responses(result.responses)
    print_result(result)
    if synthesis is not None:
        print_synthesis(synthesis)

    saved_path = save_to_file(prompt_text, result, effective_output, synthesis, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
