"""Validates strategy configs and dispatches requests to the chosen strategy."""

import logging
import string
import time
from dataclasses import dataclass, field
from typing import Any

from ai_collab.errors import ValidationError
from ai_collab.gateway import ProviderGateway
from ai_collab.models import CollaborationResult, Request
from ai_collab.strategies.base import Strategy, timestamp
from ai_collab.strategies.consensus import ConsensusStrategy
from ai_collab.strategies.iterative import IterativeStrategy
from ai_collab.strategies.parallel import ParallelStrategy
from ai_collab.strategies.sequential import SequentialStrategy
from ai_collab.strategy_config import (
    AGGREGATION_METHODS,
    CONFLICT_RESOLUTIONS,
    CONSENSUS,
    CONTEXT_PRESERVATION,
    ITERATIVE,
    MAX_ITERATIONS,
    MAX_ROUNDS,
    MAX_STEPS,
    MAX_TIMEOUT_SEC,
    PARALLEL,
    SEQUENTIAL,
    STRATEGIES,
    VOTING_METHODS,
    ConsensusConfig,
    IterativeConfig,
    ParallelConfig,
    SequentialConfig,
    StrategyConfig,
    parse_strategy_config,
)
from config.config_loader import PromptsConfig

logger = logging.getLogger(__name__)

REVIEW_PLACEHOLDERS = {"prompt", "response"}

_TECHNICAL_KEYWORDS = (
    "algorithm", "implement", "code", "function", "class", "method",
    "analyze", "calculate", "optimize", "design", "architecture",
)
_REASONING_KEYWORDS = (
    "compare", "contrast", "evaluate", "synthesize", "critique",
    "justify", "reasoning", "logic", "proof", "theorem",
)

_STRATEGY_INFO: dict[str, dict[str, Any]] = {
    PARALLEL: {
        "name": "Parallel Strategy",
        "description": "Execute multiple providers simultaneously and aggregate results",
        "best_for": ["Fast responses", "Diverse perspectives", "Simple tasks"],
        "requirements": {"min_providers": 1, "complexity": "low"},
    },
    SEQUENTIAL: {
        "name": "Sequential Strategy",
        "description": "Execute providers in sequence, building upon previous results",
        "best_for": ["Complex analysis", "Step-by-step reasoning", "Iterative refinement"],
        "requirements": {"min_providers": 2, "complexity": "medium"},
    },
    CONSENSUS: {
        "name": "Consensus Strategy",
        "description": "Build consensus among multiple providers through voting",
        "best_for": ["Controversial topics", "Decision making", "Balanced perspectives"],
        "requirements": {"min_providers": 2, "max_providers": 5, "complexity": "medium"},
    },
    ITERATIVE: {
        "name": "Iterative Strategy",
        "description": "Iteratively improve responses through review and refinement",
        "best_for": ["High quality output", "Complex problems", "Detailed analysis"],
        "requirements": {"min_providers": 1, "complexity": "high"},
    },
}


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class StrategyRecommendation:
    strategy: str
    reason: str
    config: StrategyConfig


class StrategyManager:
    """Entry point for running a collaboration.

    Args:
        gateway: Provider gateway shared by every strategy.
        prompts: Prompt templates; defaults to the built-in ones.
    """

    def __init__(self, gateway: ProviderGateway, prompts: PromptsConfig | None = None) -> None:
        self._strategies: dict[str, Strategy] = {
            PARALLEL: ParallelStrategy(gateway, prompts),
            SEQUENTIAL: SequentialStrategy(gateway, prompts),
            CONSENSUS: ConsensusStrategy(gateway, prompts),
            ITERATIVE: IterativeStrategy(gateway, prompts),
        }

    def available_strategies(self) -> list[str]:
        return list(self._strategies)

    async def execute_strategy(
        self,
        strategy: str,
        request: Request,
        config: StrategyConfig | dict[str, Any],
    ) -> CollaborationResult:
        """Validate ``config`` and run ``strategy``. Never raises.

        Invalid input yields success=False with the validation errors joined
        into ``metadata["error"]``; no provider is called in that case.
        """
        started = time.monotonic()
        try:
            typed = parse_strategy_config(strategy, config)
        except ValidationError as exc:
            return self._rejected(strategy, request, started, exc.errors)

        validation = self.validate_strategy_config(strategy, typed)
        if not validation.valid:
            return self._rejected(strategy, request, started, validation.errors)

        logger.info("Executing %s strategy for request %s", strategy, request.id)
        return await self._strategies[strategy].execute(request, typed)

    def validate_strategy_config(
        self,
        strategy: str,
        config: StrategyConfig | dict[str, Any],
    ) -> ValidationResult:
        try:
            typed = parse_strategy_config(strategy, config)
        except ValidationError as exc:
            return ValidationResult(valid=False, errors=list(exc.errors))

        try:
            if isinstance(typed, ParallelConfig):
                errors = _validate_parallel(typed)
            elif isinstance(typed, SequentialConfig):
                errors = _validate_sequential(typed)
            elif isinstance(typed, ConsensusConfig):
                errors = _validate_consensus(typed)
            else:
                errors = _validate_iterative(typed)
        except (TypeError, AttributeError) as exc:
            errors = [f"Invalid option type: {exc}"]
        return ValidationResult(valid=not errors, errors=errors)

    def recommend_strategy(self, request: Request, available_providers: list[str]) -> StrategyRecommendation:
        """Suggest a strategy and config from prompt complexity and panel size."""
        providers = list(available_providers)
        if not providers:
            raise ValidationError("At least one provider is needed for a recommendation")
        complexity = estimate_complexity(request.prompt)

        if len(providers) == 1:
            return StrategyRecommendation(
                ITERATIVE,
                "Only one provider available - iterative improvement recommended",
                IterativeConfig(primary_provider=providers[0], review_providers=[providers[0]], max_iterations=3),
            )
        if complexity > 0.7:
            if len(providers) >= 3:
                return StrategyRecommendation(
                    SEQUENTIAL,
                    "High complexity task - sequential processing for thorough analysis",
                    SequentialConfig(providers=providers[:3], max_steps=3, context_preservation="full"),
                )
            return StrategyRecommendation(
                ITERATIVE,
                "High complexity with limited providers - iterative refinement",
                IterativeConfig(primary_provider=providers[0], review_providers=providers[1:], max_iterations=4),
            )
        if complexity > 0.4:
            return StrategyRecommendation(
                CONSENSUS,
                "Medium complexity - consensus building for balanced perspective",
                ConsensusConfig(providers=providers[:4], consensus_threshold=0.7, max_rounds=2),
            )
        return StrategyRecommendation(
            PARALLEL,
            "Straightforward task - parallel execution for speed and diversity",
            ParallelConfig(providers=providers, aggregation_method="best", failure_threshold=0.5),
        )

    def strategy_info(self, strategy: str) -> dict[str, Any]:
        if strategy not in _STRATEGY_INFO:
            raise ValidationError(f"Unknown strategy: {strategy}")
        return _STRATEGY_INFO[strategy]

    def _rejected(
        self,
        strategy: str,
        request: Request,
        started: float,
        errors: list[str],
    ) -> CollaborationResult:
        label = strategy if strategy in STRATEGIES else "unknown"
        message = f"Invalid configuration for {strategy}: {', '.join(errors)}"
        logger.error(message)
        return CollaborationResult(
            success=False,
            strategy=label,
            metadata={
                "request_id": request.id,
                "timestamp": timestamp(),
                "execution_time_sec": time.monotonic() - started,
                "error": message,
                "validation_errors": errors,
            },
        )


def estimate_complexity(prompt: str) -> float:
    """Rough 0-1 complexity of a prompt from length and keyword cues."""
    lowered = prompt.lower()
    complexity = min(len(prompt) / 1000, 0.3)
    technical = sum(1 for keyword in _TECHNICAL_KEYWORDS if keyword in lowered)
    complexity += min(technical * 0.1, 0.3)
    reasoning = sum(1 for keyword in _REASONING_KEYWORDS if keyword in lowered)
    complexity += min(reasoning * 0.15, 0.4)
    if prompt.count("?") > 1:
        complexity += 0.2
    if "list" in lowered or "1." in prompt or "a)" in prompt:
        complexity += 0.1
    return min(complexity, 1.0)


def _check_timeout(timeout_sec: float, errors: list[str]) -> None:
    if not 1 <= timeout_sec <= MAX_TIMEOUT_SEC:
        errors.append(f"Timeout must be between 1 and {MAX_TIMEOUT_SEC:.0f} seconds")


def _check_review_template(template: str, errors: list[str]) -> None:
    """A review prompt may only reference {prompt} and {response}; literal braces are doubled."""
    try:
        names = {name for _, name, _, _ in string.Formatter().parse(template) if name is not None}
    except ValueError as exc:
        errors.append(f"Review prompt is not a valid template: {exc}")
        return
    unknown = sorted(names - REVIEW_PLACEHOLDERS)
    if unknown:
        errors.append(
            "Review prompt may only use {prompt} and {response} placeholders, found: "
            + ", ".join(repr(name) for name in unknown)
        )


def _validate_parallel(config: ParallelConfig) -> list[str]:
    errors = []
    if not config.providers:
        errors.append("Parallel strategy requires at least one provider")
    if not 0 <= config.failure_threshold <= 1:
        errors.append("Failure threshold must be between 0 and 1")
    if config.aggregation_method not in AGGREGATION_METHODS:
        errors.append(f"Aggregation method must be one of: {', '.join(AGGREGATION_METHODS)}")
    _check_timeout(config.timeout_sec, errors)
    return errors


def _validate_sequential(config: SequentialConfig) -> list[str]:
    errors = []
    if not config.providers:
        errors.append("Sequential strategy requires at least one provider")
    if config.max_steps is not None and not 1 <= config.max_steps <= MAX_STEPS:
        errors.append(f"Max steps must be between 1 and {MAX_STEPS}")
    if config.context_preservation not in CONTEXT_PRESERVATION:
        errors.append(f"Context preservation must be one of: {', '.join(CONTEXT_PRESERVATION)}")
    stop = config.stop_conditions
    if stop is not None:
        if stop.max_tokens is not None and stop.max_tokens < 100:
            errors.append("Max tokens must be at least 100")
        if stop.confidence is not None and not 0 <= stop.confidence <= 1:
            errors.append("Stop confidence must be between 0 and 1")
    _check_timeout(config.timeout_sec, errors)
    return errors


def _validate_consensus(config: ConsensusConfig) -> list[str]:
    errors = []
    if len(config.providers) < 2:
        errors.append("Consensus strategy requires at least 2 providers")
    if not 0 <= config.consensus_threshold <= 1:
        errors.append("Consensus threshold must be between 0 and 1")
    if not 1 <= config.max_rounds <= MAX_ROUNDS:
        errors.append(f"Max rounds must be between 1 and {MAX_ROUNDS}")
    if config.voting_method not in VOTING_METHODS:
        errors.append(f"Voting method must be one of: {', '.join(VOTING_METHODS)}")
    if config.conflict_resolution not in CONFLICT_RESOLUTIONS:
        errors.append(f"Conflict resolution must be one of: {', '.join(CONFLICT_RESOLUTIONS)}")
    if config.expert_provider and config.expert_provider not in config.providers:
        errors.append("Expert provider must be included in the providers list")
    _check_timeout(config.timeout_sec, errors)
    return errors


def _validate_iterative(config: IterativeConfig) -> list[str]:
    errors = []
    if not config.primary_provider:
        errors.append("Iterative strategy requires a primary provider")
    if not config.review_providers:
        errors.append("Iterative strategy requires at least one review provider")
    if not 1 <= config.max_iterations <= MAX_ITERATIONS:
        errors.append(f"Max iterations must be between 1 and {MAX_ITERATIONS}")
    if not 0 <= config.improvement_threshold <= 1:
        errors.append("Improvement threshold must be between 0 and 1")
    criteria = config.convergence
    if criteria.quality_score is not None and not 0 <= criteria.quality_score <= 1:
        errors.append("Target quality score must be between 0 and 1")
    if criteria.stability_rounds is not None and criteria.stability_rounds < 2:
        errors.append("Stability rounds must be at least 2")
    if criteria.max_tokens is not None and criteria.max_tokens < 1:
        errors.append("Max tokens must be positive")
    weights = config.weights
    if min(weights.basic_quality, weights.reviewer_sentiment, weights.iteration_bonus, weights.completeness) < 0:
        errors.append("Quality weights must not be negative")
    if config.review_prompt:
        _check_review_template(config.review_prompt, errors)
    _check_timeout(config.timeout_sec, errors)
    return errors
