"""Per-strategy configuration records.

Each config carries a read-only ``strategy`` tag, so ``StrategyConfig`` works as
a tagged union. ``parse_strategy_config`` builds one from a plain mapping such
as CLI options or YAML front-matter.
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Any

from ai_collab.errors import ValidationError

logger = logging.getLogger(__name__)

PARALLEL = "parallel"
SEQUENTIAL = "sequential"
CONSENSUS = "consensus"
ITERATIVE = "iterative"
STRATEGIES = (PARALLEL, SEQUENTIAL, CONSENSUS, ITERATIVE)

AGGREGATION_METHODS = ("best", "concatenate", "vote", "all")
CONTEXT_PRESERVATION = ("full", "summary", "last_only")
VOTING_METHODS = ("majority", "weighted", "unanimous", "ranked")
CONFLICT_RESOLUTIONS = ("combine", "expert", "abort")

# Ceilings that keep every loop bounded.
MAX_TIMEOUT_SEC = 600.0
MAX_STEPS = 20
MAX_ROUNDS = 10
MAX_ITERATIONS = 20


@dataclass
class ParallelConfig:
    providers: list[str]
    timeout_sec: float = 60.0
    failure_threshold: float = 0.5
    aggregation_method: str = "best"
    strategy: str = field(default=PARALLEL, init=False)


@dataclass
class StopConditions:
    max_tokens: int | None = None        # estimated from characters / 4
    keywords: list[str] = field(default_factory=list)
    confidence: float | None = None


@dataclass
class SequentialConfig:
    providers: list[str]
    max_steps: int | None = None
    context_preservation: str = "full"
    continuation_prompt: str | None = None
    stop_conditions: StopConditions | None = None
    timeout_sec: float = 60.0
    strategy: str = field(default=SEQUENTIAL, init=False)


@dataclass
class ConsensusConfig:
    providers: list[str]
    consensus_threshold: float = 0.7
    max_rounds: int = 3
    voting_method: str = "majority"
    conflict_resolution: str = "combine"
    expert_provider: str | None = None
    timeout_sec: float = 60.0
    strategy: str = field(default=CONSENSUS, init=False)


@dataclass
class ConvergenceCriteria:
    quality_score: float | None = None
    stability_rounds: int | None = None
    max_tokens: int | None = None
    stability_tolerance: float = 0.0025  # max score variance that counts as stable


@dataclass
class IterationWeights:
    basic_quality: float = 0.4
    reviewer_sentiment: float = 0.3
    iteration_bonus: float = 0.2
    completeness: float = 0.1


@dataclass
class IterativeConfig:
    primary_provider: str
    review_providers: list[str]
    max_iterations: int = 5
    improvement_threshold: float = 0.01
    convergence: ConvergenceCriteria = field(default_factory=ConvergenceCriteria)
    weights: IterationWeights = field(default_factory=IterationWeights)
    review_prompt: str | None = None
    improve_prompt: str | None = None
    timeout_sec: float = 60.0
    strategy: str = field(default=ITERATIVE, init=False)


StrategyConfig = ParallelConfig | SequentialConfig | ConsensusConfig | IterativeConfig

_CONFIG_TYPES: dict[str, type] = {
    PARALLEL: ParallelConfig,
    SEQUENTIAL: SequentialConfig,
    CONSENSUS: ConsensusConfig,
    ITERATIVE: IterativeConfig,
}

_NESTED: dict[str, type] = {
    "stop_conditions": StopConditions,
    "convergence": ConvergenceCriteria,
    "weights": IterationWeights,
}

# Nested options that may be switched off with None.
_OPTIONAL_NESTED = {"stop_conditions"}


def _build(cls: type, raw: dict[str, Any]) -> Any:
    known = {f.name for f in fields(cls) if f.init}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValidationError(
            f"Unknown {cls.__name__} option(s): {', '.join(unknown)}",
            [f"Unknown option: {name}" for name in unknown],
        )
    kwargs = {}
    for key, value in raw.items():
        nested = _NESTED.get(key)
        if nested is not None:
            if isinstance(value, dict):
                value = _build(nested, value)
            elif not (isinstance(value, nested) or (value is None and key in _OPTIONAL_NESTED)):
                raise ValidationError(f"{key} must be a mapping")
        kwargs[key] = value
    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise ValidationError(f"Invalid {cls.__name__}: {exc}") from exc


def parse_strategy_config(strategy: str, raw: dict[str, Any] | StrategyConfig) -> StrategyConfig:
    """Build the config variant for ``strategy`` from a mapping.

    Args:
        strategy: One of parallel, sequential, consensus, iterative.
        raw: Option mapping, or an already-built config which is returned as is
            when its tag matches.

    Returns:
        The typed config for the strategy.

    Raises:
        ValidationError: Unknown strategy, mismatched config, unknown or
            missing options.
    """
    cls = _CONFIG_TYPES.get(strategy)
    if cls is None:
        raise ValidationError(f"Unknown strategy: {strategy}")
    if isinstance(raw, cls):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError(
            f"Config for {strategy} must be a mapping or {cls.__name__}, got {type(raw).__name__}"
        )
    return _build(cls, dict(raw))
