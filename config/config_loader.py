"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from ai_collab import prompts as default_prompts

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    sequential_first_continuation: str = default_prompts.SEQUENTIAL_FIRST_CONTINUATION
    sequential_continuation: str = default_prompts.SEQUENTIAL_CONTINUATION
    default_continuation: str = default_prompts.DEFAULT_CONTINUATION
    consensus_resolution: str = default_prompts.CONSENSUS_RESOLUTION
    iterative_review: str = default_prompts.ITERATIVE_REVIEW
    iterative_improve: str = default_prompts.ITERATIVE_IMPROVE
    default_improve_header: str = default_prompts.DEFAULT_IMPROVE_HEADER
    iterative_next: str = default_prompts.ITERATIVE_NEXT
    synthesis_headers: dict[str, str] = field(
        default_factory=lambda: dict(default_prompts.SYNTHESIS_HEADERS)
    )


@dataclass
class DefaultsConfig:
    strategy: str
    output_dir: Path
    synthesizer: str
    default_panel: list[str] = field(default_factory=list)
    full_panel: list[str] = field(default_factory=list)
    timeout_sec: float = 60.0
    failure_threshold: float = 0.5
    aggregation_method: str = "best"
    consensus_threshold: float = 0.7
    max_rounds: int = 3
    voting_method: str = "majority"
    conflict_resolution: str = "combine"
    max_iterations: int = 5
    improvement_threshold: float = 0.01
    max_retries: int = 0


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig = field(default_factory=PromptsConfig)
    available_providers: set[str] = field(default_factory=set)


def _load_prompts(raw: dict | None) -> PromptsConfig:
    """Overlay settings.yaml prompt templates on the built-in defaults."""
    prompts = PromptsConfig()
    if not raw:
        return prompts
    known = {f.name for f in fields(PromptsConfig)}
    for key, value in raw.items():
        if key not in known:
            logger.warning("Unknown prompt template in settings: %s", key)
            continue
        if key == "synthesis_headers":
            prompts.synthesis_headers.update({k: str(v) for k, v in value.items()})
        else:
            setattr(prompts, key, str(value))
    return prompts


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs warnings for missing API keys but does not raise; callers check
    available_providers count.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        strategy=str(defaults_raw.get("strategy", "parallel")),
        output_dir=Path(defaults_raw["output_dir"]),
        synthesizer=str(defaults_raw["synthesizer"]),
        default_panel=list(defaults_raw.get("default_panel", [])),
        full_panel=list(defaults_raw.get("full_panel", [])),
        timeout_sec=float(defaults_raw.get("timeout_sec", 60.0)),
        failure_threshold=float(defaults_raw.get("failure_threshold", 0.5)),
        aggregation_method=str(defaults_raw.get("aggregation_method", "best")),
        consensus_threshold=float(defaults_raw.get("consensus_threshold", 0.7)),
        max_rounds=int(defaults_raw.get("max_rounds", 3)),
        voting_method=str(defaults_raw.get("voting_method", "majority")),
        conflict_resolution=str(defaults_raw.get("conflict_resolution", "combine")),
        max_iterations=int(defaults_raw.get("max_iterations", 5)),
        improvement_threshold=float(defaults_raw.get("improvement_threshold", 0.01)),
        max_retries=int(defaults_raw.get("max_retries", 0)),
    )

    prompts = _load_prompts(raw.get("prompts"))

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        available_providers=available_providers,
    )
