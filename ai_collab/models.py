"""Dataclasses for requests, responses, and collaboration results. No I/O."""

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any


def new_id(prefix: str) -> str:
    """Return a short unique id such as 'parallel-3f9a1c2b'."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass(frozen=True)
class Request:
    prompt: str
    id: str = field(default_factory=lambda: new_id("req"))
    model: str | None = None          # optional model hint for the backend
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Response:
    id: str
    provider: str          # gateway tag, e.g. "claude", or "parallel_aggregated"
    model: str
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_sec: float = 0.0
    finish_reason: str | None = None   # "stop", "length", ...
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def total_usage(responses: list[Response]) -> TokenUsage:
    usage = TokenUsage()
    for response in responses:
        usage = usage + response.usage
    return usage


@dataclass
class CollaborationResult:
    success: bool
    strategy: str
    responses: list[Response] = field(default_factory=list)
    final_result: Response | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def error(self) -> str | None:
        return self.metadata.get("error")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Vote:
    provider: str
    response: Response
    confidence: float


@dataclass
class ConsensusRound:
    round_number: int
    votes: list[Vote] = field(default_factory=list)
    agreement: float = 0.0
    consensus: bool = False
    conflict_areas: list[str] | None = None


@dataclass
class Review:
    provider: str
    response: Response
    feedback: str
    suggestions: list[str] = field(default_factory=list)


@dataclass
class ConvergenceMetrics:
    stability: float
    improvement: float
    total_tokens: int


@dataclass
class IterationCycle:
    iteration: int
    primary_response: Response
    reviews: list[Review] = field(default_factory=list)
    improved_response: Response | None = None
    quality_score: float = 0.0
    improvements: list[str] = field(default_factory=list)
    convergence: ConvergenceMetrics = field(default_factory=lambda: ConvergenceMetrics(0.0, 0.0, 0))

    @property
    def answer(self) -> Response:
        return self.improved_response or self.primary_response

    def responses(self) -> list[Response]:
        out = [self.primary_response, *(r.response for r in self.reviews)]
        if self.improved_response is not None:
            out.append(self.improved_response)
        return out


# --- Synthesis -------------------------------------------------------------


@dataclass
class QualityWeights:
    accuracy: float = 0.3
    completeness: float = 0.25
    clarity: float = 0.2
    novelty: float = 0.15
    relevance: float = 0.1


@dataclass
class SynthesisCriteria:
    preserve_original_insights: bool = False
    highlight_disagreements: bool = False
    include_confidence_scores: bool = False
    max_length: int | None = None
    target_audience: str | None = None     # "technical", "business", "general"
    output_format: str | None = None       # "summary", "detailed", "structured", "narrative"
    include_alternatives: bool = False


@dataclass
class SynthesisParams:
    responses: list[Response]
    method: str | None = None
    quality_weights: QualityWeights | None = None
    criteria: SynthesisCriteria | None = None
    custom_instructions: str | None = None
    synthesizer_provider: str | None = None


@dataclass
class InputAnalysis:
    total_responses: int
    providers: list[str] = field(default_factory=list)
    content_lengths: list[tuple[str, int]] = field(default_factory=list)
    quality_scores: list[tuple[str, float]] = field(default_factory=list)
    similarity_matrix: list[list[float]] = field(default_factory=list)
    key_themes: list[str] = field(default_factory=list)


@dataclass
class SynthesisProcess:
    method: str
    steps: list[str] = field(default_factory=list)
    conflicts_resolved: int = 0
    consensus_level: float = 0.0
    processing_time_sec: float = 0.0


@dataclass
class ConfidenceAssessment:
    overall_confidence: float
    high_confidence_points: list[str] = field(default_factory=list)
    low_confidence_points: list[str] = field(default_factory=list)


@dataclass
class SourceAttribution:
    point: str
    sources: list[str] = field(default_factory=list)


@dataclass
class SynthesizedContent:
    main_content: str
    key_points: list[str] = field(default_factory=list)
    supporting_evidence: list[str] | None = None
    areas_of_agreement: list[str] | None = None
    areas_of_disagreement: list[str] | None = None
    confidence_assessment: ConfidenceAssessment | None = None
    source_attribution: list[SourceAttribution] | None = None


@dataclass
class QualityMetrics:
    coherence: float = 0.0
    completeness: float = 0.0
    novelty: float = 0.0
    accuracy_estimate: float = 0.0
    readability: float = 0.0

    @property
    def overall(self) -> float:
        """Mean of the four non-novelty axes. Novelty is informational only."""
        return (self.coherence + self.completeness + self.accuracy_estimate + self.readability) / 4


@dataclass
class AlternativeSynthesis:
    method: str
    content: str
    quality_score: float
    characteristics: list[str] = field(default_factory=list)


@dataclass
class Recommendations:
    usage_suggestions: list[str] = field(default_factory=list)
    limitations: list[str] = field(default_factory=list)
    further_research: list[str] | None = None


@dataclass
class SynthesisResult:
    success: bool
    synthesis_id: str
    input_analysis: InputAnalysis
    synthesis_process: SynthesisProcess
    synthesized_content: SynthesizedContent
    quality_metrics: QualityMetrics = field(default_factory=QualityMetrics)
    alternative_syntheses: list[AlternativeSynthesis] | None = None
    recommendations: Recommendations = field(default_factory=Recommendations)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def as_response(self) -> Response:
        """Wrap the synthesized text as a Response so it can be synthesized again."""
        return Response(
            id=self.synthesis_id,
            provider="synthesis",
            model=self.synthesis_process.method,
            content=self.synthesized_content.main_content,
            finish_reason="stop",
            metadata={"overall_quality": self.quality_metrics.overall},
        )
