"""Synthesis engine: merge an arbitrary set of responses into one answer.

Six methods are supported. ``extractive`` works on the inputs alone; the others
ask a synthesizer provider to write the merged text from a method-specific
prompt. Every call returns a SynthesisResult and never raises.
"""

import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass, field

from ai_collab.errors import CollabError, ValidationError
from ai_collab.gateway import ProviderGateway
from ai_collab.models import (
    AlternativeSynthesis,
    ConfidenceAssessment,
    InputAnalysis,
    QualityMetrics,
    QualityWeights,
    Recommendations,
    Request,
    Response,
    SourceAttribution,
    SynthesisCriteria,
    SynthesisParams,
    SynthesisProcess,
    SynthesisResult,
    SynthesizedContent,
    new_id,
)
from ai_collab.providers.base import ProviderError
from ai_collab.scoring import assess_response_quality
from ai_collab.text import (
    SENTENCE_MATCH_THRESHOLD,
    argmax,
    clamp,
    mean_pairwise_similarity,
    similarity,
    similarity_matrix,
    split_sentences,
    top_terms,
    words,
)
from config.config_loader import PromptsConfig

logger = logging.getLogger(__name__)

METHODS = ("consensus", "weighted_merge", "best_of", "comprehensive", "extractive", "abstractive")
MAX_RESPONSES = 20
MAX_RESPONSE_CHARS = 50_000

_IMPORTANCE_WORDS = ("important", "key", "significant", "crucial", "essential")
_EVIDENCE_WORDS = ("evidence", "research", "study", "data")
_CONTRAST_WORDS = ("but", "however", "although", "despite", "whereas", "contrary")
_CONNECTORS = ("therefore", "however", "furthermore", "moreover", "consequently")
_HEDGES = ("might", "could", "possibly", "perhaps", "maybe")
_ASSERTIVE_RE = re.compile(r"\b(definitely|certainly|absolutely)\b")
_NUMBER_RE = re.compile(r"\d+")
_ALTERNATIVE_METHODS = ("consensus", "weighted_merge", "best_of")
# A source is credited for a point when one of its sentences is at least this close.
_ATTRIBUTION_THRESHOLD = 0.3


@dataclass
class _Outcome:
    content: SynthesizedContent
    steps: list[str] = field(default_factory=list)
    conflicts_resolved: int = 0
    consensus_level: float = 0.0


class SynthesisEngine:
    """Merges already-obtained responses with one of six methods.

    Args:
        gateway: Used to reach the synthesizer provider.
        prompts: Method headers; defaults to the built-in ones.
        timeout_sec: Per-call timeout for the synthesizer.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        prompts: PromptsConfig | None = None,
        timeout_sec: float = 120.0,
    ) -> None:
        self._gateway = gateway
        self._prompts = prompts or PromptsConfig()
        self._timeout_sec = timeout_sec

    async def synthesize(self, params: SynthesisParams) -> SynthesisResult:
        synthesis_id = new_id("synthesis")
        started = time.monotonic()
        try:
            self._validate(params)
            analysis = self.analyze(params.responses)
            method = params.method or self.recommended_method(params.responses)
            logger.info("Synthesizing %d responses with %s", len(params.responses), method)

            outcome = await self._run_method(method, params, analysis)
            metrics = evaluate_quality(outcome.content.main_content, params.responses)

            alternatives = None
            criteria = params.criteria or SynthesisCriteria()
            if criteria.include_alternatives and len(params.responses) > 1:
                alternatives = await self._alternatives(method, params, analysis)

            return SynthesisResult(
                success=True,
                synthesis_id=synthesis_id,
                input_analysis=analysis,
                synthesis_process=SynthesisProcess(
                    method=method,
                    steps=outcome.steps,
                    conflicts_resolved=outcome.conflicts_resolved,
                    consensus_level=clamp(outcome.consensus_level),
                    processing_time_sec=time.monotonic() - started,
                ),
                synthesized_content=outcome.content,
                quality_metrics=metrics,
                alternative_syntheses=alternatives or None,
                recommendations=recommendations(outcome.content, metrics, analysis),
            )
        except CollabError as exc:
            logger.error("Synthesis %s failed: %s", synthesis_id, exc.message)
            return _failed(synthesis_id, params, started, exc.message)
        except Exception as exc:
            logger.exception("Synthesis %s crashed", synthesis_id)
            return _failed(synthesis_id, params, started, f"Unexpected error: {exc}")

    async def create_consensus(self, responses: list[Response]) -> SynthesisResult:
        return await self.synthesize(
            SynthesisParams(
                responses=responses,
                method="consensus",
                criteria=SynthesisCriteria(highlight_disagreements=True, include_confidence_scores=True),
            )
        )

    async def merge_best_elements(
        self,
        responses: list[Response],
        weights: QualityWeights | None = None,
    ) -> SynthesisResult:
        return await self.synthesize(
            SynthesisParams(responses=responses, method="weighted_merge", quality_weights=weights or QualityWeights())
        )

    async def generate_comprehensive_summary(self, responses: list[Response]) -> SynthesisResult:
        return await self.synthesize(
            SynthesisParams(
                responses=responses,
                method="comprehensive",
                criteria=SynthesisCriteria(preserve_original_insights=True, output_format="structured"),
            )
        )

    # --- analysis -----------------------------------------------------------

    def analyze(self, responses: list[Response]) -> InputAnalysis:
        analysis = InputAnalysis(
            total_responses=len(responses),
            providers=[r.provider for r in responses],
            content_lengths=[(r.provider, len(r.content)) for r in responses],
            quality_scores=[(r.provider, self.assess_response_quality(r)) for r in responses],
            similarity_matrix=self.analyze_response_similarity(responses),
            key_themes=self.identify_key_themes(responses),
        )
        logger.debug(
            "Input analysis: %d responses, %d themes",
            analysis.total_responses, len(analysis.key_themes),
        )
        return analysis

    def analyze_response_similarity(self, responses: list[Response]) -> list[list[float]]:
        return similarity_matrix([r.content for r in responses])

    def identify_key_themes(self, responses: list[Response]) -> list[str]:
        return top_terms([r.content for r in responses], min_length=5, limit=10)

    def assess_response_quality(self, response: Response) -> float:
        return assess_response_quality(response)

    def recommended_method(self, responses: list[Response]) -> str:
        """Pick a method from input count and how much the inputs already agree."""
        if len(responses) <= 2:
            return "weighted_merge"
        mean_similarity = mean_pairwise_similarity([r.content for r in responses])
        if mean_similarity > 0.8:
            return "consensus"
        if mean_similarity < 0.3:
            return "comprehensive"
        return "best_of"

    def estimate_complexity(self, params: SynthesisParams) -> str:
        count = len(params.responses)
        if not count:
            return "low"
        average = sum(len(r.content) for r in params.responses) / count
        if count <= 2 and average < 1000:
            return "low"
        if count <= 5 and average < 3000:
            return "medium"
        return "high"

    # --- pipeline -----------------------------------------------------------

    def _validate(self, params: SynthesisParams) -> None:
        responses = params.responses
        if not responses:
            raise ValidationError("At least one response is required for synthesis")
        if len(responses) > MAX_RESPONSES:
            raise ValidationError(f"Too many responses for synthesis (max {MAX_RESPONSES})")
        for index, response in enumerate(responses, start=1):
            if not response.content.strip():
                raise ValidationError(f"Response {index} has no content")
            if len(response.content) > MAX_RESPONSE_CHARS:
                raise ValidationError(f"Response {index} is too long (max {MAX_RESPONSE_CHARS:,} characters)")
        if params.method is not None and params.method not in METHODS:
            raise ValidationError(f"Unknown synthesis method: {params.method}")
        if params.synthesizer_provider and params.synthesizer_provider not in self._gateway.list_available():
            raise ValidationError(f"Invalid synthesizer provider: {params.synthesizer_provider}")

    async def _run_method(self, method: str, params: SynthesisParams, analysis: InputAnalysis) -> _Outcome:
        if len(params.responses) == 1:
            return _passthrough(method, params.responses[0])
        steps = [f"Starting {method} synthesis"]
        if method == "consensus":
            return await self._consensus(params, analysis, steps)
        if method == "weighted_merge":
            return await self._weighted_merge(params, analysis, steps)
        if method == "best_of":
            return await self._best_of(params, analysis, steps)
        if method == "comprehensive":
            return await self._comprehensive(params, analysis, steps)
        if method == "extractive":
            return _extractive(params, steps)
        return await self._abstractive(params, analysis, steps)

    async def _consensus(self, params: SynthesisParams, analysis: InputAnalysis, steps: list[str]) -> _Outcome:
        responses = params.responses
        steps.append("Identifying areas of agreement")
        agreement = common_points(responses)
        disagreement = conflicting_points(responses)

        steps.append("Building consensus content")
        sections = [_numbered_responses(responses)]
        if agreement:
            sections.append("Areas of agreement:\n" + _bullets(agreement))
        if disagreement:
            sections.append("Areas of disagreement to address:\n" + _bullets(disagreement))
        sections.append(
            "Please create a consensus synthesis that:\n"
            "1. Incorporates areas of agreement\n"
            "2. Addresses disagreements objectively\n"
            "3. Maintains accuracy and coherence\n"
            "4. Provides a balanced perspective"
        )
        text = await self._generate("consensus", sections, params, analysis)
        key_points = extract_key_points(text)
        steps.append("Consensus synthesis completed")

        total = len(agreement) + len(disagreement)
        level = len(agreement) / total if total else mean_pairwise_similarity([r.content for r in responses])
        return _Outcome(
            content=SynthesizedContent(
                main_content=text,
                key_points=key_points,
                areas_of_agreement=agreement or None,
                areas_of_disagreement=disagreement or None,
                confidence_assessment=ConfidenceAssessment(
                    overall_confidence=len(agreement) / total if total else 0.5,
                    high_confidence_points=agreement[:3],
                    low_confidence_points=disagreement[:2],
                ),
                source_attribution=attribute_sources(key_points, responses),
            ),
            steps=steps,
            conflicts_resolved=len(disagreement),
            consensus_level=level,
        )

    async def _weighted_merge(self, params: SynthesisParams, analysis: InputAnalysis, steps: list[str]) -> _Outcome:
        responses = params.responses
        steps.append("Calculating response weights")
        weights = response_weights(responses, analysis, params.quality_weights)

        steps.append("Merging weighted content")
        blocks = "\n\n".join(
            f"Response {index} ({r.provider}, weight: {weight:.2f}):\n{r.content}"
            for index, (r, weight) in enumerate(zip(responses, weights), start=1)
        )
        sections = [
            f"Responses with quality weights:\n\n{blocks}",
            "Please merge these responses, giving more weight to higher-quality responses "
            "while preserving valuable insights from all sources.",
        ]
        text = await self._generate("weighted_merge", sections, params, analysis)
        key_points = extract_key_points(text)
        steps.append("Weighted merge completed")
        return _Outcome(
            content=SynthesizedContent(
                main_content=text,
                key_points=key_points,
                source_attribution=attribute_sources(key_points, responses),
            ),
            steps=steps,
            consensus_level=mean_pairwise_similarity([r.content for r in responses]),
        )

    async def _best_of(self, params: SynthesisParams, analysis: InputAnalysis, steps: list[str]) -> _Outcome:
        responses = params.responses
        steps.append("Selecting best response elements")
        best_index = argmax([score for _, score in analysis.quality_scores])
        best = responses[best_index]

        steps.append("Enhancing selected content")
        complementary = complementary_elements(best_index, responses)
        sections = [f"Best response ({best.provider}):\n{best.content}"]
        if complementary:
            sections.append("Complementary elements to consider:\n" + _bullets(complementary))
        sections.append(
            "Please enhance the best response by incorporating valuable complementary elements "
            "while maintaining its high quality."
        )
        text = await self._generate("best_of", sections, params, analysis)
        key_points = extract_key_points(text)
        steps.append("Best-of synthesis completed")
        return _Outcome(
            content=SynthesizedContent(
                main_content=text,
                key_points=key_points,
                supporting_evidence=complementary or None,
                source_attribution=attribute_sources(key_points, responses),
            ),
            steps=steps,
            consensus_level=similarity(text, best.content),
        )

    async def _comprehensive(self, params: SynthesisParams, analysis: InputAnalysis, steps: list[str]) -> _Outcome:
        responses = params.responses
        steps.append("Creating comprehensive synthesis")
        sections = [
            "All responses:\n\n" + _numbered_responses(responses),
            f"Key themes identified: {', '.join(analysis.key_themes)}",
            "Please create a comprehensive synthesis that covers all important aspects and themes.",
        ]
        text = await self._generate("comprehensive", sections, params, analysis)
        key_points = extract_key_points(text)
        evidence = supporting_evidence(responses)
        steps.append("Comprehensive synthesis completed")
        return _Outcome(
            content=SynthesizedContent(
                main_content=text,
                key_points=key_points,
                supporting_evidence=evidence or None,
                source_attribution=attribute_sources(key_points, responses),
            ),
            steps=steps,
            consensus_level=mean_pairwise_similarity([r.content for r in responses]),
        )

    async def _abstractive(self, params: SynthesisParams, analysis: InputAnalysis, steps: list[str]) -> _Outcome:
        responses = params.responses
        steps.append("Creating abstractive summary")
        sources = "\n\n".join(f"Source {index}:\n{r.content}" for index, r in enumerate(responses, start=1))
        sections = [
            f"Source responses:\n\n{sources}",
            f"Key themes: {', '.join(analysis.key_themes)}",
            "Please create an abstractive summary that synthesizes the key concepts in your own words.",
        ]
        text = await self._generate("abstractive", sections, params, analysis)
        key_points = extract_key_points(text)
        steps.append("Abstractive synthesis completed")
        return _Outcome(
            content=SynthesizedContent(
                main_content=text,
                key_points=key_points,
                source_attribution=attribute_sources(key_points, responses),
            ),
            steps=steps,
            consensus_level=mean_pairwise_similarity([r.content for r in responses]),
        )

    async def _generate(
        self,
        method: str,
        sections: list[str],
        params: SynthesisParams,
        analysis: InputAnalysis,
    ) -> str:
        """Assemble the method prompt and ask the synthesizer to write it up."""
        header = self._prompts.synthesis_headers.get(method, "")
        parts = [header, *sections]
        instructions = criteria_instructions(params.criteria)
        if instructions:
            parts.append("Output requirements:\n" + _bullets(instructions))
        if params.custom_instructions:
            parts.append(f"Additional instructions: {params.custom_instructions}")
        prompt = "\n\n".join(part for part in parts if part)

        provider = params.synthesizer_provider or self._pick_synthesizer(analysis)
        request = Request(prompt=prompt, id=new_id(f"{method}-synthesis"))
        logger.info("Synthesis (%s) via %s", method, provider)
        try:
            response = await asyncio.wait_for(
                self._gateway.execute(provider, request), timeout=self._timeout_sec
            )
        except TimeoutError as exc:
            raise CollabError(f"Synthesizer {provider} timed out after {self._timeout_sec}s", exc) from exc
        except ProviderError as exc:
            raise CollabError(f"Synthesizer {provider} failed: {exc}", exc) from exc
        return response.content

    def _pick_synthesizer(self, analysis: InputAnalysis) -> str:
        """Highest-quality input provider that is reachable, else any reachable provider."""
        available = self._gateway.list_available()
        ranked = sorted(analysis.quality_scores, key=lambda item: item[1], reverse=True)
        for provider, _ in ranked:
            if provider in available:
                return provider
        if available:
            return sorted(available)[0]
        raise ValidationError("No synthesizer provider available")

    async def _alternatives(
        self,
        method: str,
        params: SynthesisParams,
        analysis: InputAnalysis,
    ) -> list[AlternativeSynthesis]:
        alternatives = []
        for alternative in [m for m in _ALTERNATIVE_METHODS if m != method][:2]:
            try:
                outcome = await self._run_method(alternative, params, analysis)
            except CollabError as exc:
                logger.warning("Alternative %s synthesis failed: %s", alternative, exc.message)
                continue
            metrics = evaluate_quality(outcome.content.main_content, params.responses)
            alternatives.append(
                AlternativeSynthesis(
                    method=alternative,
                    content=outcome.content.main_content,
                    quality_score=(metrics.coherence + metrics.completeness) / 2,
                    characteristics=[f"Alternative {alternative} synthesis"],
                )
            )
        return alternatives


# --- method helpers ---------------------------------------------------------


def _passthrough(method: str, response: Response) -> _Outcome:
    key_points = extract_key_points(response.content)
    return _Outcome(
        content=SynthesizedContent(
            main_content=response.content,
            key_points=key_points,
            source_attribution=[SourceAttribution(point, [response.provider]) for point in key_points],
        ),
        steps=[f"Starting {method} synthesis", "Single input returned unchanged"],
        consensus_level=1.0,
    )


def _extractive(params: SynthesisParams, steps: list[str]) -> _Outcome:
    responses = params.responses
    steps.append("Extracting key sentences and phrases")
    ranked = rank_by_importance(
        [sentence for r in responses for sentence in split_sentences(r.content, min_length=30)]
    )
    selected: list[str] = []
    for sentence in ranked:
        if all(similarity(sentence, kept) <= SENTENCE_MATCH_THRESHOLD for kept in selected):
            selected.append(sentence)

    steps.append("Combining extracted content")
    criteria = params.criteria or SynthesisCriteria()
    limit = max(1, criteria.max_length // 100) if criteria.max_length else 10
    chosen = selected[:limit]
    content = ". ".join(chosen) + "." if chosen else ""
    key_points = chosen[:5]
    steps.append("Extractive synthesis completed")
    return _Outcome(
        content=SynthesizedContent(
            main_content=content,
            key_points=key_points,
            source_attribution=attribute_sources(key_points, responses),
        ),
        steps=steps,
        consensus_level=mean_pairwise_similarity([r.content for r in responses]),
    )


def _mentions(sentence: str, vocabulary: tuple[str, ...]) -> int:
    tokens = set(words(sentence))
    return sum(1 for word in vocabulary if word in tokens)


def rank_by_importance(sentences: list[str]) -> list[str]:
    # sorted() is stable, so equally important sentences keep their order
    return sorted(sentences, key=lambda s: _mentions(s, _IMPORTANCE_WORDS), reverse=True)


def extract_key_points(content: str) -> list[str]:
    sentences = split_sentences(content, min_length=30)
    important = [s for s in sentences if _mentions(s, _IMPORTANCE_WORDS[:4])]
    return important[:5] if important else sentences[:3]


def common_points(responses: list[Response], limit: int = 5) -> list[str]:
    """Sentences echoed by at least half of the responses, counting their own."""
    per_response = [split_sentences(r.content, min_length=20) for r in responses]
    needed = math.ceil(len(responses) / 2)
    points: list[str] = []
    for index, sentences in enumerate(per_response):
        for sentence in sentences:
            if any(similarity(sentence, kept) > SENTENCE_MATCH_THRESHOLD for kept in points):
                continue
            echoes = 1 + sum(
                1
                for other, others in enumerate(per_response)
                if other != index and any(similarity(sentence, o) > SENTENCE_MATCH_THRESHOLD for o in others)
            )
            if echoes >= needed and echoes > 1:
                points.append(sentence)
                if len(points) == limit:
                    return points
    return points


def conflicting_points(responses: list[Response], limit: int = 3) -> list[str]:
    points = []
    for response in responses:
        for sentence in split_sentences(response.content, min_length=20):
            if _mentions(sentence, _CONTRAST_WORDS):
                points.append(sentence)
                if len(points) == limit:
                    return points
    return points


def supporting_evidence(responses: list[Response], limit: int = 5) -> list[str]:
    evidence = [
        sentence
        for response in responses
        for sentence in split_sentences(response.content, min_length=20)
        if _mentions(sentence, _EVIDENCE_WORDS)
    ]
    return evidence[:limit]


def complementary_elements(best_index: int, responses: list[Response], limit: int = 5) -> list[str]:
    """Sentences from the other responses that the best one does not already cover."""
    best = responses[best_index].content
    elements: list[str] = []
    for index, response in enumerate(responses):
        if index == best_index:
            continue
        fresh = [
            sentence
            for sentence in split_sentences(response.content, min_length=30)
            if similarity(sentence, best) <= 0.6
            and all(similarity(sentence, b) <= SENTENCE_MATCH_THRESHOLD for b in split_sentences(best))
        ]
        elements.extend(fresh[:2])
    return elements[:limit]


def attribute_sources(points: list[str], responses: list[Response]) -> list[SourceAttribution]:
    attributions = []
    for point in points:
        scored = []
        for index, response in enumerate(responses):
            sentences = split_sentences(response.content) or [response.content]
            scored.append((max(similarity(point, s) for s in sentences), index))
        scored.sort(key=lambda item: (-item[0], item[1]))
        sources: list[str] = []
        for score, index in scored:
            provider = responses[index].provider
            if score >= _ATTRIBUTION_THRESHOLD and provider not in sources:
                sources.append(provider)
        if not sources:
            sources = [responses[scored[0][1]].provider]
        attributions.append(SourceAttribution(point=point, sources=sources))
    return attributions


def response_weights(
    responses: list[Response],
    analysis: InputAnalysis,
    quality_weights: QualityWeights | None,
) -> list[float]:
    """Share of influence per response; shares sum to 1.

    Without quality weights each response counts by its analysis quality score.
    With them, each response is scored per axis and the axes are blended.
    """
    if quality_weights is None:
        raw = [score for _, score in analysis.quality_scores]
    else:
        texts = [r.content for r in responses]
        matrix = analysis.similarity_matrix or similarity_matrix(texts)
        themes = set(analysis.key_themes)
        total_weight = (
            quality_weights.accuracy + quality_weights.completeness + quality_weights.clarity
            + quality_weights.novelty + quality_weights.relevance
        ) or 1.0
        raw = []
        for index, response in enumerate(responses):
            others = [matrix[index][j] for j in range(len(responses)) if j != index]
            coverage = len(themes & set(words(response.content))) / len(themes) if themes else 0.5
            blended = (
                quality_weights.accuracy * accuracy_estimate(response.content)
                + quality_weights.completeness * coverage
                + quality_weights.clarity * readability(response.content)
                + quality_weights.novelty * (1 - sum(others) / len(others) if others else 0.0)
                + quality_weights.relevance * assess_response_quality(response)
            )
            raw.append(blended / total_weight)
    total = sum(raw)
    if total <= 0:
        return [1 / len(responses)] * len(responses)
    return [value / total for value in raw]


def criteria_instructions(criteria: SynthesisCriteria | None) -> list[str]:
    if criteria is None:
        return []
    lines = []
    if criteria.preserve_original_insights:
        lines.append("Preserve the distinctive insights of each original response.")
    if criteria.highlight_disagreements:
        lines.append("Explicitly highlight where the responses disagree.")
    if criteria.include_confidence_scores:
        lines.append("State your confidence in each major point.")
    if criteria.max_length:
        lines.append(f"Keep the synthesis under {criteria.max_length} characters.")
    if criteria.target_audience:
        lines.append(f"Write for a {criteria.target_audience} audience.")
    if criteria.output_format:
        lines.append(f"Format the output as a {criteria.output_format} response.")
    return lines


def _numbered_responses(responses: list[Response]) -> str:
    return "Original responses:\n\n" + "\n\n".join(
        f"Response {index} ({r.provider}):\n{r.content}" for index, r in enumerate(responses, start=1)
    )


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


# --- quality metrics --------------------------------------------------------


def coherence(content: str) -> float:
    score = 0.5
    lowered = content.lower()
    if any(connector in lowered for connector in _CONNECTORS):
        score += 0.2
    sentences = split_sentences(content)
    if sentences:
        lengths = [len(s) for s in sentences]
        average = sum(lengths) / len(lengths)
        variance = sum((length - average) ** 2 for length in lengths) / len(lengths)
        if variance < average:
            score += 0.2
    return clamp(score)


def completeness(content: str, originals: list[Response]) -> float:
    """Share of the inputs' top topics that the synthesis also covers."""
    topics = top_terms([r.content for r in originals], min_length=6, limit=10)
    if not topics:
        return 0.5
    covered_by = top_terms([content], min_length=6, limit=10)
    covered = [t for t in topics if any(similarity(t, c) > 0.5 for c in covered_by)]
    return len(covered) / len(topics)


def novelty(content: str, originals: list[Response]) -> float:
    return clamp(1 - similarity(content, " ".join(r.content for r in originals)))


def accuracy_estimate(content: str) -> float:
    score = 0.5
    lowered = content.lower()
    if _NUMBER_RE.search(content):
        score += 0.1
    if any(hedge in lowered for hedge in _HEDGES):
        score += 0.1
    assertive = len(_ASSERTIVE_RE.findall(lowered))
    if 0 < assertive < 5:
        score += 0.2
    return clamp(score)


def readability(content: str) -> float:
    score = 0.5
    sentences = [s for s in re.split(r"[.!?]+", content) if s.strip()]
    if sentences:
        per_sentence = len(content.split()) / len(sentences)
        if 10 < per_sentence < 25:
            score += 0.3
    if "\n" in content or "•" in content or "-" in content:
        score += 0.2
    return clamp(score)


def evaluate_quality(content: str, originals: list[Response]) -> QualityMetrics:
    return QualityMetrics(
        coherence=coherence(content),
        completeness=completeness(content, originals),
        novelty=novelty(content, originals),
        accuracy_estimate=accuracy_estimate(content),
        readability=readability(content),
    )


def recommendations(
    content: SynthesizedContent,
    metrics: QualityMetrics,
    analysis: InputAnalysis,
) -> Recommendations:
    usage = []
    limitations = []
    research = []
    if metrics.coherence > 0.8:
        usage.append("High coherence - suitable for formal documentation")
    if metrics.completeness > 0.7:
        usage.append("Comprehensive coverage - good for executive summaries")
    if metrics.accuracy_estimate < 0.6:
        limitations.append("Accuracy concerns - verify facts before use")
    if analysis.total_responses < 3:
        limitations.append("Limited source diversity - consider additional perspectives")
    if content.areas_of_disagreement:
        research.append("Resolve disagreements through additional expert consultation")
    return Recommendations(usage_suggestions=usage, limitations=limitations, further_research=research or None)


def _failed(synthesis_id: str, params: SynthesisParams, started: float, error: str) -> SynthesisResult:
    return SynthesisResult(
        success=False,
        synthesis_id=synthesis_id,
        input_analysis=InputAnalysis(total_responses=len(params.responses or [])),
        synthesis_process=SynthesisProcess(method="none", processing_time_sec=time.monotonic() - started),
        synthesized_content=SynthesizedContent(main_content=""),
        recommendations=Recommendations(limitations=["Synthesis failed due to error"]),
        error=error,
    )
