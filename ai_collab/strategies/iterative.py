"""Iterative strategy: a primary provider drafts, reviewers critique, the primary revises."""

import asyncio
import logging
import re
from statistics import pvariance

from ai_collab.errors import AggregateFailure, ValidationError
from ai_collab.models import (
    CollaborationResult,
    ConvergenceMetrics,
    IterationCycle,
    Request,
    Response,
    Review,
    new_id,
    total_usage,
)
from ai_collab.scoring import basic_quality
from ai_collab.strategies.base import Strategy, call_provider, child_request, timestamp
from ai_collab.strategy_config import ITERATIVE, IterationWeights, IterativeConfig
from ai_collab.text import clamp, new_terms, words

logger = logging.getLogger(__name__)

_POSITIVE = ("good", "excellent", "well", "accurate", "comprehensive", "clear")
_NEGATIVE = ("poor", "lacking", "unclear", "incomplete", "wrong", "confusing")
_BULLET_PREFIX = re.compile(r"^[•\-\d.\s]+")


class IterativeStrategy(Strategy):
    name = ITERATIVE

    async def _run(self, request: Request, config: IterativeConfig) -> CollaborationResult:
        if config.max_iterations < 1:
            raise ValidationError("Max iterations must be at least 1")
        available = self._gateway.list_available()
        if config.primary_provider not in available:
            raise ValidationError(f"Primary provider {config.primary_provider} is not available")
        reviewers = self._available(config.review_providers)

        cycles: list[IterationCycle] = []
        stop_reason = "max_iterations"
        prompt = request.prompt
        for iteration in range(1, config.max_iterations + 1):
            cycle = await self._cycle(request, prompt, reviewers, iteration, cycles, config)
            if cycle is None:
                if not cycles:
                    raise AggregateFailure(
                        f"Primary provider {config.primary_provider} failed in iteration 1",
                        [config.primary_provider],
                    )
                stop_reason = "primary_failed"
                logger.warning("Primary failed in iteration %d, keeping earlier iterations", iteration)
                break

            cycles.append(cycle)
            logger.info("Iteration %d: quality %.3f", iteration, cycle.quality_score)
            reason = stop_reason_for(cycles, config)
            if reason:
                stop_reason = reason
                break
            prompt = self._next_prompt(request, cycle)

        best = _best_cycle(cycles)
        all_responses = [response for cycle in cycles for response in cycle.responses()]
        final = Response(
            id=new_id("iterative-final"),
            provider="iterative_final",
            model="iterative_collaboration",
            content=f"{best.answer.content}\n\n--- Iterative Improvement Summary ---\n{_trace(cycles, best)}",
            usage=total_usage(all_responses),
            latency_sec=sum(_cycle_latency(cycle) for cycle in cycles),
            finish_reason="stop",
            metadata={
                "request_id": request.id,
                "timestamp": timestamp(),
                "iterative_cycles": len(cycles),
                "selected_iteration": best.iteration,
                "final_quality_score": best.quality_score,
                "improvement_path": [cycle.quality_score for cycle in cycles],
                "total_improvements": sum(len(cycle.improvements) for cycle in cycles),
                "cycles_detail": [
                    {
                        "iteration": cycle.iteration,
                        "quality_score": cycle.quality_score,
                        "improvements": cycle.improvements,
                        "review_count": len(cycle.reviews),
                        "had_improvement": cycle.improved_response is not None,
                    }
                    for cycle in cycles
                ],
            },
        )

        return CollaborationResult(
            success=True,
            strategy=self.name,
            responses=all_responses,
            final_result=final,
            metadata={
                "request_id": request.id,
                "timestamp": timestamp(),
                "providers_used": [config.primary_provider, *reviewers],
                "iterations": cycles,
                "iterations_completed": len(cycles),
                "final_quality_score": best.quality_score,
                "stop_reason": stop_reason,
                "convergence_achieved": stop_reason in ("quality_target", "stable", "no_improvement"),
                "improvement_trajectory": [cycle.quality_score for cycle in cycles],
                "total_tokens": sum(cycle.convergence.total_tokens for cycle in cycles),
            },
        )

    async def _cycle(
        self,
        original: Request,
        prompt: str,
        reviewers: list[str],
        iteration: int,
        previous: list[IterationCycle],
        config: IterativeConfig,
    ) -> IterationCycle | None:
        primary = await call_provider(
            self._gateway,
            config.primary_provider,
            child_request(original, f"iter-{iteration}-primary", prompt),
            config.timeout_sec,
        )
        if not isinstance(primary, Response):
            return None

        reviews = await self._collect_reviews(original, primary, reviewers, iteration, config)
        improved = await self._improve(original, primary, reviews, iteration, config) if reviews else None
        answer = improved or primary

        quality = quality_score(answer, reviews, iteration, config.weights)
        scores = [cycle.quality_score for cycle in previous] + [quality]
        tokens = sum(r.usage.total_tokens for r in [primary, *(rv.response for rv in reviews)])
        if improved is not None:
            tokens += improved.usage.total_tokens

        return IterationCycle(
            iteration=iteration,
            primary_response=primary,
            reviews=reviews,
            improved_response=improved,
            quality_score=quality,
            improvements=describe_improvements(primary, improved, reviews),
            convergence=ConvergenceMetrics(
                stability=stability(scores[-3:]) if len(scores) >= 2 else 0.0,
                improvement=max(0.0, basic_quality(improved) - basic_quality(primary)) if improved else 0.0,
                total_tokens=tokens,
            ),
        )

    async def _collect_reviews(
        self,
        original: Request,
        primary: Response,
        reviewers: list[str],
        iteration: int,
        config: IterativeConfig,
    ) -> list[Review]:
        template = config.review_prompt or self._prompts.iterative_review
        prompt = template.format(prompt=original.prompt, response=primary.content)
        results = await asyncio.gather(
            *(
                call_provider(
                    self._gateway,
                    reviewer,
                    child_request(original, f"iter-{iteration}-review-{reviewer}", prompt),
                    config.timeout_sec,
                )
                for reviewer in reviewers
            )
        )
        reviews = []
        for reviewer, result in zip(reviewers, results):
            if isinstance(result, Response):
                feedback, suggestions = parse_review(result.content)
                reviews.append(Review(reviewer, result, feedback, suggestions))
        logger.debug("Iteration %d: %d/%d reviews", iteration, len(reviews), len(reviewers))
        return reviews

    async def _improve(
        self,
        original: Request,
        primary: Response,
        reviews: list[Review],
        iteration: int,
        config: IterativeConfig,
    ) -> Response | None:
        summary = "\n\n".join(
            f"Reviewer {index} ({review.provider}):\n"
            f"Feedback: {review.feedback}\n"
            f"Suggestions: {'; '.join(review.suggestions)}"
            for index, review in enumerate(reviews, start=1)
        )
        prompt = self._prompts.iterative_improve.format(
            header=config.improve_prompt or self._prompts.default_improve_header,
            prompt=original.prompt,
            response=primary.content,
            reviews=summary,
        )
        result = await call_provider(
            self._gateway,
            config.primary_provider,
            child_request(original, f"iter-{iteration}-improved", prompt),
            config.timeout_sec,
        )
        if isinstance(result, Response):
            return result
        logger.warning("Improvement failed in iteration %d: %s", iteration, result)
        return None

    def _next_prompt(self, original: Request, cycle: IterationCycle) -> str:
        suggestions = [s for review in cycle.reviews for s in review.suggestions][:3]
        return self._prompts.iterative_next.format(
            prompt=original.prompt,
            previous=cycle.answer.content[:500] + "...",
            suggestions="\n".join(suggestions),
        )


def parse_review(content: str) -> tuple[str, list[str]]:
    """Split a critique into free-text feedback and suggestion bullets."""
    feedback: list[str] = []
    suggestions: list[str] = []
    in_suggestions = False
    for line in content.splitlines():
        if not line.strip():
            continue
        if "suggestion" in line.lower() or "•" in line or "-" in line:
            in_suggestions = True
            suggestion = _BULLET_PREFIX.sub("", line).strip()
            if suggestion:
                suggestions.append(suggestion)
        elif not in_suggestions:
            feedback.append(line.strip())
    return (
        " ".join(feedback) or content[:300],
        suggestions or [content[:150]],
    )


def reviewer_sentiment(reviews: list[Review]) -> float:
    """Positive-versus-negative word balance across reviews. No reviews → 0.5."""
    if not reviews:
        return 0.5
    total = 0.0
    for review in reviews:
        feedback = review.feedback.lower()
        positive = sum(1 for word in _POSITIVE if word in feedback)
        negative = sum(1 for word in _NEGATIVE if word in feedback)
        total += clamp((positive - negative + 2) / 4)
    return total / len(reviews)


def completeness(content: str) -> float:
    score = 0.0
    if "conclusion" in content or "summary" in content:
        score += 0.3
    if "example" in content or "instance" in content:
        score += 0.3
    if len(content.split("\n")) > 3:
        score += 0.4
    return score


def quality_score(
    response: Response,
    reviews: list[Review],
    iteration: int,
    weights: IterationWeights,
) -> float:
    score = (
        weights.basic_quality * basic_quality(response)
        + weights.reviewer_sentiment * reviewer_sentiment(reviews)
        + weights.iteration_bonus * min(1.0, 0.2 * iteration)
        + weights.completeness * completeness(response.content)
    )
    return clamp(score)


def stability(scores: list[float]) -> float:
    """1 minus the variance of the scores; a single score is not yet stable."""
    if len(scores) < 2:
        return 0.0
    return clamp(1 - pvariance(scores))


def stop_reason_for(cycles: list[IterationCycle], config: IterativeConfig) -> str | None:
    """Name the convergence rule that ends the loop after the latest cycle, if any."""
    criteria = config.convergence
    current = cycles[-1]

    if criteria.quality_score is not None and current.quality_score >= criteria.quality_score:
        return "quality_target"

    rounds = criteria.stability_rounds
    if rounds and rounds >= 2 and len(cycles) >= rounds:
        recent = [cycle.quality_score for cycle in cycles[-rounds:]]
        if pvariance(recent) <= criteria.stability_tolerance:
            return "stable"

    if criteria.max_tokens is not None:
        used = sum(cycle.convergence.total_tokens for cycle in cycles)
        if used > criteria.max_tokens:
            return "token_budget"

    if len(cycles) >= 2:
        delta = abs(current.quality_score - cycles[-2].quality_score)
        if delta < config.improvement_threshold:
            return "no_improvement"
    return None


def describe_improvements(primary: Response, improved: Response | None, reviews: list[Review]) -> list[str]:
    if improved is None:
        return ["No improvement generated"]

    changes = []
    length_change = len(improved.content) - len(primary.content)
    if length_change > 100:
        changes.append("Expanded content with more details")
    elif length_change < -100:
        changes.append("Condensed content for clarity")

    fresh = new_terms(primary.content, improved.content, min_length=5)[:5]
    if fresh:
        changes.append(f"Added new concepts: {', '.join(fresh[:3])}")

    addressed = _addressed_suggestions(reviews, improved.content)
    if addressed:
        changes.append(f"Addressed reviewer suggestions: {addressed} items")
    return changes or ["General refinement"]


def _addressed_suggestions(reviews: list[Review], content: str) -> int:
    lowered = content.lower()
    count = 0
    for review in reviews:
        for suggestion in review.suggestions:
            keywords = words(suggestion, min_length=4)
            matched = sum(1 for keyword in keywords if keyword in lowered)
            if keywords and matched > len(keywords) * 0.3:
                count += 1
    return count


def _best_cycle(cycles: list[IterationCycle]) -> IterationCycle:
    """Highest quality; a tie goes to the later, more revised answer."""
    best = cycles[0]
    for cycle in cycles[1:]:
        if cycle.quality_score >= best.quality_score:
            best = cycle
    return best


def _cycle_latency(cycle: IterationCycle) -> float:
    latency = cycle.primary_response.latency_sec
    if cycle.reviews:
        latency += max(review.response.latency_sec for review in cycle.reviews)
    if cycle.improved_response is not None:
        latency += cycle.improved_response.latency_sec
    return latency


def _trace(cycles: list[IterationCycle], best: IterationCycle) -> str:
    blocks = [
        f"Iteration {cycle.iteration}: Quality {cycle.quality_score * 100:.1f}%\n"
        f"  - Improvements: {', '.join(cycle.improvements)}\n"
        f"  - Reviews: {len(cycle.reviews)} reviewers\n"
        f"  - Stability: {cycle.convergence.stability * 100:.1f}%"
        for cycle in cycles
    ]
    overall = cycles[-1].quality_score - cycles[0].quality_score if len(cycles) > 1 else 0.0
    final = (
        "\nOverall Process:\n"
        f"- Total iterations: {len(cycles)}\n"
        f"- Selected answer: iteration {best.iteration}\n"
        f"- Quality improvement: {overall * 100:.1f}%\n"
        f"- Final stability: {cycles[-1].convergence.stability * 100:.1f}%\n"
        f"- Total tokens used: {sum(cycle.convergence.total_tokens for cycle in cycles)}"
    )
    return "\n\n".join(blocks) + final
