"""Parallel strategy: fan out to every provider at once, then aggregate."""

import json
import logging
from dataclasses import replace
from statistics import mean
from typing import Any

from ai_collab.errors import AggregateFailure, ValidationError
from ai_collab.models import CollaborationResult, Request, Response, new_id, total_usage
from ai_collab.scoring import response_quality
from ai_collab.strategies.base import Strategy, child_request, fan_out, split_outcomes, timestamp
from ai_collab.strategy_config import AGGREGATION_METHODS, PARALLEL, ParallelConfig
from ai_collab.text import argmax, centrality, mean_pairwise_similarity

logger = logging.getLogger(__name__)


class ParallelStrategy(Strategy):
    name = PARALLEL

    async def _run(self, request: Request, config: ParallelConfig) -> CollaborationResult:
        if config.aggregation_method not in AGGREGATION_METHODS:
            raise ValidationError(f"Unknown aggregation method: {config.aggregation_method}")
        providers = self._available(config.providers)

        logger.info("Parallel: querying %d providers", len(providers))
        outcomes = await fan_out(
            self._gateway,
            [(p, child_request(request, p)) for p in providers],
            config.timeout_sec,
        )
        successes, failed = split_outcomes(outcomes)
        failure_rate = len(failed) / len(providers)
        logger.info(
            "Parallel: %d/%d providers succeeded (failure rate %.2f)",
            len(successes), len(providers), failure_rate,
        )

        if not successes or failure_rate > config.failure_threshold:
            raise AggregateFailure(
                f"Too many providers failed: {len(failed)}/{len(providers)} "
                f"(failure rate {failure_rate:.2f} > threshold {config.failure_threshold:.2f})"
                if successes
                else f"All {len(providers)} providers failed",
                failed,
            )

        responses = [r for _, r in successes]
        final = aggregate(responses, config.aggregation_method, request)

        return CollaborationResult(
            success=True,
            strategy=self.name,
            responses=responses,
            final_result=final,
            metadata={
                "request_id": request.id,
                "timestamp": timestamp(),
                "providers_used": providers,
                "successful_providers": [p for p, _ in successes],
                "failed_providers": failed,
                "failure_rate": failure_rate,
                "aggregation_method": config.aggregation_method,
            },
        )


def aggregate(responses: list[Response], method: str, request: Request) -> Response:
    """Combine successful responses into one with the given method.

    Args:
        responses: At least one response, in submission order.
        method: One of best, concatenate, vote, all.
        request: The originating request, recorded in metadata.

    Returns:
        A new Response; the inputs are never modified.
    """
    base = {
        "request_id": request.id,
        "timestamp": timestamp(),
        "aggregation_method": method,
        "source_providers": [r.provider for r in responses],
    }
    if method == "best":
        return _select_best(responses, base)
    if method == "concatenate":
        return _concatenate(responses, base)
    if method == "vote":
        return _vote(responses, base)
    if method == "all":
        return _combine_all(responses, base)
    raise ValidationError(f"Unknown aggregation method: {method}")


def _select_best(responses: list[Response], base: dict[str, Any]) -> Response:
    scores = [response_quality(r) for r in responses]
    winner = responses[argmax(scores)]
    return replace(
        winner,
        id=new_id("parallel-best"),
        metadata={
            **base,
            "selected_provider": winner.provider,
            "quality_score": max(scores),
            "all_scores": [{"provider": r.provider, "score": s} for r, s in zip(responses, scores)],
        },
    )


def _concatenate(responses: list[Response], base: dict[str, Any]) -> Response:
    # sorted() is stable, so equal scores keep submission order
    ranked = sorted(responses, key=response_quality, reverse=True)
    content = "\n\n---\n\n".join(f"**{r.provider}:**\n{r.content}" for r in ranked)
    return Response(
        id=new_id("parallel-concat"),
        provider="parallel_aggregated",
        model="parallel_aggregation",
        content=content,
        usage=total_usage(responses),
        latency_sec=max(r.latency_sec for r in responses),
        finish_reason="stop",
        metadata={
            **base,
            "provider_responses": [
                {"provider": r.provider, "model": r.model, "tokens": r.usage.total_tokens}
                for r in ranked
            ],
        },
    )


def _vote(responses: list[Response], base: dict[str, Any]) -> Response:
    scores = centrality([r.content for r in responses])
    winner = responses[argmax(scores)]
    return replace(
        winner,
        id=new_id("parallel-vote"),
        metadata={
            **base,
            "vote_winner": winner.provider,
            "vote_scores": [{"provider": r.provider, "score": s} for r, s in zip(responses, scores)],
        },
    )


def _combine_all(responses: list[Response], base: dict[str, Any]) -> Response:
    lengths = [len(r.content) for r in responses]
    latencies = [r.latency_sec for r in responses]
    document = {
        "summary": "Combined responses from multiple AI providers:",
        "responses": [
            {
                "provider": r.provider,
                "model": r.model,
                "content": r.content,
                "latency_sec": r.latency_sec,
                "usage": {
                    "prompt_tokens": r.usage.prompt_tokens,
                    "completion_tokens": r.usage.completion_tokens,
                    "total_tokens": r.usage.total_tokens,
                },
            }
            for r in responses
        ],
        "analysis": {
            "content_length": {"min": min(lengths), "max": max(lengths), "avg": mean(lengths)},
            "latency_sec": {"min": min(latencies), "max": max(latencies), "avg": mean(latencies)},
            "response_consistency": mean_pairwise_similarity([r.content for r in responses]),
        },
    }
    return Response(
        id=new_id("parallel-all"),
        provider="parallel_combined",
        model="parallel_combination",
        content=json.dumps(document, indent=2, ensure_ascii=False),
        usage=total_usage(responses),
        latency_sec=max(latencies),
        finish_reason="stop",
        metadata={
            **base,
            "response_count": len(responses),
            "providers_breakdown": [
                {"provider": r.provider, "latency_sec": r.latency_sec, "tokens": r.usage.total_tokens}
                for r in responses
            ],
        },
    )
