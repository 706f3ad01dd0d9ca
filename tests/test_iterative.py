"""Unit tests for ai_collab/strategies/iterative.py: no real API calls."""

import pytest

from ai_collab.models import ConvergenceMetrics, IterationCycle, Review
from ai_collab.providers.base import ProviderError
from ai_collab.strategies.iterative import (
    IterativeStrategy,
    parse_review,
    quality_score,
    reviewer_sentiment,
    stability,
    stop_reason_for,
)
from ai_collab.strategy_config import ConvergenceCriteria, IterationWeights, IterativeConfig

from tests.conftest import MockProvider, make_gateway, make_response

_DRAFT = "Draft answer."
_REVIEW = "Good and clear overall.\n- Add a concrete example\n- Mention caching"


def _panel(primary_replies=None, reviewer_replies=None):
    primary = MockProvider("p", _DRAFT, replies=primary_replies)
    reviewer = MockProvider("r", _REVIEW, replies=reviewer_replies)
    return primary, reviewer, make_gateway(primary, reviewer)


def _config(**kwargs) -> IterativeConfig:
    return IterativeConfig(primary_provider="p", review_providers=["r"], **kwargs)


def _cycle(iteration: int, score: float, tokens: int = 10) -> IterationCycle:
    return IterationCycle(
        iteration=iteration,
        primary_response=make_response("p"),
        quality_score=score,
        convergence=ConvergenceMetrics(stability=0.0, improvement=0.0, total_tokens=tokens),
    )


async def test_small_gain_under_threshold_stops_after_two(sample_request):
    _, _, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(
        sample_request, _config(max_iterations=5, improvement_threshold=0.5)
    )

    assert result.success
    assert result.metadata["iterations_completed"] == 2
    assert result.metadata["stop_reason"] == "no_improvement"
    assert result.metadata["convergence_achieved"] is True


async def test_runs_to_max_iterations(sample_request):
    primary, reviewer, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(sample_request, _config(max_iterations=3))

    assert result.metadata["iterations_completed"] == 3
    assert result.metadata["stop_reason"] == "max_iterations"
    assert result.metadata["convergence_achieved"] is False
    assert primary.execute.await_count == 6
    assert reviewer.execute.await_count == 3
    # primary, review and improvement per cycle
    assert len(result.responses) == 9


async def test_quality_scores_rise_with_iteration_bonus(sample_request):
    _, _, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(sample_request, _config(max_iterations=3))

    path = result.metadata["improvement_trajectory"]
    assert path == pytest.approx([0.62, 0.66, 0.70])
    assert result.final_result.metadata["selected_iteration"] == 3


async def test_quality_target_stops_early(sample_request):
    _, _, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(
        sample_request, _config(convergence=ConvergenceCriteria(quality_score=0.6))
    )
    assert result.metadata["iterations_completed"] == 1
    assert result.metadata["stop_reason"] == "quality_target"


async def test_token_budget_stops_loop(sample_request):
    _, _, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(
        sample_request, _config(max_iterations=5, improvement_threshold=0.0, convergence=ConvergenceCriteria(max_tokens=25))
    )
    assert result.metadata["iterations_completed"] == 1
    assert result.metadata["stop_reason"] == "token_budget"
    assert result.metadata["total_tokens"] == 30


async def test_stable_scores_stop_loop(sample_request):
    _, _, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(
        sample_request,
        _config(max_iterations=5, improvement_threshold=0.0, convergence=ConvergenceCriteria(stability_rounds=2)),
    )
    assert result.metadata["iterations_completed"] == 2
    assert result.metadata["stop_reason"] == "stable"


async def test_custom_weights_change_the_score(sample_request):
    _, _, gateway = _panel()
    weights = IterationWeights(basic_quality=1.0, reviewer_sentiment=0.0, iteration_bonus=0.0, completeness=0.0)
    result = await IterativeStrategy(gateway).execute(sample_request, _config(weights=weights))

    assert result.metadata["improvement_trajectory"] == pytest.approx([0.7, 0.7])
    assert result.metadata["stop_reason"] == "no_improvement"


async def test_primary_failure_in_first_iteration_fails(sample_request):
    _, _, gateway = _panel(primary_replies=[ProviderError("p", "down")])
    result = await IterativeStrategy(gateway).execute(sample_request, _config())

    assert result.success is False
    assert result.metadata["failed_providers"] == ["p"]


async def test_primary_failure_later_keeps_earlier_cycles(sample_request):
    _, _, gateway = _panel(primary_replies=[_DRAFT, _DRAFT, ProviderError("p", "down")])
    result = await IterativeStrategy(gateway).execute(sample_request, _config(max_iterations=3))

    assert result.success
    assert result.metadata["iterations_completed"] == 1
    assert result.metadata["stop_reason"] == "primary_failed"


async def test_no_reviews_means_no_improvement_call(sample_request):
    primary, _, gateway = _panel(reviewer_replies=[ProviderError("r", "down")])
    result = await IterativeStrategy(gateway).execute(sample_request, _config(max_iterations=1))

    cycle = result.metadata["iterations"][0]
    assert cycle.reviews == []
    assert cycle.improved_response is None
    assert cycle.improvements == ["No improvement generated"]
    assert primary.execute.await_count == 1


async def test_prompts_carry_draft_and_feedback(sample_request):
    primary, reviewer, gateway = _panel()
    await IterativeStrategy(gateway).execute(sample_request, _config(max_iterations=2))

    review_prompt = reviewer.requests[0].prompt
    assert _DRAFT in review_prompt
    assert sample_request.prompt in review_prompt

    improve_prompt = primary.requests[1].prompt
    assert "Add a concrete example" in improve_prompt
    assert "Feedback from Reviewers:" in improve_prompt

    next_prompt = primary.requests[2].prompt
    assert "Key areas for further improvement:" in next_prompt
    assert "Mention caching" in next_prompt


async def test_final_result_has_improvement_summary(sample_request):
    _, _, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(sample_request, _config(max_iterations=2))

    final = result.final_result
    assert final.provider == "iterative_final"
    assert final.content.startswith(_DRAFT + "\n\n--- Iterative Improvement Summary ---")
    assert final.usage.total_tokens == result.metadata["total_tokens"]


async def test_cycle_latency_counts_slowest_review_once(sample_request):
    primary = MockProvider("p", _DRAFT, latency_sec=1.0)
    gateway = make_gateway(primary, MockProvider("r1", _REVIEW, latency_sec=0.5), MockProvider("r2", _REVIEW, latency_sec=2.0))
    result = await IterativeStrategy(gateway).execute(
        sample_request, IterativeConfig(primary_provider="p", review_providers=["r1", "r2"], max_iterations=1)
    )
    assert result.final_result.latency_sec == pytest.approx(1.0 + 2.0 + 1.0)


async def test_unavailable_primary_fails(sample_request):
    _, _, gateway = _panel()
    result = await IterativeStrategy(gateway).execute(
        sample_request, IterativeConfig(primary_provider="ghost", review_providers=["r"])
    )
    assert result.success is False
    assert "ghost" in result.error


def test_parse_review_splits_feedback_and_suggestions():
    feedback, suggestions = parse_review(_REVIEW)
    assert feedback == "Good and clear overall."
    assert suggestions == ["Add a concrete example", "Mention caching"]


def test_parse_review_without_bullets_falls_back():
    feedback, suggestions = parse_review("Fine answer")
    assert feedback == "Fine answer"
    assert suggestions == ["Fine answer"]


def test_reviewer_sentiment():
    positive = Review("r", make_response("r"), "good, clear and accurate")
    negative = Review("r", make_response("r"), "wrong and confusing")
    assert reviewer_sentiment([]) == 0.5
    assert reviewer_sentiment([positive]) == 1.0
    assert reviewer_sentiment([negative]) == 0.0


def test_quality_score_is_bounded():
    response = make_response("p", "x")
    heavy = IterationWeights(basic_quality=5.0, reviewer_sentiment=5.0, iteration_bonus=5.0, completeness=5.0)
    assert quality_score(response, [], 10, heavy) == 1.0


def test_stability_needs_two_scores():
    assert stability([0.5]) == 0.0
    assert stability([0.5, 0.5]) == 1.0


def test_no_delta_check_on_first_iteration():
    config = _config(improvement_threshold=0.9)
    assert stop_reason_for([_cycle(1, 0.4)], config) is None


def test_stability_tolerance():
    config = _config(improvement_threshold=0.0, convergence=ConvergenceCriteria(stability_rounds=3))
    assert stop_reason_for([_cycle(1, 0.5), _cycle(2, 0.52), _cycle(3, 0.51)], config) == "stable"
    assert stop_reason_for([_cycle(1, 0.2), _cycle(2, 0.5), _cycle(3, 0.8)], config) is None
