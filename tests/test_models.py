"""Unit tests for ai_collab/models.py."""

import dataclasses

import pytest

from ai_collab.models import (
    CollaborationResult,
    InputAnalysis,
    IterationCycle,
    QualityMetrics,
    Request,
    Review,
    SynthesisProcess,
    SynthesisResult,
    SynthesizedContent,
    TokenUsage,
    new_id,
    total_usage,
)

from tests.conftest import make_response


def test_new_id_has_prefix_and_is_unique():
    first, second = new_id("parallel"), new_id("parallel")
    assert first.startswith("parallel-")
    assert first != second


def test_token_usage_addition():
    total = TokenUsage(1, 2, 3) + TokenUsage(10, 20, 30)
    assert total == TokenUsage(11, 22, 33)


def test_total_usage_of_empty_list_is_zero():
    assert total_usage([]) == TokenUsage()


def test_total_usage_sums_responses():
    responses = [make_response("a", tokens=10), make_response("b", tokens=6)]
    assert total_usage(responses).total_tokens == 16


def test_request_is_frozen():
    request = Request(prompt="hi")
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.prompt = "changed"  # type: ignore[misc]


def test_request_gets_default_id():
    assert Request(prompt="hi").id.startswith("req-")


def test_collaboration_result_error_reads_metadata():
    result = CollaborationResult(success=False, strategy="parallel", metadata={"error": "boom"})
    assert result.error == "boom"
    assert CollaborationResult(success=True, strategy="parallel").error is None


def test_collaboration_result_to_dict_is_plain():
    result = CollaborationResult(success=True, strategy="parallel", responses=[make_response("a")])
    data = result.to_dict()
    assert data["responses"][0]["provider"] == "a"
    assert data["responses"][0]["usage"]["total_tokens"] == 10


def test_iteration_cycle_answer_prefers_improved():
    primary = make_response("p", "first draft")
    improved = make_response("p", "second draft")
    cycle = IterationCycle(iteration=1, primary_response=primary)
    assert cycle.answer is primary
    cycle.improved_response = improved
    assert cycle.answer is improved


def test_iteration_cycle_responses_in_call_order():
    primary = make_response("p", "draft")
    review = Review("r", make_response("r", "looks fine"), "looks fine")
    improved = make_response("p", "better draft")
    cycle = IterationCycle(iteration=1, primary_response=primary, reviews=[review], improved_response=improved)
    assert cycle.responses() == [primary, review.response, improved]


def test_quality_metrics_overall_ignores_novelty():
    metrics = QualityMetrics(coherence=1.0, completeness=0.5, novelty=0.0, accuracy_estimate=0.5, readability=1.0)
    assert metrics.overall == pytest.approx(0.75)
    metrics.novelty = 1.0
    assert metrics.overall == pytest.approx(0.75)


def test_synthesis_result_as_response():
    result = SynthesisResult(
        success=True,
        synthesis_id="synthesis-abc",
        input_analysis=InputAnalysis(total_responses=2),
        synthesis_process=SynthesisProcess(method="best_of"),
        synthesized_content=SynthesizedContent(main_content="merged answer"),
    )
    response = result.as_response()
    assert response.content == "merged answer"
    assert response.provider == "synthesis"
    assert response.model == "best_of"
    assert response.finish_reason == "stop"


def test_response_to_dict_nests_usage():
    data = make_response("a", tokens=10).to_dict()
    assert data["provider"] == "a"
    assert data["usage"] == {"prompt_tokens": 5, "completion_tokens": 5, "total_tokens": 10}
