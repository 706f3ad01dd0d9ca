"""Unit tests for ai_collab/scoring.py."""

import pytest

from ai_collab.scoring import (
    assess_response_quality,
    basic_quality,
    ranking_quality,
    response_confidence,
    response_quality,
)

from tests.conftest import make_response


def test_response_quality_rewards_complete_answers():
    good = make_response("a", "x" * 200, latency_sec=1.0)
    truncated = make_response("a", "short", finish_reason="length", latency_sec=0.1)
    assert response_quality(good) == pytest.approx(1.0)
    assert response_quality(truncated) == pytest.approx(0.2)


def test_response_confidence_starts_at_half():
    assert response_confidence(make_response("a", "hi", finish_reason=None, tokens=0)) == 0.5


def test_ranking_quality_for_short_mock():
    assert ranking_quality(make_response("a")) == pytest.approx(0.7)


def test_basic_quality_length_bands():
    assert basic_quality(make_response("a", "x" * 500)) == pytest.approx(1.0)
    assert basic_quality(make_response("a", "x" * 2500)) == pytest.approx(0.9)


def test_assess_response_quality_structure_bonus():
    plain = make_response("a", "x" * 150)
    listed = make_response("a", "- " + "x" * 150)
    assert assess_response_quality(listed) - assess_response_quality(plain) == pytest.approx(0.1)


@pytest.mark.parametrize("scorer", [response_quality, response_confidence, ranking_quality, basic_quality, assess_response_quality])
def test_scores_stay_in_unit_interval(scorer):
    for response in (make_response("a", ""), make_response("a", "y" * 10_000, tokens=1)):
        assert 0.0 <= scorer(response) <= 1.0
