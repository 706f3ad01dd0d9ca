"""Additive quality heuristics over a single Response.

Each scorer looks only at the response's own fields (length, finish reason,
latency, token usage), so scores are deterministic for a given response.
"""

from ai_collab.models import Response
from ai_collab.text import clamp


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def response_quality(response: Response) -> float:
    """Score used to rank parallel responses for 'best' and 'concatenate'."""
    score = 0.0
    length = len(response.content)
    if 50 < length < 5000:
        score += 0.3
    if 0.5 < response.latency_sec < 30:
        score += 0.2
    if response.finish_reason == "stop":
        score += 0.3
    ratio = _ratio(response.usage.completion_tokens, response.usage.prompt_tokens)
    if 0.1 < ratio < 3:
        score += 0.2
    return clamp(score)


def response_confidence(response: Response) -> float:
    """Confidence attached to a consensus vote. Starts at 0.5."""
    confidence = 0.5
    if response.finish_reason == "stop":
        confidence += 0.2
    if 100 < len(response.content) < 2000:
        confidence += 0.1
    ratio = _ratio(response.usage.completion_tokens, response.usage.prompt_tokens)
    if 0.2 < ratio < 2:
        confidence += 0.1
    return clamp(confidence)


def ranking_quality(response: Response) -> float:
    """Score used by ranked voting and expert fallback in consensus."""
    score = 0.0
    if len(response.content) > 200:
        score += 0.3
    if response.finish_reason == "stop":
        score += 0.2
    if response.latency_sec < 10:
        score += 0.2
    if _ratio(response.usage.completion_tokens, response.usage.total_tokens) > 0.3:
        score += 0.3
    return clamp(score)


def basic_quality(response: Response) -> float:
    """Length, completion, token-ratio and latency component of an iteration score."""
    score = 0.0
    length = len(response.content)
    if 200 < length < 2000:
        score += 0.3
    elif 2000 <= length < 4000:
        score += 0.2
    if response.finish_reason == "stop":
        score += 0.3
    ratio = _ratio(response.usage.completion_tokens, response.usage.prompt_tokens)
    if 0.2 < ratio < 1.5:
        score += 0.2
    if response.latency_sec < 15:
        score += 0.2
    return clamp(score)


def assess_response_quality(response: Response) -> float:
    """Per-input quality used by the synthesis engine's analysis step.

    Args:
        response: A response handed to the synthesis engine.

    Returns:
        Score in [0, 1]: 0.5 baseline, plus length, structure, completion and
        characters-per-token bonuses.
    """
    score = 0.5
    content = response.content
    if 100 < len(content) < 5000:
        score += 0.1
    if "\n" in content or "•" in content or "-" in content:
        score += 0.1
    if response.finish_reason == "stop":
        score += 0.2
    if _ratio(len(content), response.usage.total_tokens) > 2:
        score += 0.1
    return clamp(score)
