"""Sequential strategy: providers take turns, each building on the context so far."""

import logging
from dataclasses import dataclass

from ai_collab.errors import AggregateFailure, ValidationError
from ai_collab.models import CollaborationResult, Request, Response, new_id, total_usage
from ai_collab.strategies.base import Strategy, call_provider, child_request, timestamp
from ai_collab.strategy_config import CONTEXT_PRESERVATION, SEQUENTIAL, SequentialConfig, StopConditions
from ai_collab.text import clamp, new_terms

logger = logging.getLogger(__name__)

_ASSERTIVE = (
    "definitely", "certainly", "clearly", "obviously",
    "precisely", "exactly", "conclusively", "undoubtedly",
)
_UNCERTAIN = (
    "maybe", "perhaps", "possibly", "might", "could",
    "uncertain", "unsure", "unclear", "ambiguous",
)


@dataclass
class SequentialStep:
    step_number: int
    provider: str
    request: Request
    response: Response


class SequentialStrategy(Strategy):
    name = SEQUENTIAL

    async def _run(self, request: Request, config: SequentialConfig) -> CollaborationResult:
        if config.context_preservation not in CONTEXT_PRESERVATION:
            raise ValidationError(f"Unknown context preservation mode: {config.context_preservation}")
        providers = self._available(config.providers)
        max_steps = min(config.max_steps or len(providers), len(providers))

        steps: list[SequentialStep] = []
        failed: list[str] = []
        context = ""
        for step_number, provider in enumerate(providers[:max_steps], start=1):
            step_request = self._step_request(request, config, context, len(steps), step_number)
            logger.info("Sequential step %d/%d: %s", step_number, max_steps, provider)
            result = await call_provider(self._gateway, provider, step_request, config.timeout_sec)
            if not isinstance(result, Response):
                failed.append(provider)
                logger.warning("Sequential step %d skipped: %s", step_number, result)
                continue

            steps.append(SequentialStep(step_number, provider, step_request, result))
            context = update_context(context, result, config.context_preservation)
            if config.stop_conditions and should_stop(result, config.stop_conditions, context):
                logger.info("Sequential: stop condition met after step %d", step_number)
                break

        if not steps:
            raise AggregateFailure("No steps were successfully executed", failed)

        return CollaborationResult(
            success=True,
            strategy=self.name,
            responses=[step.response for step in steps],
            final_result=_final_response(steps, request),
            metadata={
                "request_id": request.id,
                "timestamp": timestamp(),
                "providers_used": [step.provider for step in steps],
                "failed_providers": failed,
                "step_count": len(steps),
                "context_preservation": config.context_preservation,
                "steps_summary": [
                    {
                        "step": step.step_number,
                        "provider": step.provider,
                        "tokens": step.response.usage.total_tokens,
                        "latency_sec": step.response.latency_sec,
                    }
                    for step in steps
                ],
            },
        )

    def _step_request(
        self,
        request: Request,
        config: SequentialConfig,
        context: str,
        completed: int,
        step_number: int,
    ) -> Request:
        """The first successful step sees the bare prompt; later steps see the context."""
        if completed == 0:
            return child_request(request, f"step-{step_number}")
        continuation = config.continuation_prompt or self._prompts.default_continuation
        if completed == 1:
            prompt = self._prompts.sequential_first_continuation.format(
                prompt=request.prompt, continuation=continuation, context=context,
            )
        else:
            prompt = self._prompts.sequential_continuation.format(
                continuation=continuation, context=context,
            )
        return child_request(request, f"step-{step_number}", prompt)


def update_context(context: str, response: Response, mode: str) -> str:
    if mode == "last_only":
        return f"Latest response from {response.provider}:\n{response.content}"
    if mode == "summary":
        summary = summarize(response.content)
        if context:
            return f"{context}\n\n--- Summary from {response.provider} ---\n{summary}"
        return f"Summary from {response.provider}:\n{summary}"
    if context:
        return f"{context}\n\n--- Next Response ({response.provider}) ---\n{response.content}"
    return f"Response from {response.provider}:\n{response.content}"


def summarize(content: str) -> str:
    """First and last paragraph, with a marker for what was dropped."""
    paragraphs = [p for p in content.split("\n\n") if p.strip()]
    if len(paragraphs) <= 2:
        return content
    return (
        f"{paragraphs[0]}\n\n[...summary of {len(paragraphs) - 2} paragraphs...]\n\n{paragraphs[-1]}"
    )


def assertiveness(response: Response) -> float:
    """Confidence from finish reason and assertive versus hedging vocabulary."""
    confidence = 0.5
    if response.finish_reason == "stop":
        confidence += 0.3
    elif response.finish_reason == "length":
        confidence += 0.1
    content = response.content.lower()
    assertive = sum(1 for word in _ASSERTIVE if word in content)
    uncertain = sum(1 for word in _UNCERTAIN if word in content)
    return clamp(confidence + assertive * 0.05 - uncertain * 0.1)


def should_stop(response: Response, conditions: StopConditions, context: str) -> bool:
    if conditions.max_tokens:
        # Rough estimate: four characters per token.
        estimated = (len(context) + len(response.content)) / 4
        if estimated > conditions.max_tokens:
            return True
    if conditions.keywords:
        content = response.content.lower()
        if any(keyword.lower() in content for keyword in conditions.keywords):
            return True
    if conditions.confidence is not None and assertiveness(response) >= conditions.confidence:
        return True
    return False


def _describe_change(previous: SequentialStep, current: SequentialStep) -> str:
    before, after = previous.response, current.response
    changes = []
    if len(after.content) > len(before.content) * 1.2:
        changes.append("expanded content")
    elif len(after.content) < len(before.content) * 0.8:
        changes.append("condensed content")
    fresh = new_terms(before.content, after.content)
    if fresh:
        changes.append(f"added new concepts: {', '.join(fresh[:3])}")
    if after.latency_sec < before.latency_sec * 0.8:
        changes.append("faster execution")
    return ", ".join(changes) if changes else "refined approach"


def _evolution_summary(steps: list[SequentialStep]) -> str:
    blocks = []
    for index, step in enumerate(steps):
        lines = [
            f"Step {step.step_number} ({step.provider}):",
            f"- Tokens: {step.response.usage.total_tokens}",
            f"- Time: {step.response.latency_sec:.2f}s",
            f"- Content length: {len(step.response.content)} chars",
        ]
        if index > 0:
            lines.append(f"- Improvement: {_describe_change(steps[index - 1], step)}")
        blocks.append("\n".join(lines))

    total_time = sum(step.response.latency_sec for step in steps)
    final = (
        "\nFinal Analysis:\n"
        f"- Total steps: {len(steps)}\n"
        f"- Total tokens: {sum(step.response.usage.total_tokens for step in steps)}\n"
        f"- Total time: {total_time:.2f}s\n"
        f"- Provider diversity: {len({step.provider for step in steps})} unique providers"
    )
    return "\n\n".join(blocks) + final


def _final_response(steps: list[SequentialStep], request: Request) -> Response:
    last = steps[-1].response
    return Response(
        id=new_id("sequential-final"),
        provider="sequential_final",
        model="sequential_collaboration",
        content=f"{last.content}\n\n--- Evolution Summary ---\n{_evolution_summary(steps)}",
        usage=total_usage([step.response for step in steps]),
        latency_sec=sum(step.response.latency_sec for step in steps),
        finish_reason=last.finish_reason or "stop",
        metadata={
            "request_id": request.id,
            "timestamp": timestamp(),
            "sequential_steps": len(steps),
            "providers_sequence": [step.provider for step in steps],
            "steps_detail": [
                {
                    "step": step.step_number,
                    "provider": step.provider,
                    "model": step.response.model,
                    "tokens": step.response.usage.total_tokens,
                    "latency_sec": step.response.latency_sec,
                    "finish_reason": step.response.finish_reason,
                }
                for step in steps
            ],
        },
    )
