"""Consensus strategy: rounds of fan-out, clustering and voting until providers agree."""

import logging
from dataclasses import dataclass

from ai_collab.errors import AggregateFailure, ValidationError
from ai_collab.models import (
    CollaborationResult,
    ConsensusRound,
    Request,
    Response,
    Vote,
    new_id,
    total_usage,
)
from ai_collab.scoring import ranking_quality, response_confidence
from ai_collab.strategies.base import Strategy, child_request, fan_out, split_outcomes, timestamp
from ai_collab.strategy_config import (
    CONFLICT_RESOLUTIONS,
    CONSENSUS,
    VOTING_METHODS,
    ConsensusConfig,
)
from ai_collab.text import (
    SENTENCE_MATCH_THRESHOLD,
    argmax,
    clamp,
    cluster,
    extract_keywords,
    mean_pairwise_similarity,
    similarity,
    split_sentences,
)

logger = logging.getLogger(__name__)

# Unanimous voting also needs the whole panel above this, whatever the threshold.
UNANIMOUS_FLOOR = 0.9


@dataclass
class VotingResult:
    winner: int                 # index into clusters
    agreement: float
    confidence: float
    clusters: list[list[int]]


class ConsensusStrategy(Strategy):
    name = CONSENSUS

    async def _run(self, request: Request, config: ConsensusConfig) -> CollaborationResult:
        if config.voting_method not in VOTING_METHODS:
            raise ValidationError(f"Unknown voting method: {config.voting_method}")
        if config.conflict_resolution not in CONFLICT_RESOLUTIONS:
            raise ValidationError(f"Unknown conflict resolution: {config.conflict_resolution}")
        providers = self._available(config.providers, minimum=2)

        rounds: list[ConsensusRound] = []
        winning: VotingResult | None = None
        current = request
        for round_number in range(1, config.max_rounds + 1):
            consensus_round, voting = await self._round(current, providers, round_number, config)
            rounds.append(consensus_round)
            logger.info(
                "Consensus round %d: agreement %.2f (%s)",
                round_number, consensus_round.agreement,
                "reached" if consensus_round.consensus else "not reached",
            )
            if consensus_round.consensus:
                winning = voting
                break
            if round_number < config.max_rounds:
                current = self._resolution_request(request, consensus_round, round_number + 1)

        last = rounds[-1]
        if winning is not None:
            content = synthesize_cluster([last.votes[i] for i in winning.clusters[winning.winner]])
        else:
            content = resolve_conflict(last, config)

        all_responses = [vote.response for r in rounds for vote in r.votes]
        final = Response(
            id=new_id("consensus-final"),
            provider="consensus_final",
            model="consensus_collaboration",
            content=content,
            usage=total_usage(all_responses),
            latency_sec=sum(max(v.response.latency_sec for v in r.votes) for r in rounds),
            finish_reason="stop",
            metadata={
                "request_id": request.id,
                "timestamp": timestamp(),
                "consensus_achieved": winning is not None,
                "final_agreement": last.agreement,
                "conflict_resolution": None if winning is not None else config.conflict_resolution,
                "rounds_summary": [
                    {
                        "round": r.round_number,
                        "agreement": r.agreement,
                        "consensus": r.consensus,
                        "participants": len(r.votes),
                    }
                    for r in rounds
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
                "providers_used": providers,
                "rounds": rounds,
                "rounds_completed": len(rounds),
                "final_agreement": last.agreement,
                "consensus_achieved": winning is not None,
                "voting_method": config.voting_method,
                "consensus_threshold": config.consensus_threshold,
            },
        )

    async def _round(
        self,
        request: Request,
        providers: list[str],
        round_number: int,
        config: ConsensusConfig,
    ) -> tuple[ConsensusRound, VotingResult]:
        outcomes = await fan_out(
            self._gateway,
            [(p, child_request(request, f"round-{round_number}-{p}")) for p in providers],
            config.timeout_sec,
        )
        successes, failed = split_outcomes(outcomes)
        if not successes:
            raise AggregateFailure(f"No responses received in round {round_number}", failed)

        votes = [Vote(p, r, response_confidence(r)) for p, r in successes]
        voting = analyze_votes(votes, config.voting_method)
        consensus = voting.agreement >= config.consensus_threshold
        if config.voting_method == "unanimous":
            consensus = consensus and voting.agreement > UNANIMOUS_FLOOR

        return (
            ConsensusRound(
                round_number=round_number,
                votes=votes,
                agreement=voting.agreement,
                consensus=consensus,
                conflict_areas=None if consensus else conflict_areas(votes),
            ),
            voting,
        )

    def _resolution_request(self, request: Request, previous: ConsensusRound, next_round: int) -> Request:
        prompt = self._prompts.consensus_resolution.format(
            prompt=request.prompt,
            conflict_summary=summarize_conflicts(previous),
        )
        return child_request(request, f"resolution-{next_round}", prompt)


def analyze_votes(votes: list[Vote], method: str) -> VotingResult:
    """Score how much the votes agree under the given voting method."""
    texts = [vote.response.content for vote in votes]
    clusters = cluster(texts)

    if method == "unanimous":
        agreement = mean_pairwise_similarity(texts)
        return VotingResult(
            winner=argmax([float(len(members)) for members in clusters]),
            agreement=agreement,
            confidence=agreement,
            clusters=clusters,
        )

    if method == "ranked":
        scores = [ranking_quality(vote.response) for vote in votes]
        # sorted() is stable, so ties keep submission order
        ranked = sorted(range(len(votes)), key=lambda i: scores[i], reverse=True)
        top = ranked[: (len(votes) + 1) // 2]
        agreement = mean_pairwise_similarity([texts[i] for i in top])
        top_cluster = next(i for i, members in enumerate(clusters) if top[0] in members)
        return VotingResult(
            winner=top_cluster,
            agreement=agreement,
            confidence=scores[top[0]],
            clusters=clusters,
        )

    if method == "weighted":
        weights = [sum(votes[i].confidence for i in members) for members in clusters]
        winner = argmax(weights)
        agreement = weights[winner] / len(votes)
    else:
        sizes = [float(len(members)) for members in clusters]
        winner = argmax(sizes)
        agreement = sizes[winner] / len(votes)

    members = clusters[winner]
    confidence = sum(votes[i].confidence for i in members) / len(members)
    return VotingResult(winner=winner, agreement=clamp(agreement), confidence=confidence, clusters=clusters)


def conflict_areas(votes: list[Vote], limit: int = 5) -> list[str]:
    """Keywords that fewer than half of the responses mention."""
    keyword_sets = [extract_keywords(vote.response.content) for vote in votes]
    seen: list[str] = []
    for keywords in keyword_sets:
        for keyword in keywords:
            if keyword not in seen:
                seen.append(keyword)

    conflicts = []
    for keyword in seen:
        mentions = sum(1 for keywords in keyword_sets if keyword in keywords)
        if 0 < mentions < len(votes) / 2:
            conflicts.append(keyword)
    return conflicts[:limit]


def summarize_conflicts(consensus_round: ConsensusRound) -> str:
    areas = ", ".join(consensus_round.conflict_areas or []) or "various topics"
    perspectives = "\n".join(
        f"{vote.provider}: {vote.response.content[:200]}..." for vote in consensus_round.votes
    )
    return (
        f"Disagreement level: {(1 - consensus_round.agreement) * 100:.1f}%\n"
        f"Conflict areas: {areas}\n"
        f"Different perspectives:\n{perspectives}"
    )


def common_elements(members: list[Vote], limit: int = 3) -> list[str]:
    """Sentences that a different member of the cluster also says, deduplicated."""
    sentences = [
        (index, sentence)
        for index, vote in enumerate(members)
        for sentence in split_sentences(vote.response.content)
    ]
    common: list[str] = []
    for index, sentence in sentences:
        if any(similarity(sentence, kept) > SENTENCE_MATCH_THRESHOLD for kept in common):
            continue
        if any(
            other != index and similarity(sentence, candidate) > SENTENCE_MATCH_THRESHOLD
            for other, candidate in sentences
        ):
            common.append(sentence)
            if len(common) == limit:
                break
    return common


def unique_contributions(members: list[Vote], per_member: int = 2) -> list[tuple[str, list[str]]]:
    """Per member, sentences no other member comes close to."""
    contributions = []
    for index, vote in enumerate(members):
        others = [
            sentence
            for other, other_vote in enumerate(members)
            if other != index
            for sentence in split_sentences(other_vote.response.content)
        ]
        own = [
            sentence
            for sentence in split_sentences(vote.response.content)
            if all(similarity(sentence, o) <= SENTENCE_MATCH_THRESHOLD for o in others)
        ]
        if own:
            contributions.append((vote.provider, own[:per_member]))
    return contributions


def synthesize_cluster(members: list[Vote]) -> str:
    """Merge the winning cluster. A single member is returned verbatim."""
    if len(members) == 1:
        return members[0].response.content

    common = common_elements(members)
    if common:
        summary = ". ".join(common) + "."
    else:
        summary = max(members, key=lambda vote: vote.confidence).response.content

    contributions = unique_contributions(members)
    if contributions:
        extra = "\n\n".join(
            f"Provider {provider}: " + ". ".join(sentences) + "."
            for provider, sentences in contributions
        )
    else:
        extra = "None beyond the shared answer."

    return (
        f"Consensus Summary:\n{summary}\n\n"
        f"Additional Perspectives:\n{extra}\n\n"
        f"This consensus represents the agreement of {len(members)} AI providers."
    )


def resolve_conflict(last: ConsensusRound, config: ConsensusConfig) -> str:
    """Produce the final answer when no round reached consensus."""
    if config.conflict_resolution == "abort":
        return "Consensus could not be reached. Significant disagreement persists among providers."
    if config.conflict_resolution == "expert":
        return _expert_resolution(last.votes, config.expert_provider)
    return _combine(last.votes)


def _expert_resolution(votes: list[Vote], expert: str | None) -> str:
    if expert:
        for vote in votes:
            if vote.provider == expert:
                return (
                    f"Expert Decision ({expert}):\n{vote.response.content}\n\n"
                    "Note: This decision was made by the designated expert provider to resolve conflicts."
                )
        logger.warning("Expert provider %s gave no response in the final round", expert)

    best = votes[argmax([ranking_quality(v.response) for v in votes])]
    return (
        f"Best Available Response ({best.provider}):\n{best.response.content}\n\n"
        "Note: Selected based on response quality metrics due to lack of consensus."
    )


def _combine(votes: list[Vote]) -> str:
    perspectives = "\n\n---\n\n".join(
        f"Perspective {index} ({vote.provider}, confidence: {vote.confidence * 100:.1f}%):\n"
        f"{vote.response.content}"
        for index, vote in enumerate(votes, start=1)
    )
    return (
        f"Multiple Perspectives on the Question:\n\n{perspectives}\n\n"
        "Summary: The AI providers offered different perspectives on this question. "
        "Consider all viewpoints when making your decision."
    )
