"""Related-problem ranking from four independent similarity signals.

content           Jaccard over title + description tokens
category          same category, scaled by how close the vote counts are
voting_pattern    share of the target's voters who also voted the candidate
user_interaction  co-interaction breadth times average interaction weight

Signals are blended with a weighted average over the signals present for each
candidate, so a candidate is never penalized for a signal it simply lacks.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal
from uuid import UUID

from app.config import get_settings
from app.schemas.records import (
    InteractionRecord,
    ProblemRecord,
    SimilarityRecord,
    VoteRecord,
)
from app.services.exceptions import ProblemNotFoundError
from app.services.recommendation_store import RecommendationStore
from app.services.scoring import combine_scores, jaccard, tokenize, top_n
from app.services.signals import SignalResult, degrade, degraded_signals
from app.services.trending_service import MIN_VOTES, POOL_WINDOW

logger = logging.getLogger(__name__)

Algorithm = Literal["hybrid", "content", "category", "voting_pattern", "user_interaction"]

SIGNAL_WEIGHTS = {
    "content": 0.3,
    "category": 0.25,
    "voting_pattern": 0.3,
    "user_interaction": 0.15,
}

CONTENT_POOL_LIMIT = 200
MIN_CONTENT_SIMILARITY = 0.1
CONTENT_TOP = 20
CATEGORY_TOP = 15
VOTING_TOP = 15
INTERACTION_TOP = 10
MIN_SHARED_USERS = 2
INTERACTION_WEIGHT_NORMALIZER = 5.0


def content_scores(target: ProblemRecord, candidates: list[ProblemRecord]) -> dict[UUID, float]:
    target_tokens = tokenize(target.text)
    scores = {}
    for candidate in candidates:
        if candidate.id == target.id:
            continue
        score = jaccard(target_tokens, tokenize(candidate.text))
        if score > MIN_CONTENT_SIMILARITY:
            scores[candidate.id] = score
    return dict(top_n(scores, CONTENT_TOP))


def category_similarity(target_votes: int, candidate_votes: int) -> float:
    """0.7 for sharing a category plus up to 0.3 for comparable vote counts."""
    if target_votes <= 0 or candidate_votes <= 0:
        ratio = 1.0 if target_votes <= 0 and candidate_votes <= 0 else 0.0
    else:
        ratio = min(candidate_votes / target_votes, target_votes / candidate_votes)
    return 0.7 + 0.3 * ratio


def category_scores(target: ProblemRecord, same_category: list[ProblemRecord]) -> dict[UUID, float]:
    ranked = sorted(
        (p for p in same_category if p.id != target.id),
        key=lambda p: (-p.vote_count, str(p.id)),
    )[:CATEGORY_TOP]
    return {p.id: category_similarity(target.vote_count, p.vote_count) for p in ranked}


def voting_pattern_scores(target_voters: set[UUID], votes: list[VoteRecord], target_id: UUID) -> dict[UUID, float]:
    if not target_voters:
        return {}
    shared = defaultdict(set)
    for vote in votes:
        if vote.problem_id != target_id and vote.user_id in target_voters:
            shared[vote.problem_id].add(vote.user_id)
    scores = {
        problem_id: min(len(users) / len(target_voters), 1.0)
        for problem_id, users in shared.items()
        if len(users) >= MIN_SHARED_USERS
    }
    return dict(top_n(scores, VOTING_TOP))


def interaction_scores(
    target_users: set[UUID], interactions: list[InteractionRecord], target_id: UUID
) -> dict[UUID, float]:
    if not target_users:
        return {}
    users = defaultdict(set)
    weights = defaultdict(float)
    for interaction in interactions:
        if interaction.problem_id == target_id or interaction.user_id not in target_users:
            continue
        users[interaction.problem_id].add(interaction.user_id)
        weights[interaction.problem_id] += interaction.interaction_weight
    scores = {}
    for problem_id, shared in users.items():
        shared_count = len(shared)
        if shared_count < MIN_SHARED_USERS:
            continue
        breadth = shared_count / len(target_users)
        intensity = weights[problem_id] / shared_count / INTERACTION_WEIGHT_NORMALIZER
        scores[problem_id] = min(breadth * intensity, 1.0)
    return dict(top_n(scores, INTERACTION_TOP))


@dataclass
class RelatedScore:
    problem_id: UUID
    score: float
    similarity_type: str
    signals: dict[str, float]


def hybrid_scores(signal_scores: dict[str, dict[UUID, float]], weights: dict[str, float]) -> list[RelatedScore]:
    """Group per-signal scores by candidate and blend them, best first."""
    by_candidate: dict[UUID, dict[str, float]] = defaultdict(dict)
    for signal, scores in signal_scores.items():
        if weights.get(signal, 0) <= 0:
            continue
        for problem_id, score in scores.items():
            by_candidate[problem_id][signal] = score

    related = []
    for problem_id, signals in by_candidate.items():
        combined = combine_scores(signals, weights)
        if combined is None:
            continue
        dominant = max(signals, key=lambda name: (signals[name] * weights[name], name))
        related.append(RelatedScore(problem_id=problem_id, score=combined, similarity_type=dominant, signals=signals))
    related.sort(key=lambda r: (-r.score, str(r.problem_id)))
    return related


@dataclass
class RelatedResult:
    target: ProblemRecord
    items: list[tuple[ProblemRecord, RelatedScore]]
    algorithm: str
    cache_hit: bool
    degraded: dict[str, str] = field(default_factory=dict)


class SimilarityEngine:
    """Ranks other problems by similarity to a target problem."""

    def __init__(self, store: RecommendationStore, now: datetime | None = None, cache_ttl: timedelta | None = None):
        self.store = store
        self.now = now or datetime.now(timezone.utc)
        self.cache_ttl = cache_ttl or timedelta(minutes=get_settings().similarity_cache_ttl_minutes)

    async def _content(self, target: ProblemRecord) -> dict[UUID, float]:
        candidates = await self.store.list_eligible_problems(
            self.now - POOL_WINDOW, MIN_VOTES, CONTENT_POOL_LIMIT, exclude_id=target.id
        )
        return content_scores(target, candidates)

    async def _category(self, target: ProblemRecord) -> dict[UUID, float]:
        same_category = await self.store.problems_in_category(target.category_id, target.id, CATEGORY_TOP)
        return category_scores(target, same_category)

    async def _voting_pattern(self, target: ProblemRecord) -> dict[UUID, float]:
        target_votes = await self.store.votes_for_problems([target.id])
        voters = {v.user_id for v in target_votes}
        if not voters:
            return {}
        votes = await self.store.votes_by_users(voters, exclude_problem_id=target.id)
        return voting_pattern_scores(voters, votes, target.id)

    async def _user_interaction(self, target: ProblemRecord) -> dict[UUID, float]:
        target_interactions = await self.store.interactions_for_problems([target.id])
        users = {i.user_id for i in target_interactions}
        if not users:
            return {}
        interactions = await self.store.interactions_by_users(users, exclude_problem_id=target.id)
        return interaction_scores(users, interactions, target.id)

    async def compute_signals(self, target: ProblemRecord) -> list[SignalResult[dict[UUID, float]]]:
        return list(
            await asyncio.gather(
                degrade("content", self._content(target), {}),
                degrade("category", self._category(target), {}),
                degrade("voting_pattern", self._voting_pattern(target), {}),
                degrade("user_interaction", self._user_interaction(target), {}),
            )
        )

    def _to_records(self, target_id: UUID, signal_scores: dict[str, dict[UUID, float]]) -> list[SimilarityRecord]:
        return [
            SimilarityRecord(
                problem_a_id=target_id,
                problem_b_id=problem_id,
                similarity_score=score,
                similarity_type=signal,
                calculated_at=self.now,
            )
            for signal, scores in signal_scores.items()
            for problem_id, score in scores.items()
        ]

    async def related(
        self,
        problem_id: UUID,
        limit: int = 10,
        refresh: bool = False,
        algorithm: Algorithm = "hybrid",
    ) -> RelatedResult:
        target = await self.store.get_problem(problem_id)
        if target is None:
            raise ProblemNotFoundError(problem_id)

        signal_scores: dict[str, dict[UUID, float]] = {}
        degraded: dict[str, str] = {}
        cache_hit = False

        if not refresh:
            cached = await degrade(
                "similarity_cache", self.store.recent_similarities(target.id, self.now - self.cache_ttl), []
            )
            if cached.value:
                cache_hit = True
                for record in cached.value:
                    signal_scores.setdefault(record.similarity_type, {})[record.problem_b_id] = record.similarity_score

        if not cache_hit:
            results = await self.compute_signals(target)
            signal_scores = {r.name: r.value for r in results}
            degraded = degraded_signals(*results)
            if degraded:
                # A partial result would replace good rows of the failed signals
                logger.info("Not caching similarities for problem %s: degraded %s", target.id, sorted(degraded))
            else:
                try:
                    await self.store.replace_similarities(target.id, self._to_records(target.id, signal_scores))
                except Exception:
                    logger.exception("Failed to cache similarities for problem %s", target.id)

        weights = SIGNAL_WEIGHTS if algorithm == "hybrid" else {algorithm: 1.0}
        ranked = hybrid_scores(signal_scores, weights)[:limit]

        problems = {p.id: p for p in await self.store.get_problems([r.problem_id for r in ranked])}
        items = [(problems[r.problem_id], r) for r in ranked if r.problem_id in problems]
        logger.info(
            "Related problems for %s: %d results (algorithm=%s, cache_hit=%s)",
            target.id, len(items), algorithm, cache_hit,
        )
        return RelatedResult(target=target, items=items, algorithm=algorithm, cache_hit=cache_hit, degraded=degraded)
