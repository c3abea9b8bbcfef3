"""Personalized recommendations: blended relevance with a diversity re-rank.

score = 0.30 * collaborative + 0.25 * content + 0.20 * trending * trending_preference
      + 0.15 * category_match + 0.10 * interaction_history
"""

import asyncio
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from app.schemas.records import ProblemRecord, UserPreferences
from app.services.recommendation_store import RecommendationStore
from app.services.scoring import clamp
from app.services.signals import degrade, degraded_signals

logger = logging.getLogger(__name__)

WEIGHTS = {
    "collaborative": 0.3,
    "content": 0.25,
    "trending": 0.2,
    "category": 0.15,
    "interaction": 0.1,
}

CANDIDATE_LIMIT = 200
SIMILAR_USERS_LIMIT = 50
RECENT_VOTES_LIMIT = 20
CONTENT_TOP_MATCHES = 10
TRENDING_NORMALIZER = 100.0
INTERACTION_NORMALIZER = 10.0
DIVERSITY_SCAN_WINDOW = 10


@dataclass
class Recommendation:
    problem: ProblemRecord
    score: float
    reasoning: dict[str, float]
    explanation: str = ""


@dataclass
class RecommendationResult:
    items: list[Recommendation]
    preferences: UserPreferences
    candidates_considered: int
    degraded: dict[str, str] = field(default_factory=dict)


def generate_explanation(reasoning: dict[str, float]) -> str:
    reasons = []
    if reasoning.get("collaborative_score", 0) > 0.5:
        reasons.append("users with similar interests voted for this")
    if reasoning.get("content_score", 0) > 0.5:
        reasons.append("similar to problems you've liked")
    if reasoning.get("trending_score", 0) > 0.5:
        reasons.append("currently trending")
    if reasoning.get("category_match", 0) > 0.7:
        reasons.append("matches your preferred categories")
    if not reasons:
        return "Recommended based on community interest"
    return "Recommended because: " + ", ".join(reasons)


def relevance_score(
    collaborative: float,
    content: float,
    trending: float,
    category: float,
    interaction: float,
    trending_preference: float,
) -> float:
    return (
        WEIGHTS["collaborative"] * collaborative
        + WEIGHTS["content"] * content
        + WEIGHTS["trending"] * trending * trending_preference
        + WEIGHTS["category"] * category
        + WEIGHTS["interaction"] * interaction
    )


def rerank_for_diversity(ranked: list[Recommendation], limit: int, diversity: float) -> list[Recommendation]:
    """Greedy re-rank trading raw score against category novelty.

    The first pick is always the best-scored item. Each later slot looks at
    the next DIVERSITY_SCAN_WINDOW unselected items and takes the one with the
    highest ``score * (1 - d) + d * novelty``, where novelty is
    ``1 / (1 + already selected items in the same category)``. With ``d == 0``
    this is exactly the top ``limit`` by score.
    """
    if limit <= 0:
        return []
    pool = sorted(ranked, key=lambda r: (-r.score, str(r.problem.id)))[: limit * 2]
    if diversity <= 0 or not pool:
        return pool[:limit]

    selected = [pool[0]]
    remaining = pool[1:]
    per_category = Counter({pool[0].problem.category_id: 1})

    def diversified(rec: Recommendation) -> float:
        novelty = 1.0 / (1 + per_category[rec.problem.category_id])
        return rec.score * (1 - diversity) + diversity * novelty

    while remaining and len(selected) < limit:
        window = remaining[:DIVERSITY_SCAN_WINDOW]
        best = max(window, key=diversified)
        remaining.remove(best)
        selected.append(best)
        per_category[best.problem.category_id] += 1
    return selected


class PersonalRecommender:
    """Scores candidate problems for one user."""

    def __init__(self, store: RecommendationStore, now: datetime | None = None):
        self.store = store
        self.now = now or datetime.now(timezone.utc)

    async def _collaborative(self, user_id: UUID, candidate_ids: list[UUID]) -> dict[UUID, float]:
        similar = await self.store.similar_users(user_id, SIMILAR_USERS_LIMIT)
        if not similar:
            return {}
        votes = await self.store.votes_by_users(similar, problem_ids=candidate_ids)
        voters = defaultdict(set)
        for vote in votes:
            voters[vote.problem_id].add(vote.user_id)
        return {problem_id: clamp(len(users) / len(similar)) for problem_id, users in voters.items()}

    async def _content(self, user_id: UUID, candidate_ids: list[UUID]) -> dict[UUID, float]:
        recent = await self.store.recent_votes_by_user(user_id, RECENT_VOTES_LIMIT)
        voted = {v.problem_id for v in recent}
        if not voted:
            return {}
        records = await self.store.similarities_between(voted, candidate_ids)
        candidates = set(candidate_ids)

        # Best score per (candidate, voted problem) pair across similarity types
        best = defaultdict(dict)
        for record in records:
            if record.problem_a_id in candidates and record.problem_b_id in voted:
                candidate, liked = record.problem_a_id, record.problem_b_id
            elif record.problem_b_id in candidates and record.problem_a_id in voted:
                candidate, liked = record.problem_b_id, record.problem_a_id
            else:
                continue
            best[candidate][liked] = max(best[candidate].get(liked, 0.0), record.similarity_score)

        scores = {}
        for candidate, matches in best.items():
            top = sorted(matches.values(), reverse=True)[:CONTENT_TOP_MATCHES]
            scores[candidate] = clamp(sum(top) / len(top))
        return scores

    async def _trending(self, candidate_ids: list[UUID]) -> dict[UUID, float]:
        records = await self.store.fresh_trending_for(candidate_ids, self.now)
        return {r.problem_id: clamp(r.trending_score / TRENDING_NORMALIZER) for r in records}

    async def _interaction(self, user_id: UUID, candidate_ids: list[UUID]) -> dict[UUID, float]:
        interactions = await self.store.user_interactions(user_id, problem_ids=candidate_ids)
        totals = defaultdict(float)
        for interaction in interactions:
            totals[interaction.problem_id] += interaction.interaction_weight
        return {problem_id: clamp(total / INTERACTION_NORMALIZER) for problem_id, total in totals.items()}

    async def recommend(self, user_id: UUID, limit: int = 10) -> RecommendationResult:
        preferences = await self.store.get_preferences(user_id)
        candidates = await self.store.recommendation_candidates(
            user_id,
            preferences.exclude_categories,
            preferences.min_vote_threshold,
            CANDIDATE_LIMIT,
        )
        if not candidates:
            return RecommendationResult(items=[], preferences=preferences, candidates_considered=0)

        ids = [c.id for c in candidates]
        collaborative, content, trending, interaction = await asyncio.gather(
            degrade("collaborative", self._collaborative(user_id, ids), {}),
            degrade("content", self._content(user_id, ids), {}),
            degrade("trending", self._trending(ids), {}),
            degrade("interaction", self._interaction(user_id, ids), {}),
        )

        scored = []
        for candidate in candidates:
            reasoning = {
                "collaborative_score": collaborative.value.get(candidate.id, 0.0),
                "content_score": content.value.get(candidate.id, 0.0),
                "trending_score": trending.value.get(candidate.id, 0.0),
                "category_match": clamp(preferences.category_weights.get(str(candidate.category_id), 0.0)),
                "interaction_history": interaction.value.get(candidate.id, 0.0),
            }
            score = relevance_score(
                reasoning["collaborative_score"],
                reasoning["content_score"],
                reasoning["trending_score"],
                reasoning["category_match"],
                reasoning["interaction_history"],
                preferences.trending_preference,
            )
            scored.append(Recommendation(problem=candidate, score=score, reasoning=reasoning))

        items = rerank_for_diversity(scored, limit, preferences.diversity_preference)
        for item in items:
            item.explanation = generate_explanation(item.reasoning)

        logger.info(
            "Recommended %d of %d candidates for user %s", len(items), len(candidates), user_id
        )
        return RecommendationResult(
            items=items,
            preferences=preferences,
            candidates_considered=len(candidates),
            degraded=degraded_signals(collaborative, content, trending, interaction),
        )
