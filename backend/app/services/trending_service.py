"""Trending service — decay-weighted popularity from vote velocity and engagement.

trending_score = (velocity*0.4 + engagement*0.3 + decay*0.2 + category_boost*0.1
                  + log10(votes)/3) * 100
"""

import asyncio
import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from app.config import get_settings
from app.schemas.records import DEFAULT_INTERACTION_WEIGHTS, InteractionRecord, ProblemRecord, TrendingRecord
from app.services.recommendation_store import RecommendationStore
from app.services.scoring import time_decay
from app.services.signals import degrade, degraded_signals

logger = logging.getLogger(__name__)

# Candidate pool
MIN_VOTES = 5
POOL_WINDOW = timedelta(days=7)
POOL_LIMIT = 500

# (window hours, weight)
VELOCITY_WINDOWS = ((1, 0.4), (6, 0.3), (24, 0.2), (168, 0.1))
VELOCITY_LOOKBACK = timedelta(hours=max(hours for hours, _ in VELOCITY_WINDOWS))

ENGAGEMENT_WINDOW = timedelta(hours=24)
ENGAGEMENT_WEIGHTS = DEFAULT_INTERACTION_WEIGHTS
ENGAGEMENT_NORMALIZER = 10.0

CATEGORY_WINDOW = timedelta(days=7)
MAX_CATEGORY_BOOST = 1.5

MIN_TRENDING_SCORE = 0.1


def vote_velocity(vote_times: list[datetime], now: datetime) -> float:
    """Weighted average of votes-per-hour over the 1h/6h/24h/168h windows."""
    weighted = 0.0
    total_weight = 0.0
    for hours, weight in VELOCITY_WINDOWS:
        cutoff = now - timedelta(hours=hours)
        count = sum(1 for t in vote_times if cutoff <= t <= now)
        weighted += (count / hours) * weight
        total_weight += weight
    return weighted / total_weight


def engagement_score(interactions: list[InteractionRecord], now: datetime) -> float:
    cutoff = now - ENGAGEMENT_WINDOW
    raw = sum(
        i.interaction_count * ENGAGEMENT_WEIGHTS.get(i.interaction_type, 0.0)
        for i in interactions
        if i.last_interaction >= cutoff
    )
    return min(raw / ENGAGEMENT_NORMALIZER, 1.0)


def category_boost(average_votes: float) -> float:
    """Map a category's recent average vote count onto [1.0, 1.5]."""
    return min(1.0 + max(average_votes, 0.0) / 100.0, MAX_CATEGORY_BOOST)


def combine_trending(velocity: float, engagement: float, decay: float, boost: float, total_votes: int) -> float:
    base = velocity * 0.4 + engagement * 0.3 + decay * 0.2 + boost * 0.1
    vote_bonus = math.log10(max(total_votes, 1)) / 3
    return max((base + vote_bonus) * 100, 0.0)


def trending_insights(records: list[TrendingRecord], problems: dict[UUID, ProblemRecord]) -> dict:
    """Summary figures shown next to a trending list."""
    if not records:
        return {"average_velocity": 0.0, "top_categories": [], "oldest_calculation": None}
    categories = Counter(
        str(problems[r.problem_id].category_id) for r in records if r.problem_id in problems
    )
    return {
        "average_velocity": sum(r.vote_velocity for r in records) / len(records),
        "top_categories": [category for category, _ in categories.most_common(3)],
        "oldest_calculation": min(r.calculated_at for r in records).isoformat(),
    }


@dataclass
class TrendingResult:
    items: list[tuple[ProblemRecord, TrendingRecord]]
    cache_hit: bool
    calculated: int = 0
    degraded: dict[str, str] = field(default_factory=dict)


class TrendingScorer:
    """Scores the open-problem pool and maintains the trending cache."""

    def __init__(self, store: RecommendationStore, now: datetime | None = None, ttl: timedelta | None = None):
        self.store = store
        self.now = now or datetime.now(timezone.utc)
        self.ttl = ttl or timedelta(minutes=get_settings().trending_cache_ttl_minutes)

    def _zero_record(self, problem_id: UUID) -> TrendingRecord:
        return TrendingRecord(
            problem_id=problem_id,
            calculated_at=self.now,
            expires_at=self.now + self.ttl,
        )

    def score_problem(
        self,
        problem: ProblemRecord,
        vote_times: list[datetime],
        interactions: list[InteractionRecord],
        category_average: float,
    ) -> TrendingRecord:
        age_hours = (self.now - problem.created_at).total_seconds() / 3600
        velocity = vote_velocity(vote_times, self.now)
        decay = time_decay(age_hours)
        engagement = engagement_score(interactions, self.now)
        boost = category_boost(category_average)
        return TrendingRecord(
            problem_id=problem.id,
            trending_score=combine_trending(velocity, engagement, decay, boost, problem.vote_count),
            vote_velocity=velocity,
            engagement_score=engagement,
            time_decay_factor=decay,
            category_boost=boost,
            calculated_at=self.now,
            expires_at=self.now + self.ttl,
        )

    async def _write_cache(self, records: list[TrendingRecord]) -> None:
        # The cache holds exactly the latest calculation; problems that dropped out lose their row
        try:
            await self.store.replace_trending(records)
        except Exception:
            logger.exception("Failed to write %d trending records to cache", len(records))

    async def calculate(self) -> tuple[list[TrendingRecord], dict[UUID, ProblemRecord], dict[str, str]]:
        """Score every pool problem, cache the survivors and return them best first."""
        pool = await self.store.list_eligible_problems(self.now - POOL_WINDOW, MIN_VOTES, POOL_LIMIT)
        if not pool:
            await self._write_cache([])
            return [], {}, {}

        ids = [p.id for p in pool]
        votes, interactions, averages = await asyncio.gather(
            degrade("votes", self.store.votes_for_problems(ids, since=self.now - VELOCITY_LOOKBACK), []),
            degrade("engagement", self.store.interactions_for_problems(ids, since=self.now - ENGAGEMENT_WINDOW), []),
            degrade(
                "category_activity",
                self.store.category_vote_averages({p.category_id for p in pool}, self.now - CATEGORY_WINDOW),
                {},
            ),
        )

        votes_by_problem = defaultdict(list)
        for vote in votes.value:
            votes_by_problem[vote.problem_id].append(vote.created_at)
        interactions_by_problem = defaultdict(list)
        for interaction in interactions.value:
            interactions_by_problem[interaction.problem_id].append(interaction)

        records = []
        for problem in pool:
            try:
                record = self.score_problem(
                    problem,
                    votes_by_problem[problem.id],
                    interactions_by_problem[problem.id],
                    averages.value.get(problem.category_id, 0.0),
                )
            except Exception:
                logger.warning("Trending calculation failed for problem %s", problem.id, exc_info=True)
                record = self._zero_record(problem.id)
            records.append(record)

        records = [r for r in records if r.trending_score > MIN_TRENDING_SCORE]
        records.sort(key=lambda r: (-r.trending_score, str(r.problem_id)))

        await self._write_cache(records)
        logger.info("Calculated trending scores: %d of %d problems trending", len(records), len(pool))
        problems = {p.id: p for p in pool}
        return records, problems, degraded_signals(votes, interactions, averages)

    async def get_trending(self, limit: int = 20, category_id: UUID | None = None, refresh: bool = False) -> TrendingResult:
        """Serve the unexpired cache, recomputing on a miss or when ``refresh`` is set."""
        if not refresh:
            cached = await self.store.fresh_trending(self.now, limit, category_id)
            if cached:
                problems = {p.id: p for p in await self.store.get_problems([r.problem_id for r in cached])}
                items = [(problems[r.problem_id], r) for r in cached if r.problem_id in problems]
                return TrendingResult(items=items, cache_hit=True)

        records, problems, degraded = await self.calculate()
        items = [
            (problems[r.problem_id], r)
            for r in records
            if category_id is None or problems[r.problem_id].category_id == category_id
        ]
        return TrendingResult(items=items[:limit], cache_hit=False, calculated=len(records), degraded=degraded)
