"""Interaction tracking and per-user engagement patterns."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from app.schemas.records import DEFAULT_INTERACTION_WEIGHTS, InteractionRecord
from app.services.exceptions import ProblemNotFoundError
from app.services.recommendation_store import RecommendationStore

logger = logging.getLogger(__name__)

PATTERN_WINDOW = timedelta(days=30)


@dataclass
class InteractionPatterns:
    categories: dict[str, float]
    interactions: dict[str, float]
    time_patterns: dict[str, int]


async def track_interaction(
    store: RecommendationStore,
    user_id: UUID,
    problem_id: UUID,
    interaction_type: str,
    weight: float | None = None,
    now: datetime | None = None,
) -> InteractionRecord:
    """Record one interaction, bumping the (user, problem, type) aggregate."""
    if await store.get_problem(problem_id) is None:
        raise ProblemNotFoundError(problem_id)
    if weight is None:
        weight = DEFAULT_INTERACTION_WEIGHTS.get(interaction_type, 1.0)
    record = await store.record_interaction(
        user_id, problem_id, interaction_type, weight, now or datetime.now(timezone.utc)
    )
    logger.info("Tracked %s on problem %s for user %s", interaction_type, problem_id, user_id)
    return record


async def interaction_patterns(
    store: RecommendationStore, user_id: UUID, now: datetime | None = None
) -> InteractionPatterns:
    """Aggregate the last 30 days of interactions by category, type and hour."""
    now = now or datetime.now(timezone.utc)
    interactions = await store.user_interactions(user_id, since=now - PATTERN_WINDOW)
    problems = {p.id: p for p in await store.get_problems({i.problem_id for i in interactions})}

    categories = defaultdict(float)
    types = defaultdict(float)
    hours = defaultdict(int)
    for interaction in interactions:
        problem = problems.get(interaction.problem_id)
        if problem is not None:
            categories[str(problem.category_id)] += interaction.interaction_weight
        types[interaction.interaction_type] += interaction.interaction_weight
        hours[str(interaction.last_interaction.hour)] += 1

    return InteractionPatterns(categories=dict(categories), interactions=dict(types), time_patterns=dict(hours))


def category_weights_from_patterns(categories: dict[str, float]) -> dict[str, float]:
    """Each category's share of the total interaction weight."""
    total = sum(categories.values())
    if total <= 0:
        return {}
    return {category: weight / total for category, weight in categories.items()}
