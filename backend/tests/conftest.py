"""
Pytest Configuration and Fixtures

Provides an in-memory RecommendationStore so scorers and endpoints can be
exercised without PostgreSQL, plus factories for problems, votes and
interactions anchored at a fixed clock.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.records import (
    InteractionRecord,
    ProblemRecord,
    SimilarityRecord,
    TrendingRecord,
    UserPreferences,
    VoteRecord,
)
from app.services.recommendation_store import RecommendationStore

NOW = datetime.now(timezone.utc).replace(microsecond=0)


# =============================================================================
# In-memory store
# =============================================================================

class FakeRecommendationStore(RecommendationStore):
    """RecommendationStore over plain lists and dicts.

    ``fail(name)`` makes the named method raise, to exercise degradation.
    """

    def __init__(self):
        self.problems: dict[uuid.UUID, ProblemRecord] = {}
        self.votes: list[VoteRecord] = []
        self.interactions: list[InteractionRecord] = []
        self.trending: dict[uuid.UUID, TrendingRecord] = {}
        self.similarities: dict[tuple, SimilarityRecord] = {}
        self.preferences: dict[uuid.UUID, UserPreferences] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def fail(self, *names: str):
        self.failing.update(names)

    def _enter(self, name: str):
        self.calls.append(name)
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    # --- Test helpers ---

    def add_problem(self, problem: ProblemRecord) -> ProblemRecord:
        self.problems[problem.id] = problem
        return problem

    def add_vote(self, user_id, problem_id, created_at=NOW) -> VoteRecord:
        vote = VoteRecord(user_id=user_id, problem_id=problem_id, created_at=created_at)
        self.votes.append(vote)
        return vote

    def add_interaction(self, user_id, problem_id, interaction_type="view", weight=1.0, count=1, at=NOW):
        record = InteractionRecord(
            user_id=user_id,
            problem_id=problem_id,
            interaction_type=interaction_type,
            interaction_weight=weight,
            interaction_count=count,
            last_interaction=at,
        )
        self.interactions.append(record)
        return record

    # --- Problems ---

    async def get_problem(self, problem_id):
        self._enter("get_problem")
        return self.problems.get(problem_id)

    async def get_problems(self, problem_ids):
        self._enter("get_problems")
        return [self.problems[i] for i in problem_ids if i in self.problems]

    async def list_eligible_problems(self, updated_since, min_votes, limit, exclude_id=None):
        self._enter("list_eligible_problems")
        eligible = [
            p for p in self.problems.values()
            if p.status == "Proposed"
            and p.vote_count >= min_votes
            and p.updated_at >= updated_since
            and p.id != exclude_id
        ]
        eligible.sort(key=lambda p: p.updated_at, reverse=True)
        return eligible[:limit]

    async def problems_in_category(self, category_id, exclude_id, limit):
        self._enter("problems_in_category")
        matching = [p for p in self.problems.values() if p.category_id == category_id and p.id != exclude_id]
        matching.sort(key=lambda p: (-p.vote_count, str(p.id)))
        return matching[:limit]

    async def category_vote_averages(self, category_ids, created_since):
        self._enter("category_vote_averages")
        totals: dict = {}
        for p in self.problems.values():
            if p.category_id in category_ids and p.created_at >= created_since:
                totals.setdefault(p.category_id, []).append(p.vote_count)
        return {category: sum(counts) / len(counts) for category, counts in totals.items()}

    async def recommendation_candidates(self, user_id, exclude_categories, min_votes, limit):
        self._enter("recommendation_candidates")
        voted = {v.problem_id for v in self.votes if v.user_id == user_id}
        candidates = [
            p for p in self.problems.values()
            if p.status == "Proposed"
            and p.vote_count >= min_votes
            and p.id not in voted
            and p.proposer_id != user_id
            and str(p.category_id) not in exclude_categories
        ]
        candidates.sort(key=lambda p: p.created_at, reverse=True)
        return candidates[:limit]

    # --- Votes ---

    async def votes_for_problems(self, problem_ids, since=None):
        self._enter("votes_for_problems")
        return [
            v for v in self.votes
            if v.problem_id in problem_ids and (since is None or v.created_at >= since)
        ]

    async def votes_by_users(self, user_ids, problem_ids=None, exclude_problem_id=None):
        self._enter("votes_by_users")
        return [
            v for v in self.votes
            if v.user_id in user_ids
            and (problem_ids is None or v.problem_id in problem_ids)
            and v.problem_id != exclude_problem_id
        ]

    async def recent_votes_by_user(self, user_id, limit):
        self._enter("recent_votes_by_user")
        mine = sorted((v for v in self.votes if v.user_id == user_id), key=lambda v: v.created_at, reverse=True)
        return mine[:limit]

    async def similar_users(self, user_id, limit):
        self._enter("similar_users")
        mine = {v.problem_id for v in self.votes if v.user_id == user_id}
        shared: dict = {}
        for v in self.votes:
            if v.user_id != user_id and v.problem_id in mine:
                shared[v.user_id] = shared.get(v.user_id, 0) + 1
        ranked = sorted(shared.items(), key=lambda kv: (-kv[1], str(kv[0])))
        return [user for user, _ in ranked[:limit]]

    # --- Interactions ---

    async def interactions_for_problems(self, problem_ids, since=None):
        self._enter("interactions_for_problems")
        return [
            i for i in self.interactions
            if i.problem_id in problem_ids and (since is None or i.last_interaction >= since)
        ]

    async def interactions_by_users(self, user_ids, exclude_problem_id=None):
        self._enter("interactions_by_users")
        return [i for i in self.interactions if i.user_id in user_ids and i.problem_id != exclude_problem_id]

    async def user_interactions(self, user_id, problem_ids=None, since=None):
        self._enter("user_interactions")
        return [
            i for i in self.interactions
            if i.user_id == user_id
            and (problem_ids is None or i.problem_id in problem_ids)
            and (since is None or i.last_interaction >= since)
        ]

    async def record_interaction(self, user_id, problem_id, interaction_type, weight, at):
        self._enter("record_interaction")
        for index, existing in enumerate(self.interactions):
            if (existing.user_id, existing.problem_id, existing.interaction_type) == (
                user_id, problem_id, interaction_type
            ):
                updated = existing.model_copy(update={
                    "interaction_count": existing.interaction_count + 1,
                    "interaction_weight": existing.interaction_weight + weight,
                    "last_interaction": at,
                })
                self.interactions[index] = updated
                return updated
        return self.add_interaction(user_id, problem_id, interaction_type, weight, 1, at)

    # --- Trending cache ---

    async def fresh_trending(self, now, limit, category_id=None):
        self._enter("fresh_trending")
        fresh = [
            t for t in self.trending.values()
            if t.expires_at > now
            and (category_id is None or self.problems[t.problem_id].category_id == category_id)
        ]
        fresh.sort(key=lambda t: (-t.trending_score, str(t.problem_id)))
        return fresh[:limit]

    async def fresh_trending_for(self, problem_ids, now):
        self._enter("fresh_trending_for")
        return [t for t in self.trending.values() if t.problem_id in problem_ids and t.expires_at > now]

    async def replace_trending(self, records):
        self._enter("replace_trending")
        self.trending = {record.problem_id: record for record in records}

    # --- Similarity cache ---

    async def recent_similarities(self, problem_id, since):
        self._enter("recent_similarities")
        return [
            s for s in self.similarities.values()
            if s.problem_a_id == problem_id and s.calculated_at >= since
        ]

    async def similarities_between(self, source_ids, target_ids):
        self._enter("similarities_between")
        return [
            s for s in self.similarities.values()
            if (s.problem_a_id in source_ids and s.problem_b_id in target_ids)
            or (s.problem_a_id in target_ids and s.problem_b_id in source_ids)
        ]

    async def replace_similarities(self, problem_id, records):
        self._enter("replace_similarities")
        self.similarities = {key: s for key, s in self.similarities.items() if s.problem_a_id != problem_id}
        for record in records:
            self.similarities[(record.problem_a_id, record.problem_b_id, record.similarity_type)] = record

    # --- Preferences ---

    async def get_preferences(self, user_id):
        self._enter("get_preferences")
        if user_id not in self.preferences:
            self.preferences[user_id] = UserPreferences(user_id=user_id)
        return self.preferences[user_id]

    async def save_preferences(self, preferences):
        self._enter("save_preferences")
        self.preferences[preferences.user_id] = preferences
        return preferences


# =============================================================================
# Factories
# =============================================================================

def make_problem(
    title="Reduce plastic waste in oceans",
    description="Innovative strategies to reduce plastic pollution at sea",
    category_id=None,
    vote_count=10,
    age_hours=24.0,
    updated_hours_ago=1.0,
    proposer_id=None,
    status="Proposed",
    **overrides,
) -> ProblemRecord:
    return ProblemRecord(
        id=overrides.pop("id", uuid.uuid4()),
        title=title,
        description=description,
        category_id=category_id or uuid.uuid4(),
        vote_count=vote_count,
        created_at=NOW - timedelta(hours=age_hours),
        updated_at=NOW - timedelta(hours=updated_hours_ago),
        proposer_id=proposer_id,
        status=status,
        **overrides,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def store():
    return FakeRecommendationStore()


@pytest.fixture
def category_id():
    return uuid.uuid4()


@pytest.fixture
def user_id():
    return uuid.uuid4()
