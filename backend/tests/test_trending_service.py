"""
Tests for trending scores and the trending cache.

Validates the vote-velocity windows, engagement normalization, category
boost, degradation of individual signals and cache-hit behavior.
"""

import uuid
from datetime import timedelta

import pytest

from app.schemas.records import TrendingRecord
from app.services.trending_service import (
    TrendingScorer,
    category_boost,
    combine_trending,
    engagement_score,
    trending_insights,
    vote_velocity,
)
from conftest import NOW, make_problem

TTL = timedelta(minutes=60)


@pytest.fixture
def scorer(store):
    return TrendingScorer(store, now=NOW, ttl=TTL)


def seed_votes(store, problem, recent, older, older_hours=3):
    for _ in range(recent):
        store.add_vote(uuid.uuid4(), problem.id, NOW - timedelta(minutes=30))
    for _ in range(older):
        store.add_vote(uuid.uuid4(), problem.id, NOW - timedelta(hours=older_hours))


# =============================================================================
# Pure scoring functions
# =============================================================================

class TestVoteVelocity:

    def test_recent_hour_dominates(self):
        # 20 votes, 10 of them in the last hour
        times = [NOW - timedelta(minutes=20)] * 10 + [NOW - timedelta(hours=3)] * 10
        velocity = vote_velocity(times, NOW)

        one_hour = 10 / 1 * 0.4
        expected = one_hour + 20 / 6 * 0.3 + 20 / 24 * 0.2 + 20 / 168 * 0.1
        assert velocity == pytest.approx(expected)
        assert one_hour > velocity / 2

    def test_no_votes(self):
        assert vote_velocity([], NOW) == 0.0

    def test_votes_outside_every_window_ignored(self):
        assert vote_velocity([NOW - timedelta(days=30)], NOW) == 0.0

    def test_future_votes_ignored(self):
        assert vote_velocity([NOW + timedelta(hours=1)], NOW) == 0.0


class TestEngagement:

    def test_weighted_by_type_and_count(self, store):
        problem_id = uuid.uuid4()
        interactions = [
            store.add_interaction(uuid.uuid4(), problem_id, "share", count=2),
            store.add_interaction(uuid.uuid4(), problem_id, "view", count=5),
        ]
        # (2 * 1.2 + 5 * 0.3) / 10
        assert engagement_score(interactions, NOW) == pytest.approx(0.39)

    def test_capped_at_one(self, store):
        problem_id = uuid.uuid4()
        interactions = [store.add_interaction(uuid.uuid4(), problem_id, "share", count=50)]
        assert engagement_score(interactions, NOW) == 1.0

    def test_stale_interactions_ignored(self, store):
        interactions = [
            store.add_interaction(uuid.uuid4(), uuid.uuid4(), "vote", count=3, at=NOW - timedelta(hours=30))
        ]
        assert engagement_score(interactions, NOW) == 0.0


class TestCategoryBoost:

    def test_no_activity(self):
        assert category_boost(0) == 1.0

    def test_scales_with_average_votes(self):
        assert category_boost(20) == pytest.approx(1.2)

    def test_capped(self):
        assert category_boost(500) == 1.5


def test_combine_trending_vote_bonus():
    without_votes = combine_trending(0, 0, 0.5, 1.0, 1)
    with_votes = combine_trending(0, 0, 0.5, 1.0, 1000)
    assert without_votes == pytest.approx(20.0)
    assert with_votes == pytest.approx(120.0)


# =============================================================================
# Calculation
# =============================================================================

class TestCalculate:

    async def test_scores_and_caches_pool(self, store, scorer):
        hot = store.add_problem(make_problem(title="Hot", vote_count=20, age_hours=48))
        cold = store.add_problem(make_problem(title="Cold", vote_count=6, age_hours=120))
        seed_votes(store, hot, recent=10, older=10)

        records, problems, degraded = await scorer.calculate()

        assert [r.problem_id for r in records] == [hot.id, cold.id]
        assert records[0].time_decay_factor == pytest.approx(0.5)
        assert records[0].expires_at == NOW + TTL
        assert set(problems) == {hot.id, cold.id}
        assert degraded == {}
        assert set(store.trending) == {hot.id, cold.id}

    async def test_ineligible_problems_excluded(self, store, scorer):
        store.add_problem(make_problem(vote_count=2))
        store.add_problem(make_problem(vote_count=50, status="Solved"))
        store.add_problem(make_problem(vote_count=50, updated_hours_ago=24 * 8))

        records, _, _ = await scorer.calculate()
        assert records == []

    async def test_deterministic(self, store):
        for votes in (5, 8, 13):
            store.add_problem(make_problem(vote_count=votes))
        first, _, _ = await TrendingScorer(store, now=NOW, ttl=TTL).calculate()
        second, _, _ = await TrendingScorer(store, now=NOW, ttl=TTL).calculate()
        assert first == second

    async def test_failed_vote_query_degrades_velocity(self, store, scorer):
        problem = store.add_problem(make_problem(vote_count=20))
        seed_votes(store, problem, recent=10, older=0)
        store.fail("votes_for_problems")

        records, _, degraded = await scorer.calculate()

        assert degraded == {"votes": "query_failed"}
        assert len(records) == 1
        assert records[0].vote_velocity == 0.0

    async def test_single_item_failure_does_not_abort(self, store, scorer, monkeypatch):
        broken = store.add_problem(make_problem(title="Broken"))
        healthy = store.add_problem(make_problem(title="Healthy"))
        real_score = scorer.score_problem

        def flaky(problem, *args):
            if problem.id == broken.id:
                raise ValueError("bad row")
            return real_score(problem, *args)

        monkeypatch.setattr(scorer, "score_problem", flaky)
        records, _, _ = await scorer.calculate()

        assert [r.problem_id for r in records] == [healthy.id]

    async def test_cache_write_failure_is_not_fatal(self, store, scorer):
        store.add_problem(make_problem())
        store.fail("replace_trending")

        records, _, _ = await scorer.calculate()

        assert len(records) == 1
        assert store.trending == {}

    async def test_pool_query_failure_propagates(self, store, scorer):
        store.fail("list_eligible_problems")
        with pytest.raises(RuntimeError):
            await scorer.calculate()


# =============================================================================
# Cache
# =============================================================================

class TestGetTrending:

    async def test_second_call_is_cache_hit_with_identical_scores(self, store):
        for votes in (5, 9, 30):
            store.add_problem(make_problem(vote_count=votes))

        first = await TrendingScorer(store, now=NOW, ttl=TTL).get_trending(limit=10)
        later = NOW + timedelta(minutes=10)
        second = await TrendingScorer(store, now=later, ttl=TTL).get_trending(limit=10)

        assert first.cache_hit is False
        assert first.calculated == 3
        assert second.cache_hit is True
        assert [r.trending_score for _, r in first.items] == [r.trending_score for _, r in second.items]

    async def test_expired_cache_recomputes(self, store):
        store.add_problem(make_problem())
        await TrendingScorer(store, now=NOW, ttl=TTL).get_trending()

        result = await TrendingScorer(store, now=NOW + TTL, ttl=TTL).get_trending()
        assert result.cache_hit is False

    async def test_refresh_bypasses_cache(self, store, scorer):
        store.add_problem(make_problem())
        await scorer.get_trending()
        result = await scorer.get_trending(refresh=True)
        assert result.cache_hit is False

    async def test_recompute_drops_problems_that_left_the_pool(self, store, scorer):
        store.add_problem(make_problem(title="Kept", vote_count=20))
        closed = store.add_problem(make_problem(title="Closed", vote_count=30))
        await scorer.get_trending()

        store.problems[closed.id] = closed.model_copy(update={"status": "Completed"})
        fresh = await scorer.get_trending(refresh=True)
        cached = await scorer.get_trending()

        assert [p.title for p, _ in fresh.items] == ["Kept"]
        assert cached.cache_hit is True
        assert [p.title for p, _ in cached.items] == ["Kept"]
        assert closed.id not in store.trending

    async def test_empty_pool_clears_cache(self, store, scorer):
        problem = store.add_problem(make_problem())
        await scorer.get_trending()

        store.problems[problem.id] = problem.model_copy(update={"status": "Solved"})
        result = await scorer.get_trending(refresh=True)

        assert result.items == []
        assert store.trending == {}

    async def test_category_filter(self, store, scorer, category_id):
        inside = store.add_problem(make_problem(category_id=category_id))
        store.add_problem(make_problem())

        computed = await scorer.get_trending(category_id=category_id)
        cached = await scorer.get_trending(category_id=category_id)

        assert [p.id for p, _ in computed.items] == [inside.id]
        assert [p.id for p, _ in cached.items] == [inside.id]
        assert cached.cache_hit is True

    async def test_limit(self, store, scorer):
        for _ in range(5):
            store.add_problem(make_problem())
        result = await scorer.get_trending(limit=2)
        assert len(result.items) == 2


def test_trending_insights(category_id):
    problems = {}
    records = []
    for velocity, hours_ago in ((1.0, 5), (3.0, 1)):
        problem = make_problem(category_id=category_id)
        problems[problem.id] = problem
        records.append(
            TrendingRecord(
                problem_id=problem.id,
                trending_score=50,
                vote_velocity=velocity,
                calculated_at=NOW - timedelta(hours=hours_ago),
                expires_at=NOW,
            )
        )

    insights = trending_insights(records, problems)

    assert insights["average_velocity"] == pytest.approx(2.0)
    assert insights["top_categories"] == [str(category_id)]
    assert insights["oldest_calculation"] == (NOW - timedelta(hours=5)).isoformat()
    assert trending_insights([], {})["top_categories"] == []
