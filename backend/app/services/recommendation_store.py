"""Data-access boundary for the scorers.

``RecommendationStore`` lists every read and write the trending, similarity
and personal scorers perform. ``SqlRecommendationStore`` implements it over
PostgreSQL; each call opens its own short session so independent reads can be
awaited concurrently with ``asyncio.gather``.
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Collection, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import String, cast, delete, func, or_, select, and_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.problem import Problem, OPEN_STATUS
from app.models.problem_similarity import ProblemSimilarity
from app.models.trending_cache import TrendingCache
from app.models.user_interaction import UserProblemInteraction
from app.models.user_recommendation_preferences import UserRecommendationPreferences
from app.models.vote import Vote
from app.schemas.records import (
    InteractionRecord,
    ProblemRecord,
    SimilarityRecord,
    TrendingRecord,
    UserPreferences,
    VoteRecord,
)


class RecommendationStore(ABC):
    """Queries the scorers need. Implementations return validated records."""

    # --- Problems ---

    @abstractmethod
    async def get_problem(self, problem_id: UUID) -> ProblemRecord | None: ...

    @abstractmethod
    async def get_problems(self, problem_ids: Collection[UUID]) -> list[ProblemRecord]: ...

    @abstractmethod
    async def list_eligible_problems(
        self,
        updated_since: datetime,
        min_votes: int,
        limit: int,
        exclude_id: UUID | None = None,
    ) -> list[ProblemRecord]:
        """Open problems with enough votes updated recently, newest-updated first."""

    @abstractmethod
    async def problems_in_category(self, category_id: UUID, exclude_id: UUID, limit: int) -> list[ProblemRecord]:
        """Problems of one category, most voted first."""

    @abstractmethod
    async def category_vote_averages(
        self, category_ids: Collection[UUID], created_since: datetime
    ) -> dict[UUID, float]:
        """Average vote_count of problems created since ``created_since``, per category."""

    @abstractmethod
    async def recommendation_candidates(
        self,
        user_id: UUID,
        exclude_categories: Collection[str],
        min_votes: int,
        limit: int,
    ) -> list[ProblemRecord]:
        """Open problems the user neither proposed nor voted, newest first."""

    # --- Votes ---

    @abstractmethod
    async def votes_for_problems(
        self, problem_ids: Collection[UUID], since: datetime | None = None
    ) -> list[VoteRecord]: ...

    @abstractmethod
    async def votes_by_users(
        self,
        user_ids: Collection[UUID],
        problem_ids: Collection[UUID] | None = None,
        exclude_problem_id: UUID | None = None,
    ) -> list[VoteRecord]: ...

    @abstractmethod
    async def recent_votes_by_user(self, user_id: UUID, limit: int) -> list[VoteRecord]: ...

    @abstractmethod
    async def similar_users(self, user_id: UUID, limit: int) -> list[UUID]:
        """Users ranked by how many problems they co-voted with ``user_id``."""

    # --- Interactions ---

    @abstractmethod
    async def interactions_for_problems(
        self, problem_ids: Collection[UUID], since: datetime | None = None
    ) -> list[InteractionRecord]: ...

    @abstractmethod
    async def interactions_by_users(
        self, user_ids: Collection[UUID], exclude_problem_id: UUID | None = None
    ) -> list[InteractionRecord]: ...

    @abstractmethod
    async def user_interactions(
        self,
        user_id: UUID,
        problem_ids: Collection[UUID] | None = None,
        since: datetime | None = None,
    ) -> list[InteractionRecord]: ...

    @abstractmethod
    async def record_interaction(
        self,
        user_id: UUID,
        problem_id: UUID,
        interaction_type: str,
        weight: float,
        at: datetime,
    ) -> InteractionRecord:
        """Upsert on (user, problem, type), bumping count and accumulated weight."""

    # --- Trending cache ---

    @abstractmethod
    async def fresh_trending(
        self, now: datetime, limit: int, category_id: UUID | None = None
    ) -> list[TrendingRecord]:
        """Unexpired trending rows, highest score first."""

    @abstractmethod
    async def fresh_trending_for(self, problem_ids: Collection[UUID], now: datetime) -> list[TrendingRecord]: ...

    @abstractmethod
    async def replace_trending(self, records: Sequence[TrendingRecord]) -> None:
        """Make ``records`` the whole cache: upsert them and drop every other row."""

    # --- Similarity cache ---

    @abstractmethod
    async def recent_similarities(self, problem_id: UUID, since: datetime) -> list[SimilarityRecord]: ...

    @abstractmethod
    async def similarities_between(
        self, source_ids: Collection[UUID], target_ids: Collection[UUID]
    ) -> list[SimilarityRecord]:
        """Cached similarity rows linking any source to any target, either direction."""

    @abstractmethod
    async def replace_similarities(self, problem_id: UUID, records: Sequence[SimilarityRecord]) -> None:
        """Swap every cached row for ``problem_id`` (as item a) for ``records``."""

    # --- Preferences ---

    @abstractmethod
    async def get_preferences(self, user_id: UUID) -> UserPreferences:
        """Load preferences, creating the default row on first access."""

    @abstractmethod
    async def save_preferences(self, preferences: UserPreferences) -> UserPreferences: ...


class SqlRecommendationStore(RecommendationStore):
    """PostgreSQL implementation over an async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _problems(self, query) -> list[ProblemRecord]:
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [ProblemRecord.model_validate(p) for p in result.scalars().all()]

    async def _votes(self, query) -> list[VoteRecord]:
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [VoteRecord.model_validate(v) for v in result.scalars().all()]

    async def _interactions(self, query) -> list[InteractionRecord]:
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [InteractionRecord.model_validate(i) for i in result.scalars().all()]

    # --- Problems ---

    async def get_problem(self, problem_id):
        problems = await self._problems(select(Problem).where(Problem.id == problem_id))
        return problems[0] if problems else None

    async def get_problems(self, problem_ids):
        if not problem_ids:
            return []
        return await self._problems(select(Problem).where(Problem.id.in_(list(problem_ids))))

    async def list_eligible_problems(self, updated_since, min_votes, limit, exclude_id=None):
        query = select(Problem).where(
            Problem.status == OPEN_STATUS,
            Problem.vote_count >= min_votes,
            Problem.updated_at >= updated_since,
        )
        if exclude_id is not None:
            query = query.where(Problem.id != exclude_id)
        query = query.order_by(Problem.updated_at.desc()).limit(limit)
        return await self._problems(query)

    async def problems_in_category(self, category_id, exclude_id, limit):
        query = (
            select(Problem)
            .where(Problem.category_id == category_id, Problem.id != exclude_id)
            .order_by(Problem.vote_count.desc(), Problem.id)
            .limit(limit)
        )
        return await self._problems(query)

    async def category_vote_averages(self, category_ids, created_since):
        if not category_ids:
            return {}
        query = (
            select(Problem.category_id, func.avg(Problem.vote_count).label("avg_votes"))
            .where(Problem.category_id.in_(list(category_ids)), Problem.created_at >= created_since)
            .group_by(Problem.category_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return {row.category_id: float(row.avg_votes or 0) for row in result}

    async def recommendation_candidates(self, user_id, exclude_categories, min_votes, limit):
        voted = select(Vote.problem_id).where(Vote.user_id == user_id)
        query = select(Problem).where(
            Problem.status == OPEN_STATUS,
            Problem.vote_count >= min_votes,
            Problem.id.not_in(voted),
            or_(Problem.proposer_id.is_(None), Problem.proposer_id != user_id),
        )
        if exclude_categories:
            query = query.where(cast(Problem.category_id, String).not_in(list(exclude_categories)))
        query = query.order_by(Problem.created_at.desc()).limit(limit)
        return await self._problems(query)

    # --- Votes ---

    async def votes_for_problems(self, problem_ids, since=None):
        if not problem_ids:
            return []
        query = select(Vote).where(Vote.problem_id.in_(list(problem_ids)))
        if since is not None:
            query = query.where(Vote.created_at >= since)
        return await self._votes(query)

    async def votes_by_users(self, user_ids, problem_ids=None, exclude_problem_id=None):
        if not user_ids:
            return []
        query = select(Vote).where(Vote.user_id.in_(list(user_ids)))
        if problem_ids is not None:
            query = query.where(Vote.problem_id.in_(list(problem_ids)))
        if exclude_problem_id is not None:
            query = query.where(Vote.problem_id != exclude_problem_id)
        return await self._votes(query)

    async def recent_votes_by_user(self, user_id, limit):
        query = (
            select(Vote)
            .where(Vote.user_id == user_id)
            .order_by(Vote.created_at.desc())
            .limit(limit)
        )
        return await self._votes(query)

    async def similar_users(self, user_id, limit):
        my_problems = select(Vote.problem_id).where(Vote.user_id == user_id)
        shared = func.count(Vote.id)
        query = (
            select(Vote.user_id)
            .where(Vote.problem_id.in_(my_problems), Vote.user_id != user_id)
            .group_by(Vote.user_id)
            .order_by(shared.desc(), Vote.user_id)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # --- Interactions ---

    async def interactions_for_problems(self, problem_ids, since=None):
        if not problem_ids:
            return []
        query = select(UserProblemInteraction).where(UserProblemInteraction.problem_id.in_(list(problem_ids)))
        if since is not None:
            query = query.where(UserProblemInteraction.last_interaction >= since)
        return await self._interactions(query)

    async def interactions_by_users(self, user_ids, exclude_problem_id=None):
        if not user_ids:
            return []
        query = select(UserProblemInteraction).where(UserProblemInteraction.user_id.in_(list(user_ids)))
        if exclude_problem_id is not None:
            query = query.where(UserProblemInteraction.problem_id != exclude_problem_id)
        return await self._interactions(query)

    async def user_interactions(self, user_id, problem_ids=None, since=None):
        query = select(UserProblemInteraction).where(UserProblemInteraction.user_id == user_id)
        if problem_ids is not None:
            if not problem_ids:
                return []
            query = query.where(UserProblemInteraction.problem_id.in_(list(problem_ids)))
        if since is not None:
            query = query.where(UserProblemInteraction.last_interaction >= since)
        return await self._interactions(query)

    async def record_interaction(self, user_id, problem_id, interaction_type, weight, at):
        table = UserProblemInteraction.__table__
        stmt = pg_insert(table).values(
            id=uuid.uuid4(),
            user_id=user_id,
            problem_id=problem_id,
            interaction_type=interaction_type,
            interaction_weight=weight,
            interaction_count=1,
            last_interaction=at,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_interactions_user_problem_type",
            set_={
                "interaction_count": table.c.interaction_count + 1,
                "interaction_weight": table.c.interaction_weight + stmt.excluded.interaction_weight,
                "last_interaction": stmt.excluded.last_interaction,
            },
        ).returning(table)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.mappings().one()
            await session.commit()
        return InteractionRecord.model_validate(dict(row))

    # --- Trending cache ---

    async def fresh_trending(self, now, limit, category_id=None):
        query = select(TrendingCache).where(TrendingCache.expires_at > now)
        if category_id is not None:
            query = query.join(Problem, Problem.id == TrendingCache.problem_id).where(
                Problem.category_id == category_id
            )
        query = query.order_by(TrendingCache.trending_score.desc(), TrendingCache.problem_id).limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [TrendingRecord.model_validate(t) for t in result.scalars().all()]

    async def fresh_trending_for(self, problem_ids, now):
        if not problem_ids:
            return []
        query = select(TrendingCache).where(
            TrendingCache.problem_id.in_(list(problem_ids)),
            TrendingCache.expires_at > now,
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [TrendingRecord.model_validate(t) for t in result.scalars().all()]

    async def replace_trending(self, records):
        table = TrendingCache.__table__
        stale = delete(table)
        if records:
            stale = stale.where(table.c.problem_id.not_in([r.problem_id for r in records]))
        async with self._session_factory() as session:
            await session.execute(stale)
            if records:
                stmt = pg_insert(table).values([r.model_dump() for r in records])
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.problem_id],
                    set_={
                        name: stmt.excluded[name]
                        for name in (
                            "trending_score",
                            "vote_velocity",
                            "engagement_score",
                            "time_decay_factor",
                            "category_boost",
                            "calculated_at",
                            "expires_at",
                        )
                    },
                )
                await session.execute(stmt)
            await session.commit()

    # --- Similarity cache ---

    async def recent_similarities(self, problem_id, since):
        query = select(ProblemSimilarity).where(
            ProblemSimilarity.problem_a_id == problem_id,
            ProblemSimilarity.calculated_at >= since,
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [SimilarityRecord.model_validate(s) for s in result.scalars().all()]

    async def similarities_between(self, source_ids, target_ids):
        if not source_ids or not target_ids:
            return []
        sources, targets = list(source_ids), list(target_ids)
        query = select(ProblemSimilarity).where(
            or_(
                and_(ProblemSimilarity.problem_a_id.in_(sources), ProblemSimilarity.problem_b_id.in_(targets)),
                and_(ProblemSimilarity.problem_a_id.in_(targets), ProblemSimilarity.problem_b_id.in_(sources)),
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [SimilarityRecord.model_validate(s) for s in result.scalars().all()]

    async def replace_similarities(self, problem_id, records):
        table = ProblemSimilarity.__table__
        async with self._session_factory() as session:
            await session.execute(delete(table).where(table.c.problem_a_id == problem_id))
            if records:
                stmt = pg_insert(table).values([{"id": uuid.uuid4(), **r.model_dump()} for r in records])
                # A concurrent writer may have refilled the target between the delete and here
                stmt = stmt.on_conflict_do_update(
                    constraint="uq_similarity_pair_type",
                    set_={
                        "similarity_score": stmt.excluded.similarity_score,
                        "calculated_at": stmt.excluded.calculated_at,
                    },
                )
                await session.execute(stmt)
            await session.commit()

    # --- Preferences ---

    async def get_preferences(self, user_id):
        defaults = UserPreferences(user_id=user_id)
        stmt = pg_insert(UserRecommendationPreferences.__table__).values(
            **defaults.model_dump()
        ).on_conflict_do_nothing(index_elements=["user_id"])
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
            result = await session.execute(
                select(UserRecommendationPreferences).where(UserRecommendationPreferences.user_id == user_id)
            )
            return UserPreferences.model_validate(result.scalar_one())

    async def save_preferences(self, preferences):
        values = preferences.model_dump()
        table = UserRecommendationPreferences.__table__
        stmt = pg_insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.user_id],
            set_={
                **{name: stmt.excluded[name] for name in values if name != "user_id"},
                "updated_at": func.now(),
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        return preferences
