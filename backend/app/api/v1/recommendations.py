"""Recommendation API endpoints for trending, personal and pattern views."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from app.dependencies.auth import require_user_api
from app.dependencies.store import get_store
from app.models.user import User
from app.schemas.recommendation import (
    ApiResponse,
    PersonalizedProblem,
    ProblemSummary,
    RecommendationReasoning,
    TrendingProblem,
    TrendingRecalculateRequest,
)
from app.services.exceptions import PreferencesValidationError
from app.services.interaction_service import category_weights_from_patterns, interaction_patterns
from app.services.preference_service import parse_preferences_update, update_preferences
from app.services.recommendation_service import PersonalRecommender
from app.services.recommendation_store import RecommendationStore
from app.services.trending_service import TrendingScorer, trending_insights

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

ALGORITHM_VERSION = "2.0"


def _summary(problem) -> dict:
    return ProblemSummary.model_validate(problem).model_dump()


# --- Trending ---

@router.get("/trending", response_model=ApiResponse)
async def get_trending(
    store: RecommendationStore = Depends(get_store),
    limit: int = Query(20, ge=1, le=100),
    category_id: UUID | None = Query(None, description="Filter by category"),
    refresh: bool = Query(False, description="Ignore the cache and recompute"),
):
    """Trending problems, served from the cache while it is fresh."""
    result = await TrendingScorer(store).get_trending(limit=limit, category_id=category_id, refresh=refresh)

    data = [
        TrendingProblem(
            **_summary(problem),
            trending_score=record.trending_score,
            vote_velocity=record.vote_velocity,
            engagement_score=record.engagement_score,
            time_decay_factor=record.time_decay_factor,
            category_boost=record.category_boost,
        )
        for problem, record in result.items
    ]
    records = [record for _, record in result.items]
    problems = {problem.id: problem for problem, _ in result.items}

    return ApiResponse(
        data=data,
        metadata={
            "total": len(data),
            "cache_hit": result.cache_hit,
            "calculated_at": datetime.now(timezone.utc).isoformat(),
            "category_filter": str(category_id) if category_id else None,
            "algorithm_version": ALGORITHM_VERSION,
            "degraded_signals": result.degraded,
            **trending_insights(records, problems),
        },
    )


@router.post("/trending", response_model=ApiResponse)
async def recalculate_trending(
    body: TrendingRecalculateRequest | None = None,
    store: RecommendationStore = Depends(get_store),
):
    """Recompute the trending cache. Without force, only when the cache is empty."""
    body = body or TrendingRecalculateRequest()
    scorer = TrendingScorer(store)
    if not body.force_recalculate and await store.fresh_trending(scorer.now, 1):
        return ApiResponse(data={"recalculated": False, "count": 0}, metadata={"reason": "cache is fresh"})

    records, _, degraded = await scorer.calculate()
    return ApiResponse(
        data={"recalculated": True, "count": len(records)},
        metadata={
            "calculated_at": scorer.now.isoformat(),
            "expires_at": (scorer.now + scorer.ttl).isoformat(),
            "degraded_signals": degraded,
        },
    )


# --- Personal ---

@router.get("/personal", response_model=ApiResponse)
async def get_personal_recommendations(
    user: User = Depends(require_user_api),
    store: RecommendationStore = Depends(get_store),
    limit: int = Query(10, ge=1, le=50),
):
    """Personalized problems for the logged-in user."""
    result = await PersonalRecommender(store).recommend(user.id, limit=limit)

    data = [
        PersonalizedProblem(
            **_summary(item.problem),
            score=item.score,
            reasoning=RecommendationReasoning(**item.reasoning),
            explanation=item.explanation,
        )
        for item in result.items
    ]
    return ApiResponse(
        data=data,
        metadata={
            "total": len(data),
            "candidates_considered": result.candidates_considered,
            "diversity_preference": result.preferences.diversity_preference,
            "trending_preference": result.preferences.trending_preference,
            "calculated_at": datetime.now(timezone.utc).isoformat(),
            "algorithm_version": ALGORITHM_VERSION,
            "user_id": str(user.id),
            "degraded_signals": result.degraded,
        },
    )


@router.post("/personal", response_model=ApiResponse)
async def update_personal_preferences(
    payload: Any = Body(None),
    user: User = Depends(require_user_api),
    store: RecommendationStore = Depends(get_store),
):
    """Upsert the logged-in user's recommendation preferences."""
    try:
        update = parse_preferences_update(payload)
    except PreferencesValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    preferences = await update_preferences(store, user.id, update)
    return ApiResponse(
        data=preferences.model_dump(mode="json"),
        metadata={"updated_fields": sorted(update.model_dump(exclude_none=True))},
    )


@router.get("/patterns", response_model=ApiResponse)
async def get_interaction_patterns(
    user: User = Depends(require_user_api),
    store: RecommendationStore = Depends(get_store),
):
    """Last 30 days of the user's interactions plus suggested category weights."""
    patterns = await interaction_patterns(store, user.id)
    return ApiResponse(
        data={
            "categories": patterns.categories,
            "interactions": patterns.interactions,
            "time_patterns": patterns.time_patterns,
            "suggested_category_weights": category_weights_from_patterns(patterns.categories),
        },
        metadata={"window_days": 30, "user_id": str(user.id)},
    )
