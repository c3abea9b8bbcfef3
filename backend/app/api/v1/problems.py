"""Related problems and interaction tracking endpoints."""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies.auth import require_user_api
from app.dependencies.store import get_store
from app.models.user import User
from app.schemas.recommendation import ApiResponse, InteractionCreate, ProblemSummary, RelatedProblem
from app.services.exceptions import ProblemNotFoundError
from app.services.interaction_service import track_interaction
from app.services.recommendation_store import RecommendationStore
from app.services.similarity_service import Algorithm, SimilarityEngine

router = APIRouter(prefix="/problems", tags=["problems"])


@router.get("/{problem_id}/related", response_model=ApiResponse)
async def get_related_problems(
    problem_id: UUID,
    store: RecommendationStore = Depends(get_store),
    limit: int = Query(10, ge=1, le=50),
    refresh: bool = Query(False, description="Ignore cached similarities and recompute"),
    algorithm: Algorithm = Query("hybrid", description="hybrid or a single similarity signal"),
):
    """Problems related to the given one, ranked by similarity."""
    try:
        result = await SimilarityEngine(store).related(problem_id, limit=limit, refresh=refresh, algorithm=algorithm)
    except ProblemNotFoundError:
        raise HTTPException(status_code=404, detail="Problem not found")

    data = [
        RelatedProblem(
            **ProblemSummary.model_validate(problem).model_dump(),
            similarity_score=score.score,
            similarity_type=score.similarity_type,
            signals=score.signals,
        )
        for problem, score in result.items
    ]
    return ApiResponse(
        data=data,
        metadata={
            "problem_id": str(problem_id),
            "total": len(data),
            "algorithm": result.algorithm,
            "cache_hit": result.cache_hit,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "degraded_signals": result.degraded,
        },
    )


@router.post("/{problem_id}/interactions", response_model=ApiResponse, status_code=201)
async def create_interaction(
    problem_id: UUID,
    body: InteractionCreate,
    user: User = Depends(require_user_api),
    store: RecommendationStore = Depends(get_store),
):
    """Record a vote/favorite/view/share/comment interaction for the logged-in user."""
    try:
        record = await track_interaction(store, user.id, problem_id, body.interaction_type, body.weight)
    except ProblemNotFoundError:
        raise HTTPException(status_code=404, detail="Problem not found")

    return ApiResponse(
        data=record.model_dump(mode="json"),
        metadata={"interaction_count": record.interaction_count},
    )
