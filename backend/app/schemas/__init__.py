"""Pydantic schemas package."""

from app.schemas.records import (
    DEFAULT_INTERACTION_WEIGHTS,
    InteractionRecord,
    ProblemRecord,
    SimilarityRecord,
    TrendingRecord,
    UserPreferences,
    VoteRecord,
)
from app.schemas.recommendation import (
    ApiResponse,
    InteractionCreate,
    PersonalizedProblem,
    PreferencesUpdate,
    ProblemSummary,
    RecommendationReasoning,
    RelatedProblem,
    TrendingProblem,
    TrendingRecalculateRequest,
)

__all__ = [
    # Store records
    "DEFAULT_INTERACTION_WEIGHTS",
    "InteractionRecord",
    "ProblemRecord",
    "SimilarityRecord",
    "TrendingRecord",
    "UserPreferences",
    "VoteRecord",
    # API
    "ApiResponse",
    "InteractionCreate",
    "PersonalizedProblem",
    "PreferencesUpdate",
    "ProblemSummary",
    "RecommendationReasoning",
    "RelatedProblem",
    "TrendingProblem",
    "TrendingRecalculateRequest",
]
