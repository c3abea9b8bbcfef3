"""Pydantic schemas for the recommendation and related-problem endpoints."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.records import InteractionType, category_key


class ProblemSummary(BaseModel):
    """Problem fields shared by every ranked list."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    category_id: UUID
    vote_count: int
    created_at: datetime
    status: str


class TrendingProblem(ProblemSummary):
    trending_score: float
    vote_velocity: float
    engagement_score: float
    time_decay_factor: float
    category_boost: float


class RelatedProblem(ProblemSummary):
    similarity_score: float
    similarity_type: str
    signals: dict[str, float]


class RecommendationReasoning(BaseModel):
    collaborative_score: float
    content_score: float
    trending_score: float
    category_match: float
    interaction_history: float


class PersonalizedProblem(ProblemSummary):
    score: float
    reasoning: RecommendationReasoning
    explanation: str


class ApiResponse(BaseModel):
    """Success envelope shared by all endpoints."""

    success: bool = True
    data: Any
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrendingRecalculateRequest(BaseModel):
    force_recalculate: bool = False


def _category_id(value: str) -> str:
    try:
        return category_key(value)
    except ValueError:
        raise ValueError(f"invalid category id: {value}") from None


class PreferencesUpdate(BaseModel):
    """Partial preference update; at least one field must be supplied."""

    model_config = ConfigDict(extra="forbid")

    category_weights: dict[str, float] | None = None
    interaction_weights: dict[str, float] | None = None
    diversity_preference: float | None = Field(None, ge=0.0, le=1.0)
    trending_preference: float | None = Field(None, ge=0.0, le=1.0)
    exclude_categories: list[str] | None = None
    min_vote_threshold: int | None = Field(None, ge=0)

    @field_validator("category_weights")
    @classmethod
    def category_weight_keys(cls, value: dict[str, float] | None) -> dict[str, float] | None:
        if value is None:
            return value
        return {_category_id(key): weight for key, weight in value.items()}

    @field_validator("exclude_categories")
    @classmethod
    def excluded_category_ids(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        return [_category_id(key) for key in value]

    @field_validator("category_weights", "interaction_weights")
    @classmethod
    def weights_in_unit_range(cls, value: dict[str, float] | None) -> dict[str, float] | None:
        if value is None:
            return value
        invalid = [key for key, weight in value.items() if not 0.0 <= weight <= 1.0]
        if invalid:
            raise ValueError(f"weights must be between 0 and 1 (invalid: {', '.join(sorted(invalid))})")
        return value

    @field_validator("min_vote_threshold", mode="before")
    @classmethod
    def floor_threshold(cls, value: Any) -> Any:
        if isinstance(value, float) and math.isfinite(value):
            return math.floor(value)
        return value


class InteractionCreate(BaseModel):
    interaction_type: InteractionType
    weight: float | None = Field(None, gt=0.0, le=10.0)
