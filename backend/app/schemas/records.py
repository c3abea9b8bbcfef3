"""Typed row records returned by the recommendation store.

Every query result crosses the data-access boundary as one of these models,
validated with ``model_validate(row, from_attributes=True)``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

InteractionType = Literal["vote", "favorite", "view", "share", "comment"]
SimilarityType = Literal["content", "category", "voting_pattern", "user_interaction"]

DEFAULT_INTERACTION_WEIGHTS: dict[str, float] = {
    "vote": 1.0,
    "favorite": 0.8,
    "view": 0.3,
    "share": 1.2,
    "comment": 0.9,
}


def category_key(value: str | UUID) -> str:
    """Canonical (lowercase, hyphenated) form of a category id. Raises ValueError otherwise."""
    return str(UUID(str(value).strip()))


def _lenient_category_key(value: str) -> str:
    try:
        return category_key(value)
    except ValueError:
        return value.strip().lower()


class ProblemRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str = ""
    category_id: UUID
    vote_count: int = 0
    created_at: datetime
    updated_at: datetime
    proposer_id: UUID | None = None
    status: str

    @property
    def text(self) -> str:
        return f"{self.title} {self.description or ''}"


class VoteRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    problem_id: UUID
    created_at: datetime


class InteractionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    problem_id: UUID
    interaction_type: InteractionType
    interaction_weight: float = 1.0
    interaction_count: int = 1
    last_interaction: datetime


class TrendingRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    problem_id: UUID
    trending_score: float = 0.0
    vote_velocity: float = 0.0
    engagement_score: float = 0.0
    time_decay_factor: float = 0.0
    category_boost: float = 1.0
    calculated_at: datetime
    expires_at: datetime


class SimilarityRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    problem_a_id: UUID
    problem_b_id: UUID
    similarity_score: float = Field(ge=0.0, le=1.0)
    similarity_type: SimilarityType
    calculated_at: datetime


class UserPreferences(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    category_weights: dict[str, float] = Field(default_factory=dict)
    interaction_weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_INTERACTION_WEIGHTS))
    diversity_preference: float = Field(default=0.3, ge=0.0, le=1.0)
    trending_preference: float = Field(default=0.5, ge=0.0, le=1.0)
    exclude_categories: list[str] = Field(default_factory=list)
    min_vote_threshold: int = Field(default=0, ge=0)

    # Rows saved before ids were canonicalized may still carry uppercase keys
    @field_validator("category_weights")
    @classmethod
    def normalize_weight_keys(cls, value: dict[str, float]) -> dict[str, float]:
        return {_lenient_category_key(key): weight for key, weight in value.items()}

    @field_validator("exclude_categories")
    @classmethod
    def normalize_excluded(cls, value: list[str]) -> list[str]:
        return [_lenient_category_key(key) for key in value]
