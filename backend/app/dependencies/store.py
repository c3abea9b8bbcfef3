"""Recommendation store dependency, one store per request."""

from app.models.base import AsyncSessionLocal
from app.services.recommendation_store import RecommendationStore, SqlRecommendationStore


def get_store() -> RecommendationStore:
    return SqlRecommendationStore(AsyncSessionLocal)
