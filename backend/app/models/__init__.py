"""ORM models. Importing this package registers every table on Base.metadata."""

from app.models.base import Base
from app.models.user import User
from app.models.category import Category
from app.models.problem import Problem, OPEN_STATUS
from app.models.vote import Vote
from app.models.user_interaction import UserProblemInteraction
from app.models.trending_cache import TrendingCache
from app.models.problem_similarity import ProblemSimilarity
from app.models.user_recommendation_preferences import UserRecommendationPreferences

__all__ = [
    "Base",
    "User",
    "Category",
    "Problem",
    "OPEN_STATUS",
    "Vote",
    "UserProblemInteraction",
    "TrendingCache",
    "ProblemSimilarity",
    "UserRecommendationPreferences",
]
