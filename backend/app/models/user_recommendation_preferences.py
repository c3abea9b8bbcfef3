"""User recommendation preferences — per-user weights for personal ranking."""

from sqlalchemy import Column, Float, Integer, String, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB, ARRAY
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin


class UserRecommendationPreferences(TimestampMixin, Base):
    __tablename__ = "user_recommendation_preferences"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    # JSONB dicts mapping key -> float [0.0, 1.0]
    category_weights = Column(JSONB, server_default="{}", nullable=False, default=dict)
    interaction_weights = Column(JSONB, server_default="{}", nullable=False, default=dict)

    diversity_preference = Column(Float, nullable=False, default=0.3)
    trending_preference = Column(Float, nullable=False, default=0.5)
    exclude_categories = Column(ARRAY(String), server_default="{}", nullable=False, default=list)
    min_vote_threshold = Column(Integer, nullable=False, default=0)

    # Relationships
    user = relationship("User", back_populates="recommendation_preferences")
