"""Trending cache model — derived trending scores with a fixed TTL."""

from sqlalchemy import Column, Float, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import Base


class TrendingCache(Base):
    __tablename__ = "trending_cache"

    problem_id = Column(UUID(as_uuid=True), ForeignKey("problems.id", ondelete="CASCADE"), primary_key=True)
    trending_score = Column(Float, nullable=False, default=0)
    vote_velocity = Column(Float, nullable=False, default=0)
    engagement_score = Column(Float, nullable=False, default=0)
    time_decay_factor = Column(Float, nullable=False, default=0)
    category_boost = Column(Float, nullable=False, default=1)
    calculated_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_trending_expires_score", "expires_at", "trending_score"),
    )
