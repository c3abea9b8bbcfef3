"""User interaction model — aggregated user-problem engagement events."""

from sqlalchemy import Column, String, Float, Integer, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.models.base import Base, UUIDMixin


class UserProblemInteraction(UUIDMixin, Base):
    __tablename__ = "user_problem_interactions"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    problem_id = Column(UUID(as_uuid=True), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    interaction_type = Column(String(20), nullable=False)  # vote, favorite, view, share, comment
    interaction_weight = Column(Float, nullable=False, default=1.0)
    interaction_count = Column(Integer, nullable=False, default=1)
    last_interaction = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="interactions")
    problem = relationship("Problem")

    __table_args__ = (
        UniqueConstraint("user_id", "problem_id", "interaction_type", name="uq_interactions_user_problem_type"),
        Index("idx_interactions_problem_last", "problem_id", "last_interaction"),
        Index("idx_interactions_user", "user_id"),
    )
