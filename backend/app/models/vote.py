"""Vote model — append-only user votes on problems."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.models.base import Base, UUIDMixin


class Vote(UUIDMixin, Base):
    __tablename__ = "votes"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    problem_id = Column(UUID(as_uuid=True), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="votes")
    problem = relationship("Problem", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("user_id", "problem_id", name="uq_votes_user_problem"),
        Index("idx_votes_problem_created", "problem_id", "created_at"),
        Index("idx_votes_user_created", "user_id", "created_at"),
    )
