"""Problem model — community-proposed problems that get voted and ranked."""

from sqlalchemy import Column, String, Text, Integer, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

OPEN_STATUS = "Proposed"


class Problem(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "problems"

    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    category_id = Column(UUID(as_uuid=True), ForeignKey("categories.id"), nullable=False, index=True)
    proposer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    status = Column(String(30), nullable=False, default=OPEN_STATUS)  # Proposed, In Development, Completed
    vote_count = Column(Integer, nullable=False, default=0)

    # Relationships
    category = relationship("Category", back_populates="problems")
    votes = relationship("Vote", back_populates="problem", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_problem_status_updated", "status", "updated_at"),
        Index("idx_problem_category_created", "category_id", "created_at"),
        Index("idx_problem_vote_count", "vote_count"),
    )
