"""Problem similarity model — cached pairwise similarity per signal type."""

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from app.models.base import Base, UUIDMixin


class ProblemSimilarity(UUIDMixin, Base):
    __tablename__ = "problem_similarities"

    problem_a_id = Column(UUID(as_uuid=True), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    problem_b_id = Column(UUID(as_uuid=True), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    similarity_type = Column(String(30), nullable=False)  # content, category, voting_pattern, user_interaction
    similarity_score = Column(Float, nullable=False)
    calculated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("problem_a_id", "problem_b_id", "similarity_type", name="uq_similarity_pair_type"),
        Index("idx_similarity_a_calculated", "problem_a_id", "calculated_at"),
        Index("idx_similarity_b", "problem_b_id"),
    )
