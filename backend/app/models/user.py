"""User model for sessions issued by the external auth provider."""

from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    votes = relationship("Vote", back_populates="user", cascade="all, delete-orphan")
    interactions = relationship("UserProblemInteraction", back_populates="user", cascade="all, delete-orphan")
    recommendation_preferences = relationship(
        "UserRecommendationPreferences", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
