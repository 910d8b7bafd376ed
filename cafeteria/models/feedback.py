"""
Feedback model - swipe votes on foods
"""
from enum import IntEnum

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cafeteria.database import Base


class Rating(IntEnum):
    DOWN = -1
    NO_TRY = 0
    UP = 1


class Feedback(Base):
    """Immutable vote record"""
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    food_id = Column(Integer, ForeignKey("foods.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=True)  # anonymous votes allowed
    rating = Column(Integer, nullable=False)  # see Rating
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    food = relationship("Food")
