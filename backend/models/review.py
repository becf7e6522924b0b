# backend/models/review.py
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from database import Base
import enum


# Fixed set of accessibility dimensions a review can rate
class CriterionName(str, enum.Enum):
    ACCESS = "Access"
    RESTROOM = "Restroom"
    PARKING = "Parking"
    ELEVATOR = "Elevator"
    SIGNAGE = "Signage"


# One user's assessment of one location
class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    description = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    location = relationship("Location", back_populates="reviews")
    user = relationship("User", back_populates="reviews")

    criteria = relationship(
        "ReviewCriterion", back_populates="review",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="ReviewCriterion.criterion_name",
    )
    photos = relationship(
        "ReviewPhoto", back_populates="review",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="ReviewPhoto.id",
    )

    __table_args__ = (
        # A user holds at most one review per location
        UniqueConstraint("location_id", "user_id", name="uq_review_location_user"),
    )


# A single (criterion, rating) pair inside a review
class ReviewCriterion(Base):
    __tablename__ = "review_criteria"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("reviews.id", ondelete="CASCADE"), index=True, nullable=False)
    criterion_name = Column(String(50), nullable=False)
    rating = Column(Integer, CheckConstraint("rating >= 1 AND rating <= 5"), nullable=False)

    review = relationship("Review", back_populates="criteria")

    __table_args__ = (
        UniqueConstraint("review_id", "criterion_name", name="uq_review_criterion_name"),
    )


# Reference to a stored photo file; photo_path is relative to the upload root
class ReviewPhoto(Base):
    __tablename__ = "review_photos"

    id = Column(Integer, primary_key=True, index=True)
    review_id = Column(Integer, ForeignKey("reviews.id", ondelete="CASCADE"), index=True, nullable=False)
    photo_path = Column(String(500), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    review = relationship("Review", back_populates="photos")
