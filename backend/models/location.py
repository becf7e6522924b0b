# backend/models/location.py
from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Model Location
# A physical place whose accessibility is rated by users.
# Locations are never removed; deleting one only clears is_active.
class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    address = Column(String(500), nullable=False)

    # Coordinates in decimal degrees
    latitude = Column(Float, CheckConstraint("latitude >= -90 AND latitude <= 90"), nullable=False)
    longitude = Column(Float, CheckConstraint("longitude >= -180 AND longitude <= 180"), nullable=False)

    category = Column(String(100), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    creator = relationship("User")
    reviews = relationship("Review", back_populates="location", cascade="all, delete-orphan", passive_deletes=True)
