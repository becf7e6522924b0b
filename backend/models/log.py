from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index, func
from sqlalchemy.orm import relationship
from database import Base

# Audit trail row: who did what to which record, and whether it worked.
# Rows survive the deletion of the acting user (user_id becomes NULL).
class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # e.g. REVIEW_CREATE on resource "reviews", resource_id = review id
    action = Column(String(50), nullable=False, index=True)
    resource = Column(String(50), nullable=False)
    resource_id = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="SUCCESS", index=True)
    ip = Column(String(64), nullable=True)
    meta = Column(JSON, nullable=True)

    user = relationship("User", lazy="joined", uselist=False)

    __table_args__ = (
        Index("ix_logs_resource_target", "resource", "resource_id"),
    )
