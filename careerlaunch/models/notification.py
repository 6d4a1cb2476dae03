from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from ..database import Base


class Notification(Base):
    """
    Outbox row for an email notification.
    Lifecycle: pending -> sending -> sent | failed (skipped when delivery is disabled).
    A row left in sending past NOTIFICATION_CLAIM_TIMEOUT_S goes back to pending.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    kind = Column(String(50), nullable=False)
    payload = Column(Text, nullable=False)  # JSON, self-contained for the worker
    status = Column(String(20), nullable=False, default="pending", index=True)
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    claimed_at = Column(DateTime(timezone=True), nullable=True)  # set on pending -> sending
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    sent_at = Column(DateTime(timezone=True), nullable=True)
