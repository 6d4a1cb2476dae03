from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from ..database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, nullable=True, index=True)
    actor_role = Column(String(50), nullable=True)
    action = Column(String(80), nullable=False, index=True)  # e.g. job.close, application.status_update
    target_type = Column(String(40), nullable=False)
    target_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)  # JSON
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action}, target={self.target_type}:{self.target_id}, actor={self.actor_id})>"
