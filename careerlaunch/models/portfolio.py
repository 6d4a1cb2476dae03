from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Portfolio(Base):
    __tablename__ = "portfolios"
    __table_args__ = (
        UniqueConstraint("student_id", "platform", name="uq_portfolios_student_platform"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.user_id"), nullable=False, index=True)
    platform = Column(String(30), nullable=False)
    profile_url = Column(String(500), nullable=False)
    username = Column(String(120), nullable=True)
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    last_synced = Column(DateTime(timezone=True), nullable=True)
    profile_json = Column(Text, nullable=True)  # provider profile payload
    statistics_json = Column(Text, nullable=True)
    sync_status_json = Column(Text, nullable=True)  # {status, last_error, timestamp, last_successful_sync}
    auto_sync = Column(Boolean, nullable=False, default=True)
    is_public = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    student = relationship("Student", back_populates="portfolios")
    projects = relationship("Project", back_populates="portfolio", cascade="all, delete-orphan")
