from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        # Upsert key for portfolio sync.
        UniqueConstraint("portfolio_id", "repository_url", name="uq_projects_portfolio_repo"),
    )

    id = Column(Integer, primary_key=True, index=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    technologies = Column(Text, nullable=True)  # JSON string list
    project_url = Column(String(500), nullable=True)
    repository_url = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    stars_count = Column(Integer, nullable=False, default=0)
    forks_count = Column(Integer, nullable=False, default=0)
    watchers_count = Column(Integer, nullable=False, default=0)
    size = Column(Integer, nullable=True)
    primary_language = Column(String(60), nullable=True)
    topics = Column(Text, nullable=True)  # JSON string list
    license = Column(String(120), nullable=True)
    is_fork = Column(Boolean, nullable=False, default=False)
    is_private = Column(Boolean, nullable=False, default=False)
    external_created_at = Column(DateTime(timezone=True), nullable=True)
    external_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    portfolio = relationship("Portfolio", back_populates="projects")
