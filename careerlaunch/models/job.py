from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    recruiter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=True)
    required_skills = Column(Text, nullable=True)  # JSON string list
    experience_level = Column(String(20), nullable=False, default="entry")
    job_type = Column(String(20), nullable=False, default="full_time")
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    salary_currency = Column(String(5), nullable=True)
    salary_period = Column(String(20), nullable=True)  # hourly / monthly / annually
    location = Column(String(150), nullable=True)
    is_remote = Column(Boolean, nullable=False, default=False)
    is_hybrid = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="active", index=True)
    deadline = Column(DateTime(timezone=True), nullable=True)  # Application deadline
    positions = Column(Integer, nullable=False, default=1)
    # Only ever bumped with an in-database increment (see application_workflow.submit).
    application_count = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    published_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    company = relationship("Company", back_populates="jobs")
    recruiter = relationship("User")
    # No cascade: applications outlive their job row and block deletion.
    applications = relationship("Application", back_populates="job")
