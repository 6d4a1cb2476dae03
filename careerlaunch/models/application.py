from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("student_id", "job_id", name="uq_applications_student_job"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.user_id"), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="submitted", index=True)
    cover_letter = Column(Text, nullable=True)
    # Append-only JSON list of {status, timestamp, updated_by, notes}
    status_history = Column(Text, nullable=False, default="[]")
    recruiter_notes = Column(Text, nullable=True)
    # JSON object: {scheduled_date, interview_type, location, interviewer_name}
    interview_info = Column(Text, nullable=True)
    score = Column(Integer, nullable=True)  # 0-100
    skills_match_percentage = Column(Integer, nullable=True)
    expected_salary = Column(Text, nullable=True)  # JSON {amount, currency, period}
    availability_date = Column(Date, nullable=True)
    applied_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    job = relationship("Job", back_populates="applications")
    student = relationship("Student", back_populates="applications")
