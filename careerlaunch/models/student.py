from sqlalchemy import Column, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base


class Student(Base):
    __tablename__ = "students"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    skills = Column(Text, nullable=True)  # JSON string list
    programming_languages = Column(Text, nullable=True)  # JSON string list
    # JSON object: {job_types, locations, remote_work, industries, salary_range}
    job_preferences = Column(Text, nullable=True)
    resume_url = Column(String(500), nullable=True)
    gpa = Column(Float, nullable=True)
    graduation_year = Column(Integer, nullable=True)
    major = Column(String(150), nullable=True)
    bio = Column(Text, nullable=True)

    user = relationship("User", back_populates="student")
    applications = relationship("Application", back_populates="student")
    portfolios = relationship("Portfolio", back_populates="student", cascade="all, delete-orphan")
