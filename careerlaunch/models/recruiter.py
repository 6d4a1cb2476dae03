from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class Recruiter(Base):
    __tablename__ = "recruiters"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    position = Column(String(150), nullable=True)

    user = relationship("User", back_populates="recruiter")
    company = relationship("Company", back_populates="recruiters")
