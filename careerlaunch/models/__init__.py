from .application import Application
from .audit_log import AuditLog
from .company import Company
from .job import Job
from .notification import Notification
from .portfolio import Portfolio
from .project import Project
from .recruiter import Recruiter
from .student import Student
from .user import User

__all__ = [
    "Application",
    "AuditLog",
    "Company",
    "Job",
    "Notification",
    "Portfolio",
    "Project",
    "Recruiter",
    "Student",
    "User",
]
