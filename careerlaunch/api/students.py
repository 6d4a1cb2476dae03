import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.student import Student
from ..utils.error_handlers import NotFoundError, get_error_message
from ..utils.json_fields import dump_json, load_json_dict, load_json_list
from ..utils.roles import student_only
from ..utils.validation import clean_string_list, validate_job_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/students", tags=["Students"])


class SalaryRange(BaseModel):
    min: int | None = Field(default=None, ge=0)
    max: int | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, max_length=5)


class JobPreferences(BaseModel):
    job_types: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    remote_work: bool = False
    industries: list[str] = Field(default_factory=list)
    salary_range: SalaryRange | None = None


class StudentUpdate(BaseModel):
    skills: list[str] | None = None
    programming_languages: list[str] | None = None
    job_preferences: JobPreferences | None = None
    resume_url: str | None = Field(default=None, max_length=500)
    gpa: float | None = Field(default=None, ge=0, le=10)
    graduation_year: int | None = Field(default=None, ge=1950, le=2100)
    major: str | None = Field(default=None, max_length=150)
    bio: str | None = Field(default=None, max_length=5000)


def _student_to_public(student: Student) -> dict:
    user = student.user
    return {
        "id": student.user_id,
        "name": user.name if user else None,
        "email": user.email if user else None,
        "skills": load_json_list(student.skills),
        "programming_languages": load_json_list(student.programming_languages),
        "job_preferences": load_json_dict(student.job_preferences) or None,
        "resume_url": student.resume_url,
        "gpa": student.gpa,
        "graduation_year": student.graduation_year,
        "major": student.major,
        "bio": student.bio,
    }


def _get_student(db: Session, user_id: int) -> Student:
    student = db.query(Student).filter(Student.user_id == user_id).first()
    if not student:
        raise NotFoundError(get_error_message("student_not_found"))
    return student


@router.get("/me")
def get_my_profile(db: Session = Depends(get_db), user=Depends(student_only)):
    return _student_to_public(_get_student(db, int(user["sub"])))


@router.put("/me")
def update_my_profile(payload: StudentUpdate, db: Session = Depends(get_db), user=Depends(student_only)):
    student = _get_student(db, int(user["sub"]))
    changes = payload.model_dump(exclude_unset=True)

    if "skills" in changes:
        student.skills = dump_json(clean_string_list(changes.pop("skills")))
    if "programming_languages" in changes:
        student.programming_languages = dump_json(clean_string_list(changes.pop("programming_languages")))
    if "job_preferences" in changes:
        prefs = changes.pop("job_preferences")
        if prefs is not None:
            prefs["job_types"] = [validate_job_type(t) for t in clean_string_list(prefs.get("job_types"))]
            prefs["locations"] = clean_string_list(prefs.get("locations"))
            prefs["industries"] = clean_string_list(prefs.get("industries"))
        student.job_preferences = dump_json(prefs)
    for key, value in changes.items():
        setattr(student, key, value)

    db.commit()
    db.refresh(student)
    logger.info("Student %s updated profile fields", student.user_id)
    return _student_to_public(student)
