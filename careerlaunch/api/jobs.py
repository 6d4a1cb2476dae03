import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..services import job_catalog
from ..services.job_catalog import job_to_public
from ..services.notifications import deliver_pending_notifications
from ..utils.dependencies import get_current_user
from ..utils.roles import recruiter_only, student_only
from ..utils.validation import (
    clean_string_list,
    parse_iso_datetime,
    validate_experience_level,
    validate_integer_field,
    validate_job_status,
    validate_job_type,
    validate_string_field,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


class JobCreate(BaseModel):
    title: str = Field(min_length=2, max_length=150)
    description: str = Field(min_length=10)
    category: str | None = Field(default=None, max_length=100)
    required_skills: list[str] | None = None
    experience_level: str | None = None
    job_type: str | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    salary_currency: str | None = Field(default=None, max_length=5)
    salary_period: str | None = Field(default=None, max_length=20)
    location: str | None = Field(default=None, max_length=150)
    is_remote: bool = False
    is_hybrid: bool = False
    deadline: str | None = None  # ISO datetime string
    positions: int = Field(default=1, ge=1)
    is_featured: bool = False
    status: str | None = Field(default="active")  # active / draft


class JobUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=150)
    description: str | None = Field(default=None, min_length=10)
    category: str | None = Field(default=None, max_length=100)
    required_skills: list[str] | None = None
    experience_level: str | None = None
    job_type: str | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    salary_currency: str | None = Field(default=None, max_length=5)
    salary_period: str | None = Field(default=None, max_length=20)
    location: str | None = Field(default=None, max_length=150)
    is_remote: bool | None = None
    is_hybrid: bool | None = None
    deadline: str | None = None
    positions: int | None = Field(default=None, ge=1)
    is_featured: bool | None = None


def _clean_job_fields(data: dict) -> dict:
    """Normalize the subset of job fields present in `data`."""
    fields = dict(data)
    if "title" in fields:
        fields["title"] = validate_string_field(fields["title"], "Title", min_length=2, max_length=150)
    if "description" in fields:
        fields["description"] = validate_string_field(fields["description"], "Description", min_length=10, max_length=20000)
    if "category" in fields:
        fields["category"] = validate_string_field(fields["category"], "Category", max_length=100, required=False)
    if "location" in fields:
        fields["location"] = validate_string_field(fields["location"], "Location", max_length=150, required=False)
    if "required_skills" in fields:
        fields["required_skills"] = clean_string_list(fields["required_skills"])
    if fields.get("job_type"):
        fields["job_type"] = validate_job_type(fields["job_type"])
    if fields.get("experience_level"):
        fields["experience_level"] = validate_experience_level(fields["experience_level"])
    if "deadline" in fields:
        fields["deadline"] = parse_iso_datetime(fields["deadline"], "deadline")
    if "positions" in fields and fields["positions"] is not None:
        fields["positions"] = validate_integer_field(fields["positions"], "Positions", min_value=1)

    lo, hi = fields.get("salary_min"), fields.get("salary_max")
    if lo is not None and hi is not None and lo > hi:
        raise HTTPException(status_code=400, detail="salary_min cannot exceed salary_max")
    return {k: v for k, v in fields.items() if v is not None or k in {"deadline", "category", "location"}}


@router.get("")
def search_jobs(
    q: str | None = Query(default=None, max_length=200),
    location: str | None = None,
    industry: str | None = None,
    job_type: str | None = None,
    experience_level: str | None = None,
    is_remote: bool | None = None,
    skills: str | None = Query(default=None, description="Comma-separated skill names"),
    min_salary: int | None = Query(default=None, ge=0),
    max_salary: int | None = Query(default=None, ge=0),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
):
    result = job_catalog.search_jobs(
        db,
        q=q,
        location=location,
        industry=industry,
        job_type=validate_job_type(job_type),
        experience_level=validate_experience_level(experience_level),
        is_remote=is_remote,
        skills=clean_string_list((skills or "").split(",")),
        min_salary=min_salary,
        max_salary=max_salary,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result["jobs"] = [job_to_public(j) for j in result["jobs"]]
    return result


@router.get("/featured")
def featured_jobs(limit: int = Query(default=6, ge=1, le=100), db: Session = Depends(get_db)):
    return [job_to_public(j) for j in job_catalog.featured_jobs(db, limit=limit)]


@router.get("/stats")
def job_stats(db: Session = Depends(get_db), user=Depends(get_current_user)):
    return job_catalog.job_stats(db)


@router.get("/recommendations")
def recommended_jobs(
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(student_only),
):
    jobs = job_catalog.recommend_jobs(db, student_id=int(user["sub"]), limit=limit)
    return [job_to_public(j) for j in jobs]


@router.get("/{job_id:int}")
def get_job(job_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    return job_to_public(job_catalog.get_job(db, job_id=job_id, viewer=user))


@router.post("", status_code=201)
def create_job(
    payload: JobCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(recruiter_only),
):
    status = validate_job_status(payload.status)
    if status not in {"active", "draft"}:
        raise HTTPException(status_code=400, detail="New jobs must be created as active or draft")

    fields = _clean_job_fields(payload.model_dump(exclude={"status"}))
    job = job_catalog.create_job(db, recruiter_id=int(user["sub"]), fields=fields, status=status)
    background_tasks.add_task(deliver_pending_notifications)
    return job_to_public(job)


@router.put("/{job_id:int}")
def update_job(
    job_id: int,
    payload: JobUpdate,
    db: Session = Depends(get_db),
    user=Depends(recruiter_only),
):
    changes = _clean_job_fields(payload.model_dump(exclude_unset=True))
    job = job_catalog.update_job(db, job_id=job_id, recruiter_id=int(user["sub"]), changes=changes)
    return job_to_public(job)


@router.put("/{job_id:int}/publish")
def publish_job(
    job_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(recruiter_only),
):
    job = job_catalog.publish_job(db, job_id=job_id, recruiter_id=int(user["sub"]))
    background_tasks.add_task(deliver_pending_notifications)
    return job_to_public(job)


@router.put("/{job_id:int}/pause")
def pause_job(job_id: int, db: Session = Depends(get_db), user=Depends(recruiter_only)):
    return job_to_public(job_catalog.pause_job(db, job_id=job_id, recruiter_id=int(user["sub"])))


@router.put("/{job_id:int}/close")
def close_job(job_id: int, db: Session = Depends(get_db), user=Depends(recruiter_only)):
    return job_to_public(job_catalog.close_job(db, job_id=job_id, recruiter_id=int(user["sub"])))


@router.delete("/{job_id:int}")
def delete_job(job_id: int, db: Session = Depends(get_db), user=Depends(recruiter_only)):
    job_catalog.delete_job(db, job_id=job_id, recruiter_id=int(user["sub"]))
    return {"message": "Job deleted successfully"}
