"""
Job Catalog: publishing, search and recommendation of job postings.

Lifecycle: draft -> active -> closed, active <-> paused. Nothing leaves `closed`,
and a job that has received applications can only be closed, never deleted.
"""
import logging
import math
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..constants import ROLE_PLATFORM_ADMIN, ROLE_RECRUITER, ROLE_STUDENT
from ..models.application import Application
from ..models.company import Company
from ..models.job import Job
from ..models.recruiter import Recruiter
from ..models.student import Student
from ..models.user import User
from ..utils.error_handlers import BadRequestError, ForbiddenError, NotFoundError, get_error_message
from ..utils.json_fields import as_utc, dump_json, iso, load_json_dict, load_json_list, utcnow
from ..utils.validation import LIKE_ESCAPE, contains_pattern
from .audit import record_audit
from .notifications import KIND_JOB_MATCH, queue_notification

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

SORTABLE_FIELDS = {
    "created_at": Job.created_at,
    "title": Job.title,
    "application_count": Job.application_count,
    "deadline": Job.deadline,
    "salary_min": Job.salary_min,
    "positions": Job.positions,
}

# Descriptive fields a recruiter may edit after creation. Status moves through publish/pause/close.
EDITABLE_FIELDS = (
    "title",
    "description",
    "category",
    "required_skills",
    "experience_level",
    "job_type",
    "salary_min",
    "salary_max",
    "salary_currency",
    "salary_period",
    "location",
    "is_remote",
    "is_hybrid",
    "deadline",
    "positions",
    "is_featured",
)


def job_skills(job: Job) -> list[str]:
    return [str(s).strip() for s in load_json_list(job.required_skills) if str(s).strip()]


def _lower_set(values: list[Any] | None) -> set[str]:
    return {str(v).strip().lower() for v in (values or []) if str(v).strip()}


def job_to_public(job: Job) -> dict:
    company = job.company
    recruiter = job.recruiter
    return {
        "id": job.id,
        "title": job.title,
        "description": job.description,
        "category": job.category,
        "required_skills": job_skills(job),
        "experience_level": job.experience_level,
        "job_type": job.job_type,
        "salary": {
            "min": job.salary_min,
            "max": job.salary_max,
            "currency": job.salary_currency,
            "period": job.salary_period,
        },
        "location": job.location,
        "is_remote": bool(job.is_remote),
        "is_hybrid": bool(job.is_hybrid),
        "status": job.status,
        "deadline": iso(job.deadline),
        "positions": job.positions,
        "application_count": job.application_count or 0,
        "is_featured": bool(job.is_featured),
        "company": {
            "id": company.id,
            "name": company.name,
            "industry": company.industry,
            "location": company.location,
            "logo_url": company.logo_url,
        } if company else None,
        "recruiter": {"id": recruiter.id, "name": recruiter.name} if recruiter else None,
        "created_at": iso(job.created_at),
        "updated_at": iso(job.updated_at),
        "published_at": iso(job.published_at),
        "closed_at": iso(job.closed_at),
    }


def _get_job(db: Session, job_id: int) -> Job:
    job = db.query(Job).filter(Job.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"))
    return job


def _get_owned_job(db: Session, job_id: int, recruiter_id: int, verb: str) -> Job:
    job = _get_job(db, job_id)
    if int(job.recruiter_id) != int(recruiter_id):
        raise ForbiddenError(f"You can only {verb} your own job postings")
    return job


def create_job(db: Session, *, recruiter_id: int, fields: dict[str, Any], status: str = "active") -> Job:
    recruiter = db.query(Recruiter).filter(Recruiter.user_id == int(recruiter_id)).first()
    if not recruiter:
        raise NotFoundError(get_error_message("recruiter_not_found"))
    if status not in {"active", "draft"}:
        raise BadRequestError("New jobs must be created as active or draft")

    values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
    if "required_skills" in values:
        values["required_skills"] = dump_json(values["required_skills"] or [])
    job = Job(
        **values,
        company_id=recruiter.company_id,
        recruiter_id=recruiter.user_id,
        status=status,
        application_count=0,
        published_at=utcnow() if status == "active" else None,
    )
    db.add(job)
    db.flush()
    record_audit(
        db,
        actor_id=recruiter.user_id,
        actor_role=ROLE_RECRUITER,
        action="job.create",
        target_type="job",
        target_id=job.id,
        details={"status": status, "title": job.title},
    )
    db.commit()
    db.refresh(job)
    logger.info("Recruiter %s created job %s (%s)", recruiter_id, job.id, status)

    if job.status == "active":
        notify_matching_students(db, job)
    return job


def get_job(db: Session, *, job_id: int, viewer: dict | None = None) -> Job:
    """Students only ever see active postings; owners and admins see every status."""
    job = _get_job(db, job_id)
    if job.status == "active":
        return job
    role = (viewer or {}).get("role")
    viewer_id = int((viewer or {}).get("sub") or 0)
    if role == ROLE_PLATFORM_ADMIN or (role == ROLE_RECRUITER and int(job.recruiter_id) == viewer_id):
        return job
    raise NotFoundError(get_error_message("job_not_found"))


def update_job(db: Session, *, job_id: int, recruiter_id: int, changes: dict[str, Any]) -> Job:
    job = _get_owned_job(db, job_id, recruiter_id, "update")
    applied = []
    for key, value in changes.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key == "required_skills":
            value = dump_json(value or [])
        setattr(job, key, value)
        applied.append(key)
    if applied:
        record_audit(
            db,
            actor_id=int(recruiter_id),
            actor_role=ROLE_RECRUITER,
            action="job.update",
            target_type="job",
            target_id=job.id,
            details={"fields": sorted(applied)},
        )
    db.commit()
    db.refresh(job)
    return job


def publish_job(db: Session, *, job_id: int, recruiter_id: int) -> Job:
    job = _get_owned_job(db, job_id, recruiter_id, "publish")
    if job.status == "closed":
        raise BadRequestError("Closed jobs cannot be published again")
    previous = job.status
    job.status = "active"
    job.published_at = utcnow()
    record_audit(
        db,
        actor_id=int(recruiter_id),
        actor_role=ROLE_RECRUITER,
        action="job.publish",
        target_type="job",
        target_id=job.id,
        details={"from": previous},
    )
    db.commit()
    db.refresh(job)
    if previous != "active":
        notify_matching_students(db, job)
    return job


def pause_job(db: Session, *, job_id: int, recruiter_id: int) -> Job:
    job = _get_owned_job(db, job_id, recruiter_id, "pause")
    if job.status != "active":
        raise BadRequestError("Only active jobs can be paused")
    job.status = "paused"
    record_audit(
        db,
        actor_id=int(recruiter_id),
        actor_role=ROLE_RECRUITER,
        action="job.pause",
        target_type="job",
        target_id=job.id,
    )
    db.commit()
    db.refresh(job)
    return job


def close_job(db: Session, *, job_id: int, recruiter_id: int) -> Job:
    job = _get_owned_job(db, job_id, recruiter_id, "close")
    if job.status != "closed":
        previous = job.status
        job.status = "closed"
        job.closed_at = utcnow()
        record_audit(
            db,
            actor_id=int(recruiter_id),
            actor_role=ROLE_RECRUITER,
            action="job.close",
            target_type="job",
            target_id=job.id,
            details={"from": previous},
        )
        db.commit()
        db.refresh(job)
    return job


def delete_job(db: Session, *, job_id: int, recruiter_id: int) -> None:
    job = _get_owned_job(db, job_id, recruiter_id, "delete")

    application_count = db.query(func.count(Application.id)).filter(Application.job_id == job.id).scalar() or 0
    if application_count > 0:
        raise BadRequestError(get_error_message("job_has_applications"))
    if job.status == "closed":
        raise BadRequestError("Closed jobs are kept for history and cannot be deleted")

    record_audit(
        db,
        actor_id=int(recruiter_id),
        actor_role=ROLE_RECRUITER,
        action="job.delete",
        target_type="job",
        target_id=job.id,
        details={"title": job.title},
    )
    db.delete(job)
    db.commit()
    logger.info("Recruiter %s deleted job %s", recruiter_id, job_id)


def search_jobs(
    db: Session,
    *,
    q: str | None = None,
    location: str | None = None,
    industry: str | None = None,
    job_type: str | None = None,
    experience_level: str | None = None,
    is_remote: bool | None = None,
    skills: list[str] | None = None,
    min_salary: int | None = None,
    max_salary: int | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    page = max(1, int(page or 1))
    limit = min(max(1, int(limit or 10)), MAX_PAGE_SIZE)
    if sort_by not in SORTABLE_FIELDS:
        raise BadRequestError(f"Invalid sort field. Must be one of: {', '.join(SORTABLE_FIELDS)}")
    descending = (sort_order or "desc").strip().lower() != "asc"

    query = db.query(Job).filter(Job.status == "active")

    text = (q or "").strip()
    if text:
        pattern = contains_pattern(text)
        query = query.filter(
            or_(
                Job.title.ilike(pattern, escape=LIKE_ESCAPE),
                Job.description.ilike(pattern, escape=LIKE_ESCAPE),
                Job.category.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    # Remote searches ignore location.
    if location and location.strip() and not is_remote:
        query = query.filter(Job.location.ilike(contains_pattern(location.strip()), escape=LIKE_ESCAPE))
    if industry and industry.strip():
        query = query.join(Company, Job.company_id == Company.id).filter(
            Company.industry.ilike(contains_pattern(industry.strip()), escape=LIKE_ESCAPE)
        )
    if job_type:
        query = query.filter(Job.job_type == job_type)
    if experience_level:
        query = query.filter(Job.experience_level == experience_level)
    if is_remote:
        query = query.filter(or_(Job.is_remote.is_(True), Job.is_hybrid.is_(True)))
    if min_salary is not None:
        query = query.filter(Job.salary_min >= int(min_salary))
    if max_salary is not None:
        query = query.filter(Job.salary_max <= int(max_salary))

    column = SORTABLE_FIELDS[sort_by]
    if descending:
        query = query.order_by(column.desc(), Job.id.desc())
    else:
        query = query.order_by(column.asc(), Job.id.asc())

    offset = (page - 1) * limit
    wanted = _lower_set(skills)
    if wanted:
        # Skill lists are JSON text, so the intersection runs over the SQL-filtered rows.
        matched = [job for job in query.all() if _lower_set(job_skills(job)) & wanted]
        total = len(matched)
        jobs = matched[offset:offset + limit]
    else:
        total = query.count()
        jobs = query.offset(offset).limit(limit).all()

    return {
        "jobs": jobs,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def _matches_student_skills(job: Job, student_skills: set[str]) -> bool:
    if _lower_set(job_skills(job)) & student_skills:
        return True
    description = (job.description or "").lower()
    return any(skill in description for skill in student_skills)


def recommend_jobs(db: Session, *, student_id: int, limit: int = 10) -> list[Job]:
    """
    Soft-match active jobs to a student's skills and preferences.

    Skill match is an OR of required-skill intersection and a description
    substring hit; preferences narrow the candidates. Results are newest first
    with no relevance scoring.
    """
    student = db.query(Student).filter(Student.user_id == int(student_id)).first()
    if not student:
        raise NotFoundError(get_error_message("student_not_found"))
    limit = min(max(1, int(limit or 10)), MAX_PAGE_SIZE)

    skills = _lower_set(load_json_list(student.skills))
    prefs = load_json_dict(student.job_preferences)

    query = db.query(Job).filter(Job.status == "active")

    job_types = _lower_set(prefs.get("job_types"))
    if job_types:
        query = query.filter(func.lower(Job.job_type).in_(job_types))

    remote = bool(prefs.get("remote_work"))
    if remote:
        query = query.filter(or_(Job.is_remote.is_(True), Job.is_hybrid.is_(True)))

    locations = _lower_set(prefs.get("locations"))
    if locations and not remote:
        query = query.filter(func.lower(Job.location).in_(locations))

    industries = _lower_set(prefs.get("industries"))
    if industries:
        query = query.join(Company, Job.company_id == Company.id).filter(
            func.lower(Company.industry).in_(industries)
        )

    applied = select(Application.job_id).where(Application.student_id == student.user_id)
    query = query.filter(~Job.id.in_(applied)).order_by(Job.created_at.desc(), Job.id.desc())

    if not skills:
        return query.limit(limit).all()

    recommended: list[Job] = []
    for job in query.all():
        if _matches_student_skills(job, skills):
            recommended.append(job)
            if len(recommended) >= limit:
                break
    return recommended


def featured_jobs(db: Session, *, limit: int = 6) -> list[Job]:
    return (
        db.query(Job)
        .filter(Job.status == "active", Job.is_featured.is_(True))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .limit(min(max(1, int(limit or 6)), MAX_PAGE_SIZE))
        .all()
    )


def job_stats(db: Session) -> dict:
    total_jobs = db.query(func.count(Job.id)).scalar() or 0
    active_jobs = db.query(func.count(Job.id)).filter(Job.status == "active").scalar() or 0
    total_applications = db.query(func.count(Application.id)).scalar() or 0
    # Round half up.
    avg_per_job = (2 * total_applications + total_jobs) // (2 * total_jobs) if total_jobs else 0

    count_col = func.count(Job.id)
    category_rows = (
        db.query(Job.category, count_col)
        .filter(Job.category.isnot(None))
        .group_by(Job.category)
        .order_by(count_col.desc(), Job.category.asc())
        .limit(5)
        .all()
    )
    type_rows = (
        db.query(Job.job_type, count_col)
        .group_by(Job.job_type)
        .order_by(count_col.desc(), Job.job_type.asc())
        .all()
    )
    return {
        "total_jobs": int(total_jobs),
        "active_jobs": int(active_jobs),
        "total_applications": int(total_applications),
        "avg_applications_per_job": int(avg_per_job),
        "top_categories": [{"category": c, "count": int(n)} for c, n in category_rows],
        "jobs_by_type": [{"type": t, "count": int(n)} for t, n in type_rows],
    }


def notify_matching_students(db: Session, job: Job) -> int:
    """Queue a job-match email for every active student whose skills intersect the job's."""
    wanted = _lower_set(job_skills(job))
    if not wanted:
        return 0

    rows = (
        db.query(Student, User)
        .join(User, User.id == Student.user_id)
        .filter(User.status == "active", User.role == ROLE_STUDENT)
        .all()
    )
    company_name = job.company.name if job.company else None
    queued = 0
    for student, user in rows:
        if not (_lower_set(load_json_list(student.skills)) & wanted):
            continue
        n = queue_notification(
            db,
            user_id=user.id,
            kind=KIND_JOB_MATCH,
            payload={
                "to_email": user.email,
                "student_name": user.name,
                "jobs": [{"id": job.id, "title": job.title, "company_name": company_name}],
            },
        )
        if n is not None:
            queued += 1
    if queued:
        logger.info("Queued %s job-match notifications for job %s", queued, job.id)
    return queued


def deadline_passed(job: Job) -> bool:
    deadline = as_utc(job.deadline)
    return deadline is not None and utcnow() > deadline
