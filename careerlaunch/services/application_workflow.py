"""
Application workflow: a student applies to a job, recruiters move the
application through review, students may withdraw.

submitted -> under_review -> shortlisted -> interviewed -> accepted | rejected,
plus withdrawn from any open state. `status_history` is append-only and an
application row is never deleted.
"""
import logging
import math
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import (
    ADMIN_ROLES,
    APP_INTERVIEWED,
    APP_SUBMITTED,
    APP_WITHDRAWN,
    APPLICATION_DECIDED,
    APPLICATION_STATUSES,
    ROLE_PLATFORM_ADMIN,
    ROLE_RECRUITER,
    ROLE_STUDENT,
)
from ..models.application import Application
from ..models.job import Job
from ..models.recruiter import Recruiter
from ..models.student import Student
from ..utils.error_handlers import AppError, BadRequestError, ForbiddenError, NotFoundError, get_error_message
from ..utils.json_fields import dump_json, iso, load_json_dict, load_json_list, utcnow
from .audit import record_audit
from .job_catalog import deadline_passed, job_skills
from .notifications import KIND_APPLICATION_SUBMITTED, KIND_INTERVIEW_SCHEDULED, KIND_STATUS_CHANGED, queue_notification

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
SORTABLE_FIELDS = {
    "applied_at": Application.applied_at,
    "updated_at": Application.updated_at,
    "status": Application.status,
}
# Statuses a recruiter may move an application to.
RECRUITER_TARGET_STATUSES = tuple(s for s in APPLICATION_STATUSES if s not in {APP_SUBMITTED, APP_WITHDRAWN})
FINAL_STATUSES = APPLICATION_DECIDED + (APP_WITHDRAWN,)


def application_to_public(app: Application) -> dict:
    job = app.job
    student = app.student
    user = student.user if student else None
    return {
        "id": app.id,
        "job_id": app.job_id,
        "student_id": app.student_id,
        "status": app.status,
        "cover_letter": app.cover_letter,
        "status_history": load_json_list(app.status_history),
        "recruiter_notes": app.recruiter_notes,
        "interview_info": load_json_dict(app.interview_info) or None,
        "score": app.score,
        "skills_match_percentage": app.skills_match_percentage,
        "expected_salary": load_json_dict(app.expected_salary) or None,
        "availability_date": iso(app.availability_date),
        "applied_at": iso(app.applied_at),
        "updated_at": iso(app.updated_at),
        "job": {
            "id": job.id,
            "title": job.title,
            "status": job.status,
            "company": {"id": job.company.id, "name": job.company.name} if job.company else None,
        } if job else None,
        "student": {
            "id": student.user_id,
            "name": user.name if user else None,
            "email": user.email if user else None,
            "skills": load_json_list(student.skills),
            "resume_url": student.resume_url,
            "gpa": student.gpa,
            "graduation_year": student.graduation_year,
        } if student else None,
    }


def skills_match_percentage(student_skills: list[Any], required_skills: list[Any]) -> int | None:
    """Share of the job's required skills the student has, as a whole percentage."""
    required = {str(s).strip().lower() for s in required_skills if str(s).strip()}
    if not required:
        return None
    have = {str(s).strip().lower() for s in student_skills if str(s).strip()}
    matched = len(required & have)
    return (200 * matched + len(required)) // (2 * len(required))


def _history_entry(status: str, updated_by: int, notes: str | None) -> dict:
    return {"status": status, "timestamp": iso(utcnow()), "updated_by": int(updated_by), "notes": notes}


def _append_history(app: Application, entry: dict) -> None:
    history = load_json_list(app.status_history)
    history.append(entry)
    app.status_history = dump_json(history)


def _recruiter_company_id(db: Session, user_id: int) -> int:
    recruiter = db.query(Recruiter).filter(Recruiter.user_id == int(user_id)).first()
    if not recruiter:
        raise NotFoundError(get_error_message("recruiter_not_found"))
    return recruiter.company_id


def _notify(db: Session, app: Application, kind: str, **extra: Any) -> None:
    student = app.student
    user = student.user if student else None
    if not user:
        return
    job = app.job
    payload = {
        "to_email": user.email,
        "student_name": user.name,
        "job_title": job.title if job else None,
        "company_name": job.company.name if job and job.company else None,
    }
    payload.update(extra)
    queue_notification(db, user_id=user.id, kind=kind, payload=payload)


def submit_application(
    db: Session,
    *,
    student_id: int,
    job_id: int,
    cover_letter: str | None = None,
    expected_salary: dict | None = None,
    availability_date: date | None = None,
) -> Application:
    student = db.query(Student).filter(Student.user_id == int(student_id)).first()
    if not student:
        raise NotFoundError(get_error_message("student_not_found"))

    job = db.query(Job).filter(Job.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"))
    if job.status != "active":
        raise BadRequestError(get_error_message("job_closed"))
    if deadline_passed(job):
        raise BadRequestError(get_error_message("deadline_passed"))

    existing = (
        db.query(Application.id)
        .filter(Application.student_id == student.user_id, Application.job_id == job.id)
        .first()
    )
    if existing:
        raise BadRequestError(get_error_message("already_applied"))

    app = Application(
        job_id=job.id,
        student_id=student.user_id,
        status=APP_SUBMITTED,
        cover_letter=cover_letter,
        status_history=dump_json([_history_entry(APP_SUBMITTED, student.user_id, "Application submitted")]),
        skills_match_percentage=skills_match_percentage(load_json_list(student.skills), job_skills(job)),
        expected_salary=dump_json(expected_salary) if expected_salary else None,
        availability_date=availability_date,
    )
    db.add(app)
    # Single UPDATE so concurrent submissions never lose an increment.
    db.query(Job).filter(Job.id == job.id).update(
        {"application_count": func.coalesce(Job.application_count, 0) + 1},
        synchronize_session=False,
    )
    try:
        db.flush()
        record_audit(
            db,
            actor_id=student.user_id,
            actor_role=ROLE_STUDENT,
            action="application.submit",
            target_type="application",
            target_id=app.id,
            details={"job_id": job.id},
        )
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent submission for the same pair.
        db.rollback()
        raise BadRequestError(get_error_message("already_applied"))
    db.refresh(app)
    logger.info("Student %s applied to job %s (application %s)", student.user_id, job.id, app.id)

    _notify(db, app, KIND_APPLICATION_SUBMITTED, status=APP_SUBMITTED)
    return app


def _load_for_actor(db: Session, application_id: int, actor_id: int, actor_role: str) -> Application:
    app = db.query(Application).filter(Application.id == int(application_id)).first()
    if not app:
        raise NotFoundError(get_error_message("application_not_found"))
    if actor_role == ROLE_PLATFORM_ADMIN:
        return app
    if actor_role != ROLE_RECRUITER:
        raise ForbiddenError(get_error_message("forbidden"))
    if app.job is None or app.job.company_id != _recruiter_company_id(db, actor_id):
        raise ForbiddenError("You can only manage applications for your company's jobs")
    return app


def update_status(
    db: Session,
    *,
    application_id: int,
    new_status: str,
    actor_id: int,
    actor_role: str,
    notes: str | None = None,
    interview_date: datetime | None = None,
    interview_type: str | None = None,
    interview_location: str | None = None,
    interviewer_name: str | None = None,
    score: int | None = None,
) -> Application:
    if new_status not in RECRUITER_TARGET_STATUSES:
        raise BadRequestError(f"Invalid status. Must be one of: {', '.join(RECRUITER_TARGET_STATUSES)}")
    if score is not None and not 0 <= int(score) <= 100:
        raise BadRequestError("Score must be between 0 and 100")

    app = _load_for_actor(db, application_id, actor_id, actor_role)
    if app.status in FINAL_STATUSES:
        raise BadRequestError(f"Application is already {app.status} and can no longer change")

    previous = app.status
    app.status = new_status
    _append_history(app, _history_entry(new_status, actor_id, notes))
    if notes:
        app.recruiter_notes = notes
    if score is not None:
        app.score = int(score)

    interview_scheduled = new_status == APP_INTERVIEWED and interview_date is not None
    if interview_scheduled:
        app.interview_info = dump_json(
            {
                "scheduled_date": iso(interview_date),
                "interview_type": interview_type,
                "location": interview_location,
                "interviewer_name": interviewer_name,
            }
        )

    record_audit(
        db,
        actor_id=int(actor_id),
        actor_role=actor_role,
        action="application.status_update",
        target_type="application",
        target_id=app.id,
        details={"from": previous, "to": new_status},
    )
    db.commit()
    db.refresh(app)
    logger.info("Application %s moved %s -> %s by %s %s", app.id, previous, new_status, actor_role, actor_id)

    _notify(db, app, KIND_STATUS_CHANGED, status=new_status)
    if interview_scheduled:
        _notify(
            db,
            app,
            KIND_INTERVIEW_SCHEDULED,
            scheduled_at_text=interview_date.strftime("%Y-%m-%d %H:%M %Z").strip(),
            interview_type=interview_type,
            location=interview_location,
        )
    return app


def bulk_update_status(
    db: Session,
    *,
    application_ids: list[int],
    new_status: str,
    actor_id: int,
    actor_role: str,
    notes: str | None = None,
) -> dict:
    """Apply one status to many applications in order; failures are counted, not raised."""
    updated = 0
    errors: list[dict] = []
    for application_id in application_ids:
        try:
            update_status(
                db,
                application_id=application_id,
                new_status=new_status,
                actor_id=actor_id,
                actor_role=actor_role,
                notes=notes,
            )
            updated += 1
        except AppError as e:
            db.rollback()
            errors.append({"id": application_id, "error": e.message})
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Bulk status update failed for application {application_id}: {e}")
            errors.append({"id": application_id, "error": get_error_message("database_error")})
    return {
        "processed": len(application_ids),
        "updated": updated,
        "failed": len(errors),
        "errors": errors,
    }


def withdraw(db: Session, *, application_id: int, student_id: int) -> Application:
    app = (
        db.query(Application)
        .filter(Application.id == int(application_id), Application.student_id == int(student_id))
        .first()
    )
    if not app:
        raise NotFoundError(get_error_message("application_not_found"))
    if app.status == APP_WITHDRAWN:
        raise BadRequestError(get_error_message("already_withdrawn"))
    if app.status in APPLICATION_DECIDED:
        raise BadRequestError(get_error_message("application_processed"))

    previous = app.status
    app.status = APP_WITHDRAWN
    _append_history(app, _history_entry(APP_WITHDRAWN, student_id, "Application withdrawn by student"))
    record_audit(
        db,
        actor_id=int(student_id),
        actor_role=ROLE_STUDENT,
        action="application.withdraw",
        target_type="application",
        target_id=app.id,
        details={"from": previous},
    )
    db.commit()
    db.refresh(app)
    return app


def get_application(db: Session, *, application_id: int, caller: dict) -> Application:
    app = db.query(Application).filter(Application.id == int(application_id)).first()
    if not app:
        raise NotFoundError(get_error_message("application_not_found"))

    role = caller.get("role")
    caller_id = int(caller.get("sub") or 0)
    if role == ROLE_STUDENT and app.student_id != caller_id:
        raise ForbiddenError("You can only view your own applications")
    if role == ROLE_RECRUITER and (app.job is None or app.job.company_id != _recruiter_company_id(db, caller_id)):
        raise ForbiddenError("You can only view applications for your company's jobs")
    if role not in (ROLE_STUDENT, ROLE_RECRUITER) and role not in ADMIN_ROLES:
        raise ForbiddenError(get_error_message("forbidden"))
    return app


def _scoped_query(db: Session, caller: dict):
    role = caller.get("role")
    caller_id = int(caller.get("sub") or 0)
    query = db.query(Application)
    if role == ROLE_STUDENT:
        return query.filter(Application.student_id == caller_id)
    if role == ROLE_RECRUITER:
        company_id = _recruiter_company_id(db, caller_id)
        return query.join(Job, Application.job_id == Job.id).filter(Job.company_id == company_id)
    if role in ADMIN_ROLES:
        return query
    raise ForbiddenError(get_error_message("forbidden"))


def list_applications(
    db: Session,
    *,
    caller: dict,
    status: str | None = None,
    job_id: int | None = None,
    student_id: int | None = None,
    company_id: int | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "applied_at",
    sort_order: str = "desc",
) -> dict:
    page = max(1, int(page or 1))
    limit = min(max(1, int(limit or 10)), MAX_PAGE_SIZE)
    if sort_by not in SORTABLE_FIELDS:
        raise BadRequestError(f"Invalid sort field. Must be one of: {', '.join(SORTABLE_FIELDS)}")

    role = caller.get("role")
    query = _scoped_query(db, caller)
    if status:
        query = query.filter(Application.status == status)
    if job_id is not None:
        query = query.filter(Application.job_id == int(job_id))
    if student_id is not None and role != ROLE_STUDENT:
        query = query.filter(Application.student_id == int(student_id))
    if company_id is not None and role == ROLE_PLATFORM_ADMIN:
        query = query.join(Job, Application.job_id == Job.id).filter(Job.company_id == int(company_id))

    total = query.count()
    column = SORTABLE_FIELDS[sort_by]
    if (sort_order or "desc").strip().lower() == "asc":
        query = query.order_by(column.asc(), Application.id.asc())
    else:
        query = query.order_by(column.desc(), Application.id.desc())
    rows = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "applications": rows,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def application_stats(db: Session, *, caller: dict) -> dict:
    base = _scoped_query(db, caller)
    by_status = {s: 0 for s in APPLICATION_STATUSES}
    rows = base.with_entities(Application.status, func.count(Application.id)).group_by(Application.status).all()
    for status, count in rows:
        by_status[status] = int(count)

    since = utcnow() - timedelta(days=7)
    recent = base.filter(Application.applied_at >= since).count()
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "recent_applications": recent,
    }
