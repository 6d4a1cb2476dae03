"""
Company profiles: public listing and search, recruiter-maintained details,
hiring statistics and platform-admin verification.

A recruiter may only touch the company they belong to; membership changes go
through the admin assignment endpoint, never through this module.
"""
import logging
import math
from collections import Counter
from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..constants import APP_ACCEPTED, ROLE_PLATFORM_ADMIN, ROLE_RECRUITER
from ..models.application import Application
from ..models.company import Company
from ..models.job import Job
from ..models.recruiter import Recruiter
from ..utils.error_handlers import ForbiddenError, NotFoundError, get_error_message
from ..utils.json_fields import as_utc, dump_json, iso, load_json_list
from ..utils.validation import LIKE_ESCAPE, contains_pattern
from .audit import record_audit
from .job_catalog import MAX_PAGE_SIZE, job_skills

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "description",
    "size",
    "industry",
    "location",
    "website",
    "logo_url",
    "contact_email",
    "founded_year",
    "employee_count",
    "benefits",
    "technologies",
)
_LIST_FIELDS = ("benefits", "technologies")

TOP_SKILLS = 10
MONTHS_OF_HISTORY = 12


def company_to_public(company: Company) -> dict:
    return {
        "id": company.id,
        "name": company.name,
        "description": company.description,
        "size": company.size,
        "industry": company.industry,
        "location": company.location,
        "website": company.website,
        "logo_url": company.logo_url,
        "contact_email": company.contact_email,
        "founded_year": company.founded_year,
        "employee_count": company.employee_count,
        "benefits": load_json_list(company.benefits),
        "technologies": load_json_list(company.technologies),
        "verification_status": company.verification_status,
        "created_at": iso(company.created_at),
        "updated_at": iso(company.updated_at),
    }


def _page_bounds(page: int, limit: int) -> tuple[int, int]:
    return max(1, int(page or 1)), min(max(1, int(limit or 10)), MAX_PAGE_SIZE)


def _paginate(query, page: int, limit: int, key: str) -> dict:
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return {key: rows, "total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit)}


def get_company(db: Session, company_id: int) -> Company:
    company = db.query(Company).filter(Company.id == int(company_id)).first()
    if not company:
        raise NotFoundError(get_error_message("company_not_found"))
    return company


def _require_member(db: Session, company_id: int, user: dict, message: str) -> None:
    """Platform admins pass; recruiters must belong to the company."""
    if user.get("role") == ROLE_PLATFORM_ADMIN:
        return
    if user.get("role") == ROLE_RECRUITER:
        member = (
            db.query(Recruiter.user_id)
            .filter(Recruiter.user_id == int(user["sub"]), Recruiter.company_id == int(company_id))
            .first()
        )
        if member:
            return
    raise ForbiddenError(message)


def list_companies(
    db: Session,
    *,
    industry: str | None = None,
    size: str | None = None,
    location: str | None = None,
    verified: bool | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    page, limit = _page_bounds(page, limit)
    query = db.query(Company)
    if industry and industry.strip():
        query = query.filter(Company.industry.ilike(contains_pattern(industry.strip()), escape=LIKE_ESCAPE))
    if size:
        query = query.filter(Company.size == size)
    if location and location.strip():
        query = query.filter(Company.location.ilike(contains_pattern(location.strip()), escape=LIKE_ESCAPE))
    if verified is not None:
        query = query.filter(Company.verification_status == ("verified" if verified else "pending"))
    query = query.order_by(Company.created_at.desc(), Company.id.desc())
    return _paginate(query, page, limit, "companies")


def search_companies(db: Session, *, q: str | None = None, page: int = 1, limit: int = 10) -> dict:
    """Verified companies only, alphabetical."""
    page, limit = _page_bounds(page, limit)
    query = db.query(Company).filter(Company.verification_status == "verified")
    text = (q or "").strip()
    if text:
        pattern = contains_pattern(text)
        query = query.filter(
            or_(
                Company.name.ilike(pattern, escape=LIKE_ESCAPE),
                Company.description.ilike(pattern, escape=LIKE_ESCAPE),
                Company.industry.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    query = query.order_by(Company.name.asc(), Company.id.asc())
    return _paginate(query, page, limit, "companies")


def update_company(db: Session, *, company_id: int, user: dict, changes: dict[str, Any]) -> Company:
    company = get_company(db, company_id)
    _require_member(db, company.id, user, "You can only update your own company")

    applied = []
    for key, value in changes.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key in _LIST_FIELDS:
            value = dump_json(value or [])
        setattr(company, key, value)
        applied.append(key)
    if applied:
        record_audit(
            db,
            actor_id=int(user["sub"]),
            actor_role=user.get("role"),
            action="company.update",
            target_type="company",
            target_id=company.id,
            details={"fields": sorted(applied)},
        )
    db.commit()
    db.refresh(company)
    return company


def company_jobs(db: Session, *, company_id: int, page: int = 1, limit: int = 10) -> dict:
    """Active postings of one company, newest first."""
    company = get_company(db, company_id)
    page, limit = _page_bounds(page, limit)
    query = (
        db.query(Job)
        .filter(Job.company_id == company.id, Job.status == "active")
        .order_by(Job.created_at.desc(), Job.id.desc())
    )
    return _paginate(query, page, limit, "jobs")


def _accepted_at(app: Application) -> datetime | None:
    for entry in reversed(load_json_list(app.status_history)):
        if isinstance(entry, dict) and entry.get("status") == APP_ACCEPTED and entry.get("timestamp"):
            try:
                return as_utc(datetime.fromisoformat(str(entry["timestamp"])))
            except ValueError:
                return None
    return None


def company_stats(db: Session, *, company_id: int, user: dict) -> dict:
    company = get_company(db, company_id)
    _require_member(db, company.id, user, "You can only view your own company stats")

    jobs = db.query(Job).filter(Job.company_id == company.id).all()
    applications = (
        db.query(Application)
        .join(Job, Application.job_id == Job.id)
        .filter(Job.company_id == company.id)
        .all()
    )

    hired = [a for a in applications if a.status == APP_ACCEPTED]
    hire_days = []
    for app in hired:
        accepted_at, applied_at = _accepted_at(app), as_utc(app.applied_at)
        if accepted_at and applied_at:
            hire_days.append((accepted_at - applied_at).total_seconds() / 86400)

    # Skill spelling from the first job that uses it.
    skill_counts: Counter = Counter()
    spelling: dict[str, str] = {}
    for job in jobs:
        for skill in job_skills(job):
            key = skill.lower()
            spelling.setdefault(key, skill)
            skill_counts[key] += 1

    by_month: Counter = Counter()
    for app in applications:
        applied_at = as_utc(app.applied_at)
        if applied_at:
            by_month[applied_at.strftime("%Y-%m")] += 1
    recent_months = sorted(by_month, reverse=True)[:MONTHS_OF_HISTORY]

    return {
        "company_id": company.id,
        "total_jobs": len(jobs),
        "active_jobs": sum(1 for j in jobs if j.status == "active"),
        "total_applications": len(applications),
        "hired_candidates": len(hired),
        "average_time_to_hire": round(sum(hire_days) / len(hire_days)) if hire_days else 0,
        "top_skills_required": [
            {"skill": spelling[key], "count": count} for key, count in skill_counts.most_common(TOP_SKILLS)
        ],
        "applications_by_month": [{"month": m, "count": by_month[m]} for m in recent_months],
    }


def verify_company(db: Session, *, company_id: int, status: str, admin_id: int) -> Company:
    company = get_company(db, company_id)
    previous = company.verification_status
    company.verification_status = status
    record_audit(
        db,
        actor_id=int(admin_id),
        actor_role=ROLE_PLATFORM_ADMIN,
        action="company.verify",
        target_type="company",
        target_id=company.id,
        details={"from": previous, "to": status},
    )
    db.commit()
    db.refresh(company)
    logger.info("Company %s verification %s -> %s", company.id, previous, status)
    return company
