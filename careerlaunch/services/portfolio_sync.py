"""
Student portfolios and their projects, including import from GitHub.

A sync fetches everything from the provider first and only then touches the
database, so a provider failure leaves prior projects and skills intact.
"""
import logging
import math
from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import ADMIN_ROLES, ROLE_STUDENT, SYNCABLE_PLATFORMS
from ..models.portfolio import Portfolio
from ..models.project import Project
from ..models.student import Student
from ..models.user import User
from ..utils.error_handlers import AppError, BadRequestError, ForbiddenError, NotFoundError, get_error_message
from ..utils.json_fields import dump_json, iso, load_json_dict, load_json_list, utcnow
from ..utils.validation import LIKE_ESCAPE, clean_string_list, contains_pattern
from .audit import record_audit
from .github_client import GitHubClient, PortfolioSnapshot, extract_skills_from_repositories

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

PORTFOLIO_EDITABLE_FIELDS = ("profile_url", "username", "title", "description", "auto_sync", "is_public")
PROJECT_EDITABLE_FIELDS = (
    "title",
    "description",
    "technologies",
    "project_url",
    "repository_url",
    "status",
    "primary_language",
    "topics",
)
_PROJECT_LIST_FIELDS = ("technologies", "topics")


def project_to_public(project: Project) -> dict:
    return {
        "id": project.id,
        "portfolio_id": project.portfolio_id,
        "title": project.title,
        "description": project.description,
        "technologies": load_json_list(project.technologies),
        "project_url": project.project_url,
        "repository_url": project.repository_url,
        "status": project.status,
        "stars_count": project.stars_count or 0,
        "forks_count": project.forks_count or 0,
        "watchers_count": project.watchers_count or 0,
        "size": project.size,
        "primary_language": project.primary_language,
        "topics": load_json_list(project.topics),
        "license": project.license,
        "is_fork": bool(project.is_fork),
        "external_created_at": iso(project.external_created_at),
        "external_updated_at": iso(project.external_updated_at),
        "created_at": iso(project.created_at),
        "updated_at": iso(project.updated_at),
    }


def portfolio_to_public(portfolio: Portfolio, *, include_projects: bool = True) -> dict:
    payload = {
        "id": portfolio.id,
        "student_id": portfolio.student_id,
        "platform": portfolio.platform,
        "profile_url": portfolio.profile_url,
        "username": portfolio.username,
        "title": portfolio.title,
        "description": portfolio.description,
        "is_verified": bool(portfolio.is_verified),
        "last_synced": iso(portfolio.last_synced),
        "profile": load_json_dict(portfolio.profile_json) or None,
        "statistics": load_json_dict(portfolio.statistics_json) or None,
        "sync_status": load_json_dict(portfolio.sync_status_json) or None,
        "auto_sync": bool(portfolio.auto_sync),
        "is_public": bool(portfolio.is_public),
        "is_featured": bool(portfolio.is_featured),
        "created_at": iso(portfolio.created_at),
        "updated_at": iso(portfolio.updated_at),
    }
    user = portfolio.student.user if portfolio.student else None
    if user:
        payload["student"] = {
            "id": user.id,
            "name": user.name,
            "major": portfolio.student.major,
            "graduation_year": portfolio.student.graduation_year,
        }
    if include_projects:
        payload["projects"] = [project_to_public(p) for p in _ordered_projects(portfolio.projects)]
    return payload


def _ordered_projects(projects: list[Project]) -> list[Project]:
    return sorted(projects, key=lambda p: (-(p.stars_count or 0), -(p.id or 0)))


def _get_portfolio(db: Session, portfolio_id: int) -> Portfolio:
    portfolio = db.query(Portfolio).filter(Portfolio.id == int(portfolio_id)).first()
    if not portfolio:
        raise NotFoundError(get_error_message("portfolio_not_found"))
    return portfolio


def _get_owned_portfolio(db: Session, portfolio_id: int, student_id: int, verb: str) -> Portfolio:
    portfolio = _get_portfolio(db, portfolio_id)
    if portfolio.student_id != int(student_id):
        raise ForbiddenError(f"You can only {verb} your own portfolios")
    return portfolio


def _get_owned_project(db: Session, project_id: int, student_id: int, verb: str) -> Project:
    project = db.query(Project).filter(Project.id == int(project_id)).first()
    if not project:
        raise NotFoundError(get_error_message("project_not_found"))
    if project.portfolio.student_id != int(student_id):
        raise ForbiddenError(f"You can only {verb} your own projects")
    return project


def create_portfolio(db: Session, *, student_id: int, fields: dict[str, Any]) -> Portfolio:
    student = db.query(Student).filter(Student.user_id == int(student_id)).first()
    if not student:
        raise NotFoundError(get_error_message("student_not_found"))

    platform = fields["platform"]
    existing = (
        db.query(Portfolio.id)
        .filter(Portfolio.student_id == student.user_id, Portfolio.platform == platform)
        .first()
    )
    if existing:
        raise BadRequestError(f"Portfolio for {platform} already exists")

    portfolio = Portfolio(
        student_id=student.user_id,
        platform=platform,
        profile_url=fields["profile_url"],
        username=fields.get("username"),
        title=fields.get("title"),
        description=fields.get("description"),
        is_verified=False,
        auto_sync=True if fields.get("auto_sync") is None else bool(fields["auto_sync"]),
        is_public=True if fields.get("is_public") is None else bool(fields["is_public"]),
    )
    db.add(portfolio)
    db.commit()
    db.refresh(portfolio)
    return portfolio


def list_student_portfolios(db: Session, *, student_id: int) -> list[Portfolio]:
    return (
        db.query(Portfolio)
        .filter(Portfolio.student_id == int(student_id))
        .order_by(Portfolio.created_at.desc(), Portfolio.id.desc())
        .all()
    )


def get_portfolio(db: Session, *, portfolio_id: int, viewer: dict) -> Portfolio:
    portfolio = _get_portfolio(db, portfolio_id)
    if portfolio.is_public:
        return portfolio
    if viewer.get("role") in ADMIN_ROLES or int(viewer.get("sub") or 0) == portfolio.student_id:
        return portfolio
    raise NotFoundError(get_error_message("portfolio_not_found"))


def update_portfolio(db: Session, *, portfolio_id: int, student_id: int, changes: dict[str, Any]) -> Portfolio:
    portfolio = _get_owned_portfolio(db, portfolio_id, student_id, "update")
    for key, value in changes.items():
        if key in PORTFOLIO_EDITABLE_FIELDS:
            setattr(portfolio, key, value)
    db.commit()
    db.refresh(portfolio)
    return portfolio


def delete_portfolio(db: Session, *, portfolio_id: int, student_id: int) -> None:
    portfolio = _get_owned_portfolio(db, portfolio_id, student_id, "delete")
    db.delete(portfolio)
    db.commit()
    logger.info("Student %s deleted portfolio %s", student_id, portfolio_id)


def featured_portfolios(db: Session, *, limit: int = 10) -> list[Portfolio]:
    return (
        db.query(Portfolio)
        .filter(Portfolio.is_featured.is_(True), Portfolio.is_public.is_(True))
        .order_by(Portfolio.updated_at.desc(), Portfolio.id.desc())
        .limit(min(max(1, int(limit or 10)), MAX_PAGE_SIZE))
        .all()
    )


def _uses_technology(portfolio: Portfolio, wanted: set[str]) -> bool:
    for project in portfolio.projects:
        techs = {str(t).strip().lower() for t in load_json_list(project.technologies)}
        if project.primary_language:
            techs.add(project.primary_language.lower())
        if techs & wanted:
            return True
    return False


def search_portfolios(
    db: Session,
    *,
    q: str | None = None,
    platform: str | None = None,
    technologies: list[str] | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    page = max(1, int(page or 1))
    limit = min(max(1, int(limit or 10)), MAX_PAGE_SIZE)

    query = (
        db.query(Portfolio)
        .join(Student, Portfolio.student_id == Student.user_id)
        .join(User, Student.user_id == User.id)
        .filter(Portfolio.is_public.is_(True))
    )
    text = (q or "").strip()
    if text:
        pattern = contains_pattern(text)
        query = query.filter(
            or_(
                Portfolio.title.ilike(pattern, escape=LIKE_ESCAPE),
                Portfolio.description.ilike(pattern, escape=LIKE_ESCAPE),
                User.name.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    if platform:
        query = query.filter(Portfolio.platform == platform)
    query = query.order_by(Portfolio.updated_at.desc(), Portfolio.id.desc())

    offset = (page - 1) * limit
    wanted = {t.strip().lower() for t in (technologies or []) if t and t.strip()}
    if wanted:
        matched = [p for p in query.all() if _uses_technology(p, wanted)]
        total = len(matched)
        rows = matched[offset:offset + limit]
    else:
        total = query.count()
        rows = query.offset(offset).limit(limit).all()
    return {
        "portfolios": rows,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def _project_values(fields: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for key, value in fields.items():
        if key not in PROJECT_EDITABLE_FIELDS:
            continue
        if key in _PROJECT_LIST_FIELDS:
            value = dump_json(clean_string_list(value)) if value is not None else None
        values[key] = value
    return values


def create_project(db: Session, *, portfolio_id: int, student_id: int, fields: dict[str, Any]) -> Project:
    portfolio = _get_owned_portfolio(db, portfolio_id, student_id, "add projects to")
    values = _project_values(fields)
    values["status"] = values.get("status") or "active"
    project = Project(portfolio_id=portfolio.id, **values)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def list_projects(db: Session, *, portfolio_id: int, viewer: dict) -> list[Project]:
    portfolio = get_portfolio(db, portfolio_id=portfolio_id, viewer=viewer)
    return (
        db.query(Project)
        .filter(Project.portfolio_id == portfolio.id)
        .order_by(Project.stars_count.desc(), Project.created_at.desc(), Project.id.desc())
        .all()
    )


def update_project(db: Session, *, project_id: int, student_id: int, changes: dict[str, Any]) -> Project:
    project = _get_owned_project(db, project_id, student_id, "update")
    for key, value in _project_values(changes).items():
        setattr(project, key, value)
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, *, project_id: int, student_id: int) -> None:
    project = _get_owned_project(db, project_id, student_id, "delete")
    db.delete(project)
    db.commit()


def _parse_github_ts(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _synced_fields(repo: dict[str, Any]) -> dict[str, Any]:
    """Columns refreshed on every sync."""
    license_info = repo.get("license") or {}
    return {
        "description": repo.get("description"),
        "project_url": repo.get("html_url"),
        "primary_language": repo.get("language"),
        "stars_count": int(repo.get("stargazers_count") or 0),
        "forks_count": int(repo.get("forks_count") or 0),
        "watchers_count": int(repo.get("watchers_count") or 0),
        "size": repo.get("size"),
        "topics": dump_json(list(repo.get("topics") or [])),
        "license": license_info.get("name") if isinstance(license_info, dict) else None,
        "external_updated_at": _parse_github_ts(repo.get("updated_at")),
    }


def _merge_into_student(student: Student, skills: list[str], languages: list[str]) -> None:
    student.skills = dump_json(clean_string_list(load_json_list(student.skills) + list(skills)))
    student.programming_languages = dump_json(
        clean_string_list(load_json_list(student.programming_languages) + list(languages))
    )


def _apply_snapshot(db: Session, portfolio: Portfolio, snapshot: PortfolioSnapshot, username: str) -> dict:
    now = utcnow()
    existing = {
        p.repository_url: p
        for p in db.query(Project).filter(Project.portfolio_id == portfolio.id).all()
        if p.repository_url
    }

    imported = 0
    updated = 0
    for repo in snapshot.own_repositories:
        repo_url = repo.get("clone_url") or repo.get("html_url")
        if not repo_url:
            continue
        fields = _synced_fields(repo)
        project = existing.get(repo_url)
        if project is None:
            project = Project(
                portfolio_id=portfolio.id,
                title=repo.get("name") or repo_url,
                repository_url=repo_url,
                status="active",
                is_fork=bool(repo.get("fork")),
                is_private=bool(repo.get("private")),
                external_created_at=_parse_github_ts(repo.get("created_at")),
                **fields,
            )
            db.add(project)
            existing[repo_url] = project
            imported += 1
        else:
            for key, value in fields.items():
                setattr(project, key, value)
            updated += 1

    skills = extract_skills_from_repositories(snapshot.own_repositories)
    student = db.query(Student).filter(Student.user_id == portfolio.student_id).first()
    if student:
        _merge_into_student(student, skills, list(snapshot.languages))

    portfolio.username = username
    portfolio.profile_json = dump_json(snapshot.profile)
    portfolio.statistics_json = dump_json(snapshot.statistics())
    portfolio.last_synced = now
    portfolio.is_verified = True
    portfolio.sync_status_json = dump_json(
        {
            "status": "success",
            "timestamp": iso(now),
            "last_error": None,
            "last_successful_sync": iso(now),
        }
    )
    return {
        "message": "Portfolio synced successfully",
        "projects_imported": imported,
        "projects_updated": updated,
        "skills_found": skills,
    }


async def sync_portfolio(
    db: Session,
    *,
    portfolio_id: int,
    student_id: int,
    username: str | None = None,
    access_token: str | None = None,
    client: GitHubClient | None = None,
) -> dict:
    portfolio = _get_owned_portfolio(db, portfolio_id, student_id, "sync")
    if portfolio.platform not in SYNCABLE_PLATFORMS:
        raise BadRequestError(get_error_message("unsupported_platform"))
    username = (username or portfolio.username or "").strip()
    if not username:
        raise BadRequestError("A GitHub username is required to sync")

    previous = load_json_dict(portfolio.sync_status_json)
    provider = client or GitHubClient(access_token)
    try:
        snapshot = await provider.fetch_portfolio(username)
        result = _apply_snapshot(db, portfolio, snapshot, username)
        record_audit(
            db,
            actor_id=int(student_id),
            actor_role=ROLE_STUDENT,
            action="portfolio.sync",
            target_type="portfolio",
            target_id=portfolio.id,
            details={"imported": result["projects_imported"], "updated": result["projects_updated"]},
        )
        db.commit()
    except (AppError, SQLAlchemyError, ValueError) as e:
        db.rollback()
        message = e.message if isinstance(e, AppError) else str(e)
        logger.warning(f"Portfolio {portfolio_id} sync failed: {message}")
        portfolio = _get_portfolio(db, portfolio_id)
        portfolio.sync_status_json = dump_json(
            {
                "status": "error",
                "timestamp": iso(utcnow()),
                "last_error": message,
                "last_successful_sync": previous.get("last_successful_sync"),
            }
        )
        record_audit(
            db,
            actor_id=int(student_id),
            actor_role=ROLE_STUDENT,
            action="portfolio.sync_failed",
            target_type="portfolio",
            target_id=portfolio.id,
            details={"error": message},
        )
        db.commit()
        raise BadRequestError(f"Sync failed: {message}") from e

    logger.info(
        "Synced portfolio %s: %s imported, %s updated, %s skills",
        portfolio.id,
        result["projects_imported"],
        result["projects_updated"],
        len(result["skills_found"]),
    )
    return result
