import logging
import math
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..constants import ROLE_PLATFORM_ADMIN
from ..database import get_db
from ..models.application import Application
from ..models.audit_log import AuditLog
from ..models.company import Company
from ..models.job import Job
from ..models.notification import Notification
from ..models.recruiter import Recruiter
from ..models.user import User
from ..services.audit import record_audit
from ..utils.error_handlers import NotFoundError, get_error_message
from ..utils.json_fields import iso, load_json_dict
from ..utils.roles import admin_only

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

# action -> resulting user status
_BULK_ACTIONS = {"activate": "active", "deactivate": "inactive", "suspend": "suspended"}


class BulkUserAction(BaseModel):
    user_ids: list[int] = Field(min_length=1, max_length=500)
    action: Literal["activate", "deactivate", "suspend"]
    reason: str | None = Field(default=None, max_length=1000)


class RecruiterCompanyAssignment(BaseModel):
    company_id: int


def _audit_to_public(entry: AuditLog) -> dict:
    return {
        "id": entry.id,
        "actor_id": entry.actor_id,
        "actor_role": entry.actor_role,
        "action": entry.action,
        "target_type": entry.target_type,
        "target_id": entry.target_id,
        "details": load_json_dict(entry.details) or None,
        "created_at": iso(entry.created_at),
    }


@router.get("/audit-logs")
def list_audit_logs(
    actor_id: int | None = None,
    action: str | None = None,
    target_type: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(admin_only),
):
    query = db.query(AuditLog)
    if actor_id is not None:
        query = query.filter(AuditLog.actor_id == actor_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if target_type:
        query = query.filter(AuditLog.target_type == target_type)

    total = query.count()
    rows = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "logs": [_audit_to_public(r) for r in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


@router.post("/users/bulk-action")
def bulk_user_action(payload: BulkUserAction, db: Session = Depends(get_db), user=Depends(admin_only)):
    admin_id = int(user["sub"])
    new_status = _BULK_ACTIONS[payload.action]
    processed = 0
    errors: list[dict] = []

    for user_id in payload.user_ids:
        if user_id == admin_id:
            errors.append({"id": user_id, "error": "Cannot perform this action on your own account"})
            continue
        target = db.query(User).filter(User.id == user_id).first()
        if not target:
            errors.append({"id": user_id, "error": "User not found"})
            continue
        previous = target.status
        target.status = new_status
        record_audit(
            db,
            actor_id=admin_id,
            actor_role=ROLE_PLATFORM_ADMIN,
            action=f"user.{payload.action}",
            target_type="user",
            target_id=target.id,
            details={"from": previous, "to": new_status, "reason": payload.reason},
        )
        db.commit()
        processed += 1

    if errors:
        logger.info("Bulk %s: %s processed, %s failed", payload.action, processed, len(errors))
    return {"processed": processed, "failed": len(errors), "errors": errors}


@router.put("/recruiters/{user_id:int}/company")
def assign_recruiter_company(
    user_id: int,
    payload: RecruiterCompanyAssignment,
    db: Session = Depends(get_db),
    user=Depends(admin_only),
):
    """Attach a recruiter to an existing company; the only way to join one."""
    recruiter = db.query(Recruiter).filter(Recruiter.user_id == user_id).first()
    if not recruiter:
        raise NotFoundError(get_error_message("recruiter_not_found"))
    company = db.query(Company).filter(Company.id == payload.company_id).first()
    if not company:
        raise NotFoundError(get_error_message("company_not_found"))

    previous = recruiter.company_id
    recruiter.company_id = company.id
    record_audit(
        db,
        actor_id=int(user["sub"]),
        actor_role=ROLE_PLATFORM_ADMIN,
        action="recruiter.assign_company",
        target_type="user",
        target_id=user_id,
        details={"from": previous, "to": company.id},
    )
    db.commit()
    logger.info("Recruiter %s moved from company %s to %s", user_id, previous, company.id)
    return {"user_id": user_id, "company": {"id": company.id, "name": company.name}}


def _counts(db: Session, column) -> dict:
    return {str(k): int(n) for k, n in db.query(column, func.count()).group_by(column).all()}


@router.get("/stats")
def platform_stats(db: Session = Depends(get_db), user=Depends(admin_only)):
    notifications = _counts(db, Notification.status)
    return {
        "users_by_role": _counts(db, User.role),
        "users_by_status": _counts(db, User.status),
        "jobs_by_status": _counts(db, Job.status),
        "applications_by_status": _counts(db, Application.status),
        "notifications": {
            "pending": notifications.get("pending", 0),
            "failed": notifications.get("failed", 0),
            "sent": notifications.get("sent", 0),
        },
    }
