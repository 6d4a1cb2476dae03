import logging
from typing import Any

from sqlalchemy.orm import Session

from ..models.audit_log import AuditLog
from ..utils.json_fields import dump_json

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    *,
    actor_id: int | None,
    actor_role: str | None,
    action: str,
    target_type: str,
    target_id: int | None,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Append an audit row to the caller's unit of work.

    The caller commits, so the entry lands atomically with the mutation it describes.
    """
    entry = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=dump_json(details) if details else None,
    )
    db.add(entry)
    logger.info("audit %s %s:%s by %s(%s)", action, target_type, target_id, actor_role, actor_id)
    return entry
