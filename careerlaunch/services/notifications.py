"""
Notification outbox.

Core operations call `queue_notification` only after their own commit; the row
is committed separately so a notification problem can never roll back or fail
the business mutation. `deliver_pending_notifications` is the worker: routes
schedule it with FastAPI BackgroundTasks so SMTP latency stays off the request.
"""
import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import config, database
from ..models.notification import Notification
from ..utils.json_fields import dump_json, load_json_dict, utcnow
from . import emailer

logger = logging.getLogger(__name__)

KIND_APPLICATION_SUBMITTED = "application_submitted"
KIND_STATUS_CHANGED = "application_status_changed"
KIND_INTERVIEW_SCHEDULED = "interview_scheduled"
KIND_JOB_MATCH = "new_job_match"

# kind -> emailer function name (looked up at send time).
_SENDERS = {
    KIND_APPLICATION_SUBMITTED: "send_application_status_email",
    KIND_STATUS_CHANGED: "send_application_status_email",
    KIND_INTERVIEW_SCHEDULED: "send_interview_scheduled_email",
    KIND_JOB_MATCH: "send_job_match_email",
}


def queue_notification(
    db: Session,
    *,
    user_id: int | None,
    kind: str,
    payload: dict[str, Any],
) -> Notification | None:
    """Record a pending notification. Never raises; returns None on failure."""
    if kind not in _SENDERS:
        logger.warning("Unknown notification kind %r; dropping", kind)
        return None
    try:
        n = Notification(user_id=user_id, kind=kind, payload=dump_json(payload), status="pending")
        db.add(n)
        db.commit()
        db.refresh(n)
        return n
    except Exception as e:
        db.rollback()
        logger.warning(f"Failed to queue {kind} notification for user {user_id}: {e}")
        return None


def _claim(db: Session, notification_id: int) -> bool:
    claimed = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.status == "pending")
        .update(
            {"status": "sending", "attempts": Notification.attempts + 1, "claimed_at": utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return claimed == 1


def _requeue_stale_claims(db: Session) -> int:
    """Put rows whose sender died mid-delivery back in the queue."""
    cutoff = utcnow() - timedelta(seconds=config.NOTIFICATION_CLAIM_TIMEOUT_S)
    requeued = (
        db.query(Notification)
        .filter(
            Notification.status == "sending",
            or_(Notification.claimed_at.is_(None), Notification.claimed_at < cutoff),
        )
        .update({"status": "pending", "claimed_at": None}, synchronize_session=False)
    )
    db.commit()
    if requeued:
        logger.warning("Requeued %d notification(s) stuck in sending", requeued)
    return requeued


def _deliver_one(db: Session, n: Notification) -> None:
    payload = load_json_dict(n.payload)
    if not config.NOTIFICATIONS_ENABLED:
        n.status = "skipped"
        return
    if not payload.get("to_email"):
        n.status = "failed"
        n.error = "No recipient address"
        return

    sender = getattr(emailer, _SENDERS[n.kind])
    try:
        sender(**payload)
    except Exception as e:
        # Delivery is best-effort; the triggering operation has already succeeded.
        logger.warning(f"Notification {n.id} ({n.kind}) delivery failed: {type(e).__name__}: {e}")
        n.status = "failed"
        n.error = str(e)[:2000]
        return
    n.status = "sent"
    n.error = None
    n.sent_at = utcnow()


def deliver_pending_notifications(limit: int = 100) -> dict[str, int]:
    """Drain pending outbox rows, first reclaiming stale sends. Never raises."""
    summary = {"sent": 0, "failed": 0, "skipped": 0}
    try:
        with database.session_scope() as db:
            _requeue_stale_claims(db)
            ids = [
                row.id
                for row in db.query(Notification.id)
                .filter(Notification.status == "pending")
                .order_by(Notification.id.asc())
                .limit(limit)
                .all()
            ]
            for notification_id in ids:
                if not _claim(db, notification_id):
                    continue
                n = db.query(Notification).filter(Notification.id == notification_id).first()
                if n is None:
                    continue
                _deliver_one(db, n)
                db.add(n)
                db.commit()
                summary[n.status] = summary.get(n.status, 0) + 1
    except Exception as e:
        logger.exception("Notification worker crashed: %s", e)
    if any(summary.values()):
        logger.info("Notification worker: %s", summary)
    return summary
