import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

_APP_NAME = "CareerLaunch"

_STATUS_LABELS = {
    "submitted": "Submitted",
    "under_review": "Under review",
    "shortlisted": "Shortlisted",
    "interviewed": "Interview stage",
    "accepted": "Accepted",
    "rejected": "Not selected",
    "withdrawn": "Withdrawn",
}


def _env_bool(name: str, default: str = "1") -> bool:
    v = (os.getenv(name, default) or default).strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _send(*, to_email: str, subject: str, lines: list[str]) -> None:
    """
    Sends a plain-text email over SMTP.

    Env vars:
      SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM, SMTP_TLS
    """
    host = (os.getenv("SMTP_HOST") or "").strip()
    port = int((os.getenv("SMTP_PORT") or "587").strip())
    user = (os.getenv("SMTP_USER") or "").strip()
    password = (os.getenv("SMTP_PASS") or "").strip()
    mail_from = (os.getenv("SMTP_FROM") or user).strip()
    use_tls = _env_bool("SMTP_TLS", "1")

    if not host or not user or not password or not mail_from:
        raise RuntimeError("SMTP is not configured (missing SMTP_HOST/SMTP_USER/SMTP_PASS/SMTP_FROM).")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = mail_from
    msg["To"] = to_email
    msg.set_content("\n".join(lines))

    logger.debug("Connecting to %s:%s (TLS=%s)", host, port, use_tls)
    with smtplib.SMTP(host, port, timeout=15) as smtp:
        smtp.ehlo()
        if use_tls:
            smtp.starttls()
            smtp.ehlo()
        smtp.login(user, password)
        smtp.send_message(msg)
    logger.info("Email '%s' sent to %s", subject, to_email)


def _signature() -> list[str]:
    return ["", "Best regards,", _APP_NAME]


def send_application_status_email(
    *,
    to_email: str,
    student_name: str | None,
    job_title: str | None,
    company_name: str | None,
    status: str,
) -> None:
    name = (student_name or "there").strip()
    jt = (job_title or "the role").strip()
    company = (company_name or "the company").strip()
    label = _STATUS_LABELS.get(status, status)

    lines = [f"Hi {name},", ""]
    if status == "submitted":
        lines.append(f"We received your application for {jt} at {company}.")
    else:
        lines.append(f"Your application for {jt} at {company} has a new status: {label}.")
    lines.append("")
    lines.append(f"You can follow your applications from the {_APP_NAME} dashboard.")
    _send(
        to_email=to_email,
        subject=f"Application Update: {jt} at {company}",
        lines=lines + _signature(),
    )


def send_interview_scheduled_email(
    *,
    to_email: str,
    student_name: str | None,
    job_title: str | None,
    company_name: str | None,
    scheduled_at_text: str,
    interview_type: str | None = None,
    location: str | None = None,
) -> None:
    name = (student_name or "there").strip()
    jt = (job_title or "the role").strip()
    company = (company_name or "the company").strip()

    lines = [f"Hi {name},", "", f"Good news! {company} has scheduled an interview for {jt}.", ""]
    lines.append(f"When: {scheduled_at_text}")
    if interview_type:
        lines.append(f"Type: {interview_type}")
    if location:
        lines.append(f"Location: {location}")
    _send(
        to_email=to_email,
        subject=f"Interview Scheduled: {jt} at {company}",
        lines=lines + _signature(),
    )


def send_job_match_email(
    *,
    to_email: str,
    student_name: str | None,
    jobs: list[dict],
) -> None:
    name = (student_name or "there").strip()
    lines = [f"Hi {name},", "", "These new openings match your skills:", ""]
    for job in jobs:
        title = job.get("title") or "Untitled role"
        company = job.get("company_name") or ""
        lines.append(f"- {title}" + (f" at {company}" if company else ""))
    _send(
        to_email=to_email,
        subject=f"New Job Matches Found - {len(jobs)} opportunities",
        lines=lines + _signature(),
    )
