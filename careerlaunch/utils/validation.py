"""
Validation utilities for input validation and error handling.
"""
import re
from datetime import datetime, timezone
from typing import Any
from fastapi import HTTPException

from ..constants import (
    APPLICATION_STATUSES,
    COMPANY_SIZES,
    COMPANY_VERIFICATION_STATUSES,
    EXPERIENCE_LEVELS,
    JOB_STATUSES,
    JOB_TYPES,
    PORTFOLIO_PLATFORMS,
    SELF_SIGNUP_ROLES,
)


def validate_email(email: str) -> str:
    """Validate email format."""
    if not email or not isinstance(email, str):
        raise HTTPException(status_code=400, detail="Email is required")

    email = email.strip().lower()
    if len(email) > 255:
        raise HTTPException(status_code=400, detail="Email too long (max 255 characters)")

    # Basic email regex
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    if not re.match(pattern, email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    return email


def validate_password(password: str) -> None:
    """Validate password strength."""
    if not password or not isinstance(password, str):
        raise HTTPException(status_code=400, detail="Password is required")

    if len(password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    if len(password) > 128:
        raise HTTPException(status_code=400, detail="Password too long (max 128 characters)")


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000,
    required: bool = True,
    pattern: str | None = None,
) -> str | None:
    """Validate a string field with common rules."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field_name} must be a string")

    value = value.strip()

    if required and not value:
        raise HTTPException(status_code=400, detail=f"{field_name} cannot be empty")

    if not required and not value:
        return None

    if len(value) < min_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must be at least {min_length} characters"
        )

    if len(value) > max_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must not exceed {max_length} characters"
        )

    if pattern and not re.match(pattern, value):
        raise HTTPException(status_code=400, detail=f"{field_name} format is invalid")

    return value


def validate_integer_field(
    value: Any,
    field_name: str,
    min_value: int | None = None,
    max_value: int | None = None,
    required: bool = True,
) -> int | None:
    """Validate an integer field."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, int):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise HTTPException(status_code=400, detail=f"{field_name} must be a valid integer")

    if min_value is not None and value < min_value:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must be at least {min_value}"
        )

    if max_value is not None and value > max_value:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must not exceed {max_value}"
        )

    return value


def _validate_choice(value: str | None, field_name: str, choices: tuple[str, ...]) -> str:
    if not value or not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field_name} is required")

    value = value.strip().lower()
    if value not in choices:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {field_name.lower()}. Must be one of: {', '.join(choices)}"
        )

    return value


def validate_role(role: str) -> str:
    """Validate a self-signup user role."""
    return _validate_choice(role, "Role", SELF_SIGNUP_ROLES)


def validate_job_status(status: str | None) -> str:
    """Validate job status (defaults to active)."""
    if not status:
        return "active"
    return _validate_choice(status, "Status", JOB_STATUSES)


def validate_job_type(job_type: str | None) -> str | None:
    if not job_type:
        return None
    return _validate_choice(job_type, "Job type", JOB_TYPES)


def validate_experience_level(level: str | None) -> str | None:
    if not level:
        return None
    return _validate_choice(level, "Experience level", EXPERIENCE_LEVELS)


def validate_application_status(status: str | None) -> str:
    return _validate_choice(status, "Application status", APPLICATION_STATUSES)


def validate_platform(platform: str | None) -> str:
    return _validate_choice(platform, "Platform", PORTFOLIO_PLATFORMS)


def validate_company_size(size: str | None) -> str | None:
    if not size:
        return None
    return _validate_choice(size, "Company size", COMPANY_SIZES)


def validate_verification_status(status: str | None) -> str:
    return _validate_choice(status, "Verification status", COMPANY_VERIFICATION_STATUSES)


def parse_iso_datetime(value: str | None, field_name: str) -> datetime | None:
    """Parse an ISO 8601 string into UTC; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (ValueError, AttributeError):
        raise HTTPException(status_code=400, detail=f"Invalid {field_name} format. Use ISO 8601 format.")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    # SQLite drops the offset on write, so store the UTC instant.
    return parsed.astimezone(timezone.utc)


def clean_string_list(values: list[Any] | None) -> list[str]:
    """Trim, drop empties and de-duplicate case-insensitively (first spelling wins)."""
    seen: set[str] = set()
    cleaned: list[str] = []
    for raw in values or []:
        item = str(raw).strip()
        if not item or item.lower() in seen:
            continue
        seen.add(item.lower())
        cleaned.append(item)
    return cleaned


LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """ILIKE pattern matching `text` literally as a substring; pair with escape=LIKE_ESCAPE."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
