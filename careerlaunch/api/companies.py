import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..services import companies
from ..services.companies import company_to_public
from ..services.job_catalog import job_to_public
from ..utils.dependencies import get_current_user
from ..utils.roles import admin_only, staff_only
from ..utils.validation import (
    clean_string_list,
    validate_company_size,
    validate_email,
    validate_string_field,
    validate_verification_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["Companies"])


class CompanyUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=5000)
    size: str | None = None
    industry: str | None = Field(default=None, max_length=120)
    location: str | None = Field(default=None, max_length=150)
    website: str | None = Field(default=None, max_length=255)
    logo_url: str | None = Field(default=None, max_length=500)
    contact_email: str | None = None
    founded_year: int | None = Field(default=None, ge=1800, le=2100)
    employee_count: int | None = Field(default=None, ge=0)
    benefits: list[str] | None = None
    technologies: list[str] | None = None


class VerificationUpdate(BaseModel):
    status: str  # pending / verified / rejected


def _clean_company_fields(data: dict) -> dict:
    fields = dict(data)
    for key, label, max_length in (
        ("description", "Description", 5000),
        ("industry", "Industry", 120),
        ("location", "Location", 150),
        ("website", "Website", 255),
        ("logo_url", "Logo URL", 500),
    ):
        if key in fields:
            fields[key] = validate_string_field(fields[key], label, max_length=max_length, required=False)
    if "size" in fields:
        fields["size"] = validate_company_size(fields["size"])
    if fields.get("contact_email"):
        fields["contact_email"] = validate_email(fields["contact_email"])
    for key in ("benefits", "technologies"):
        if key in fields:
            fields[key] = clean_string_list(fields[key])
    return fields


def _page_payload(result: dict) -> dict:
    result["companies"] = [company_to_public(c) for c in result["companies"]]
    return result


@router.get("")
def list_companies(
    industry: str | None = None,
    size: str | None = None,
    location: str | None = None,
    verified: bool | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    result = companies.list_companies(
        db,
        industry=industry,
        size=validate_company_size(size),
        location=location,
        verified=verified,
        page=page,
        limit=limit,
    )
    return _page_payload(result)


@router.get("/search")
def search_companies(
    q: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return _page_payload(companies.search_companies(db, q=q, page=page, limit=limit))


@router.get("/{company_id:int}")
def get_company(company_id: int, db: Session = Depends(get_db)):
    return company_to_public(companies.get_company(db, company_id))


@router.put("/{company_id:int}")
def update_company(
    company_id: int,
    payload: CompanyUpdate,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    changes = _clean_company_fields(payload.model_dump(exclude_unset=True))
    company = companies.update_company(db, company_id=company_id, user=user, changes=changes)
    return company_to_public(company)


@router.get("/{company_id:int}/jobs")
def company_jobs(
    company_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    result = companies.company_jobs(db, company_id=company_id, page=page, limit=limit)
    result["jobs"] = [job_to_public(j) for j in result["jobs"]]
    return result


@router.get("/{company_id:int}/stats")
def company_stats(company_id: int, db: Session = Depends(get_db), user=Depends(staff_only)):
    return companies.company_stats(db, company_id=company_id, user=user)


@router.put("/{company_id:int}/verify")
def verify_company(
    company_id: int,
    payload: VerificationUpdate,
    db: Session = Depends(get_db),
    user=Depends(admin_only),
):
    status = validate_verification_status(payload.status)
    company = companies.verify_company(db, company_id=company_id, status=status, admin_id=int(user["sub"]))
    return {
        "message": f"Company verification status updated to {status}",
        "company": company_to_public(company),
    }
