import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..constants import ROLE_STUDENT
from ..database import get_db
from ..services import application_workflow
from ..services.application_workflow import application_to_public
from ..services.notifications import deliver_pending_notifications
from ..utils.dependencies import get_current_user
from ..utils.error_handlers import ForbiddenError
from ..utils.roles import staff_only, student_only
from ..utils.validation import parse_iso_datetime, validate_application_status, validate_string_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


class ExpectedSalary(BaseModel):
    amount: int = Field(ge=0)
    currency: str = Field(default="USD", max_length=5)
    period: str = Field(default="yearly", max_length=20)


class ApplicationCreate(BaseModel):
    job_id: int
    cover_letter: str | None = Field(default=None, max_length=10000)
    expected_salary: ExpectedSalary | None = None
    availability_date: date | None = None


class StatusUpdate(BaseModel):
    status: str
    notes: str | None = Field(default=None, max_length=5000)
    interview_date: str | None = None  # ISO datetime string
    interview_type: str | None = Field(default=None, max_length=50)
    interview_location: str | None = Field(default=None, max_length=255)
    interviewer_name: str | None = Field(default=None, max_length=255)
    score: int | None = Field(default=None, ge=0, le=100)


class BulkStatusUpdate(BaseModel):
    application_ids: list[int] = Field(min_length=1, max_length=500)
    status: str
    notes: str | None = Field(default=None, max_length=5000)


def _page(result: dict) -> dict:
    result["applications"] = [application_to_public(a) for a in result["applications"]]
    return result


@router.post("", status_code=201)
def submit_application(
    payload: ApplicationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(student_only),
):
    app = application_workflow.submit_application(
        db,
        student_id=int(user["sub"]),
        job_id=payload.job_id,
        cover_letter=validate_string_field(payload.cover_letter, "Cover letter", max_length=10000, required=False),
        expected_salary=payload.expected_salary.model_dump() if payload.expected_salary else None,
        availability_date=payload.availability_date,
    )
    background_tasks.add_task(deliver_pending_notifications)
    return application_to_public(app)


@router.get("")
def list_applications(
    status: str | None = None,
    job_id: int | None = None,
    student_id: int | None = None,
    company_id: int | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: str = "applied_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    result = application_workflow.list_applications(
        db,
        caller=user,
        status=validate_application_status(status) if status else None,
        job_id=job_id,
        student_id=student_id,
        company_id=company_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return _page(result)


@router.get("/stats")
def application_stats(db: Session = Depends(get_db), user=Depends(get_current_user)):
    return application_workflow.application_stats(db, caller=user)


@router.get("/job/{job_id:int}/applications")
def job_applications(
    job_id: int,
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    result = application_workflow.list_applications(
        db,
        caller=user,
        job_id=job_id,
        status=validate_application_status(status) if status else None,
        page=page,
        limit=limit,
    )
    return _page(result)


@router.get("/student/{student_id:int}/applications")
def student_applications(
    student_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    if user["role"] == ROLE_STUDENT and int(user["sub"]) != student_id:
        raise ForbiddenError("You can only view your own applications")
    result = application_workflow.list_applications(
        db,
        caller=user,
        student_id=student_id,
        page=page,
        limit=limit,
    )
    return _page(result)


@router.get("/{application_id:int}")
def get_application(application_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    app = application_workflow.get_application(db, application_id=application_id, caller=user)
    return application_to_public(app)


@router.patch("/{application_id:int}/status")
def update_application_status(
    application_id: int,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    app = application_workflow.update_status(
        db,
        application_id=application_id,
        new_status=validate_application_status(payload.status),
        actor_id=int(user["sub"]),
        actor_role=user["role"],
        notes=validate_string_field(payload.notes, "Notes", max_length=5000, required=False),
        interview_date=parse_iso_datetime(payload.interview_date, "interview_date"),
        interview_type=payload.interview_type,
        interview_location=payload.interview_location,
        interviewer_name=payload.interviewer_name,
        score=payload.score,
    )
    background_tasks.add_task(deliver_pending_notifications)
    return application_to_public(app)


@router.post("/bulk-status")
def bulk_update_status(
    payload: BulkStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(staff_only),
):
    result = application_workflow.bulk_update_status(
        db,
        application_ids=payload.application_ids,
        new_status=validate_application_status(payload.status),
        actor_id=int(user["sub"]),
        actor_role=user["role"],
        notes=validate_string_field(payload.notes, "Notes", max_length=5000, required=False),
    )
    if result["updated"]:
        background_tasks.add_task(deliver_pending_notifications)
    return result


@router.delete("/{application_id:int}/withdraw", status_code=204)
def withdraw_application(application_id: int, db: Session = Depends(get_db), user=Depends(student_only)):
    application_workflow.withdraw(db, application_id=application_id, student_id=int(user["sub"]))
    return Response(status_code=204)
