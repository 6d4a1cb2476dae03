import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..services import portfolio_sync
from ..services.portfolio_sync import portfolio_to_public, project_to_public
from ..utils.dependencies import get_current_user
from ..utils.roles import student_only
from ..utils.validation import clean_string_list, validate_platform, validate_string_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/portfolios", tags=["Portfolios"])


class PortfolioCreate(BaseModel):
    platform: str
    profile_url: str = Field(min_length=4, max_length=500)
    username: str | None = Field(default=None, max_length=120)
    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    auto_sync: bool | None = None
    is_public: bool | None = None


class PortfolioUpdate(BaseModel):
    profile_url: str | None = Field(default=None, min_length=4, max_length=500)
    username: str | None = Field(default=None, max_length=120)
    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    auto_sync: bool | None = None
    is_public: bool | None = None


class SyncRequest(BaseModel):
    username: str | None = Field(default=None, max_length=120)
    access_token: str | None = Field(default=None, max_length=255)


class ProjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    technologies: list[str] | None = None
    project_url: str | None = Field(default=None, max_length=500)
    repository_url: str | None = Field(default=None, max_length=500)
    status: str | None = Field(default=None, max_length=20)
    primary_language: str | None = Field(default=None, max_length=60)
    topics: list[str] | None = None


class ProjectUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    technologies: list[str] | None = None
    project_url: str | None = Field(default=None, max_length=500)
    repository_url: str | None = Field(default=None, max_length=500)
    status: str | None = Field(default=None, max_length=20)
    primary_language: str | None = Field(default=None, max_length=60)
    topics: list[str] | None = None


@router.post("", status_code=201)
def create_portfolio(payload: PortfolioCreate, db: Session = Depends(get_db), user=Depends(student_only)):
    fields = payload.model_dump()
    fields["platform"] = validate_platform(payload.platform)
    fields["profile_url"] = validate_string_field(payload.profile_url, "Profile URL", min_length=4, max_length=500)
    portfolio = portfolio_sync.create_portfolio(db, student_id=int(user["sub"]), fields=fields)
    return portfolio_to_public(portfolio)


@router.get("/my")
def my_portfolios(db: Session = Depends(get_db), user=Depends(student_only)):
    return [portfolio_to_public(p) for p in portfolio_sync.list_student_portfolios(db, student_id=int(user["sub"]))]


@router.get("/featured")
def featured_portfolios(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    return [portfolio_to_public(p) for p in portfolio_sync.featured_portfolios(db, limit=limit)]


@router.get("/search")
def search_portfolios(
    q: str | None = Query(default=None, max_length=200),
    platform: str | None = None,
    technologies: str | None = Query(default=None, description="Comma-separated technologies"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    result = portfolio_sync.search_portfolios(
        db,
        q=q,
        platform=validate_platform(platform) if platform else None,
        technologies=clean_string_list((technologies or "").split(",")),
        page=page,
        limit=limit,
    )
    result["portfolios"] = [portfolio_to_public(p, include_projects=False) for p in result["portfolios"]]
    return result


@router.get("/{portfolio_id:int}")
def get_portfolio(portfolio_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    return portfolio_to_public(portfolio_sync.get_portfolio(db, portfolio_id=portfolio_id, viewer=user))


@router.put("/{portfolio_id:int}")
def update_portfolio(
    portfolio_id: int,
    payload: PortfolioUpdate,
    db: Session = Depends(get_db),
    user=Depends(student_only),
):
    portfolio = portfolio_sync.update_portfolio(
        db,
        portfolio_id=portfolio_id,
        student_id=int(user["sub"]),
        changes=payload.model_dump(exclude_unset=True),
    )
    return portfolio_to_public(portfolio)


@router.delete("/{portfolio_id:int}")
def delete_portfolio(portfolio_id: int, db: Session = Depends(get_db), user=Depends(student_only)):
    portfolio_sync.delete_portfolio(db, portfolio_id=portfolio_id, student_id=int(user["sub"]))
    return {"message": "Portfolio deleted successfully"}


@router.post("/{portfolio_id:int}/sync")
async def sync_portfolio(
    portfolio_id: int,
    payload: SyncRequest,
    db: Session = Depends(get_db),
    user=Depends(student_only),
):
    return await portfolio_sync.sync_portfolio(
        db,
        portfolio_id=portfolio_id,
        student_id=int(user["sub"]),
        username=payload.username,
        access_token=payload.access_token,
    )


@router.get("/{portfolio_id:int}/projects")
def list_projects(portfolio_id: int, db: Session = Depends(get_db), user=Depends(get_current_user)):
    return [project_to_public(p) for p in portfolio_sync.list_projects(db, portfolio_id=portfolio_id, viewer=user)]


@router.post("/{portfolio_id:int}/projects", status_code=201)
def create_project(
    portfolio_id: int,
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    user=Depends(student_only),
):
    project = portfolio_sync.create_project(
        db,
        portfolio_id=portfolio_id,
        student_id=int(user["sub"]),
        fields=payload.model_dump(exclude_none=True),
    )
    return project_to_public(project)


@router.put("/projects/{project_id:int}")
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    user=Depends(student_only),
):
    project = portfolio_sync.update_project(
        db,
        project_id=project_id,
        student_id=int(user["sub"]),
        changes=payload.model_dump(exclude_unset=True),
    )
    return project_to_public(project)


@router.delete("/projects/{project_id:int}")
def delete_project(project_id: int, db: Session = Depends(get_db), user=Depends(student_only)):
    portfolio_sync.delete_project(db, project_id=project_id, student_id=int(user["sub"]))
    return {"message": "Project deleted successfully"}
