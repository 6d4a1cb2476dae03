from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from ..constants import ROLE_RECRUITER, ROLE_STUDENT
from ..database import get_db
from ..models.company import Company
from ..models.recruiter import Recruiter
from ..models.student import Student
from ..models.user import User
from ..utils.dependencies import get_current_user
from ..utils.jwt import create_access_token
from ..utils.json_fields import iso, utcnow
from ..utils.security import hash_password, verify_password
from ..utils.validation import validate_email, validate_password, validate_role, validate_string_field
from ..utils.error_handlers import get_error_message, handle_database_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class SignupRequest(BaseModel):
    email: str
    password: str
    role: str  # student / recruiter
    name: str | None = None
    # Recruiters name the new company they are registering.
    company_id: int | None = None
    company_name: str | None = None
    position: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str
    role: str | None = None  # optional role gate (frontend-selected role)


def _user_payload(user: User) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role, "status": user.status}


def _create_company(db: Session, payload: SignupRequest) -> Company:
    """A recruiter signup always founds a new company; joining one is an admin assignment."""
    if payload.company_id is not None:
        raise HTTPException(
            status_code=400,
            detail="Recruiters cannot join an existing company at signup. Ask a platform admin to add you.",
        )

    name = validate_string_field(payload.company_name, "Company name", min_length=2, max_length=255, required=False)
    if not name:
        raise HTTPException(status_code=400, detail="Recruiters must provide a company_name")
    taken = db.query(Company.id).filter(func.lower(Company.name) == name.lower()).first()
    if taken:
        raise HTTPException(status_code=400, detail=get_error_message("company_exists"))
    company = Company(name=name)
    db.add(company)
    db.flush()
    return company


@router.post("/signup")
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    email = validate_email(payload.email)
    validate_password(payload.password)
    role = validate_role(payload.role)
    name = validate_string_field(payload.name, "Name", min_length=1, max_length=255, required=False)

    try:
        existing = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise handle_database_error(e, "checking existing user")
    if existing:
        raise HTTPException(status_code=400, detail=get_error_message("email_exists"))

    try:
        hashed = hash_password(payload.password)
    except ValueError:
        raise HTTPException(status_code=400, detail=get_error_message("weak_password"))

    try:
        user = User(name=name, email=email, password=hashed, role=role, status="active")
        db.add(user)
        db.flush()

        # Role-specific extension row shares the user's id.
        if role == ROLE_STUDENT:
            db.add(Student(user_id=user.id, skills="[]", programming_languages="[]"))
        elif role == ROLE_RECRUITER:
            company = _create_company(db, payload)
            db.add(Recruiter(user_id=user.id, company_id=company.id, position=payload.position))

        db.commit()
        db.refresh(user)
    except HTTPException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating user")

    logger.info("New %s account %s", role, user.id)
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {
        "message": "User created successfully",
        "user": _user_payload(user),
        "access_token": token,
        "token_type": "bearer",
    }


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    email = validate_email(payload.email)
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password is required")

    try:
        user = db.query(User).filter(User.email == email).first()
    except SQLAlchemyError as e:
        raise handle_database_error(e, "login")

    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(status_code=401, detail=get_error_message("invalid_credentials"))

    if payload.role and user.role != payload.role:
        raise HTTPException(
            status_code=403,
            detail="Role mismatch. Please select the correct account type.",
        )
    if (user.status or "active") != "active":
        raise HTTPException(status_code=403, detail=get_error_message("account_disabled"))

    user.last_login = utcnow()
    db.commit()

    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": _user_payload(user),
    }


@router.get("/me")
def me(user=Depends(get_current_user), db: Session = Depends(get_db)):
    row = db.query(User).filter(User.id == int(user["sub"])).first()
    data = _user_payload(row)
    data["last_login"] = iso(row.last_login)
    data["created_at"] = iso(row.created_at)
    if row.recruiter:
        data["company"] = {"id": row.recruiter.company.id, "name": row.recruiter.company.name}
    return data


@router.post("/logout")
def logout():
    return {"message": "Logged out successfully"}
