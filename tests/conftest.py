import os
import sys
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


# Ensure `import careerlaunch...` works regardless of where pytest is run from.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Test modules import the package at collection time, so keep .env and real
# SMTP/GitHub credentials out before anything reads the config.
os.environ["DISABLE_DOTENV"] = "1"
os.environ["GITHUB_TOKEN"] = ""
for _var in ("SMTP_HOST", "SMTP_USER", "SMTP_PASS", "SMTP_FROM"):
    os.environ[_var] = ""

PASSWORD = "Testpass123!"


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite3"


@pytest.fixture()
def app(test_db_path: Path) -> FastAPI:
    """
    Create a FastAPI app wired to a temporary SQLite DB.

    `careerlaunch.main` is not imported so its startup hook never touches dev.db.
    """
    os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{test_db_path}"

    from careerlaunch import database as db

    engine = create_engine(
        os.environ["DATABASE_URL"],
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Patch the shared database module so router dependencies and the
    # notification worker use the test DB.
    db.engine = engine
    db.SessionLocal = TestingSessionLocal

    # Import models so Base metadata is populated, then create tables.
    from careerlaunch import models  # noqa: F401

    db.Base.metadata.drop_all(bind=engine)
    db.Base.metadata.create_all(bind=engine)

    from careerlaunch.api import admin as admin_api
    from careerlaunch.api import applications as applications_api
    from careerlaunch.api import auth as auth_api
    from careerlaunch.api import companies as companies_api
    from careerlaunch.api import jobs as jobs_api
    from careerlaunch.api import portfolios as portfolios_api
    from careerlaunch.api import students as students_api
    from careerlaunch.utils.error_handlers import install_error_handlers

    fastapi_app = FastAPI()
    fastapi_app.include_router(auth_api.router)
    fastapi_app.include_router(students_api.router)
    fastapi_app.include_router(companies_api.router)
    fastapi_app.include_router(jobs_api.router)
    fastapi_app.include_router(applications_api.router)
    fastapi_app.include_router(portfolios_api.router)
    fastapi_app.include_router(admin_api.router)
    install_error_handlers(fastapi_app)

    return fastapi_app


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    from careerlaunch import database

    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def signup(client):
    """Factory: register an account through the API and return id, token and headers."""
    def _signup(*, email: str, role: str, name: str = "Test User", **extra) -> dict:
        body = {"email": email, "password": PASSWORD, "role": role, "name": name, **extra}
        r = client.post("/auth/signup", json=body)
        assert r.status_code == 200, r.text
        data = r.json()
        return {
            "id": data["user"]["id"],
            "email": email,
            "token": data["access_token"],
            "headers": auth_headers(data["access_token"]),
        }
    return _signup


@pytest.fixture()
def platform_admin(db_session) -> dict:
    """Platform admins are never self-registered; insert one directly."""
    from careerlaunch.models.user import User
    from careerlaunch.utils.jwt import create_access_token
    from careerlaunch.utils.security import hash_password

    user = User(
        name="Platform Admin",
        email="admin@example.com",
        password=hash_password(PASSWORD),
        role="platform_admin",
        status="active",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"id": user.id, "email": user.email, "token": token, "headers": auth_headers(token)}


@pytest.fixture()
def recruiter(signup) -> dict:
    return signup(email="recruiter@example.com", role="recruiter", name="Rita Recruiter", company_name="Acme Corp")


@pytest.fixture()
def student(client, signup) -> dict:
    s = signup(email="student@example.com", role="student", name="Sam Student")
    r = client.put("/students/me", headers=s["headers"], json={"skills": ["Python", "SQL", "Docker"]})
    assert r.status_code == 200, r.text
    return s


@pytest.fixture()
def create_job(client):
    """Factory: post a job as the given recruiter and return its public payload."""
    def _create(recruiter: dict, **overrides) -> dict:
        body = {
            "title": "Backend Engineer",
            "description": "Build and run Python services on PostgreSQL.",
            "category": "Engineering",
            "required_skills": ["Python", "SQL"],
            "job_type": "full_time",
            "experience_level": "junior",
            "location": "Berlin",
            "salary_min": 50000,
            "salary_max": 70000,
        }
        body.update(overrides)
        r = client.post("/jobs", headers=recruiter["headers"], json=body)
        assert r.status_code == 201, r.text
        return r.json()
    return _create


@pytest.fixture()
def add_colleague(client, signup, platform_admin):
    """Factory: register a recruiter and have a platform admin move them into `recruiter`'s company."""
    def _add(recruiter: dict, *, email: str) -> dict:
        company_id = client.get("/auth/me", headers=recruiter["headers"]).json()["company"]["id"]
        colleague = signup(email=email, role="recruiter", company_name=f"Placeholder {email}")
        r = client.put(
            f"/admin/recruiters/{colleague['id']}/company",
            headers=platform_admin["headers"],
            json={"company_id": company_id},
        )
        assert r.status_code == 200, r.text
        return colleague
    return _add
