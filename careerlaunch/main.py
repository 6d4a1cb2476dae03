import logging
import os

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from . import database
from .api import admin as admin_api
from .api import applications as applications_api
from .api import auth as auth_api
from .api import companies as companies_api
from .api import jobs as jobs_api
from .api import portfolios as portfolios_api
from .api import students as students_api
from .config import LOG_LEVEL
from .database import init_db
from .services.notifications import deliver_pending_notifications
from .utils.error_handlers import install_error_handlers

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="CareerLaunch API")

app.include_router(auth_api.router)
app.include_router(students_api.router)
app.include_router(companies_api.router)
app.include_router(jobs_api.router)
app.include_router(applications_api.router)
app.include_router(portfolios_api.router)
app.include_router(admin_api.router)

install_error_handlers(app)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "Backend running",
        "service": "CareerLaunch API"
    }


_default_origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
_extra_origins = [
    origin.strip()
    for origin in os.getenv("FRONTEND_ORIGINS", "").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=[*_default_origins, *_extra_origins],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    try:
        init_db()
        app.state.db_init_error = None
    except Exception as e:
        logger.exception("Database init failed: %s", e)
        app.state.db_init_error = str(e)
        return

    # Flush anything left in the outbox by a previous process.
    deliver_pending_notifications()


@app.get("/db/health")
def db_health():
    if getattr(app.state, "db_init_error", None):
        raise HTTPException(
            status_code=503,
            detail=f"DB init failed: {app.state.db_init_error}",
        )

    try:
        with database.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"DB connection failed: {e}",
        )

    return {"status": "ok"}
