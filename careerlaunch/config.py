import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so changes in .env take effect on process reload (and not get
# stuck on old environment variables).
#
# For automated tests (SQLite), we need to prevent .env from overriding the
# test DATABASE_URL. Set DISABLE_DOTENV=1 to skip loading .env.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)


def _env_bool(name: str, default: str = "1") -> bool:
    return (os.getenv(name, default) or default).strip() in {"1", "true", "True", "yes", "YES"}


_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# Default to a local SQLite DB for dev so the backend can start out-of-the-box.
# Use an absolute path so it works regardless of current working directory.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "dev.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

# Auth / JWT
# NOTE: keep a default for local dev so the server can boot even if SECRET_KEY isn't set.
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_change_me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)) or "10080")

# -------------------- Portfolio sync (GitHub) --------------------
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
# Optional server-side token used when the student doesn't pass one (raises the rate limit).
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
GITHUB_TIMEOUT_S = float(os.getenv("GITHUB_TIMEOUT_S", "15") or "15")
# 10 pages x 100 repos caps a sync at ~1000 repositories.
GITHUB_MAX_PAGES = int(os.getenv("GITHUB_MAX_PAGES", "10") or "10")
GITHUB_PER_PAGE = int(os.getenv("GITHUB_PER_PAGE", "100") or "100")

# -------------------- Notifications --------------------
# When disabled, notifications are still written to the outbox but marked skipped.
NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", "1")
# A worker that dies mid-send leaves its row in "sending"; after this many
# seconds the row is handed back to the queue.
NOTIFICATION_CLAIM_TIMEOUT_S = int(os.getenv("NOTIFICATION_CLAIM_TIMEOUT_S", "300") or "300")

LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()
