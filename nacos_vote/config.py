# nacos_vote/config.py
# Central place for backend location, voting window and storage settings
import os
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_datetime(name: str, default: Optional[str] = None) -> Optional[datetime]:
    value = os.getenv(name, default)
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# --- Backend ---
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:5000").rstrip("/")
BACKEND_TIMEOUT = float(os.getenv("BACKEND_TIMEOUT", "15"))

# --- Election ---
ELECTION_TITLE = os.getenv("ELECTION_TITLE", "NACOS Election 2025/2026")
# Sign-in is refused outside [VOTING_START, VOTING_END)
VOTING_START = _env_datetime("VOTING_START", "2025-10-11T12:00:00+01:00")
VOTING_END = _env_datetime("VOTING_END")
RESULTS_VISIBLE = _env_bool("RESULTS_VISIBLE", True)

# Countdown for a signed-in voter to finish the ballot
SESSION_DURATION_MINUTES = float(os.getenv("SESSION_DURATION_MINUTES", "10"))

# --- Security ---
# In production, use secure, environment-variable-based secrets
SECRET_KEY = os.getenv("SECRET_KEY", "a_very_secret_key_for_dev_only")
ALGORITHM = "HS256"
BROWSER_COOKIE_NAME = os.getenv("BROWSER_COOKIE_NAME", "nacos_browser")
BROWSER_COOKIE_DAYS = int(os.getenv("BROWSER_COOKIE_DAYS", "30"))
# bcrypt hash guarding the backup page; empty disables the page
DEBUG_PASSWORD_HASH = os.getenv("DEBUG_PASSWORD_HASH", "")

# --- Firebase (admin identity provider) ---
FIREBASE_API_KEY = os.getenv("FIREBASE_API_KEY", "")
FIREBASE_SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

# --- Browser storage ---
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory")  # memory | file | mongo
STORAGE_PATH = os.getenv("STORAGE_PATH", "data/browser_storage.json")
STORAGE_KEY_FILE = os.getenv("STORAGE_KEY_FILE", "data/storage.key")
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "nacos_vote")
BROWSER_COLLECTION_NAME = "browser_storage"

# --- Web ---
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
