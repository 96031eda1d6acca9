# classifieds/config.py
"""Environment-driven settings.

Values are read once at import time from the process environment (and a
local `.env` file when present).
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


DATABASE_URL = os.getenv("POSTGRES_URL") or "sqlite:///./classifieds.db"
# SQLAlchemy 2.x doesn't accept 'postgres://'
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)

DB_POOL_SIZE = _env_int("DB_POOL_SIZE", 5)
DB_MAX_OVERFLOW = _env_int("DB_MAX_OVERFLOW", 10)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# object storage (images)
STORAGE_URL = os.getenv("STORAGE_URL", "")
STORAGE_SERVICE_KEY = os.getenv("STORAGE_SERVICE_KEY", "")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "listings")

# identity provider
AUTH_URL = os.getenv("AUTH_URL", "")
AUTH_API_KEY = os.getenv("AUTH_API_KEY", "")

HTTP_TIMEOUT_SECONDS = _env_int("HTTP_TIMEOUT_SECONDS", 10)

# lifecycle
DEFAULT_VALIDITY_DAYS = _env_int("DEFAULT_VALIDITY_DAYS", 5)
DEFAULT_EXTEND_DAYS = _env_int("DEFAULT_EXTEND_DAYS", 5)
DEFAULT_PREMIUM_DAYS = _env_int("DEFAULT_PREMIUM_DAYS", 30)
GRACE_PERIOD_HOURS = _env_int("GRACE_PERIOD_HOURS", 24)
DEFAULT_REJECT_REASON = os.getenv("DEFAULT_REJECT_REASON") or "Rejected by administrator"

# privilege tiers: (max images per listing, max listings per day)
STANDARD_MAX_IMAGES = 2
PREMIUM_MAX_IMAGES = 3
STANDARD_DAILY_POSTS = 1
PREMIUM_DAILY_POSTS = 3

# background reclaimer
CLEANUP_INTERVAL_MINUTES = _env_int("CLEANUP_INTERVAL_MINUTES", 60)
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "1") == "1"
