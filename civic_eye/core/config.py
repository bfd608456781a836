# ⚙️ Runtime Configuration
# Environment-driven settings for MongoDB, JWT, the AI classifier and uploads

import os
import logging
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"⚠️ Invalid integer for {name}={raw!r}, using default {default}")
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ Invalid number for {name}={raw!r}, using default {default}")
        return default


def get_mongodb_config():
    """
    Get MongoDB configuration with fallback options
    Priority: MONGO_URI > MONGODB_URL > MONGODB_URI > default local
    """
    mongo_uri = (
        os.getenv("MONGO_URI") or
        os.getenv("MONGODB_URL") or
        os.getenv("MONGODB_URI") or
        "mongodb://localhost:27017"
    )
    db_name = os.getenv("MONGODB_NAME", "civic_eye")
    return mongo_uri, db_name


def get_ai_service_url() -> Optional[str]:
    """Base URL of the image classifier, or None when it is not configured."""
    url = (os.getenv("AI_SERVICE_URL") or "").strip()
    return url.rstrip("/") or None


def get_cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


# JWT Configuration
SECRET_KEY = os.getenv("SECRET_KEY", "civic-eye-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _get_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)

# Classifier
AI_TIMEOUT_SECONDS = _get_float("AI_TIMEOUT_SECONDS", 30.0)

# Uploads
MAX_IMAGE_BYTES = _get_int("MAX_IMAGE_BYTES", 10 * 1024 * 1024)
ALLOWED_IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}
ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG", "GIF"}

# Listing
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
