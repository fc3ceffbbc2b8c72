"""Runtime configuration, read once from the environment"""
import logging
import os


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


# Auth
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# Uploads
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
MAX_IMAGES_PER_ENTITY = 3
MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", str(5 * 1024 * 1024)))

# Aggregate writes
HOTEL_SAVE_RETRIES = int(os.getenv("HOTEL_SAVE_RETRIES", "3"))

# Notifications
EVENT_HISTORY_SIZE = int(os.getenv("EVENT_HISTORY_SIZE", "500"))

# Diagnostics
DEBUG = _env_bool("DEBUG")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Root logger setup for the API process"""
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
