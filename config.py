"""Application configuration.

Paths and limits can be overridden through ``PORTFOLIO_*`` environment variables.
"""
import os
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent
DATA_DIR = Path(os.getenv("PORTFOLIO_DATA_DIR", str(APP_DIR)))
DB_PATH = Path(os.getenv("PORTFOLIO_DB_PATH", str(DATA_DIR / "portfolio.db")))
TEMPLATES_DIR = DATA_DIR / "templates"
STATIC_DIR = DATA_DIR / "static"

# Renditions
PHOTOS_DIR = Path(os.getenv("PORTFOLIO_PHOTOS_DIR", str(DATA_DIR / "public" / "photos")))
PHOTOS_URL_PREFIX = "/photos"
RENDITION_EXT = "webp"

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("PORTFOLIO_MAX_UPLOAD_BYTES", 10 * 1024 * 1024))
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}

# Storage quota shown on the dashboard
STORAGE_LIMIT_BYTES = int(
    os.getenv("PORTFOLIO_STORAGE_LIMIT_BYTES", 5 * 1024 * 1024 * 1024)
)

# 1 keeps custom-size backfill strictly sequential
BACKFILL_WORKERS = max(1, int(os.getenv("PORTFOLIO_BACKFILL_WORKERS", 1)))

LOG_LEVEL = os.getenv("PORTFOLIO_LOG_LEVEL", "INFO").upper()
