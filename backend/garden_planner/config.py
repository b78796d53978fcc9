"""Application configuration via environment variables."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR.parent / 'garden_planner.db'}")

# Server
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:19006").split(",")

# Layout optimization
TARGET_UTILIZATION_PERCENT = float(os.getenv("TARGET_UTILIZATION_PERCENT", "92"))
OPTIMIZATION_TIME_BUDGET_MS = int(os.getenv("OPTIMIZATION_TIME_BUDGET_MS", "3000"))
SUNLIGHT_TOLERANCE_HOURS = float(os.getenv("SUNLIGHT_TOLERANCE_HOURS", "0"))
MIN_ZONE_SIZE = _optional_float("MIN_ZONE_SIZE")  # sq ft, unset = no pre-filter
DEFAULT_SPACING = _optional_float("DEFAULT_SPACING")  # feet, collaborator-side default only

# Layout cache
LAYOUT_CACHE_TTL_SECONDS = int(os.getenv("LAYOUT_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
LAYOUT_CACHE_MAX_ENTRIES = int(os.getenv("LAYOUT_CACHE_MAX_ENTRIES", "100"))
