from pathlib import Path
from typing import Dict, Union
import os

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables from repo root and package parent .env (if present).
REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(REPO_ROOT / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskboard.db")
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
RATE_LIMIT_MAX_KEYS = int(os.getenv("RATE_LIMIT_MAX_KEYS", "10000"))

_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
CORS_ORIGINS = [origin.strip() for origin in _cors_origins.split(",") if origin.strip()]


class TokenBucketRule(BaseModel):
    """Allows bursts up to ``capacity``, refilling ``rate`` tokens every ``period_ms``."""
    rate: float
    period_ms: int
    capacity: float

    class Config:
        frozen = True


class FixedWindowRule(BaseModel):
    """At most ``rate`` admissions per window of ``period_ms``."""
    rate: int
    period_ms: int

    class Config:
        frozen = True


RateLimitRule = Union[TokenBucketRule, FixedWindowRule]


class TaskLimits(BaseModel):
    title_max_length: int = 200
    description_max_length: int = 2000
    recent_tasks_default: int = 5
    recent_tasks_max: int = 10

    class Config:
        frozen = True


RATE_LIMITS: Dict[str, RateLimitRule] = {
    # Task creation: bursts of 5, refill 20 per minute
    "createTask": TokenBucketRule(rate=20, period_ms=MINUTE_MS, capacity=5),
    "updateTask": TokenBucketRule(rate=50, period_ms=MINUTE_MS, capacity=10),
    "deleteTask": TokenBucketRule(rate=30, period_ms=MINUTE_MS, capacity=5),
    # Bulk operations are stricter
    "bulkDelete": FixedWindowRule(rate=5, period_ms=HOUR_MS),
}

TASK_LIMITS = TaskLimits()
