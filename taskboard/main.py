import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import CORS_ORIGINS, LOG_LEVEL
from .database import create_tables
from .dependencies import build_rate_limiter
from .errors import RateLimited, ServiceError
from .logging_setup import setup_logging
from .routers import auth, dashboard, tasks

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Taskboard API",
    description="User-scoped task tracking with dashboard statistics",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One limiter per process; every request shares its state.
app.state.rate_limiter = build_rate_limiter()

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(tasks.router, prefix="/api", tags=["tasks"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    content = {"detail": exc.detail}
    headers = None
    if isinstance(exc, RateLimited):
        content["retry_after_ms"] = exc.retry_after_ms
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.on_event("startup")
def on_startup():
    setup_logging(LOG_LEVEL)
    create_tables()
    logger.info("Taskboard API started")


@app.get("/")
def read_root():
    return {"message": "Taskboard API"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
