"""Error taxonomy surfaced by the task service.

Each error maps onto one HTTP status; the application installs a single
exception handler that renders them.
"""
import math
from typing import Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(ServiceError):
    status_code = 401

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail)


class RateLimited(ServiceError):
    status_code = 429

    def __init__(self, retry_after_ms: int, detail: Optional[str] = None):
        self.retry_after_ms = retry_after_ms
        super().__init__(
            detail
            or f"Rate limit exceeded. Please try again in {self.retry_after_seconds} seconds."
        )

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.retry_after_ms / 1000))


class NotFound(ServiceError):
    status_code = 404

    def __init__(self, detail: str = "Task not found"):
        super().__init__(detail)


class Forbidden(ServiceError):
    status_code = 403


class InvalidInput(ServiceError):
    status_code = 422
