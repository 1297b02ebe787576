from __future__ import annotations

from typing import Any, Optional


class ApiRequestError(Exception):
    """Non-2xx answer (or transport failure, ``status_code == 0``) from the API."""

    def __init__(self, status_code: int, message: str, payload: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}

    @property
    def error(self) -> Optional[str]:
        return self.payload.get("error")


class SessionExpiredError(ApiRequestError):
    """Raised after a 401 when the single silent refresh also failed."""

    def __init__(self, message: str = "Session expired. Please login again.") -> None:
        super().__init__(401, message)
