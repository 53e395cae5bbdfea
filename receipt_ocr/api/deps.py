from typing import Any
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    debug: dict[str, Any] | None = None  # Exception details, dev environment only


class HealthResponse(BaseModel):
    status: str
    app: str
    ocr_configured: bool
    llm_configured: bool
    llm_enabled: bool
    cache_backend: str
