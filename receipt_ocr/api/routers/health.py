from fastapi import APIRouter
from ..deps import HealthResponse
from ...core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check plus which upstream services are configured."""
    return HealthResponse(
        status="ok",
        app=settings.app_name,
        ocr_configured=settings.ocr_configured,
        llm_configured=settings.llm_configured,
        llm_enabled=settings.llm_enabled,
        cache_backend=settings.cache_backend,
    )
