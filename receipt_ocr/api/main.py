from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from ..core.exceptions import MethodNotAllowedError, ReceiptProcessingError, RequestError
from ..core.logging import setup_logging
from ..core.config import settings
from .deps import ErrorResponse
from .routers import health, receipts

logger = setup_logging()
app = FastAPI(title="Receipt OCR Extraction Service")


def error_response(exc: ReceiptProcessingError) -> JSONResponse:
    """Failure payload; exception details are only exposed in the dev environment."""
    body = ErrorResponse(
        error=exc.code,
        message=exc.message,
        debug=exc.details if settings.app_env == "dev" and exc.details else None,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(ReceiptProcessingError)
async def receipt_error_handler(request: Request, exc: ReceiptProcessingError):
    logger.warning("Request failed", path=request.url.path, error=exc.code, message=exc.message)
    return error_response(exc)


@app.exception_handler(StarletteHTTPException)
async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        logger.warning("Method not allowed", path=request.url.path, method=request.method)
        return error_response(MethodNotAllowedError(f"Method {request.method} not allowed"))
    return await http_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    logger.error("Request validation error", errors=errors)
    return error_response(RequestError("Invalid request", details={"errors": errors}))


# Configure CORS to allow frontend access
# CORS_ORIGINS can be set in .env as comma-separated list
# Example: CORS_ORIGINS=http://localhost:3000,https://your-frontend.com
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(receipts.router)
