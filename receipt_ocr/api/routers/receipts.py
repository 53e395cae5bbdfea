from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from pydantic import ValidationError
from ..deps import ErrorResponse
from ...core.exceptions import ReceiptProcessingError, RequestError
from ...models.receipt import ProcessReceiptRequest
from ...services.receipt_processor import ReceiptProcessor, get_receipt_processor

router = APIRouter(prefix="/receipts", tags=["receipts"])


async def _read_request(request: Request) -> ProcessReceiptRequest:
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("application/json"):
        raise RequestError("Content-Type must be application/json", details={"content_type": content_type})

    try:
        payload = await request.json()
    except ValueError as e:
        raise RequestError("Request body is not valid JSON", details={"reason": str(e)})

    if not isinstance(payload, dict):
        raise RequestError("Request body must be a JSON object")

    try:
        req = ProcessReceiptRequest.model_validate(payload)
    except ValidationError as e:
        raise RequestError(
            "Invalid request body",
            details={"errors": [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]},
        )

    if req.mode != "test" and not req.image_url:
        raise RequestError("imageUrl is required")
    return req


@router.post("/process", responses={400: {"model": ErrorResponse}, 405: {"model": ErrorResponse}})
async def process_receipt(request: Request, processor: ReceiptProcessor = Depends(get_receipt_processor)):
    """
    Extract structured data from a receipt image.

    Request body:
    {
        "imageUrl": "https://storage.example.com/receipts/abc123.jpg",
        "testMode": false,            // true = built-in sample, "debug" = raw OCR text
        "testDocument": "home_depot"  // sample used when testMode is true
    }

    Returns vendor, date, totals, line items, per-field confidence and the
    validation outcome. Cached results come back with from_cache=true.
    """
    req = await _read_request(request)

    try:
        return await run_in_threadpool(processor.process, req.image_url, req.mode, req.test_document)
    except ReceiptProcessingError:
        raise
    except Exception as e:
        logger.exception("Receipt processing failed", mode=req.mode)
        raise ReceiptProcessingError("Processing failed", details={"reason": str(e)}) from e
