"""
Fatal error taxonomy for receipt processing.

Every exception carries a machine-readable code and the HTTP status the API
layer should answer with. Validation findings are NOT exceptions; they are
ValidationIssue records attached to the receipt.
"""


class ReceiptProcessingError(Exception):
    """Base class for errors that abort a request."""

    code = "INTERNAL_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RequestError(ReceiptProcessingError):
    """Malformed request: wrong content type, bad JSON, missing fields."""

    code = "INVALID_REQUEST"


class MethodNotAllowedError(RequestError):
    code = "METHOD_NOT_ALLOWED"
    status_code = 405


class ServiceUnavailableError(ReceiptProcessingError):
    """An upstream service (OCR or LLM) is not configured."""

    code = "SERVICE_UNAVAILABLE"


class OCRServiceError(ReceiptProcessingError):
    """The OCR provider call failed."""

    code = "OCR_SERVICE_ERROR"


class ParseError(ReceiptProcessingError):
    """The LLM returned something that is not JSON."""

    code = "PARSE_ERROR"

    def __init__(self, message: str, raw_response: str | None = None):
        super().__init__(message, details={"raw_response": (raw_response or "")[:500]})
        self.raw_response = raw_response
