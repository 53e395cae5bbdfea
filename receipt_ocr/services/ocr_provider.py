from typing import Optional
from loguru import logger
from azure.ai.documentintelligence import DocumentIntelligenceClient
from azure.ai.documentintelligence.models import AnalyzeDocumentRequest
from azure.core.credentials import AzureKeyCredential
from ..core.config import settings
from ..core.exceptions import OCRServiceError, ServiceUnavailableError


def text_from_result(result) -> str:
    """
    Pull plain text out of an analyze result.

    Prefers the full document text (`content`); otherwise joins page lines;
    otherwise returns an empty string.
    """
    content = getattr(result, "content", None)
    if content:
        return content

    lines = []
    for page in getattr(result, "pages", None) or []:
        for line in getattr(page, "lines", None) or []:
            if getattr(line, "content", None):
                lines.append(line.content)
    return "\n".join(lines)


class OCRProvider:
    """Azure Document Intelligence read model: image URL in, text out. No retries."""

    def __init__(self, client: Optional[DocumentIntelligenceClient] = None, model_id: Optional[str] = None):
        self._client = client
        self.model_id = model_id or settings.az_di_model

    def _get_client(self) -> DocumentIntelligenceClient:
        if self._client is None:
            if not settings.ocr_configured:
                raise ServiceUnavailableError("OCR service not configured")
            self._client = DocumentIntelligenceClient(
                endpoint=settings.az_di_endpoint,
                credential=AzureKeyCredential(settings.az_di_api_key)
            )
        return self._client

    def extract_text(self, image_url: str) -> str:
        client = self._get_client()
        logger.info("Requesting OCR", model=self.model_id, image=image_url[:100])

        try:
            poller = client.begin_analyze_document(
                self.model_id,
                body=AnalyzeDocumentRequest(url_source=image_url)
            )
            result = poller.result()
        except Exception as e:
            logger.error("OCR request failed", error=str(e))
            raise OCRServiceError("OCR service error", details={"reason": str(e)}) from e

        text = text_from_result(result)
        logger.info("OCR complete", characters=len(text))
        return text
