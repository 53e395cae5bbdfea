"""
Primary extraction strategy: one chat-completion call that turns OCR text
into JSON.

The model is asked for strict JSON. Field confidences are fixed baselines for
fields that come back present; the overall confidence is the model's own
estimate. Output that is not JSON raises ParseError; there is no automatic
fallback to the heuristic strategy.
"""

import json
import re
from typing import Any, Dict, Optional
from loguru import logger
from openai import APIError, OpenAI
from ..core.config import settings
from ..core.exceptions import ParseError, ServiceUnavailableError
from .document_type import classify_document_type
from .parsing import coerce_amount
from .receipt_types import FieldConfidence, LineItem, ReceiptRecord, clamp_confidence
from .confidence_scoring import quality_tier

SYSTEM_PROMPT = "You extract structured data from retail receipts. Reply with JSON only."

USER_PROMPT_TEMPLATE = """Extract the following from this receipt text and return strict JSON with exactly these keys:
"vendor" (store name), "total" (number), "date" (YYYY-MM-DD), "subtotal" (number or null),
"tax" (number or null), "lineItems" (array of objects with "description", "quantity",
"unitPrice", "totalPrice"), "confidence" (your confidence from 0 to 1).

Receipt text:
"""

# Baselines for fields the model returned; absent fields get MISSING_FIELD
FIELD_BASELINES = {
    "vendor": 0.9,
    "total": 0.95,
    "date": 0.9,
    "line_items": 0.9,
}
MISSING_FIELD = 0.1
DEFAULT_OVERALL = 0.8

_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


def strip_markdown_fences(content: str) -> str:
    return _FENCE.sub("", content or "").strip()


def _line_items(raw_items: Any) -> list[LineItem]:
    items = []
    if not isinstance(raw_items, list):
        return items
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        total_price = coerce_amount(raw.get("totalPrice", raw.get("total_price")))
        description = str(raw.get("description") or "").strip()
        if total_price is None or not description:
            logger.debug("Skipping incomplete model line item", item=str(raw)[:200])
            continue
        items.append(LineItem(
            description=description,
            quantity=coerce_amount(raw.get("quantity")),
            unit_price=coerce_amount(raw.get("unitPrice", raw.get("unit_price"))),
            total_price=total_price,
            confidence=FIELD_BASELINES["line_items"],
        ))
    return items


class LLMExtractor:
    """Calls an OpenAI-compatible chat completion endpoint to extract a receipt."""

    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not settings.llm_configured:
                raise ServiceUnavailableError("LLM extraction service not configured")
            self._client = OpenAI(api_key=settings.llm_api_key, base_url=settings.llm_base_url)
            logger.info("LLM client initialized", model=settings.llm_deployment)
        return self._client

    def complete(self, text: str) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=settings.llm_deployment,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": USER_PROMPT_TEMPLATE + text},
                ],
                temperature=settings.llm_temperature,
            )
        except APIError as e:
            logger.error("LLM request failed", error=str(e))
            raise ServiceUnavailableError("LLM extraction service error", details={"reason": str(e)}) from e
        return response.choices[0].message.content or ""

    def parse_response(self, content: str) -> Dict[str, Any]:
        cleaned = strip_markdown_fences(content)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error("Model response is not valid JSON", error=str(e), preview=cleaned[:200])
            raise ParseError("Failed to parse extraction response", raw_response=content)
        if not isinstance(data, dict):
            raise ParseError("Extraction response is not a JSON object", raw_response=content)
        return data

    def extract(self, text: str) -> ReceiptRecord:
        """
        Extract a receipt from OCR text with a single model call.

        Raises:
            ServiceUnavailableError: no LLM key configured, or the API call failed
            ParseError: the model reply is not a JSON object
        """
        data = self.parse_response(self.complete(text))

        vendor = str(data.get("vendor") or "").strip()
        total = coerce_amount(data.get("total"))
        date_value = str(data.get("date") or "").strip() or None
        items = _line_items(data.get("lineItems"))
        document_type, type_confidence = classify_document_type(text)

        fields = FieldConfidence(
            vendor=FIELD_BASELINES["vendor"] if vendor else MISSING_FIELD,
            total=FIELD_BASELINES["total"] if total is not None else MISSING_FIELD,
            date=FIELD_BASELINES["date"] if date_value else MISSING_FIELD,
            line_items=FIELD_BASELINES["line_items"] if items else MISSING_FIELD,
            document_type=type_confidence,
        )

        reported = coerce_amount(data.get("confidence"))
        overall = clamp_confidence(DEFAULT_OVERALL if reported is None else reported)

        record = ReceiptRecord(
            vendor=vendor,
            total=total,
            subtotal=coerce_amount(data.get("subtotal")),
            tax=coerce_amount(data.get("tax")),
            date=date_value,
            line_items=items,
            document_type=document_type,
            confidence=fields,
            overall_confidence=overall,
            extraction_quality=quality_tier(overall),
            extraction_methods={name: "direct" for name in FIELD_BASELINES},
            strategy="llm",
        )

        logger.info(
            "LLM extraction complete",
            vendor=record.vendor,
            total=record.total,
            line_items=len(items),
            overall_confidence=overall,
        )
        return record
