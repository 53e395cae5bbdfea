"""
Fallback extraction strategy: regex and fuzzy heuristics over the OCR text.

Runs without any network dependency. Used when the LLM strategy is disabled
and for built-in test documents.
"""

from datetime import date
from loguru import logger
from ..core.config import settings
from .confidence_scoring import calculate_overall_confidence, quality_tier
from .document_type import classify_document_type
from .parsing import detect_vendor, extract_line_items, parse_amounts, parse_receipt_date
from .receipt_types import FieldConfidence, LineItem, ReceiptRecord

MATH_TOLERANCE = 0.02
# Amount stages that read the total next to its own label
LABELLED_STAGES = {"multiline_total", "priority_total", "total_line_scan"}


def _reconciles(expected: float | None, actual: float | None) -> bool:
    return expected is not None and actual is not None and abs(expected - actual) <= MATH_TOLERANCE


def _line_items_confidence(items: list[LineItem]) -> float:
    if not items:
        return 0.0
    return round(sum(item.confidence for item in items) / len(items), 4)


class HeuristicExtractor:
    """Builds a ReceiptRecord from raw text with the text-heuristic parsers."""

    def __init__(self, decimal_repair: bool | None = None, fuzzy_vendor: bool = True):
        self.decimal_repair = settings.amount_decimal_repair if decimal_repair is None else decimal_repair
        self.fuzzy_vendor = fuzzy_vendor

    def extract(self, text: str, today: date | None = None) -> ReceiptRecord:
        vendor = detect_vendor(text, fuzzy=self.fuzzy_vendor)
        receipt_date = parse_receipt_date(text, today=today)
        amounts = parse_amounts(text, decimal_repair=self.decimal_repair)
        items = extract_line_items(text)
        document_type, type_confidence = classify_document_type(text)

        total = amounts.total.value if amounts.total else None
        subtotal = amounts.subtotal.value if amounts.subtotal else None
        tax = amounts.tax.value if amounts.tax else None

        fields = FieldConfidence(
            vendor=vendor.confidence,
            total=amounts.total.confidence if amounts.total else 0.0,
            date=receipt_date.confidence,
            line_items=_line_items_confidence(items),
            document_type=type_confidence,
        )

        math_consistent = subtotal is not None and tax is not None and _reconciles(subtotal + tax, total)
        item_sum = round(sum(item.total_price for item in items), 2) if items else None
        layout_consistent = _reconciles(item_sum, subtotal if subtotal is not None else total)
        spatial_proximity = amounts.stage in LABELLED_STAGES

        overall = calculate_overall_confidence(
            fields,
            math_consistent=math_consistent,
            layout_consistent=layout_consistent,
            spatial_proximity=spatial_proximity,
        )

        record = ReceiptRecord(
            vendor=vendor.value or "",
            total=total,
            subtotal=subtotal,
            tax=tax,
            date=receipt_date.value,
            line_items=items,
            document_type=document_type,
            confidence=fields,
            overall_confidence=overall,
            extraction_quality=quality_tier(overall),
            extraction_methods={
                "vendor": vendor.method,
                "date": receipt_date.method,
                "total": amounts.total.method if amounts.total else "fallback",
                "line_items": "pattern" if items else "fallback",
            },
            strategy="heuristic",
        )

        logger.info(
            "Heuristic extraction complete",
            vendor=record.vendor,
            total=record.total,
            line_items=len(items),
            amount_stage=amounts.stage,
            overall_confidence=overall,
            quality=record.extraction_quality,
        )
        return record
