from .amount_parser import AmountResult, coerce_amount, parse_amounts
from .date_parsing import parse_receipt_date
from .line_item_parser import extract_line_items
from .vendor_detection import detect_vendor, similarity

__all__ = [
    "AmountResult",
    "coerce_amount",
    "detect_vendor",
    "extract_line_items",
    "parse_amounts",
    "parse_receipt_date",
    "similarity",
]
