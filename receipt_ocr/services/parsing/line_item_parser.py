"""
Line item extraction.

Phase 1 turns each candidate line into an item (cleaned description plus a
structured price). Phase 2 works on the whole list: outlier removal, a math
consistency adjustment, near-duplicate removal, and the final top-N cut.
"""

import re
from dataclasses import dataclass
from loguru import logger
from ..receipt_types import LineItem

MAX_ITEMS = 20
OUTLIER_FACTOR = 10.0
DUPLICATE_OVERLAP = 0.7
MATH_TOLERANCE = 0.02

_AMOUNT = r"(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})"

# Lines that are never items
DENY_PATTERNS = [re.compile(p, re.IGNORECASE) for p in [
    # column headers
    r"^\s*(?:qty|quantity|description|item|items|price|amount)\s+(?:qty|description|item|price|amount|total)\b",
    # totals / tax / discounts
    r"^\s*(?:sub[\s-]*total|total|grand\s+total|final\s+total|balance|amount\s+due|(?:sales\s+)?tax|discount|savings|you\s+saved|coupon)\b",
    # tender and payment
    r"\b(?:cash|change|visa|mastercard|amex|discover|debit|credit|tend|tender(?:ed)?|auth(?:orization)?|approval|approved|acct|chip|contactless|payment)\b|\bcard\s*#",
    # barcodes
    r"^[\d\s-]{10,}$",
    # boilerplate
    r"\b(?:thank\s+you|cashier|register|phone|tel|returns?\s+policy)\b",
    r"\b(?:store|st|reg|receipt|trans(?:action)?|op|te|tr)\s*#|www\.|\.com\b",
    # separators
    r"^[\s=*_\-#.]+$",
    # date or time lines
    r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b",
    r"\b\d{1,2}:\d{2}(?::\d{2})?\s*(?:am|pm)?\b",
]]

QTY_TIMES_UNIT = re.compile(r"(?<![\d.])(\d{1,3})\s*[xX*]\s*\$?" + _AMOUNT)
QTY_AT_UNIT = re.compile(r"(?<![\d.])(\d{1,3})\s*@\s*\$?" + _AMOUNT)
LEADING_QTY_TOTAL = re.compile(r"^\s*(\d{1,2})\s+(?=[A-Za-z]).+?\s\$?" + _AMOUNT + r"\s*[A-Z]{0,2}\s*$")
TRAILING_TOTAL = re.compile(r"\$?" + _AMOUNT + r"\s*[A-Z]{0,2}\s*$")
LEADING_TOTAL = re.compile(r"^\s*\$?" + _AMOUNT + r"\s+\S")
LABELLED_TOTAL = re.compile(r"\btotal\s*:\s*\$?" + _AMOUNT, re.IGNORECASE)
DOLLAR_AMOUNT = re.compile(r"\$\s?" + _AMOUNT)
UNIT_MARKER = re.compile(r"\$?" + _AMOUNT + r"\s*(?:/|per\s+)\s*(?:ea|each|lb|lbs|oz|kg|g|ct)\b", re.IGNORECASE)
QTY_LABEL = re.compile(r"\b(?:qty|quantity)\s*:?\s*(\d{1,3})\b", re.IGNORECASE)

_DESCRIPTION_STRIP = [re.compile(p, re.IGNORECASE) for p in [
    r"(?<![\w.])\d{1,3}\s*[x@*]\s*(?=\$?\d)",
    r"^\d{1,2}\s+(?=[A-Za-z])",
    r"\$?\s?\d{1,3}(?:,\d{3})+\.\d{2}|\$?\s?\d+\.\d{2}",
    r"\b(?:sku|upc|dept|item\s*#|plu)\s*[:#]?\s*\w*",
    r"\b(?=\w*\d)[A-Z0-9]{6,}\b",
    r"(?:/|\bper\s+)\s*(?:ea|each|lb|lbs|oz|kg|ct)\b",
    r"\b(?:qty|quantity)\s*:?\s*\d*",
]]
TAX_FLAG = re.compile(r"\s[A-Z]$")


@dataclass
class _Price:
    quantity: float | None = None
    unit_price: float | None = None
    total_price: float | None = None
    derived: bool = False


def _to_float(raw: str) -> float:
    return float(raw.replace(",", ""))


def _is_denied(line: str) -> bool:
    return any(pattern.search(line) for pattern in DENY_PATTERNS)


def clean_description(line: str) -> str | None:
    """Strip prices, quantity markers, codes and labels; None when nothing useful is left."""
    description = line
    for pattern in _DESCRIPTION_STRIP:
        description = pattern.sub(" ", description)
    description = re.sub(r"\s+", " ", description).strip()
    description = TAX_FLAG.sub("", description).strip(" -:#*.,\t")
    if len(description) <= 1 or re.fullmatch(r"[\d\s.,$%-]*", description):
        return None
    return description


def extract_price(line: str) -> _Price:
    """Run the price categories in order, filling each slot from the first category that supplies it."""
    price = _Price()

    match = QTY_TIMES_UNIT.search(line) or QTY_AT_UNIT.search(line)
    if match:
        price.quantity = float(match.group(1))
        price.unit_price = _to_float(match.group(2))
        trailing = TRAILING_TOTAL.search(line[match.end():])
        if trailing:
            price.total_price = _to_float(trailing.group(1))

    if price.quantity is None:
        match = LEADING_QTY_TOTAL.match(line)
        if match and 0 < int(match.group(1)) <= 99:
            price.quantity = float(match.group(1))
            price.total_price = _to_float(match.group(2))

    if price.total_price is None and price.unit_price is None:
        for pattern in (TRAILING_TOTAL, LEADING_TOTAL, LABELLED_TOTAL, DOLLAR_AMOUNT):
            match = pattern.search(line)
            if match:
                price.total_price = _to_float(match.group(1))
                break

    if price.unit_price is None:
        match = UNIT_MARKER.search(line)
        if match:
            price.unit_price = _to_float(match.group(1))
            if price.total_price == price.unit_price:
                price.total_price = None

    if price.quantity is None:
        match = QTY_LABEL.search(line)
        if match:
            price.quantity = float(match.group(1))

    # Gap filling
    if price.total_price is None and price.unit_price is not None:
        price.total_price = round(price.unit_price * (price.quantity or 1), 2)
        price.derived = True
    elif price.unit_price is None and price.total_price is not None and price.quantity:
        # Sub-cent precision keeps qty x unit within tolerance of the printed total
        price.unit_price = round(price.total_price / price.quantity, 4)
        price.derived = True

    return price


def _math_consistent(quantity: float | None, unit_price: float | None, total_price: float | None) -> bool | None:
    if quantity is None or unit_price is None or total_price is None:
        return None
    return abs(quantity * unit_price - total_price) <= MATH_TOLERANCE


def score_item(description: str, price: _Price) -> float:
    """Confidence for a single item from description quality and price completeness."""
    confidence = 0.3
    if len(description) >= 3:
        confidence += 0.15
    if len(description) >= 8:
        confidence += 0.05
    if description[:1].isalpha():
        confidence += 0.05
    if len(description.split()) >= 2:
        confidence += 0.05

    if price.total_price is not None:
        confidence += 0.2
    if price.quantity is not None:
        confidence += 0.05
    if price.unit_price is not None:
        confidence += 0.05
    if not price.derived and _math_consistent(price.quantity, price.unit_price, price.total_price):
        confidence += 0.1

    if description.lower().startswith("item "):
        confidence -= 0.2
    return max(0.05, min(confidence, 0.95))


def _parse_line(line: str) -> LineItem | None:
    if not re.search(r"\d", line) or _is_denied(line):
        return None
    description = clean_description(line)
    if description is None:
        return None
    price = extract_price(line)
    if price.total_price is None or price.total_price <= 0:
        return None
    return LineItem(
        description=description,
        quantity=price.quantity,
        unit_price=price.unit_price,
        total_price=price.total_price,
        confidence=score_item(description, price),
    )


def _tokens(text: str) -> set[str]:
    return set(re.findall(r"\w+", text.lower()))


def _is_duplicate(item: LineItem, kept: list[LineItem]) -> bool:
    description = item.description.lower()
    tokens = _tokens(description)
    for other in kept:
        other_description = other.description.lower()
        if description in other_description or other_description in description:
            return True
        other_tokens = _tokens(other_description)
        longest = max(len(tokens), len(other_tokens))
        if longest and len(tokens & other_tokens) / longest >= DUPLICATE_OVERLAP:
            return True
    return False


def _refine(items: list[LineItem]) -> list[LineItem]:
    if not items:
        return []

    average = sum(item.total_price for item in items) / len(items)
    kept = [item for item in items if item.total_price <= OUTLIER_FACTOR * average]
    if len(kept) < len(items):
        logger.debug("Dropped price outliers", dropped=len(items) - len(kept), average=round(average, 2))

    for item in kept:
        consistent = _math_consistent(item.quantity, item.unit_price, item.total_price)
        if consistent is True:
            item.confidence = min(item.confidence + 0.05, 0.95)
        elif consistent is False:
            item.confidence = max(item.confidence - 0.15, 0.05)

    unique: list[LineItem] = []
    for item in kept:
        if not _is_duplicate(item, unique):
            unique.append(item)

    return sorted(unique, key=lambda item: item.confidence, reverse=True)[:MAX_ITEMS]


def extract_line_items(text: str) -> list[LineItem]:
    """
    Extract purchased items from receipt text.

    Returns:
        At most 20 items ordered by descending confidence
    """
    items = []
    for line in (text or "").splitlines():
        item = _parse_line(line.strip())
        if item is not None:
            items.append(item)

    result = _refine(items)
    logger.debug("Line items extracted", candidates=len(items), kept=len(result))
    return result
